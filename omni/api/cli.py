"""
Interactive terminal adapter for the OMNI session engine.

Architectural role:
- Exposes the single session through a line-oriented prompt.
- Delegates every intent to `omni.core.orchestrator.Orchestrator`.

Request lifecycle (per line):
1. Read stdin.
2. Handle local control commands (`exit`/`quit`, `/mode`, `/load`, `/clear`,
   `/ratio`, `/size`, `/verify`, `/chain`, `/speak`, `/history`, `/status`).
3. Any other text becomes the directive and is submitted.
4. Print the resulting snapshot.

Input validation behavior:
- Empty input is ignored.
- Submits blocked by the session rules print the reason instead of raising.
- Startup aborts when no API credential is configured.

Error handling strategy:
- `InvalidStateError`, `ChainError` and `ValueError` from commands are
  printed and the loop continues.
- EOF and keyboard interrupts terminate the loop without traceback output.

Response formatting:
- Text results print verbatim; image/video results are written to the output
  directory and their file path is printed.
"""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import mimetypes
import os
import sys

from omni.api.session import configure_logging, create_orchestrator
from omni.core.errors import ChainError, InvalidStateError
from omni.core.types import AssetSlot, InputAsset, Mode, TextArtifact
from omni.media.codec import parse_data_url
from omni.providers.provider_config import OUTPUT_DIR, has_credentials


HELP_TEXT = """Commands:
  /mode <composite|generate|edit|animate|analyze|culinary|reason>
  /load <primary|reference> <path>   /clear <primary|reference>
  /ratio <w:h>   /size <1K|2K|4K>   /verify <on|off>
  /chain <mode>  /speak  /history  /status  exit
Any other text is used as the directive and submitted."""

_EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "video/mp4": ".mp4"}


def load_asset(path):
    """Read an image file from disk as an `InputAsset`."""
    with open(path, "rb") as f:
        data = f.read()
    mime_type = mimetypes.guess_type(path)[0] or "image/png"
    return InputAsset(data=data, mime_type=mime_type, display_ref=os.path.basename(path))


def save_artifact(artifact, directory=OUTPUT_DIR):
    """Write an image/video data locator to disk and return the file path."""
    data, mime_type = parse_data_url(artifact.locator)
    os.makedirs(directory, exist_ok=True)
    index = len(os.listdir(directory))
    path = os.path.join(directory, f"result-{index}{_EXTENSIONS.get(mime_type, '.bin')}")
    with open(path, "wb") as f:
        f.write(data)
    return path


def render(snapshot):
    """Print a snapshot the way a user wants to see it."""
    print(f"[{snapshot.mode.value}] {snapshot.state.value}")
    if snapshot.error:
        print(f"Error: {snapshot.error}")
    if snapshot.notice:
        print(f"Notice: {snapshot.notice}")
    artifact = snapshot.artifact
    if isinstance(artifact, TextArtifact):
        print(artifact.text)
    elif artifact is not None:
        print(f"{artifact.kind.value} saved to {save_artifact(artifact)}")


def handle_command(orchestrator, line):
    """Apply one local command. Returns `False` when the loop should stop."""
    controller = orchestrator.controller
    command, _, arg = line.partition(" ")
    arg = arg.strip()

    if command in ("exit", "quit"):
        return False
    if command == "/mode":
        controller.set_mode(Mode(arg))
    elif command == "/load":
        slot, _, path = arg.partition(" ")
        controller.set_asset(AssetSlot(slot), load_asset(path.strip()))
    elif command == "/clear":
        controller.clear_asset(AssetSlot(arg))
    elif command == "/ratio":
        controller.set_aspect_ratio(arg)
    elif command == "/size":
        controller.set_resolution(arg)
    elif command == "/verify":
        controller.set_ownership_verified(arg.lower() in ("on", "yes", "true", "1"))
    elif command == "/chain":
        render(asyncio.run(orchestrator.chain(Mode(arg))))
    elif command == "/speak":
        buffer = asyncio.run(orchestrator.speak())
        if buffer is None:
            print(controller.snapshot().notice or "Nothing to narrate.")
        else:
            print(f"Narrated {buffer.duration:.1f}s to {orchestrator.player.sink.last_path}")
    elif command == "/history":
        for entry in orchestrator.history.entries():
            print(f"{entry.id[:8]}  {entry.text}")
    elif command == "/status":
        render(controller.snapshot())
    elif command == "/help":
        print(HELP_TEXT)
    else:
        controller.set_directive(line)
        if not controller.can_submit():
            print("Cannot submit yet: check the required images, directive and ownership flag.")
            return True
        print(controller.snapshot().status)
        render(asyncio.run(orchestrator.submit()))
    return True


def main():
    """
    Run the interactive terminal session.

    Error handling strategy:
    - Startup aborts when the credential gate fails.
    - Command errors are printed and the session continues.
    - EOF and keyboard interrupts are handled gracefully.
    """
    configure_logging()

    if not has_credentials():
        print("No API credential found. Set GEMINI_API_KEY or create config/gemini.key.")
        sys.exit(1)

    orchestrator = create_orchestrator()
    print("OMNI - The Universal Creative Engine")
    print(HELP_TEXT)

    while True:
        try:
            line = input(f"{orchestrator.controller.mode.value}> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not line:
            continue

        try:
            if not handle_command(orchestrator, line):
                break
        except (InvalidStateError, ChainError, ValueError, OSError) as err:
            print(f"Error: {err}")


if __name__ == "__main__":
    main()
