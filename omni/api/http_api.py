"""
HTTP API adapter for the OMNI session engine.

Architectural role:
- Expose the single session (mode, inputs, settings, result) over HTTP.
- Enforce adapter-level input validation and the credential gate.
- Delegate submit/chain/speak intents to `omni.core.orchestrator.Orchestrator`.

Endpoint responsibilities:
- `GET /v1/session`: current session snapshot.
- `POST /v1/session/mode`: switch workflow.
- `PUT|DELETE /v1/session/assets/{slot}`: upload or clear an input image.
- `POST /v1/session/settings`: directive, aspect ratio, resolution, ownership.
- `POST /v1/session/submit`: start generation (optionally wait for it).
- `POST /v1/session/cancel`: abandon an in-flight video job.
- `POST /v1/session/chain`: feed the current result into another mode.
- `POST /v1/session/speak`: narrate the current text result.
- `GET|DELETE /v1/history`, `DELETE /v1/history/{id}`: prompt history.

Error handling strategy:
- `InvalidStateError` -> HTTP 409.
- `ChainError` -> HTTP 422.
- Unknown mode/slot -> HTTP 422 (request validation).
- Bad base64 or unsupported settings -> HTTP 400.
- Missing credential on dispatching endpoints -> HTTP 401.
- Provider failures never surface as HTTP errors; they land in the session
  snapshot as `state="error"` with the failure text.

Side effects:
- Loads environment variables at import time via `load_dotenv()`.
- Background submits run as tasks on the server event loop.
"""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import base64
import binascii
import logging
from dataclasses import asdict

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from omni.api.session import configure_logging, create_orchestrator
from omni.core.errors import ChainError, InvalidStateError
from omni.core.orchestrator import Orchestrator
from omni.core.types import AssetSlot, InputAsset, Mode
from omni.providers.provider_config import has_credentials


logger = logging.getLogger(__name__)

app = FastAPI(title="OMNI")

_ORCHESTRATOR: Orchestrator | None = None
_BACKGROUND_TASKS: set = set()


def set_orchestrator(orchestrator: Orchestrator | None) -> None:
    """Override or clear the process-wide session orchestrator."""
    global _ORCHESTRATOR
    _ORCHESTRATOR = orchestrator


def get_orchestrator() -> Orchestrator:
    """Lazily create and cache the default orchestrator."""
    global _ORCHESTRATOR
    if _ORCHESTRATOR is None:
        _ORCHESTRATOR = create_orchestrator()
    return _ORCHESTRATOR


def _log_background_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background submit failed", exc_info=exc)


def require_credentials() -> None:
    if not has_credentials():
        raise HTTPException(status_code=401, detail="No API credential configured")


# ============================================================
# Error Mapping
# ============================================================

@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"error": str(exc)})


@app.exception_handler(ChainError)
async def chain_error_handler(request: Request, exc: ChainError):
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


# ============================================================
# Request Schemas
# ============================================================

class ModeRequest(BaseModel):
    mode: Mode


class AssetUpload(BaseModel):
    data: str
    mime_type: str
    display_ref: str = ""


class SettingsRequest(BaseModel):
    directive: str | None = None
    aspect_ratio: str | None = None
    resolution: str | None = None
    ownership_verified: bool | None = None


class SubmitRequest(BaseModel):
    wait: bool = False


class ChainRequest(BaseModel):
    target_mode: Mode


# ============================================================
# Session Endpoints
# ============================================================

@app.get("/v1/session")
def read_session(orchestrator: Orchestrator = Depends(get_orchestrator)):
    snapshot = orchestrator.controller.snapshot()
    return {**snapshot.to_dict(), "can_submit": orchestrator.controller.can_submit()}


@app.post("/v1/session/mode")
def switch_mode(body: ModeRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    orchestrator.controller.set_mode(body.mode)
    return orchestrator.controller.snapshot().to_dict()


@app.put("/v1/session/assets/{slot}")
def upload_asset(
    slot: AssetSlot,
    body: AssetUpload,
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    try:
        data = base64.b64decode(body.data, validate=True)
    except (binascii.Error, ValueError):
        return JSONResponse(status_code=400, content={"error": "Asset data is not valid base64"})
    if not data:
        return JSONResponse(status_code=400, content={"error": "Asset data is empty"})

    asset = InputAsset(data=data, mime_type=body.mime_type, display_ref=body.display_ref)
    orchestrator.controller.set_asset(slot, asset)
    return orchestrator.controller.snapshot().to_dict()


@app.delete("/v1/session/assets/{slot}")
def clear_asset(slot: AssetSlot, orchestrator: Orchestrator = Depends(get_orchestrator)):
    orchestrator.controller.clear_asset(slot)
    return orchestrator.controller.snapshot().to_dict()


@app.post("/v1/session/settings")
def update_settings(body: SettingsRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    controller = orchestrator.controller
    if body.aspect_ratio is not None:
        controller.set_aspect_ratio(body.aspect_ratio)
    if body.resolution is not None:
        controller.set_resolution(body.resolution)
    if body.directive is not None:
        controller.set_directive(body.directive)
    if body.ownership_verified is not None:
        controller.set_ownership_verified(body.ownership_verified)
    return controller.snapshot().to_dict()


@app.post("/v1/session/submit", dependencies=[Depends(require_credentials)])
async def submit(body: SubmitRequest | None = None, orchestrator: Orchestrator = Depends(get_orchestrator)):
    """
    Start generation for the current mode.

    With `wait=true` the response is the final snapshot. Otherwise the job
    runs in the background and the Generating snapshot is returned with
    HTTP 202; clients poll `GET /v1/session`.
    """
    if not orchestrator.controller.can_submit():
        raise InvalidStateError("Submit is not allowed in the current session state")

    if body is not None and body.wait:
        snapshot = await orchestrator.submit()
        return snapshot.to_dict()

    task = asyncio.create_task(orchestrator.submit())
    _BACKGROUND_TASKS.add(task)
    task.add_done_callback(_BACKGROUND_TASKS.discard)
    task.add_done_callback(_log_background_failure)
    # Let the task enter Generating before replying.
    await asyncio.sleep(0)
    return JSONResponse(status_code=202, content=orchestrator.controller.snapshot().to_dict())


@app.post("/v1/session/cancel")
def cancel(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return {"cancelled": orchestrator.cancel()}


@app.post("/v1/session/chain")
async def chain(body: ChainRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    snapshot = await orchestrator.chain(body.target_mode)
    return snapshot.to_dict()


@app.post("/v1/session/speak", dependencies=[Depends(require_credentials)])
async def speak(orchestrator: Orchestrator = Depends(get_orchestrator)):
    buffer = await orchestrator.speak()
    if buffer is None:
        return {"played": False, "notice": orchestrator.controller.snapshot().notice}
    return {
        "played": True,
        "sample_rate": buffer.sample_rate,
        "channels": buffer.channels,
        "frames": buffer.frame_count,
        "duration": buffer.duration,
    }


# ============================================================
# Prompt History
# ============================================================

def _history(orchestrator: Orchestrator):
    if orchestrator.history is None:
        raise HTTPException(status_code=404, detail="Prompt history is disabled")
    return orchestrator.history


@app.get("/v1/history")
def list_history(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return [asdict(entry) for entry in _history(orchestrator).entries()]


@app.delete("/v1/history/{entry_id}")
def delete_history_entry(entry_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    if not _history(orchestrator).delete(entry_id):
        raise HTTPException(status_code=404, detail="Unknown history entry")
    return {"deleted": entry_id}


@app.delete("/v1/history")
def clear_history(orchestrator: Orchestrator = Depends(get_orchestrator)):
    _history(orchestrator).clear()
    return {"cleared": True}


def main():
    import uvicorn

    configure_logging()
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    main()
