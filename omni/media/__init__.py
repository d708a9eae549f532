"""Media conversion package.

Scope:
    - `codec`: PCM audio decoding, WAV rendering, data locators and image
      re-ingestion for chaining.
    - `playback`: single-flight narration with pluggable sinks.

Non-goals:
    - No file-picker or drag-and-drop handling; uploads arrive as bytes.
"""
