"""Unified entry point for decoding model responses."""

from __future__ import annotations

from editforge.config import Settings
from editforge.decoding.envelope import decode
from editforge.decoding.marker import MarkerDecoder
from editforge.decoding.models import EditSet, StreamingStatus
from editforge.util.logging import get_logger

LOGGER = get_logger(__name__)


def parse_response(
    text: str,
    *,
    marker: MarkerDecoder | None = None,
    strict: bool = False,
    settings: Settings | None = None,
) -> EditSet | None:
    """Try the marker decoder first, then the JSON envelope decoder."""
    if marker is not None and marker.detect(text):
        result = marker.decode(text)
        if result is not None and result.files:
            return result
        LOGGER.info("marker decoder produced no files, falling back to JSON")
    return decode(text, strict=strict, settings=settings)


def streaming_status(
    text: str,
    known_paths: list[str],
    *,
    marker: MarkerDecoder | None = None,
    settings: Settings | None = None,
) -> StreamingStatus:
    """Progress of each known path within a response that may still be arriving."""
    if marker is not None and marker.detect(text):
        return marker.streaming_status(text, known_paths)
    decoded = decode(text, strict=False, settings=settings)
    finished: set[str] = set()
    if decoded is not None:
        finished = set(decoded.files)
        if decoded.truncated and decoded.files:
            # The last entry of a cut-off response may still be growing.
            finished.discard(list(decoded.files)[-1])
    status = StreamingStatus()
    for path in known_paths:
        if f'"{path}"' not in text:
            status.pending.append(path)
        elif path in finished:
            status.complete.append(path)
        else:
            status.streaming.append(path)
    return status
