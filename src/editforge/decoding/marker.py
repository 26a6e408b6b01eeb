"""Contract for the tag-delimited marker format decoder."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from editforge.decoding.models import EditSet, StreamingStatus

_MARKER_RE = re.compile(r"<!--\s*(?:FILE:|META|PLAN)", re.IGNORECASE)


def looks_like_marker_format(text: str) -> bool:
    """True when ``text`` carries ``<!-- FILE:``, ``<!-- META`` or ``<!-- PLAN`` markers."""
    return bool(_MARKER_RE.search(text))


class MarkerDecoder(ABC):
    """Peer decoder for ``<!-- FILE:path -->`` block responses.

    Implementations own the marker grammar; this package only routes to them.
    """

    def detect(self, text: str) -> bool:
        return looks_like_marker_format(text)

    @abstractmethod
    def decode(self, text: str) -> EditSet | None:
        """Decode a complete or partial marker response."""
        raise NotImplementedError

    @abstractmethod
    def streaming_status(self, text: str, known_paths: list[str]) -> StreamingStatus:
        """Report which of ``known_paths`` are pending, streaming or complete."""
        raise NotImplementedError
