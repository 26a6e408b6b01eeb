"""String-aware bracket scanning shared by the repair and decode steps."""

from __future__ import annotations

from dataclasses import dataclass, field

_OPENERS = {"{": "}", "[": "]"}
_CLOSERS = {"}": "{", "]": "["}


@dataclass
class ScanState:
    """Result of one pass over a JSON-ish text span."""

    in_string: bool = False
    escape: bool = False
    brace_depth: int = 0
    bracket_depth: int = 0
    stack: list[str] = field(default_factory=list)

    @property
    def balanced(self) -> bool:
        return (
            not self.in_string
            and self.brace_depth == 0
            and self.bracket_depth == 0
            and not self.stack
        )


def scan(text: str) -> ScanState:
    """Track string/escape state and container depth across ``text``.

    Quote characters inside strings never affect depth. Closers that do not
    match the innermost opener are ignored for the stack but still counted
    in the depth totals, so a stray ``}`` keeps the span unbalanced.
    """
    state = ScanState()
    for char in text:
        if state.in_string:
            if state.escape:
                state.escape = False
            elif char == "\\":
                state.escape = True
            elif char == '"':
                state.in_string = False
            continue
        if char == '"':
            state.in_string = True
        elif char == "{":
            state.brace_depth += 1
            state.stack.append(char)
        elif char == "[":
            state.bracket_depth += 1
            state.stack.append(char)
        elif char in _CLOSERS:
            if char == "}":
                state.brace_depth -= 1
            else:
                state.bracket_depth -= 1
            if state.stack and state.stack[-1] == _CLOSERS[char]:
                state.stack.pop()
    return state


def is_balanced(text: str) -> bool:
    """Return True when every ``{``/``[`` closes and no string is left open."""
    return scan(text).balanced


def count_unclosed_braces(text: str) -> int:
    """Return opening ``{`` minus closing ``}`` outside strings."""
    return scan(text).brace_depth


def missing_closers(text: str) -> str:
    """Closers that would balance ``text``, innermost first."""
    state = scan(text)
    return "".join(_OPENERS[opener] for opener in reversed(state.stack))


def find_container_end(text: str, start: int) -> int | None:
    """Return the index of the closer matching the opener at ``start``."""
    if start < 0 or start >= len(text) or text[start] not in _OPENERS:
        return None
    stack: list[str] = []
    in_string = False
    escape = False
    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _OPENERS:
            stack.append(char)
        elif char in _CLOSERS and stack and stack[-1] == _CLOSERS[char]:
            stack.pop()
            if not stack:
                return idx
    return None
