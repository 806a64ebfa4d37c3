"""Compact transcript encoding for rendered answers.

Answers are rendered as markdown for the user. When an answer is replayed to
the model as conversation history we only need its text, so the encoding
normalises whitespace and trims long code fences down to a short excerpt.
"""

from __future__ import annotations

import re

__all__ = ["MAX_FENCE_LINES", "encode_answer"]

MAX_FENCE_LINES = 12
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_FENCE_RE = re.compile(r"^(?P<fence>```|~~~)")


def encode_answer(answer: str, conclusion: str | None = None) -> str:
    """Return *answer* (and the optional *conclusion*) in compact transcript form."""

    lines = [line.rstrip() for line in (answer or "").replace("\r\n", "\n").split("\n")]
    encoded = "\n".join(_elide_fences(lines))
    encoded = _BLANK_RUN_RE.sub("\n\n", encoded).strip()
    if conclusion and conclusion.strip():
        encoded = f"{encoded}\n\n{conclusion.strip()}" if encoded else conclusion.strip()
    return encoded


def _elide_fences(lines: list[str]) -> list[str]:
    result: list[str] = []
    fence: str | None = None
    body: list[str] = []
    for line in lines:
        match = _FENCE_RE.match(line.lstrip())
        if fence is None:
            result.append(line)
            if match is not None:
                fence = match.group("fence")
                body = []
            continue
        if match is not None and match.group("fence") == fence:
            result.extend(_excerpt(body))
            result.append(line)
            fence = None
            continue
        body.append(line)
    if fence is not None:
        # Unterminated fence; keep whatever was captured.
        result.extend(_excerpt(body))
    return result


def _excerpt(body: list[str]) -> list[str]:
    if len(body) <= MAX_FENCE_LINES:
        return body
    hidden = len(body) - MAX_FENCE_LINES
    return body[:MAX_FENCE_LINES] + [f"... ({hidden} more lines)"]
