"""Recover a JSON value from noisy language-model output.

Each repair strategy is a pure ``str -> str | None`` function. ``parse_model_json``
tries them in order and returns the first candidate that both decodes and
passes the caller's acceptance check.
"""

from __future__ import annotations

import json
import logging
import re
from json import JSONDecodeError
from typing import Any, Callable

from errors import ExtractionError

LOGGER = logging.getLogger(__name__)

RepairStrategy = Callable[[str], "str | None"]

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_CONTROL_CHARS_RE = re.compile(r"[\u0000-\u001f]+")
_BARE_WORD_RE = re.compile(r"[A-Za-z0-9_\-+.]+")
_UNESCAPED_DOUBLE_QUOTE_RE = re.compile(r'(?<!\\)"')
# Opening quote -> quotes that may close it. Curly and single-quoted literals
# are rewritten as double-quoted JSON strings.
_ALT_STRING_CLOSERS = {
    "\u201c": "\u201d\u201c\"",
    "\u201d": "\u201d\u201c\"",
    "'": "'\u2019",
    "\u2018": "\u2019\u2018'",
    "\u2019": "\u2019'",
}


def as_is(text: str) -> str | None:
    return text.strip() or None


def strip_code_fences(text: str) -> str | None:
    """Return the body of the first ```json fence, or the text when unfenced."""
    stripped = text.strip()
    match = _FENCE_RE.search(stripped)
    candidate = match.group(1).strip() if match else stripped
    return candidate or None


def sanitize(text: str) -> str | None:
    """Fix the usual syntax slips: control chars, trailing commas, quotes, bare keys.

    Only text outside string literals is rewritten, so apostrophes and colons
    inside titles survive.
    """
    candidate = strip_code_fences(text)
    if candidate is None:
        return None
    candidate = _CONTROL_CHARS_RE.sub(" ", candidate)

    out: list[str] = []
    index = 0
    while index < len(candidate):
        char = candidate[index]
        if char == '"':
            end = _string_end(candidate, index, '"')
            out.append(candidate[index:end])
            index = end
        elif char in _ALT_STRING_CLOSERS:
            closers = _ALT_STRING_CLOSERS[char]
            end = _string_end(candidate, index, closers)
            body_end = end - 1 if end > index + 1 and candidate[end - 1] in closers else end
            body = candidate[index + 1:body_end].replace("\\'", "'")
            out.append('"' + _UNESCAPED_DOUBLE_QUOTE_RE.sub(r'\\"', body) + '"')
            index = end
        elif char == ",":
            following = _next_significant(candidate, index + 1)
            if following not in ("}", "]"):
                out.append(char)
            index += 1
        elif _BARE_WORD_RE.match(char):
            word = _BARE_WORD_RE.match(candidate, index).group(0)
            index += len(word)
            if _next_significant(candidate, index) == ":":
                out.append(f'"{word}"')
            else:
                out.append(word)
        else:
            out.append(char)
            index += 1
    return "".join(out)


def _string_end(text: str, start: int, closers: str) -> int:
    """Index just past the literal opened at ``start``; end of text when unterminated."""
    escaped = False
    for index in range(start + 1, len(text)):
        char = text[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char in closers:
            return index + 1
    return len(text)


def _next_significant(text: str, start: int) -> str:
    for index in range(start, len(text)):
        if not text[index].isspace():
            return text[index]
    return ""


def extract_balanced_block(text: str) -> str | None:
    """Return the first balanced ``{...}`` or ``[...]`` block, honouring string literals."""
    start = -1
    for index, char in enumerate(text):
        if char in "{[":
            start = index
            break
    if start < 0:
        return None

    closers = {"{": "}", "[": "]"}
    stack: list[str] = []
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in closers:
            stack.append(closers[char])
        elif char in "}]":
            if not stack or stack.pop() != char:
                return None
            if not stack:
                return text[start:index + 1]
    return None


def sanitize_block(text: str) -> str | None:
    fenced = strip_code_fences(text)
    block = extract_balanced_block(fenced) if fenced else None
    return sanitize(block) if block else None


REPAIR_STRATEGIES: tuple[tuple[str, RepairStrategy], ...] = (
    ("direct", as_is),
    ("strip_fences", strip_code_fences),
    ("sanitize", sanitize),
    ("balanced_block", sanitize_block),
)


def parse_model_json(
    content: str,
    accept: Callable[[Any], bool] = lambda value: isinstance(value, dict),
) -> Any:
    """Parse model output with the repair chain; raise ExtractionError when nothing works."""
    if not content or not content.strip():
        raise ExtractionError("Model returned an empty response", retryable=True)

    for name, strategy in REPAIR_STRATEGIES:
        candidate = strategy(content)
        if candidate is None:
            continue
        try:
            parsed = json.loads(candidate)
        except JSONDecodeError:
            continue
        if accept(parsed):
            if name != "direct":
                LOGGER.debug("Recovered model JSON with strategy=%s", name)
            return parsed

    raise ExtractionError("Model did not return valid JSON", retryable=True)
