"""Reviewer response extraction and schema validation.

A reviewer's raw reply (text, or bytes that must decode as UTF-8) may be
a bare JSON document, a JSON document inside a markdown code fence, or
JSON surrounded by explanatory text. This module extracts the structured
payload and validates it against the ``RoundVerdict`` schema.

Two failure modes are kept distinct because callers retry them
differently:

* ``MalformedResponseError``: nothing parseable could be extracted.
* ``SchemaViolationError``: a document parsed, but its fields are invalid.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog
from pydantic import ValidationError

from crossreview.review.errors import MalformedResponseError, SchemaViolationError
from crossreview.review.models import RoundVerdict

logger = structlog.get_logger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?[ \t]*\n?(.*?)```", re.DOTALL | re.IGNORECASE)


def decode_response(raw: str | bytes) -> str:
    """Decode a raw reviewer response to text.

    Raises:
        MalformedResponseError: If ``raw`` is bytes that are not valid UTF-8.
    """
    if isinstance(raw, str):
        return raw
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedResponseError(
            f"Reviewer response is not valid UTF-8 (byte offset {e.start})",
            raw.decode("utf-8", errors="replace"),
        ) from e


def extract_payload(raw_text: str) -> Any:
    """Extract a JSON document from a reviewer response.

    Strategies, first success wins:
    1. Parse the whole text as JSON
    2. Parse the first fenced code block (```json or bare ```)
    3. Parse the first balanced ``{...}`` object
    4. Parse the slice from the first ``{`` to the last ``}``

    Args:
        raw_text: Raw reviewer output.

    Returns:
        The decoded JSON value.

    Raises:
        MalformedResponseError: If no strategy yields valid JSON.
    """
    for candidate in _candidates(raw_text):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    raise MalformedResponseError(
        "Could not extract valid JSON from reviewer response", raw_text
    )


def _candidates(text: str) -> list[str]:
    candidates = [text.strip()]

    fence_match = _FENCE_PATTERN.search(text)
    if fence_match:
        candidates.append(fence_match.group(1).strip())

    balanced = _balanced_object(text)
    if balanced is not None:
        candidates.append(balanced)

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    return candidates


def _balanced_object(text: str) -> str | None:
    """Return the first complete ``{...}`` object, ignoring braces in strings."""
    first_brace = text.find("{")
    if first_brace == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i in range(first_brace, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue

        if char == "\\":
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if not in_string:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[first_brace : i + 1]

    return None


def _format_location(loc: tuple[Any, ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "document"


def collect_schema_errors(data: Any) -> list[str]:
    """Validate a decoded document and list every field-level problem.

    Args:
        data: Decoded JSON value.

    Returns:
        Messages formatted ``"<path>: <message>"``, e.g.
        ``"prior_issues[0].status: ..."``. Empty when the document is valid.
    """
    try:
        RoundVerdict.model_validate(data)
    except ValidationError as e:
        return [f"{_format_location(err['loc'])}: {err['msg']}" for err in e.errors()]
    return []


def validate_round_verdict(data: Any) -> RoundVerdict:
    """Validate a decoded document as a RoundVerdict.

    Args:
        data: Decoded JSON value.

    Returns:
        The typed RoundVerdict.

    Raises:
        SchemaViolationError: With the non-empty list of field errors.
    """
    try:
        return RoundVerdict.model_validate(data)
    except ValidationError as e:
        errors = [f"{_format_location(err['loc'])}: {err['msg']}" for err in e.errors()]
        logger.warning("schema_violation", error_count=len(errors))
        raise SchemaViolationError(errors) from e


def parse_round_verdict(raw: str | bytes) -> RoundVerdict:
    """Decode, extract and validate a reviewer response in one step.

    Example:
        >>> raw = '''Here is my review:
        ... ```json
        ... {"verdict": "REVISE", "prior_issues": [], "new_issues": [],
        ...  "summary": "Needs work"}
        ... ```'''
        >>> parse_round_verdict(raw).verdict.value
        'REVISE'
    """
    return validate_round_verdict(extract_payload(decode_response(raw)))
