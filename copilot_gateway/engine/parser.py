"""Response parser — classifies raw LLM text into one of the four response shapes.

Extraction order: fenced code block, then the first balanced JSON object
anywhere in the text, then the whole text as an informative message. JSON
without a recognized ``type`` is plain text too. A recognized ``type`` with a
missing mandatory field is a parse failure.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from copilot_gateway.engine.models import (
    AskUserResponse,
    CallToolResponse,
    InformativeResponse,
    LLMResponse,
    PlanResponse,
)

logger = logging.getLogger(__name__)

RESPONSE_TYPES = ("PLAN", "CALL_TOOL", "ASK_USER", "RESPONSE")

MISSING_FIELD = "MISSING_FIELD"
INVALID_STRUCTURE = "INVALID_STRUCTURE"
EMPTY_CONTENT = "EMPTY_CONTENT"

_FENCED = (
    re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE),
    re.compile(r"```\s*(.*?)```", re.DOTALL),
)
# A write verb as the whole operation name or its first camelCase word.
_WRITE_OPERATION = re.compile(
    r"^(?:create|update|delete|remove|cancel|send|add|edit|issue|upsert)(?=[A-Z]|$)",
)

_response_adapter: TypeAdapter[Any] = TypeAdapter(LLMResponse)


class ParseResult(BaseModel):
    success: bool
    response: LLMResponse | None = None
    error: str | None = None
    error_code: str | None = None
    raw_text: str | None = None


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def _first_balanced_object(text: str) -> str | None:
    """Return the first ``{...}`` span whose braces balance, skipping string literals."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    candidate = text[start:i + 1]
                    try:
                        json.loads(candidate)
                    except json.JSONDecodeError:
                        break
                    return candidate
        start = text.find("{", start + 1)
    return None


def extract_json(text: str) -> Any | None:
    """Pull the first JSON value out of *text*; ``None`` when there is none."""
    for pattern in _FENCED:
        for match in pattern.finditer(text):
            try:
                return json.loads(match.group(1).strip())
            except json.JSONDecodeError:
                continue
    candidate = _first_balanced_object(text)
    if candidate is not None:
        return json.loads(candidate)
    return None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _plain_text(raw: str) -> ParseResult:
    return ParseResult(success=True, response=InformativeResponse(message=raw.strip()))


def _describe(exc: ValidationError) -> tuple[str, str]:
    errors = exc.errors()
    missing = [
        str(e["loc"][-1]) for e in errors
        if e.get("type") == "missing" and e.get("loc")
    ]
    if missing:
        return MISSING_FIELD, f"Missing required field: {', '.join(missing)}"
    detail = ", ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ())[1:])}: {e.get('msg')}" for e in errors
    )
    return INVALID_STRUCTURE, f"Invalid response structure: {detail}"


def parse(raw: str | None) -> ParseResult:
    if not raw or not isinstance(raw, str) or not raw.strip():
        return ParseResult(success=False, error="Empty or invalid content", error_code=EMPTY_CONTENT)

    payload = extract_json(raw)
    if not isinstance(payload, dict) or payload.get("type") not in RESPONSE_TYPES:
        if isinstance(payload, dict):
            logger.debug("JSON without a known type, treating as text: %r", payload.get("type"))
        return _plain_text(raw)

    try:
        response = _response_adapter.validate_python(payload)
    except ValidationError as exc:
        code, message = _describe(exc)
        logger.warning("Invalid %s response: %s", payload["type"], message)
        return ParseResult(success=False, error=message, error_code=code, raw_text=raw)
    return ParseResult(success=True, response=response)


# ---------------------------------------------------------------------------
# Discriminator helpers
# ---------------------------------------------------------------------------

def is_plan(response: Any) -> bool:
    return isinstance(response, PlanResponse)


def is_tool_call(response: Any) -> bool:
    return isinstance(response, CallToolResponse)


def is_ask_user(response: Any) -> bool:
    return isinstance(response, AskUserResponse)


def is_informative(response: Any) -> bool:
    return isinstance(response, InformativeResponse)


def is_write_tool(name: str) -> bool:
    """``customers.create``, ``quotes.updateStatus``, ``billing.createCharge`` → True."""
    operation = name.rsplit(".", 1)[-1]
    return bool(_WRITE_OPERATION.match(operation))


def is_payment_create_tool(name: str) -> bool:
    return name == "billing.createCharge"
