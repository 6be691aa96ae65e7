"""Response envelope schema enforcement."""

from __future__ import annotations

from typing import Any, Dict

from jsonschema import Draft7Validator

from .errors import MalformedEnvelope, UpstreamError

ENVELOPE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["data"],
    "properties": {
        "success": {"type": "boolean"},
        "message": {"type": ["string", "null"]},
        "data": {},
    },
}

_validator = Draft7Validator(ENVELOPE_SCHEMA)


def unwrap(endpoint: str, payload: Any) -> Any:
    """Validate an API envelope and return its `data` payload."""
    errors = sorted(_validator.iter_errors(payload), key=lambda e: e.path)
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise MalformedEnvelope(endpoint, messages)

    if payload.get("success") is False:
        raise UpstreamError(endpoint, None, payload.get("message") or "success=false")

    return payload["data"]
