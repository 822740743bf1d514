"""Pydantic models for the backend-facing request bodies."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from .exceptions import InvalidInput


class RegisterRequest(BaseModel):
    clientId: str = ""
    url: str = ""
    name: str | None = None


class PingRequest(BaseModel):
    clientId: str = ""
    url: str | None = None
    name: str | None = None


def parse_body(model: type[BaseModel], data: Any) -> Any:
    """Validate a decoded JSON body, mapping failures to InvalidInput."""
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        raise InvalidInput(f"Invalid field(s): {fields}") from e
