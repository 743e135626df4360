from __future__ import annotations
"""Pydantic v2 schema for the proxy relay envelope."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class RelayRequest(BaseModel):
    """Envelope the browser sends to ``POST /api/proxy/{vendor}``.

    Field aliases match the camelCase keys the front end already uses.
    """

    endpoint: str = Field(..., min_length=1)
    method: Literal["GET", "POST", "DELETE"] = "GET"
    payload: Any | None = None
    api_key: str | None = Field(None, alias="apiKey")
    base_url: str | None = Field(None, alias="baseUrl")

    model_config = {"populate_by_name": True}
