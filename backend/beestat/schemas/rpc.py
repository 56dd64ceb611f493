from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class RpcCall(BaseModel):
    resource: str = Field(min_length=1, max_length=64)
    method: str = Field(min_length=1, max_length=64)
    arguments: dict[str, Any] = Field(default_factory=dict)
    alias: str | None = Field(default=None, max_length=64)

    @field_validator("resource", "method", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value


class RpcResponse(BaseModel):
    success: bool = True
    data: Any = None

