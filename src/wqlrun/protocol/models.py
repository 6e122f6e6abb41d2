from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Wire models are strict: a string timestamp or a numeric status is a
# malformed message, not something to coerce.
_WIRE_CONFIG = ConfigDict(strict=True, populate_by_name=True)


class SignedRequest(BaseModel):
    model_config = _WIRE_CONFIG

    client_id: str
    timestamp: int = Field(ge=0)  # epoch seconds
    nonce: str
    signature: str
    session_id: Optional[str] = None  # serialized as null when absent
    payload: str = Field(alias="wql_query")


class SignedResponse(BaseModel):
    model_config = _WIRE_CONFIG

    status: bool
    data: str  # query result when status is true, error message otherwise
    session_id: str
    timestamp: int = Field(ge=0)
    signature: str


class Session(BaseModel):
    """Continuity token persisted between runs.

    Valid only while younger than the store's TTL and only for the
    ``client_id`` that created it.
    """

    model_config = ConfigDict(strict=True)

    session_id: str
    client_id: str
    created_at: int = Field(ge=0)
    last_used: int = Field(ge=0)

    def age(self, now: int) -> int:
        return now - self.created_at


__all__ = ["SignedRequest", "SignedResponse", "Session"]
