from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Group(BaseModel):
    id: str
    name: str


class Agent(BaseModel):
    id: str
    name: str


class AuthRequest(BaseModel):
    endpoint: str  # upstream manager URL the relay should talk to
    username: str
    password: str


class AuthResponse(BaseModel):
    token: Optional[str] = None
    error: Optional[str] = None


class InventoryRequest(BaseModel):
    endpoint: str
    token: str
    params: dict[str, str] = Field(default_factory=dict)
