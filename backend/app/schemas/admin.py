from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class CreatedResponse(BaseModel):
    id: str


class OkResponse(BaseModel):
    ok: bool = True


class UserCreateRequest(BaseModel):
    email: str
    role: Literal["user", "admin"] = "user"
    password: str


class UserPublic(BaseModel):
    id: str
    email: str
    role: str
    created_at: str


class UsersListResponse(BaseModel):
    items: list[UserPublic]
