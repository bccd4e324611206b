"""
Pydantic schemas for sign-in.
"""
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field


class GoogleAuthRequest(BaseModel):
    id_token: Optional[str] = Field(None, alias="idToken", description="Google ID token from the client SDK")

    model_config = ConfigDict(populate_by_name=True)


class AuthUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: Optional[str] = None
    display_name: str


class GoogleAuthResponse(BaseModel):
    ok: bool = True
    user: AuthUser
    is_new: bool
