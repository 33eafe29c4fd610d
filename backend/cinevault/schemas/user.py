from datetime import datetime

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    """Sign-up payload for a library owner."""

    email: str = Field(min_length=3, max_length=255)
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1)


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """Owner profile; never carries the password hash."""

    id: int
    email: str
    username: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
