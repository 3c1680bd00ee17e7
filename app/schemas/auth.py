from pydantic import BaseModel, Field
from typing import Optional


class RegisterIn(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=8)
    email: Optional[str] = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
