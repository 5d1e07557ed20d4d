# db/Schema/login.py

from pydantic import BaseModel, Field
from typing import Optional


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)  # time-clock user id
    password: str = Field(..., min_length=1)


class UserInfo(BaseModel):
    uid: str
    name: str
    email: Optional[str] = ""
    location: Optional[str] = ""


class TokenData(BaseModel):
    token: str
    token_type: str = "bearer"
    expiresIn: int  # seconds
    user: UserInfo
