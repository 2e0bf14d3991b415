# File: civictrack/schemas/user.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr

class UserOut(BaseModel):
    id: int
    email: EmailStr
    name: str
    role: str
    is_banned: bool

    class Config:
        from_attributes = True

class AdminUserOut(UserOut):
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    issue_count: int = 0

class PaginatedUsersOut(BaseModel):
    items: list[AdminUserOut]
    total: int
    offset: int
    limit: int
