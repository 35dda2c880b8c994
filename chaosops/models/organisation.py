"""Organisation and User models."""

import secrets
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class Organisation(SQLModel, table=True):
    __tablename__ = "organisations"

    id: str = Field(default_factory=lambda: f"org_{secrets.token_hex(4)}", primary_key=True)
    name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: f"usr_{secrets.token_hex(4)}", primary_key=True)
    organisation_id: str = Field(foreign_key="organisations.id", index=True)
    username: str = Field(unique=True, index=True)
    password_hash: str
    role: str = Field(default="member")  # 'admin' | 'member'
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
