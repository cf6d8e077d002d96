# backend/models.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from sqlalchemy import Column, DateTime, JSON
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware_utc(value: datetime) -> datetime:
    """SQLite hands timestamps back without an offset; they were written as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class MsToken(SQLModel, table=True):
    __tablename__ = "ms_tokens"

    user_id: str = Field(primary_key=True, max_length=255)
    access_token: str = Field(max_length=4096)
    expires_on: datetime = Field(sa_type=DateTime(timezone=True), nullable=False)

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        # expires_on == now counts as expired
        return (now or utcnow()) < as_aware_utc(self.expires_on)

    def expires_on_iso(self) -> str:
        return as_aware_utc(self.expires_on).isoformat()


class MsAuthFlow(SQLModel, table=True):
    __tablename__ = "ms_auth_flow"

    user_id: str = Field(primary_key=True, max_length=255)
    flow_data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False)
