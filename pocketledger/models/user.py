import uuid
from datetime import datetime
from typing import Optional
from sqlmodel import SQLModel, Field

from .base import UTCDateTime, utcnow


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    phone_number: str = Field(index=True, unique=True, max_length=16)

    # otp_code and otp_expires_at are always set or cleared together
    otp_code: Optional[str] = Field(default=None, max_length=6)
    otp_expires_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    is_verified: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
