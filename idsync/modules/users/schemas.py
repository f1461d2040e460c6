from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from idsync.database.schema import DISPLAY_NAME_MAX_LENGTH, EMAIL_MAX_LENGTH, UID_MAX_LENGTH


class UserProjection(BaseModel):
    """One row of the users table."""

    model_config = ConfigDict(from_attributes=True)

    external_uid: str
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    display_name: Optional[str] = Field(default=None, max_length=DISPLAY_NAME_MAX_LENGTH)
    avatar_url: Optional[str] = None


class UserCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    external_uid: str = Field(min_length=1, max_length=UID_MAX_LENGTH)
    email: str = Field(default="", max_length=EMAIL_MAX_LENGTH)
    display_name: Optional[str] = Field(default=None, max_length=DISPLAY_NAME_MAX_LENGTH)
    avatar_url: Optional[str] = None
