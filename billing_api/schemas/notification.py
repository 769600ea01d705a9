"""
Pydantic schemas for notification endpoints.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class NotificationOut(BaseModel):
    id: int
    type: str
    title: str
    message: str
    read: bool
    # Read from the ORM attribute "meta", exposed as "metadata"
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("meta", "metadata"))
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    notifications: List[NotificationOut]


class UnreadCountResponse(BaseModel):
    count: int


class NotificationReadState(BaseModel):
    id: int
    read: bool

    model_config = ConfigDict(from_attributes=True)


class MarkReadResponse(BaseModel):
    message: str
    notification: NotificationReadState


class MarkAllReadResponse(BaseModel):
    message: str
    updated: int
