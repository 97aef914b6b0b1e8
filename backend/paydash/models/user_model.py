from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime, timezone


class User(BaseModel):
    """Dashboard user, resolved from a Firebase ID token."""

    id: str = Field(..., alias="_id")
    firebase_uid: Optional[str] = None
    email: str = ""
    display_name: str = ""
    is_active: bool = True

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {
        "from_attributes": True,
        "populate_by_name": True
    }
