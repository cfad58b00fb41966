from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Caller identity resolved from the bearer token."""

    id: UUID
    email: Optional[str] = None
    role: str
    permissions: Dict[str, Dict[str, bool]] = {}
