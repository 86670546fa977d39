from pydantic import BaseModel
from typing import Optional

class User(BaseModel):
    """Authenticated account owning aircraft records"""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
