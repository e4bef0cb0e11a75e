from dataclasses import dataclass
from datetime import datetime


@dataclass
class BookRecord:
    """Mutable in-memory row owned by the store. Never handed out directly."""

    id: int
    name: str
    author: str
    created_at: datetime
    updated_at: datetime
