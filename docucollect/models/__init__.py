from .base import Base
from .documents import Document
from .notes import Note
from .profiles import Profile

__all__ = [
    "Base",
    "Document",
    "Note",
    "Profile",
]
