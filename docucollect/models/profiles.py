from __future__ import annotations

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from .base import Base


class Profile(Base):
    __tablename__ = "profiles"

    # same value as the account id issued by the auth service
    id = Column(String, primary_key=True)
    avatar_url = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
