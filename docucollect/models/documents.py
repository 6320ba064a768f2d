from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import expression, func

from .base import Base


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    file_url = Column(String, nullable=False)            # public object URL or external link
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    is_favorite = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    is_offline = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    file_type = Column(String, nullable=False, default="unknown", server_default="unknown")
