from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from chance.database import Base, utcnow
from chance.models.user import User


class HeartbeatComment(Base):
    __tablename__ = "heartbeat_comments"

    id = Column(Integer, primary_key=True, index=True)
    heartbeat_id = Column(Integer, ForeignKey("heartbeats.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    likes = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)

    # Relationship
    author = relationship(User)
