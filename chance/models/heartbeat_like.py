from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint

from chance.database import Base, utcnow


class HeartbeatLike(Base):
    __tablename__ = "heartbeat_likes"

    id = Column(Integer, primary_key=True, index=True)
    heartbeat_id = Column(Integer, ForeignKey("heartbeats.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Ensure each user can only like a heartbeat once
    __table_args__ = (UniqueConstraint("heartbeat_id", "user_id", name="uq_heartbeat_user_like"),)
