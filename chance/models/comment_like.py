from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint

from chance.database import Base, utcnow


class CommentLike(Base):
    __tablename__ = "heartbeat_comment_likes"

    id = Column(Integer, primary_key=True, index=True)
    comment_id = Column(Integer, ForeignKey("heartbeat_comments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Ensure each user can only like a comment once
    __table_args__ = (UniqueConstraint("comment_id", "user_id", name="uq_comment_user_like"),)
