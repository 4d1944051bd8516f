from sqlalchemy import Column, Integer, DateTime, ForeignKey

from chance.database import Base, utcnow


class Spotlight(Base):
    __tablename__ = "spotlight"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
