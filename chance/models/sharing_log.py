from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from chance.database import Base, utcnow

SHARE_TYPES = ("instagram", "whatsapp", "linkedin", "twitter", "download", "copy")


class SharingLog(Base):
    __tablename__ = "sharing_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    share_type = Column(String(50), nullable=False)
    content_type = Column(String(50), nullable=False, index=True)  # heartbeat, project, profile, spotlight
    content_id = Column(String(255))
    created_at = Column(DateTime, default=utcnow, nullable=False)
