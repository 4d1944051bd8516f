from sqlalchemy import Column, Integer, DateTime, ForeignKey

from chance.database import Base, utcnow


class ProjectCompleted(Base):
    """One row per user credited when an admin closes out a project."""

    __tablename__ = "projects_completed"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    points = Column(Integer, default=0, nullable=False)
    completed_at = Column(DateTime, default=utcnow, nullable=False)
