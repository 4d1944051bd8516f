from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship

from chance.database import Base, utcnow
from chance.models.user import User

PROJECT_STATUSES = ("open", "ongoing", "completed")
VISIBILITIES = ("public", "private")
visibility_enum = Enum(*VISIBILITIES, name="visibility")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(256), nullable=False, index=True)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    impact = Column(Text, nullable=False)
    team_size = Column(Integer, nullable=False)
    effort = Column(String(100), nullable=False)
    people_influenced = Column(Integer)
    type_of_people = Column(String(255))
    required_tools = Column(JSON, default=list, nullable=False)
    action_plan = Column(JSON, default=list, nullable=False)
    collaboration = Column(Text)
    likes = Column(Integer, default=0, nullable=False)

    creator_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    status = Column(Enum(*PROJECT_STATUSES, name="project_status"), default="open", nullable=False, index=True)
    visibility = Column(visibility_enum, default="public", nullable=False)
    admin_notes = Column(Text)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)

    creator = relationship(User)
