from sqlalchemy import Column, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from chance.database import Base, utcnow
from chance.models.user import User


class ProjectMember(Base):
    __tablename__ = "project_members"

    # The composite key makes membership a set: a second join cannot add a row
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship(User)
