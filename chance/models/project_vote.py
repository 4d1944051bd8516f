from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint

from chance.database import Base, utcnow


class ProjectVote(Base):
    __tablename__ = "project_votes"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vote_type = Column(String(50), default="upvote", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Ensure each user can only upvote a project once
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_user_vote"),)
