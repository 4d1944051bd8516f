from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Enum

from chance.database import Base, utcnow

USER_ROLES = ("user", "admin")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255))  # None for accounts provisioned through Google

    first_name = Column(String(255))
    last_name = Column(String(255))
    username = Column(String(255), unique=True, index=True)
    profile_image_url = Column(String(500))
    school = Column(String(255))
    bio = Column(Text)
    instagram = Column(String(255))
    whatsapp_number = Column(String(20))
    profile_completed = Column(Boolean, default=False, nullable=False)

    role = Column(Enum(*USER_ROLES, name="user_role"), default="user", nullable=False)
    influence = Column(Integer, default=0, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)

    @property
    def is_admin(self):
        return self.role == "admin"
