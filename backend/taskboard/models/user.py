from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from taskboard.core.database import Base
from taskboard.models.enums import UserRole, enum_values

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    # Fixed at creation; selects the login realm (admin console or public app)
    role = Column(
        Enum(UserRole, native_enum=False, values_callable=enum_values, length=16),
        nullable=False,
        default=UserRole.USER,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    task_links = relationship("TaskParticipant", back_populates="user", passive_deletes=True)
    comments = relationship("Comment", back_populates="user", passive_deletes=True)

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}
