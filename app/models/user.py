from sqlalchemy import Boolean, Column, DateTime, String, func

from app.database import Base


class User(Base):
    __tablename__ = "users"

    phone_number = Column(String(20), primary_key=True)
    terms_accepted = Column(Boolean, nullable=False, default=False)
    accepted_at = Column(DateTime(timezone=True))
    terms_version = Column(String(20))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
