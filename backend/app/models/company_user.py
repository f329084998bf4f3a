from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db import Base


class CompanyUser(Base):
    __tablename__ = "company_users"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False, default="")
    role = Column(String, default="owner", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    company = relationship("Company")
