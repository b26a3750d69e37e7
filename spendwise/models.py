"""SQLAlchemy models for the Spendwise backend."""
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship

from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    __tablename__ = "users"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    email: str = Column(String(320), unique=True, nullable=False, index=True)
    password_hash: str = Column(String(60), nullable=False)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    expenses = relationship("Expense", back_populates="owner", cascade="all, delete-orphan")


class Expense(Base):
    __tablename__ = "expenses"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    user_id: str = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric, nullable=False)
    category: str = Column(Text, nullable=False)
    description: Optional[str] = Column(Text, nullable=True, default="")
    date = Column(Date, nullable=False, index=True)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    owner = relationship("User", back_populates="expenses")
