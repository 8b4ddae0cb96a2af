"""Declarative base for all models."""

from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def new_uuid() -> str:
    """Primary key factory (opaque string ids)."""
    return str(uuid4())
