"""Declarative base for the submissions schema."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
