"""Declarative base shared by all PharOS models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
