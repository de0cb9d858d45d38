"""Declarative base shared by all docflow models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
