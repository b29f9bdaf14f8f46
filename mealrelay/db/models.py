"""Declarative base shared by the ORM models"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()

# NOTE: model classes live in infrastructure/orm/ so that domain code
# never imports persistence details.
