"""
Declarative base shared by the shop, session and share-link models.

Kept free of model imports so alembic and the models package can both
import it without a cycle.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
