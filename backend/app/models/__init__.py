"""SQLAlchemy models."""

from app.models.iiko import IikoSettings, IikoSale

__all__ = [
    "IikoSettings",
    "IikoSale",
]
