"""Destination loaders."""

from .base import BaseLoader
from .memory_loader import InMemoryLoader
from .smartsheet_loader import SmartsheetLoader

__all__ = [
    "BaseLoader",
    "InMemoryLoader",
    "SmartsheetLoader",
]
