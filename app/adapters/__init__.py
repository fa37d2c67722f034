"""Platform adapters for chat integrations."""

from app.adapters.base import BasePlatformAdapter
from app.adapters.line import LineAdapter

__all__ = ["BasePlatformAdapter", "LineAdapter"]
