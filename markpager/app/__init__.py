"""Application state (``Model``), messages, and the pure ``update`` function."""

from __future__ import annotations

from . import messages
from .model import Model, init_model
from .update import update

__all__ = ["Model", "init_model", "messages", "update"]
