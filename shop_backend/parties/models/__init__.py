# parties/models/__init__.py

from .party import Party

__all__ = ["Party"]
