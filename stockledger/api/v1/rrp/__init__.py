"""Receiving report routes"""

from . import numbers

__all__ = ["numbers"]
