"""Administrative routes"""

from . import rebuild

__all__ = ["rebuild"]
