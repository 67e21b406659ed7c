"""
API Routers package.
"""

from . import scheduler

__all__ = ["scheduler"]
