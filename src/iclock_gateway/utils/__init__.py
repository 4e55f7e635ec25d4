"""Utility functions for the gateway"""

from .datetime_helpers import DATETIME_FORMAT, to_db, from_db

__all__ = ['DATETIME_FORMAT', 'to_db', 'from_db']
