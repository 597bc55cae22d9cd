"""
Core models: accounts and the things they own that feed combat math.
"""

from .account import Account
from .bird import Bird
from .item import Item
from .pet import Pet

__all__ = ["Account", "Bird", "Item", "Pet"]
