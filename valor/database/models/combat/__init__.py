from .challenge import Challenge

__all__ = ["Challenge"]
