"""
Shared utilities (logging).
"""

from .logging import LoggerAdaptor

__all__ = ["LoggerAdaptor"]
