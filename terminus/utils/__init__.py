"""
Utility modules for the Terminus narrative engine
"""

from .logger import VERBOSE, get_logger, setup_logging

__all__ = [
    "VERBOSE",
    "get_logger",
    "setup_logging",
]
