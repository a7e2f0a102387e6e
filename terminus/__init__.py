"""
Terminus: a stateful narrative engine for branching character dialogue
"""

__version__ = "0.1.0"
