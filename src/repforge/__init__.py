"""
repforge - Session plan generation and volume tracking for strength training.
"""

__version__ = "0.1.0"
