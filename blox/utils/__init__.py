"""
Small utilities shared across blox.
"""
from .logging import get_logger, set_level, get_level, LEVELS
