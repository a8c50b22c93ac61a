"""Turns cloud purchase recommendations into a bounded, de-duplicated reservation plan"""

__version__ = "0.1.0"
