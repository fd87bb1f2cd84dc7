"""Fibered command dispatcher for a multi-protocol DeFi terminal."""

__version__ = "0.1.0"
