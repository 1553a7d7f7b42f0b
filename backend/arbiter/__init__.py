"""Arbiter: AI resolution service for prediction markets."""

__version__ = "0.1.0"
__author__ = "Arbiter Team"

__all__ = ["__version__", "__author__"]
