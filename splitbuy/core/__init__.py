"""Core module for the splitbuy application."""

from .types import FirestoreDocument

__all__ = ["FirestoreDocument"]
