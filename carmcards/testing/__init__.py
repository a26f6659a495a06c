"""Testing utilities for Carmcards."""

from .factory import CardFactory, CollectorFactory
from .fixtures import memory_app
from .test_client import TestClient

__all__ = [
    "CardFactory",
    "CollectorFactory",
    "memory_app",
    "TestClient",
]
