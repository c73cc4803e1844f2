"""Testing utilities for perch services."""

from perch.testing.client import TestClient

__all__ = ["TestClient"]
