from __future__ import annotations

from typing import Optional


class SafeParkingError(Exception):
    """Base exception for SafeParking service errors."""


class FetchFailure(SafeParkingError):
    """Raised when a dataset could not be retrieved (network, HTTP or payload error)."""

    def __init__(self, source: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.status = status


class DirectionsError(SafeParkingError):
    """Raised when the directions provider cannot produce a route."""
