"""Retailer Order Import API package."""

from .main import app

__all__ = ["app"]
