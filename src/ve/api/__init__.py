"""HTTP API for stored company valuations."""

from ve.api.server import create_app

__all__ = ["create_app"]
