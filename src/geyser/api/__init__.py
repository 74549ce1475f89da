"""HTTP API over a TokenGeyser."""

from .app import create_app
from .geyser_bp import geyser_bp

__all__ = ["create_app", "geyser_bp"]
