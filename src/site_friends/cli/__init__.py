"""Command line interface of the Site Friends server."""

from .main import app, main


__all__ = ["app", "main"]
