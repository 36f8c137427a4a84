"""Middleware of the Site Friends server."""
