"""HTTP API of the Site Friends server."""

from site_friends.api.app import create_app


__all__ = ["create_app"]
