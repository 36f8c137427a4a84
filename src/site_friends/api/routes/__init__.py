"""API routes of the Site Friends server."""
