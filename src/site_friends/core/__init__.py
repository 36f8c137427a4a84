"""Core helpers shared across the Site Friends packages."""
