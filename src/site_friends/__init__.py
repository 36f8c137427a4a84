"""Site Friends - friendship handshake and feed mirroring between sites."""

from ._version import __version__


__all__ = ["__version__"]
