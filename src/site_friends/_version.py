__version__ = "0.3.0"

# Version advertised by the hello endpoint of the federation protocol
PROTOCOL_VERSION = "0.2"
