"""Wire protocol, message encoding and leader discovery for dqlite clusters."""

__version__ = "0.1.0"