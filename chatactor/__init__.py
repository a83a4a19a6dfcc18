"""One-to-one WebSocket chat server built from a routing server actor and per-user actors."""

__version__ = "0.1.0"