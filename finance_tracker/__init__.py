"""Personal finance tracker: REST API server and authenticated client."""

__version__ = "1.0.0"
