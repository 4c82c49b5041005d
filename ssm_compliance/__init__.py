"""SSM compliance deadline & alerting engine."""

__version__ = "0.1.0"
