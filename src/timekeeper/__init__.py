"""Multi-company time tracking with weekly and overtime aggregation."""

__version__ = "0.1.0"
