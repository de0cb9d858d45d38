"""docflow - multi-level approval workflow service for account and CIF documents."""

__version__ = "0.3.0"
