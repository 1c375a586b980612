"""VorniQ subscription entitlement engine and backend."""

__version__ = "0.1.0"
