"""Point-in-time environment refresh for Azure SQL environments."""

__version__ = "0.1.0"
