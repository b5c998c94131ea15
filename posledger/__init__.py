"""Point-of-sale backend: catalog, user accounts and the sales ledger."""

__version__ = "1.0.0"
