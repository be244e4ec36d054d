"""vault-search: hybrid passage retrieval for personal note vaults."""

__version__ = "0.1.0"
