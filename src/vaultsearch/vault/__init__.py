"""Note vault access."""

from .catalog import NoteFile, VaultCatalog

__all__ = ["NoteFile", "VaultCatalog"]
