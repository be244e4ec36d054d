"""Markdown vault catalog used to resolve note titles to file paths."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"


@dataclass(frozen=True)
class NoteFile:
    """A note in the vault, addressed by its vault-relative POSIX path."""

    path: str
    stem: str

    @property
    def link_target(self) -> str:
        """Path without the extension, as written in folder-qualified links."""
        return self.path[: -len(NOTE_SUFFIX)] if self.path.endswith(NOTE_SUFFIX) else self.path


def _preference(note: NoteFile) -> Tuple[int, str]:
    # Shallowest path wins when several notes share a name, then path order.
    return (note.path.count("/"), note.path)


class VaultCatalog:
    """Resolve ``[[Title]]`` references against the notes under ``root``.

    The vault is scanned once and cached; call :meth:`invalidate` after notes
    are added, renamed or removed.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self._lock = Lock()
        self._notes: Optional[Tuple[NoteFile, ...]] = None
        self._by_stem: Dict[str, List[NoteFile]] = {}
        self._by_stem_folded: Dict[str, List[NoteFile]] = {}
        self._by_target_folded: Dict[str, List[NoteFile]] = {}

    def notes(self) -> Tuple[NoteFile, ...]:
        """Return every note in the vault, loading the catalog if needed."""

        if self._notes is None:
            self._load()
        return self._notes or ()

    def resolve_title(self, title: str) -> Optional[str]:
        """Return the vault-relative path of the note titled ``title``, if any."""

        if not title or not title.strip():
            return None
        self.notes()

        name = title.strip()
        if name.lower().endswith(NOTE_SUFFIX):
            name = name[: -len(NOTE_SUFFIX)]

        if "/" in name:
            target = name.strip("/")
            matches = [note for note in self._notes or () if note.link_target == target]
            if not matches:
                matches = self._by_target_folded.get(target.casefold(), [])
        else:
            matches = self._by_stem.get(name) or self._by_stem_folded.get(name.casefold(), [])

        if not matches:
            logger.debug("No note in %s matches title %r", self.root, title)
            return None
        return min(matches, key=_preference).path

    def invalidate(self) -> None:
        """Clear the cached catalog so new or renamed notes get picked up."""

        with self._lock:
            self._notes = None
            self._by_stem = {}
            self._by_stem_folded = {}
            self._by_target_folded = {}
        logger.debug("Vault catalog cache cleared")

    def _load(self) -> None:
        with self._lock:
            if self._notes is not None:
                return

            if not self.root.is_dir():
                logger.warning("Vault path %s is not a directory; no notes will resolve", self.root)
                self._notes = ()
                return

            notes: List[NoteFile] = []
            for file_path in sorted(self.root.rglob(f"*{NOTE_SUFFIX}")):
                if not file_path.is_file():
                    continue
                relative = file_path.relative_to(self.root)
                if any(part.startswith(".") for part in relative.parts):
                    continue
                notes.append(NoteFile(path=relative.as_posix(), stem=file_path.stem))

            by_stem: Dict[str, List[NoteFile]] = {}
            by_stem_folded: Dict[str, List[NoteFile]] = {}
            by_target_folded: Dict[str, List[NoteFile]] = {}
            for note in notes:
                by_stem.setdefault(note.stem, []).append(note)
                by_stem_folded.setdefault(note.stem.casefold(), []).append(note)
                by_target_folded.setdefault(note.link_target.casefold(), []).append(note)

            self._by_stem = by_stem
            self._by_stem_folded = by_stem_folded
            self._by_target_folded = by_target_folded
            self._notes = tuple(notes)
            logger.debug("Loaded %s notes from vault %s", len(notes), self.root)
