# socials/token_store.py
"""
Single-operator credential persistence.

Each value (token, resolved account id, pending OAuth nonce) lives under its own
key; FileTokenStore maps a key to one plain-text dotfile, overwritten on write.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple

from socials.errors import LocalIOError

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class FileTokenStore:
    """Stores `key` in `<directory>/.<key>` (e.g. `.tiktok_state`)."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f".{key}"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            value = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise LocalIOError(f"Cannot read {path}: {e}") from e
        return value or None

    def write(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(value, encoding="utf-8")
        except OSError as e:
            raise LocalIOError(f"Cannot write {path}: {e}") from e
        logger.debug("TokenStore: wrote %s", path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise LocalIOError(f"Cannot delete {path}: {e}") from e


class MemoryTokenStore:
    """In-process store; used by tests and dry runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.values: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def write(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)


class CredentialSlot:
    """
    One lazily-loaded persisted value.

    Lookup order: in-memory value (seeded from config) -> store. `set()` writes
    through to the store first, so a failed write leaves memory untouched.
    """

    def __init__(self, store: TokenStore, key: str, seed: Optional[str] = None) -> None:
        self.store = store
        self.key = key
        self._value: Optional[str] = seed or None

    def get(self) -> Optional[str]:
        if self._value is None:
            self._value = self.store.read(self.key)
        return self._value

    def set(self, value: str) -> None:
        self.store.write(self.key, value)
        self._value = value

    def clear(self) -> None:
        self.store.delete(self.key)
        self._value = None

    def snapshot(self) -> Tuple[Optional[str], Optional[str]]:
        """(in-memory value, stored value), for restore()."""
        return self._value, self.store.read(self.key)

    def restore(self, snapshot: Tuple[Optional[str], Optional[str]]) -> None:
        memory, stored = snapshot
        if stored is None:
            self.store.delete(self.key)
        else:
            self.store.write(self.key, stored)
        self._value = memory


def save_together(*changes: Tuple[CredentialSlot, Optional[str]]) -> None:
    """
    Apply (slot, value) changes in order; a None value clears the slot.

    All or nothing: if any write fails, every slot is put back to what it held
    before and the original error is re-raised. Put the token last so that a
    stored token always has its companion ids next to it.
    """
    snapshots = [(slot, slot.snapshot()) for slot, _ in changes]
    try:
        for slot, value in changes:
            if value is None:
                slot.clear()
            else:
                slot.set(value)
    except Exception:
        for slot, snap in reversed(snapshots):
            try:
                slot.restore(snap)
            except LocalIOError:
                logger.exception("TokenStore: could not restore %s", slot.key)
        raise
