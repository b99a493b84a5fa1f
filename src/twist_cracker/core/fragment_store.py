"""Per-public-key accumulation of key fragments.

Several transactions can leak congruences for the same public key, and
the per-modulus solves report concurrently. All updates therefore go
through FragmentStore.merge, an atomic read-modify-write.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from twist_cracker.utils.math_helpers import product
from twist_cracker.utils.types import Congruence, RecoveredKey


class KeyFragmentSet:
    """Congruences for one public key, one per modulus.

    A later congruence for a modulus already present replaces the earlier
    one. Moduli are never removed.
    """

    def __init__(self, key_id: str, congruences: Iterable[Congruence] = ()) -> None:
        self.key_id = key_id
        self._by_modulus: dict[int, Congruence] = {}
        self.merge(congruences)

    def merge(self, congruences: Iterable[Congruence]) -> bool:
        """Add or overwrite congruences. Returns True if anything changed."""
        changed = False
        for c in congruences:
            if self._by_modulus.get(c.modulus) != c:
                self._by_modulus[c.modulus] = c
                changed = True
        return changed

    @property
    def moduli(self) -> list[int]:
        return list(self._by_modulus)

    @property
    def product(self) -> int:
        return product(self._by_modulus)

    @property
    def congruences(self) -> list[Congruence]:
        return list(self._by_modulus.values())

    def to_record(self) -> dict[str, str]:
        """Hex modulus -> hex remainder, the stored form of the fragments."""
        return {hex(c.modulus): hex(c.remainder) for c in self}

    def remainder(self, modulus: int) -> int | None:
        c = self._by_modulus.get(modulus)
        return None if c is None else c.remainder

    def __iter__(self) -> Iterator[Congruence]:
        return iter(self.congruences)

    def __len__(self) -> int:
        return len(self._by_modulus)

    def __contains__(self, modulus: object) -> bool:
        return modulus in self._by_modulus

    def __repr__(self) -> str:
        return f"KeyFragmentSet({self.key_id[:16]}..., moduli={self.moduli})"


class FragmentStore(Protocol):
    """Storage seam for fragment sets, keyed by public key id."""

    def get(self, key_id: str) -> KeyFragmentSet | None: ...

    def merge(self, key_id: str, congruences: Iterable[Congruence]) -> KeyFragmentSet: ...

    def set_recovered(self, key_id: str, key: RecoveredKey) -> None: ...

    def recovered(self, key_id: str) -> RecoveredKey | None: ...

    def record(self, key_id: str) -> dict | None: ...

    def key_ids(self) -> list[str]: ...


@dataclass
class _Entry:
    fragments: KeyFragmentSet
    recovered: RecoveredKey | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryFragmentStore:
    """Thread-safe in-process FragmentStore.

    Reads hand out copies, so callers never hold a reference into the
    store's state.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key_id: str) -> KeyFragmentSet | None:
        with self._lock:
            entry = self._entries.get(key_id)
            return None if entry is None else copy.deepcopy(entry.fragments)

    def merge(self, key_id: str, congruences: Iterable[Congruence]) -> KeyFragmentSet:
        """Merge congruences and return a snapshot of the resulting set.

        Any change to the set discards a previously recovered key, since it
        was derived from the old fragments.
        """
        incoming = list(congruences)
        with self._lock:
            entry = self._entries.get(key_id)
            if entry is None:
                entry = _Entry(fragments=KeyFragmentSet(key_id))
                self._entries[key_id] = entry
            if entry.fragments.merge(incoming):
                entry.recovered = None
                entry.updated_at = datetime.now(timezone.utc)
            return copy.deepcopy(entry.fragments)

    def set_recovered(self, key_id: str, key: RecoveredKey) -> None:
        with self._lock:
            entry = self._entries.get(key_id)
            if entry is None:
                raise KeyError(key_id)
            entry.recovered = key
            entry.updated_at = datetime.now(timezone.utc)

    def recovered(self, key_id: str) -> RecoveredKey | None:
        with self._lock:
            entry = self._entries.get(key_id)
            return None if entry is None else entry.recovered

    def record(self, key_id: str) -> dict | None:
        """Storage record: hex modulus -> hex remainder, plus the combined key."""
        with self._lock:
            entry = self._entries.get(key_id)
            if entry is None:
                return None
            return {
                "public_key": key_id,
                "modulo_values": entry.fragments.to_record(),
                "combined_key": None if entry.recovered is None else entry.recovered.hex,
                "verified": None if entry.recovered is None else entry.recovered.verified,
                "updated_at": entry.updated_at.isoformat(),
            }

    def key_ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)
