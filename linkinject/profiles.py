"""Effective dictionary and route preferences per device profile."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Optional

from linkinject.models import BOTH_CHANNELS, IGNORE_SENTINEL, DeviceProfile, RoutePreference

logger = logging.getLogger(__name__)


class EffectiveDictionary(Mapping):
    """Merged key/value table with case-insensitive lookup.

    Keys keep the casing they were stored with; ``lookup`` folds case on
    both sides. When two stored keys differ only by case, the one inserted
    last wins the lookup, so profile overrides beat defaults.
    """

    def __init__(self, entries: Optional[Mapping[str, str]] = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self._index: dict[str, str] = {}
        for key in self._entries:
            self._index[key.lower()] = key

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"EffectiveDictionary({self._entries!r})"

    def canonical_key(self, key: str) -> Optional[str]:
        return self._index.get(key.strip().lower())

    def lookup(self, key: str) -> Optional[str]:
        """Return the value stored under *key* in any casing, else ``None``."""
        actual = self.canonical_key(key)
        if actual is None:
            return None
        return self._entries[actual]


def active_dictionary(
    defaults: Mapping[str, str],
    profile_override: Optional[Mapping[str, str]] = None,
) -> EffectiveDictionary:
    """Overlay *profile_override* on *defaults* and drop suppressed keys."""
    merged = dict(defaults)
    merged.update(profile_override or {})
    # Suppression applies to every casing of an ignored key.
    ignored = {key.lower() for key, value in merged.items() if value == IGNORE_SENTINEL}
    kept = {key: value for key, value in merged.items() if key.lower() not in ignored}
    if len(kept) != len(merged):
        logger.debug("Suppressed keys on this profile: %s", sorted(set(merged) - set(kept)))
    return EffectiveDictionary(kept)


def is_suppressed(key: str, profile_override: Optional[Mapping[str, str]]) -> bool:
    """True iff the override maps *key* (any casing) to the ignore sentinel."""
    if not profile_override:
        return False
    wanted = key.strip().lower()
    for stored, value in profile_override.items():
        if stored.lower() == wanted:
            return value == IGNORE_SENTINEL
    return False


def suppressed_keys(profile_override: Optional[Mapping[str, str]]) -> frozenset[str]:
    """Lower-cased keys the override marks as ignored."""
    if not profile_override:
        return frozenset()
    return frozenset(k.lower() for k, v in profile_override.items() if v == IGNORE_SENTINEL)


def preference_for(key: str, table: Mapping[str, RoutePreference]) -> RoutePreference:
    """Stored preference for *key*, both channels when none is stored."""
    return table.get(key.strip().lower(), BOTH_CHANNELS)


def merged_preference(keys: Iterable[str], table: Mapping[str, RoutePreference]) -> RoutePreference:
    """AND the preferences of every key; the most restrictive key wins."""
    merged = BOTH_CHANNELS
    for key in keys:
        merged = merged & preference_for(key, table)
    return merged


def profile_for_path(profiles: Iterable[DeviceProfile], vault_path: str) -> Optional[DeviceProfile]:
    """Return the profile registered for exactly *vault_path*, if any."""
    for profile in profiles:
        if profile.vault_path == vault_path:
            return profile
    return None
