"""Settings YAML loader and edit operations.

Edits validate their input and raise ``SettingsError`` so a bad key never
reaches the resolver: keys may not contain ``:`` (property syntax) or
``,`` (alternation syntax).
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

import yaml

from linkinject.models import (
    BOTH_CHANNELS,
    DEFAULT_SUBSTITUTION,
    IGNORE_SENTINEL,
    MAX_PROFILE_NAME,
    DeviceProfile,
    RoutePreference,
    Settings,
)

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = frozenset({"defaults", "profiles", "preferences", "substitution"})
_PROFILE_KEYS = frozenset({"name", "vault_path", "overrides"})
_PREFERENCE_KEYS = frozenset({"rich", "plain"})


class SettingsError(ValueError):
    """Invalid settings file content or a rejected edit."""


# ---------------------------------------------------------------------------
# Loading / dumping
# ---------------------------------------------------------------------------

def load_settings(path: str | Path) -> Settings:
    """Load settings from a YAML file. An empty file yields default settings."""
    with open(path) as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise SettingsError(f"Invalid YAML in {path}: {exc}") from exc
    if raw is None:
        raw = {}
    return settings_from_dict(raw)


def settings_from_dict(raw: Mapping) -> Settings:
    """Build ``Settings`` from a parsed mapping, rejecting unknown keys."""
    if not isinstance(raw, Mapping):
        raise SettingsError(f"Settings YAML must be a mapping, got {type(raw).__name__}")
    _validate_keys("settings", raw, _TOP_LEVEL_KEYS)

    defaults = _string_map("defaults", raw.get("defaults") or {})
    for key in defaults:
        validate_key(key)

    profiles_raw = raw.get("profiles") or []
    if not isinstance(profiles_raw, list):
        raise SettingsError(f"'profiles' must be a list, got {type(profiles_raw).__name__}")
    profiles: list[DeviceProfile] = []
    for entry in profiles_raw:
        if not isinstance(entry, Mapping):
            raise SettingsError(f"Each profile must be a mapping, got {type(entry).__name__}")
        _validate_keys("profile", entry, _PROFILE_KEYS)
        profile = DeviceProfile(
            name=str(entry.get("name", "")).strip(),
            vault_path=str(entry.get("vault_path", "")).strip(),
            overrides=_string_map("overrides", entry.get("overrides") or {}),
        )
        _validate_profile(profile, profiles)
        profiles.append(profile)

    preferences = normalize_preferences(raw.get("preferences") or {})

    substitution = raw.get("substitution", DEFAULT_SUBSTITUTION)
    if substitution is None:
        substitution = ""
    if not isinstance(substitution, str):
        raise SettingsError(f"'substitution' must be a string, got {type(substitution).__name__}")

    settings = Settings(
        defaults=defaults,
        profiles=profiles,
        preferences=preferences,
        substitution=substitution,
    )
    _migrate_preferences(settings)
    return settings


def settings_to_dict(settings: Settings) -> dict:
    return {
        "defaults": dict(settings.defaults),
        "profiles": [
            {"name": p.name, "vault_path": p.vault_path, "overrides": dict(p.overrides)}
            for p in settings.profiles
        ],
        "preferences": {
            key: {"rich": pref.rich, "plain": pref.plain}
            for key, pref in settings.preferences.items()
        },
        "substitution": settings.substitution,
    }


def dump_settings(settings: Settings, path: str | Path) -> None:
    """Write *settings* back as YAML."""
    with open(path, "w") as f:
        yaml.safe_dump(settings_to_dict(settings), f, sort_keys=False, allow_unicode=True)


def normalize_preferences(raw: Mapping) -> dict[str, RoutePreference]:
    """Index preferences by lower-cased key; a later casing of a key wins."""
    if not isinstance(raw, Mapping):
        raise SettingsError(f"'preferences' must be a mapping, got {type(raw).__name__}")
    table: dict[str, RoutePreference] = {}
    for key, value in raw.items():
        if isinstance(value, RoutePreference):
            pref = value
        elif isinstance(value, Mapping):
            _validate_keys(f"preferences.{key}", value, _PREFERENCE_KEYS)
            pref = RoutePreference(
                rich=bool(value.get("rich", True)),
                plain=bool(value.get("plain", True)),
            )
        else:
            raise SettingsError(
                f"Preference for {key!r} must be a mapping with 'rich'/'plain', "
                f"got {type(value).__name__}"
            )
        table[str(key).strip().lower()] = pref
    return table


def _migrate_preferences(settings: Settings) -> None:
    # Every default key gets an explicit both-channel preference.
    for key in settings.defaults:
        settings.preferences.setdefault(key.lower(), BOTH_CHANNELS)


def _validate_keys(section: str, raw: Mapping, allowed: frozenset[str]) -> None:
    unknown = set(raw) - allowed
    if unknown:
        raise SettingsError(
            f"Unknown keys in '{section}': {sorted(unknown)}. "
            f"Allowed: {sorted(allowed)}"
        )


def _string_map(section: str, raw) -> dict[str, str]:
    if not isinstance(raw, Mapping):
        raise SettingsError(f"'{section}' must be a mapping, got {type(raw).__name__}")
    return {str(k): "" if v is None else str(v) for k, v in raw.items()}


# ---------------------------------------------------------------------------
# Key edits
# ---------------------------------------------------------------------------

def validate_key(key: str) -> str:
    """Return the stripped key or raise ``SettingsError``."""
    key = key.strip()
    if not key:
        raise SettingsError("Key cannot be empty.")
    if ":" in key:
        raise SettingsError(
            'Key cannot contain ":" character. '
            "This is reserved for special patterns like ${L:property}."
        )
    if "," in key:
        raise SettingsError(
            'Key cannot contain "," character. '
            "This is reserved for OR patterns like ${one,,two}."
        )
    return key


def find_key(mapping: Mapping[str, str], key: str) -> Optional[str]:
    """Stored casing of *key* in *mapping*, if present in any casing."""
    wanted = key.strip().lower()
    for stored in mapping:
        if stored.lower() == wanted:
            return stored
    return None


def add_key(settings: Settings, key: str, value: str) -> str:
    key = validate_key(key)
    existing = find_key(settings.defaults, key)
    if existing is not None:
        raise SettingsError(f'Key "{existing}" already exists.')
    settings.defaults[key] = value
    settings.preferences.setdefault(key.lower(), BOTH_CHANNELS)
    logger.debug("Added key %s", key)
    return key


def rename_key(settings: Settings, old: str, new: str) -> str:
    """Rename a default key, carrying its overrides and preference along."""
    current = _require_key(settings, old)
    new = validate_key(new)
    clash = find_key(settings.defaults, new)
    if clash is not None and clash != current:
        raise SettingsError(f'Key "{clash}" already exists.')
    if new == current:
        return current

    settings.defaults = {
        (new if k == current else k): v for k, v in settings.defaults.items()
    }
    for profile in settings.profiles:
        stored = find_key(profile.overrides, current)
        if stored is not None:
            profile.overrides[new] = profile.overrides.pop(stored)
    pref = settings.preferences.pop(current.lower(), BOTH_CHANNELS)
    settings.preferences[new.lower()] = pref
    logger.debug("Renamed key %s -> %s", current, new)
    return new


def set_default_value(settings: Settings, key: str, value: str) -> None:
    """Change a default value; overrides and the preference are kept."""
    current = _require_key(settings, key)
    settings.defaults[current] = value


def delete_key(settings: Settings, key: str) -> None:
    """Remove a default key together with every override and its preference."""
    current = _require_key(settings, key)
    del settings.defaults[current]
    for profile in settings.profiles:
        stored = find_key(profile.overrides, current)
        if stored is not None:
            del profile.overrides[stored]
    settings.preferences.pop(current.lower(), None)


def set_preference(settings: Settings, key: str, *, rich: bool, plain: bool) -> RoutePreference:
    if not (rich or plain):
        raise SettingsError("At least one option must be enabled (webviewer or external)")
    current = _require_key(settings, key)
    pref = RoutePreference(rich=rich, plain=plain)
    settings.preferences[current.lower()] = pref
    return pref


def _require_key(settings: Settings, key: str) -> str:
    current = find_key(settings.defaults, key)
    if current is None:
        raise SettingsError(f'Key "{key}" does not exist.')
    return current


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------

def set_override(settings: Settings, profile_name: str, key: str, value: str) -> None:
    """Override a default key on one profile, stored under the default's casing."""
    profile = require_profile(settings, profile_name)
    current = _require_key(settings, key)
    stray = find_key(profile.overrides, current)
    if stray is not None and stray != current:
        del profile.overrides[stray]
    profile.overrides[current] = value


def ignore_key(settings: Settings, profile_name: str, key: str) -> None:
    set_override(settings, profile_name, key, IGNORE_SENTINEL)


def unignore_key(settings: Settings, profile_name: str, key: str) -> None:
    """Drop the ignore marker; the key falls back to its default value."""
    profile = require_profile(settings, profile_name)
    stored = find_key(profile.overrides, key)
    if stored is not None and profile.overrides[stored] == IGNORE_SENTINEL:
        del profile.overrides[stored]


def move_override(settings: Settings, key: str, source: str, target: str) -> None:
    """Move the override of *key* from profile *source* to profile *target*."""
    src = require_profile(settings, source)
    dst = require_profile(settings, target)
    if src is dst:
        return
    stored = find_key(src.overrides, key)
    if stored is None:
        raise SettingsError(f'Profile "{src.name}" has no override for "{key}".')
    if find_key(dst.overrides, stored) is not None:
        raise SettingsError(f'Profile "{dst.name}" already has an override for "{stored}".')
    dst.overrides[stored] = src.overrides.pop(stored)


def remove_override(settings: Settings, profile_name: str, key: str) -> None:
    profile = require_profile(settings, profile_name)
    stored = find_key(profile.overrides, key)
    if stored is not None:
        del profile.overrides[stored]


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def _validate_profile_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise SettingsError("Profile name cannot be empty.")
    if len(name) > MAX_PROFILE_NAME:
        raise SettingsError(f"Profile name must be {MAX_PROFILE_NAME} characters or less.")
    return name


def _validate_profile(profile: DeviceProfile, existing: list[DeviceProfile]) -> None:
    _validate_profile_name(profile.name)
    if not profile.vault_path:
        raise SettingsError("Vault path cannot be empty.")
    if any(p.vault_path == profile.vault_path for p in existing):
        raise SettingsError("A profile with this vault path already exists.")


def add_profile(settings: Settings, name: str, vault_path: str) -> DeviceProfile:
    profile = DeviceProfile(name=name.strip(), vault_path=vault_path.strip())
    _validate_profile(profile, settings.profiles)
    settings.profiles.append(profile)
    logger.debug("Created profile %s for %s", profile.name, profile.vault_path)
    return profile


def require_profile(settings: Settings, name: str) -> DeviceProfile:
    for profile in settings.profiles:
        if profile.name == name:
            return profile
    raise SettingsError(f'Profile "{name}" does not exist.')


def rename_profile(settings: Settings, old: str, new: str) -> DeviceProfile:
    profile = require_profile(settings, old)
    profile.name = _validate_profile_name(new)
    return profile


def set_profile_path(settings: Settings, name: str, vault_path: str) -> DeviceProfile:
    profile = require_profile(settings, name)
    vault_path = vault_path.strip()
    if not vault_path:
        raise SettingsError("Vault path cannot be empty.")
    if any(p is not profile and p.vault_path == vault_path for p in settings.profiles):
        raise SettingsError("A profile with this vault path already exists.")
    profile.vault_path = vault_path
    return profile


def delete_profile(settings: Settings, name: str) -> None:
    profile = require_profile(settings, name)
    settings.profiles.remove(profile)
