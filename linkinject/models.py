"""Data models for link injection settings."""

from __future__ import annotations

from dataclasses import dataclass, field

# Exact-match override value that suppresses a key on one profile.
IGNORE_SENTINEL = "@@IGNORE@@"

DEFAULT_SUBSTITUTION = " "
MAX_PROFILE_NAME = 20


@dataclass
class DeviceProfile:
    """Per-vault overrides, selected by exact vault path."""

    name: str
    vault_path: str
    overrides: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RoutePreference:
    """Which presentation channels an address link may be offered on."""

    rich: bool = True   # In-app web viewer
    plain: bool = True  # System browser

    def __and__(self, other: RoutePreference) -> RoutePreference:
        return RoutePreference(rich=self.rich and other.rich, plain=self.plain and other.plain)


BOTH_CHANNELS = RoutePreference()


@dataclass
class Settings:
    """Everything the resolver needs from the host's configuration."""

    defaults: dict[str, str] = field(default_factory=dict)
    profiles: list[DeviceProfile] = field(default_factory=list)
    preferences: dict[str, RoutePreference] = field(default_factory=dict)  # lower-cased keys
    substitution: str = DEFAULT_SUBSTITUTION
