"""Invocation layer — turns a clicked link into a navigation outcome.

Structural links (the host's own ``[[links]]``) resolve to a single target
or a choice between alternatives. Address links (URLs) resolve to a set of
offers, one per candidate and presentation channel. Every failure is a
typed result; nothing here raises for template content.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import unquote

from linkinject.expander import Candidate, expand, extract_keys, has_alternation
from linkinject.models import RoutePreference, Settings
from linkinject.profiles import active_dictionary, merged_preference, profile_for_path, suppressed_keys
from linkinject.properties import Document
from linkinject.template_engine import ResolutionContext, resolve

logger = logging.getLogger(__name__)

DUMMY_PREFIX = "dummy://"


class Channel(str, enum.Enum):
    RICH = "rich"    # In-app web viewer
    PLAIN = "plain"  # System browser


_CHANNEL_TITLES = {
    Channel.RICH: "Open in webviewer",
    Channel.PLAIN: "Open externally",
}


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Resolved:
    """Navigate straight to ``target``."""

    target: str
    candidate: Optional[Candidate] = None


@dataclass(frozen=True)
class ChoiceRequest:
    """Several candidates survived; the user picks one."""

    candidates: tuple[Candidate, ...]

    def choose(self, index: int) -> Resolved:
        if not 0 <= index < len(self.candidates):
            raise IndexError(f"choice must be between 0 and {len(self.candidates) - 1}, got {index}")
        candidate = self.candidates[index]
        return Resolved(target=candidate.value, candidate=candidate)


@dataclass(frozen=True)
class PropertyResolutionFailed:
    document_name: str
    properties: tuple[str, ...]

    @property
    def message(self) -> str:
        names = ", ".join(f'"{name}"' for name in self.properties)
        return f"[{self.document_name}] Property {names} does not exist in this file."


@dataclass(frozen=True)
class AllOptionsSuppressed:
    template: str

    @property
    def message(self) -> str:
        return "All options for this link are ignored on this device"


@dataclass(frozen=True)
class Offer:
    """One menu entry for an address link."""

    channel: Channel
    title: str
    target: str
    candidate: Optional[Candidate] = None


@dataclass(frozen=True)
class OfferSet:
    offers: tuple[Offer, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.offers)


Failure = Union[PropertyResolutionFailed, AllOptionsSuppressed]
StructuralResult = Union[Resolved, ChoiceRequest, PropertyResolutionFailed, AllOptionsSuppressed]
AddressResult = Union[OfferSet, PropertyResolutionFailed, AllOptionsSuppressed]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def strip_dummy_prefix(url: str) -> str:
    """Drop the ``dummy://`` marker used to make the host treat text as a URL."""
    if url.startswith(DUMMY_PREFIX):
        return url[len(DUMMY_PREFIX):]
    return url


def decode_address(url: str) -> str:
    """Percent-decode *url*; undecodable input is returned as is."""
    try:
        return unquote(url, errors="strict")
    except UnicodeDecodeError:
        return url


def channels_for(preference: RoutePreference, rich_available: bool) -> list[Channel]:
    """Channels to offer for *preference*.

    The plain channel is always offered when the rich one is unavailable,
    and also when the merged preference disables both.
    """
    channels: list[Channel] = []
    if rich_available and preference.rich:
        channels.append(Channel.RICH)
    if preference.plain or not rich_available or not channels:
        channels.append(Channel.PLAIN)
    return channels


def _is_suppressed(candidate: Candidate, suppressed: Collection[str]) -> bool:
    return any(key.lower() in suppressed for key in candidate.keys)


def _filter_candidates(
    template: str,
    candidates: Sequence[Candidate],
    suppressed: Collection[str],
    document_name: str,
) -> Union[list[Candidate], Failure]:
    survivors = [c for c in candidates if not _is_suppressed(c, suppressed)]
    if len(survivors) != len(candidates):
        logger.debug("Dropped %d suppressed candidate(s) of %r", len(candidates) - len(survivors), template)
    if not survivors:
        return AllOptionsSuppressed(template=template)
    resolvable = [c for c in survivors if c.ok]
    if not resolvable:
        missing: list[str] = []
        for c in survivors:
            missing.extend(name for name in c.missing_properties if name not in missing)
        return PropertyResolutionFailed(document_name=document_name, properties=tuple(missing))
    return resolvable


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------

def invoke_structural(
    template: str,
    context: ResolutionContext,
    suppressed: Collection[str] = frozenset(),
) -> StructuralResult:
    """Resolve a structural link.

    *suppressed* holds the lower-cased keys ignored on the active profile.
    """
    if has_alternation(template):
        filtered = _filter_candidates(
            template, expand(template, context, structural=True), suppressed, context.document_name,
        )
        if not isinstance(filtered, list):
            return filtered
        if len(filtered) == 1:
            return Resolved(target=filtered[0].value, candidate=filtered[0])
        return ChoiceRequest(candidates=tuple(filtered))

    resolution = resolve(template, context, structural=True)
    if not resolution.ok:
        return PropertyResolutionFailed(
            document_name=resolution.document_name,
            properties=resolution.missing_properties,
        )
    return Resolved(target=resolution.text)


def invoke_address(
    template: str,
    context: ResolutionContext,
    suppressed: Collection[str] = frozenset(),
    preferences: Mapping[str, RoutePreference] | None = None,
    *,
    rich_available: bool = False,
) -> AddressResult:
    """Resolve an address link into channel offers.

    No character sanitization applies. An address without any injection
    yields an empty ``OfferSet``.
    """
    preferences = preferences or {}
    decoded = decode_address(template)

    if has_alternation(decoded):
        filtered = _filter_candidates(
            decoded, expand(decoded, context, structural=False), suppressed, context.document_name,
        )
        if not isinstance(filtered, list):
            return filtered
        offers: list[Offer] = []
        for candidate in filtered:
            pref = merged_preference(candidate.keys, preferences)
            for channel in channels_for(pref, rich_available):
                offers.append(Offer(
                    channel=channel,
                    title=f"{_CHANNEL_TITLES[channel]} ({candidate.display})",
                    target=strip_dummy_prefix(candidate.value),
                    candidate=candidate,
                ))
        return OfferSet(offers=tuple(offers))

    keys = extract_keys(decoded)
    if any(key.lower() in suppressed for key in keys):
        return AllOptionsSuppressed(template=decoded)
    resolution = resolve(decoded, context, structural=False)
    if not resolution.ok:
        return PropertyResolutionFailed(
            document_name=resolution.document_name,
            properties=resolution.missing_properties,
        )
    if resolution.text == decoded:
        return OfferSet()
    target = strip_dummy_prefix(resolution.text)
    return OfferSet(offers=tuple(
        Offer(channel=channel, title=f"{_CHANNEL_TITLES[channel]} (with injection)", target=target)
        for channel in channels_for(merged_preference(keys, preferences), rich_available)
    ))


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

class Navigator(ABC):
    """What the host does with a resolved target."""

    @abstractmethod
    def open_link(self, target: str, source_path: Optional[str] = None) -> None:
        """Open a structural link target."""
        ...

    @abstractmethod
    def open_url(self, target: str, channel: Channel) -> None:
        """Open an address on the given presentation channel."""
        ...


class LinkInvoker:
    """Binds settings, the current vault and a navigator together.

    Navigation is all-or-nothing: failures are logged and returned, and the
    navigator is only called with fully resolved targets.
    """

    def __init__(
        self,
        settings: Settings,
        vault_path: str,
        navigator: Navigator,
        *,
        rich_available: bool = False,
    ) -> None:
        self.settings = settings
        self.vault_path = vault_path
        self.navigator = navigator
        self.rich_available = rich_available

    @property
    def profile(self):
        return profile_for_path(self.settings.profiles, self.vault_path)

    def _overrides(self) -> dict[str, str]:
        profile = self.profile
        return profile.overrides if profile else {}

    def context(self, document: Optional[Document] = None) -> ResolutionContext:
        return ResolutionContext(
            dictionary=active_dictionary(self.settings.defaults, self._overrides()),
            document=document,
            substitution=self.settings.substitution,
        )

    def open_link(self, linktext: str, document: Optional[Document] = None) -> StructuralResult:
        """Resolve *linktext* and navigate when a single target results."""
        result = invoke_structural(linktext, self.context(document), suppressed_keys(self._overrides()))
        source_path = document.path if document else None
        if isinstance(result, Resolved):
            self.navigator.open_link(result.target, source_path)
        elif isinstance(result, (PropertyResolutionFailed, AllOptionsSuppressed)):
            logger.warning("%s", result.message)
        return result

    def choose(self, request: ChoiceRequest, index: int, document: Optional[Document] = None) -> Resolved:
        """Navigate to the candidate the user picked from *request*."""
        resolved = request.choose(index)
        self.navigator.open_link(resolved.target, document.path if document else None)
        return resolved

    def url_offers(self, url: str, document: Optional[Document] = None) -> AddressResult:
        result = invoke_address(
            url,
            self.context(document),
            suppressed_keys(self._overrides()),
            self.settings.preferences,
            rich_available=self.rich_available,
        )
        if isinstance(result, (PropertyResolutionFailed, AllOptionsSuppressed)):
            logger.warning("%s", result.message)
        return result

    def follow(self, offer: Offer) -> None:
        self.navigator.open_url(offer.target, offer.channel)
