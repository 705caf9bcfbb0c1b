"""CLI entry point: python -m linkinject resolve|expand|open|keys ..."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from linkinject.invocation import (
    AllOptionsSuppressed,
    Channel,
    ChoiceRequest,
    LinkInvoker,
    Navigator,
    OfferSet,
    PropertyResolutionFailed,
)
from linkinject.models import IGNORE_SENTINEL, Settings
from linkinject.properties import Document, load_document
from linkinject.settings import SettingsError, find_key, load_settings

logger = logging.getLogger(__name__)


def _config_path() -> Path:
    """Return the settings file path, respecting LINKINJECT_CONFIG env var."""
    env = os.environ.get("LINKINJECT_CONFIG")
    if env:
        return Path(env)
    return Path.home() / ".linkinject" / "settings.yaml"


class PrintNavigator(Navigator):
    """Navigator that reports targets on stdout instead of opening them."""

    def open_link(self, target: str, source_path: Optional[str] = None) -> None:
        print(target)

    def open_url(self, target: str, channel: Channel) -> None:
        print(f"{channel.value}\t{target}")


def _load(args: argparse.Namespace) -> Settings:
    path = Path(args.config) if args.config else _config_path()
    if not path.exists():
        if args.config:
            raise SettingsError(f"Settings file not found: {path}")
        logger.debug("No settings file at %s, using empty settings", path)
        return Settings()
    return load_settings(path)


def _document(args: argparse.Namespace) -> Optional[Document]:
    if not args.document:
        return None
    return load_document(args.document)


def _invoker(args: argparse.Namespace) -> LinkInvoker:
    return LinkInvoker(
        _load(args),
        args.vault or os.getcwd(),
        PrintNavigator(),
        rich_available=getattr(args, "rich", False),
    )


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def cmd_resolve(args: argparse.Namespace) -> None:
    from linkinject.template_engine import resolve

    invoker = _invoker(args)
    resolution = resolve(args.template, invoker.context(_document(args)), structural=not args.address)
    if not resolution.ok:
        _fail(resolution.message)
    print(resolution.text)


def cmd_expand(args: argparse.Namespace) -> None:
    from linkinject.expander import expand

    invoker = _invoker(args)
    candidates = expand(args.template, invoker.context(_document(args)), structural=not args.address)
    for candidate in candidates:
        keys = ", ".join(candidate.keys) or "-"
        print(f"{candidate.label}\t{candidate.value}\t[{keys}]")


def cmd_open(args: argparse.Namespace) -> None:
    invoker = _invoker(args)
    document = _document(args)

    if args.address:
        result = invoker.url_offers(args.template, document)
        if isinstance(result, (PropertyResolutionFailed, AllOptionsSuppressed)):
            _fail(result.message)
        assert isinstance(result, OfferSet)
        if not result:
            print("No injection in this address.")
            return
        for idx, offer in enumerate(result.offers):
            print(f"{idx}: {offer.title} -> {offer.target}")
        if args.choice is not None:
            if not 0 <= args.choice < len(result.offers):
                _fail(f"--choice must be between 0 and {len(result.offers) - 1}")
            invoker.follow(result.offers[args.choice])
        return

    result = invoker.open_link(args.template, document)
    if isinstance(result, (PropertyResolutionFailed, AllOptionsSuppressed)):
        _fail(result.message)
    if isinstance(result, ChoiceRequest):
        if args.choice is None:
            print("Choose a link to open:")
            for idx, candidate in enumerate(result.candidates):
                print(f"{idx}: {candidate.value}  ({candidate.label})")
            return
        if not 0 <= args.choice < len(result.candidates):
            _fail(f"--choice must be between 0 and {len(result.candidates) - 1}")
        invoker.choose(result, args.choice, document)


def cmd_keys(args: argparse.Namespace) -> None:
    settings = _load(args)
    invoker = LinkInvoker(settings, args.vault or os.getcwd(), PrintNavigator())
    profile = invoker.profile
    overrides = profile.overrides if profile else {}
    print(f"Profile: {profile.name if profile else '(none)'}")
    for key, default in settings.defaults.items():
        stored = find_key(overrides, key)
        override = overrides[stored] if stored is not None else None
        if override == IGNORE_SENTINEL:
            print(f"  {key:<20} [ignored]")
        elif override is not None:
            print(f"  {key:<20} {override}  (default: {default})")
        else:
            print(f"  {key:<20} {default}")


def _add_common(p: argparse.ArgumentParser, template: bool = True) -> None:
    p.add_argument("--config", default=None,
                   help="Settings YAML (default: $LINKINJECT_CONFIG or ~/.linkinject/settings.yaml)")
    p.add_argument("--vault", default=None, help="Vault path selecting the device profile (default: cwd)")
    if template:
        p.add_argument("template", help="Link text containing ${...} placeholders")
        p.add_argument("--document", default=None,
                       help="Markdown file whose frontmatter feeds ${L:property}")
        p.add_argument("--address", action="store_true", default=False,
                       help="Treat the template as an external address (no character substitution)")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="linkinject",
        description="Resolve ${KEY}, ${L:property} and ${A,,B} link placeholders",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # -- resolve --
    p_resolve = subparsers.add_parser("resolve", help="Resolve placeholders in a template")
    _add_common(p_resolve)
    p_resolve.set_defaults(func=cmd_resolve)

    # -- expand --
    p_expand = subparsers.add_parser("expand", help="List every alternative of an OR template")
    _add_common(p_expand)
    p_expand.set_defaults(func=cmd_expand)

    # -- open --
    p_open = subparsers.add_parser("open", help="Invoke a link as the host would")
    _add_common(p_open)
    p_open.add_argument("--choice", type=int, default=None, help="Index of the alternative to open")
    p_open.add_argument("--rich", action="store_true", default=False,
                        help="The in-app web viewer channel is available")
    p_open.set_defaults(func=cmd_open)

    # -- keys --
    p_keys = subparsers.add_parser("keys", help="Show the dictionary for the current profile")
    _add_common(p_keys, template=False)
    p_keys.set_defaults(func=cmd_keys)

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        args.func(args)
    except (SettingsError, OSError) as exc:
        _fail(str(exc))


if __name__ == "__main__":
    main()
