import argparse
import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Tuple

from . import __version__
from .config import Settings, get_settings
from .constants import ROLES, SKILL_SUGGESTIONS
from .database import init_database
from .errors import CardValidationError, TeamMatchError
from .logger import StructuredLogger, get_logger
from .matches import MatchItem, MatchService
from .models import ConnectionRequest, EventType, Identity, IntentCard
from .repositories import (
    CardRepository,
    FirestoreCardRepository,
    FirestoreClient,
    FirestoreRequestRepository,
    RequestRepository,
    SqlCardRepository,
    SqlRequestRepository,
    StaticIdentityProvider,
)
from .schema import validate_card, validate_card_strict
from .storage import load_card_file, parse_cards, save_card_file


def build_repositories(settings: Settings, logger: StructuredLogger) -> Tuple[CardRepository, RequestRepository]:
    if settings.backend == "firestore":
        client = FirestoreClient(settings.firestore_project, token=settings.firestore_token, logger=logger)
        return FirestoreCardRepository(client), FirestoreRequestRepository(client)
    return (
        SqlCardRepository(settings.db_path, logger=logger),
        SqlRequestRepository(settings.db_path, logger=logger),
    )


def identity_from_args(args: argparse.Namespace) -> Identity:
    uid = getattr(args, "uid", None) or os.getenv("TEAMMATCH_UID")
    if not uid:
        raise SystemExit("No user id. Pass --uid or set TEAMMATCH_UID.")
    provider = StaticIdentityProvider(Identity(
        uid=uid,
        display_name=getattr(args, "name", None) or os.getenv("TEAMMATCH_NAME") or "Student",
        email=getattr(args, "email", None) or os.getenv("TEAMMATCH_EMAIL") or None,
        photo_url=getattr(args, "photo_url", None) or os.getenv("TEAMMATCH_PHOTO_URL") or None,
    ))
    return provider.current_identity()


def _read_json(path_str: str):
    input_path = Path(path_str)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    with input_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _print_card(card: IntentCard) -> None:
    print(f"ID: {card.id}{'' if card.is_public else '  (private)'}")
    print(f"  Event: {card.event_name} • {card.event_type.value}")
    print(f"  Owner: {card.owner_name} ({card.owner_uid})")
    print(f"  Roles: {', '.join(card.looking_for_roles) or '-'}")
    print(f"  Skills: {', '.join(card.required_skills) or '-'}")
    print(f"  Availability: {card.availability.describe()}")
    print(f"  {card.hostel_status.value}, {card.commitment_level.value}")
    if card.short_goal:
        print(f"  Goal: {card.short_goal}")
    print()


def _print_match(rank: int, item: MatchItem) -> None:
    card = item.card
    b = item.breakdown
    print(f"{rank}. {card.owner_name}  Score {b.total}/100  [{card.id}]")
    print(f"   {card.availability.describe()}")
    print(f"   role={b.role} skill={b.skill} availability={b.availability} hostel={b.hostel} commitment={b.commitment}")
    for reason in item.reasons:
        print(f"   - {reason}")
    print()


def _print_request(r: ConnectionRequest) -> None:
    print(f"[{r.status.value}] {r.id}: {r.from_name} ({r.from_intent_card_id}) -> {r.to_name} ({r.to_intent_card_id})")


def cmd_init_db(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    init_database(settings.db_path)
    print(f"Database ready: {settings.db_path}")


def cmd_import(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    raw_cards = load_card_file(Path(args.input))
    cards, rejected = parse_cards(raw_cards)
    for index, errors in rejected:
        print(f"[validation_error] card #{index}: {'; '.join(errors)}")
    for card in cards:
        stored = service.cards.create_card(card)
        print(f"[new] {stored.id} {stored.event_name} ({stored.owner_uid})")
    print(f"Done. imported={len(cards)} skipped={len(rejected)}")


def cmd_export(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    if args.uid:
        cards = service.list_my_cards(args.uid)
    else:
        cards = service.cards.list_public_cards(exclude_uid=None, max_cards=settings.match_pool_size)
    save_card_file(Path(args.output), cards)
    print(f"Exported {len(cards)} cards to {args.output}")


def cmd_validate(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    card = _read_json(args.input)
    if args.strict:
        _, errors = validate_card_strict(card)
    else:
        errors = validate_card(card)
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_options(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    print(f"Roles: {', '.join(ROLES)}")
    print(f"Skill suggestions: {', '.join(SKILL_SUGGESTIONS)}")
    print(f"Event types: {', '.join(e.value for e in EventType)}")


def cmd_create(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    card = service.create_card(identity_from_args(args), _read_json(args.input))
    print(f"Created: {card.id}")


def cmd_delete(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    service.delete_card(identity_from_args(args), args.card)
    print(f"Deleted: {args.card}")


def cmd_list(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    viewer = identity_from_args(args)
    cards = service.list_my_cards(viewer.uid)
    if not cards:
        print("No intent cards yet.")
        return
    print(f"Found {len(cards)} cards for {viewer.uid}:\n")
    for card in cards:
        _print_card(card)


def cmd_matches(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    matches = service.find_matches(args.card, identity_from_args(args), top_n=args.top)
    if args.json:
        print(json.dumps([m.to_dict() for m in matches], indent=2, ensure_ascii=False))
        return
    if not matches:
        print("No strong matches yet. Try widening roles/skills or adjusting availability.")
        return
    for rank, item in enumerate(matches, 1):
        _print_match(rank, item)


def cmd_request(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    request = service.send_request(identity_from_args(args), args.from_card, args.to_card)
    print(f"Request sent: {request.id}")


def cmd_requests(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    viewer = identity_from_args(args)
    incoming = service.list_incoming(viewer.uid)
    outgoing = service.list_outgoing(viewer.uid)
    print("Incoming:")
    if not incoming:
        print("  No incoming requests.")
    for r in incoming:
        _print_request(r)
    print("\nOutgoing:")
    if not outgoing:
        print("  No outgoing requests.")
    for r in outgoing:
        _print_request(r)


def cmd_respond(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    updated = service.respond(identity_from_args(args), args.request, accept=args.accept)
    print(f"Request {updated.id}: {updated.status.value}")


def cmd_connections(args: argparse.Namespace, service: MatchService, settings: Settings) -> None:
    viewer = identity_from_args(args)
    connections = service.list_connections(viewer.uid)
    if not connections:
        print("No connections yet.")
        return
    for c in connections:
        other = c.uids[1] if c.uids[0] == viewer.uid else c.uids[0]
        print(f"{c.id}: {other} (request {c.request_id})")


def non_negative_int(value: str) -> int:
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {n}")
    return n


def _add_identity_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--uid", help="Acting user id (or set TEAMMATCH_UID)")
    p.add_argument("--name", help="Display name (or set TEAMMATCH_NAME)")
    p.add_argument("--email", help="Contact email (or set TEAMMATCH_EMAIL)")
    p.add_argument("--photo-url", help="Photo URL (or set TEAMMATCH_PHOTO_URL)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="teammatch", description="TeamMatch: find teammates for campus events")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--backend", choices=["sqlite", "firestore"], help="Storage backend (default from TEAMMATCH_BACKEND)")
    parser.add_argument("--db", help="SQLite database path (default from TEAMMATCH_DB_PATH)")
    parser.add_argument("--metrics", action="store_true", help="Log a metrics summary when done")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create the local SQLite database")
    ini.set_defaults(func=cmd_init_db)

    imp = subparsers.add_parser("import", help="Import intent cards from a JSON card file")
    imp.add_argument("--input", required=True, help="Path to card file")
    imp.set_defaults(func=cmd_import)

    exp = subparsers.add_parser("export", help="Export cards to a JSON card file")
    exp.add_argument("--output", required=True, help="Path to write")
    exp.add_argument("--uid", help="Only this user's cards (default: all public cards)")
    exp.set_defaults(func=cmd_export)

    val = subparsers.add_parser("validate", help="Validate a card JSON against the form rules")
    val.add_argument("--input", required=True, help="Path to card JSON")
    val.add_argument("--strict", action="store_true", help="Also require roles from the known role list")
    val.set_defaults(func=cmd_validate)

    opt = subparsers.add_parser("options", help="Show known roles and skill suggestions for card forms")
    opt.set_defaults(func=cmd_options)

    cre = subparsers.add_parser("create", help="Create an intent card owned by the acting user")
    cre.add_argument("--input", required=True, help="Path to card JSON")
    _add_identity_args(cre)
    cre.set_defaults(func=cmd_create)

    dele = subparsers.add_parser("delete", help="Delete one of your intent cards")
    dele.add_argument("--card", required=True, help="Card id")
    _add_identity_args(dele)
    dele.set_defaults(func=cmd_delete)

    lst = subparsers.add_parser("list", help="List your intent cards")
    _add_identity_args(lst)
    lst.set_defaults(func=cmd_list)

    mat = subparsers.add_parser("matches", help="Rank public cards against one of your cards")
    mat.add_argument("--card", required=True, help="Your card id")
    mat.add_argument("--top", type=non_negative_int, help="Number of matches to show (default from TEAMMATCH_TOP_MATCHES)")
    mat.add_argument("--json", action="store_true", help="Print matches as JSON")
    _add_identity_args(mat)
    mat.set_defaults(func=cmd_matches)

    req = subparsers.add_parser("request", help="Send a connection request")
    req.add_argument("--from-card", required=True, help="Your card id")
    req.add_argument("--to-card", required=True, help="The matched card id")
    _add_identity_args(req)
    req.set_defaults(func=cmd_request)

    reqs = subparsers.add_parser("requests", help="List incoming and outgoing requests")
    _add_identity_args(reqs)
    reqs.set_defaults(func=cmd_requests)

    res = subparsers.add_parser("respond", help="Accept or reject an incoming request")
    res.add_argument("--request", required=True, help="Request id")
    decision = res.add_mutually_exclusive_group(required=True)
    decision.add_argument("--accept", action="store_true", help="Accept the request")
    decision.add_argument("--reject", action="store_true", help="Reject the request")
    _add_identity_args(res)
    res.set_defaults(func=cmd_respond)

    con = subparsers.add_parser("connections", help="List your connections")
    _add_identity_args(con)
    con.set_defaults(func=cmd_connections)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        settings = get_settings()
        if args.backend:
            settings = replace(settings, backend=args.backend)
        if args.db:
            settings = replace(settings, db_path=Path(args.db))

        logger = get_logger(level=settings.log_level, log_dir=settings.log_dir)
        cards, requests = build_repositories(settings, logger)
        service = MatchService(cards, requests, settings=settings, logger=logger)

        args.func(args, service, settings)

        if args.metrics:
            logger.log_metrics_summary()
    except CardValidationError as e:
        print("Invalid:")
        for err in e.errors:
            print(f" - {err}")
        raise SystemExit(2)
    except TeamMatchError as e:
        raise SystemExit(f"Error: {e}")


if __name__ == "__main__":
    main()
