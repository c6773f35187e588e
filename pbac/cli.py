"""PBAC authoring tool.

Manages type records and rules in the SQL policy store named by
PBAC_DATABASE_URL.

Usage:
    pbac register-type resource Document --description "Shared docs"
    pbac set-active target AccessTeam off
    pbac create-rule view allow --resource-type Document --target-type AccessGroup --target-id 5
    pbac list-rules
    pbac import policies.yaml
"""

import argparse
import json
import sys

from pbac.config import PbacSettings, get_settings
from pbac.errors import RuleValidationError
from pbac.registry.models import TypeKind
from pbac.rules.loader import RuleLoader
from pbac.rules.models import Rule
from pbac.rules.sql import SqlPolicyStore


def _entity_id(value: str | None) -> int | str | None:
    if value is None:
        return None
    return int(value) if value.isdigit() else value


KINDS = [kind.value for kind in TypeKind]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pbac",
        description="Manage PBAC types and rules",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        help="Override PBAC_DATABASE_URL"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register-type", help="Register a target or resource type")
    register.add_argument("kind", choices=KINDS)
    register.add_argument("name")
    register.add_argument("--description", default="")
    register.add_argument("--inactive", action="store_true", help="Register as inactive")

    active = sub.add_parser("set-active", help="Activate or deactivate a type")
    active.add_argument("kind", choices=KINDS)
    active.add_argument("name")
    active.add_argument("state", choices=["on", "off"])

    create = sub.add_parser("create-rule", help="Create an access rule")
    create.add_argument("action", help="Action name, or a comma-separated list")
    create.add_argument("effect", nargs="?", default="allow")
    create.add_argument("--resource-type")
    create.add_argument("--resource-id")
    create.add_argument("--target-type")
    create.add_argument("--target-id")
    create.add_argument("--priority", type=int, default=0)
    create.add_argument("--conditions", help="Conditions as a JSON object")

    sub.add_parser("list-rules", help="List rules, highest priority first")

    load = sub.add_parser("import", help="Import types and rules from a YAML file")
    load.add_argument("file")

    return parser


def _create_rule(args: argparse.Namespace, store: SqlPolicyStore, settings: PbacSettings) -> int:
    actions = [a.strip() for a in args.action.split(",") if a.strip()]
    unsupported = [a for a in actions if not settings.is_supported_action(a)]
    if not actions or unsupported:
        print(f"Invalid action: {args.action}")
        print(f"Supported actions: {', '.join(settings.supported_actions)}")
        return 1

    if args.effect not in ("allow", "deny"):
        print(f"Invalid effect: {args.effect}. Use 'allow' or 'deny'.")
        return 1

    conditions = None
    if args.conditions:
        try:
            conditions = json.loads(args.conditions)
        except json.JSONDecodeError as e:
            print(f"Invalid conditions JSON: {e}")
            return 1
        if not isinstance(conditions, dict):
            print("Conditions must be a JSON object")
            return 1

    try:
        rule = Rule(
            target_type=args.target_type,
            target_id=_entity_id(args.target_id),
            resource_type=args.resource_type,
            resource_id=_entity_id(args.resource_id),
            actions=actions,
            effect=args.effect,
            priority=args.priority,
            conditions=conditions,
        )
    except RuleValidationError as e:
        print(e.message)
        return 1

    if rule.target_type is not None and store.get(TypeKind.TARGET, rule.target_type) is None:
        print(f"Target type '{rule.target_type}' is not registered. Run register-type first.")
        return 1
    if rule.resource_type is not None and store.get(TypeKind.RESOURCE, rule.resource_type) is None:
        print(f"Resource type '{rule.resource_type}' is not registered. Run register-type first.")
        return 1

    created = store.create_rule(rule, register_types=False)
    print(f"Created rule {created.id}: {created.describe()}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    kind = TypeKind(args.kind) if "kind" in args else None
    store = SqlPolicyStore(args.database_url or settings.database_url)
    store.create_all()

    if args.command == "register-type":
        record = store.register(
            kind, args.name, description=args.description, active=not args.inactive
        )
        print(f"Registered {kind.value} type: {record.type} (active={record.is_active})")
        return 0

    if args.command == "set-active":
        if not store.set_active(kind, args.name, args.state == "on"):
            print(f"{kind.value.capitalize()} type '{args.name}' is not registered")
            return 1
        print(f"{kind.value.capitalize()} type '{args.name}' set {args.state}")
        return 0

    if args.command == "create-rule":
        return _create_rule(args, store, settings)

    if args.command == "list-rules":
        rules = store.list_rules()
        if not rules:
            print("No rules defined")
        for rule in rules:
            print(f"[{rule.id}] {rule.describe()}")
        return 0

    if args.command == "import":
        loader = RuleLoader(settings.supported_actions)
        try:
            created = loader.load_from_yaml(args.file, store, store)
        except (RuleValidationError, OSError) as e:
            print(f"Import failed: {e}")
            return 1
        print(f"Imported {len(created)} rules")
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
