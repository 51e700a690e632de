"""Console for inspecting and pruning the claim records."""
import argparse
import asyncio
import sys
from typing import Dict, List, Optional

from claimdesk.core.config import Settings, get_settings
from claimdesk.core.logging_config import LoggingConfig
from claimdesk.data.countries import COUNTRY_PRESETS
from claimdesk.models.entities import (Claim, Contractor, Country, Entity,
                                       EntityKind, Project)
from claimdesk.services.store import EntityStore, OperationStatus, create_store

KIND_CHOICES = {kind.value: kind for kind in EntityKind}
KIND_CHOICES.update({kind.collection: kind for kind in EntityKind})


def _settings_from_args(args) -> Settings:
    overrides: Dict[str, str] = {}
    if args.backend:
        overrides["storage_backend"] = args.backend
    if args.cache_path:
        overrides["local_cache_path"] = args.cache_path
    if args.base_url:
        overrides["api_base_url"] = args.base_url
    if not overrides:
        return get_settings()
    return Settings(**overrides)


def _describe(store: EntityStore, entity: Entity) -> str:
    """One line per record for list output"""
    if isinstance(entity, Country):
        projects = len(store.get_projects_by_country_id(entity.id))
        return f"{entity.id}  {entity.name}  ({projects} project(s))"
    if isinstance(entity, Project):
        country = store.get_country_by_id(entity.country_id) if entity.country_id else None
        country_name = country.name if country else "-"
        return f"{entity.id}  {entity.title}  [{country_name}]"
    if isinstance(entity, Contractor):
        return f"{entity.id}  {entity.name}  ({len(entity.project_ids)} project(s))"
    if isinstance(entity, Claim):
        return f"{entity.id}  {entity.title}  project={entity.project_id} contractor={entity.contractor_id}"
    return f"{entity.id}  {entity.display_name}"


def _relations(store: EntityStore, entity: Entity) -> List[str]:
    lines = []
    if isinstance(entity, Country):
        lines += [f"project: {p.title}" for p in store.get_projects_by_country_id(entity.id)]
    elif isinstance(entity, Project):
        lines += [f"contractor: {c.name}" for c in store.get_contractors_by_project_id(entity.id)]
        lines += [f"claim: {c.title}" for c in store.get_claims_by_project_id(entity.id)]
    elif isinstance(entity, Contractor):
        lines += [f"project: {p.title}" for p in store.get_projects_by_contractor_id(entity.id)]
        lines += [f"claim: {c.title}" for c in store.get_claims_by_contractor_id(entity.id)]
    return lines


async def cmd_summary(store: EntityStore, args) -> int:
    summary = store.summary()
    for key, value in summary.model_dump().items():
        print(f"{key}: {value}")
    return 0


async def cmd_list(store: EntityStore, args) -> int:
    kind = KIND_CHOICES[args.kind]
    for entity in store.collection(kind):
        print(_describe(store, entity))
    return 0


async def cmd_show(store: EntityStore, args) -> int:
    kind = KIND_CHOICES[args.kind]
    entity = store.get_by_id(kind, args.id)
    if entity is None:
        print(f"{kind.label} {args.id} not found", file=sys.stderr)
        return 1
    print(entity.model_dump_json(indent=2))
    for line in _relations(store, entity):
        print(f"  {line}")
    return 0


async def cmd_delete(store: EntityStore, args) -> int:
    kind = KIND_CHOICES[args.kind]
    entity = store.get_by_id(kind, args.id)
    if entity is None:
        print(f"{kind.label} {args.id} not found, nothing to delete")
        return 0

    plan = None
    if kind is EntityKind.PROJECT:
        plan = store.preview_project_deletion(args.id)
    elif kind is EntityKind.CONTRACTOR:
        plan = store.preview_contractor_deletion(args.id)
    impact = plan.describe() if plan else "no dependent records"
    print(f"Deleting {kind.value} '{entity.display_name}': {impact}")

    if args.preview:
        return 0
    if not args.yes:
        answer = input("Proceed? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted")
            return 1

    deleters = {
        EntityKind.COUNTRY: store.delete_country,
        EntityKind.PROJECT: store.delete_project,
        EntityKind.CONTRACTOR: store.delete_contractor,
        EntityKind.CLAIM: store.delete_claim,
    }
    result = await deleters[kind](args.id)
    if result.status is OperationStatus.FAILED:
        print(f"Delete failed: {result.error}", file=sys.stderr)
        return 1
    print("Deleted")
    return 0


async def cmd_presets(store: Optional[EntityStore], args) -> int:
    for preset in COUNTRY_PRESETS:
        print(f"{preset.code}  {preset.name}  {preset.flag_url}")
    return 0


async def _run(args) -> int:
    if args.func is cmd_presets:
        return await cmd_presets(None, args)
    store = create_store(_settings_from_args(args))
    async with store:
        return await args.func(store, args)


def build_parser():
    p = argparse.ArgumentParser(prog="claimdesk")
    p.add_argument("--backend", choices=["remote", "local"], help="Storage backend (overrides STORAGE_BACKEND)")
    p.add_argument("--cache-path", help="Local cache file (overrides LOCAL_CACHE_PATH)")
    p.add_argument("--base-url", help="REST API base URL (overrides API_BASE_URL)")
    p.add_argument("--verbose", "-v", action="store_true", help="Log claimdesk debug output to stderr")
    sub = p.add_subparsers(dest="cmd")

    s = sub.add_parser("summary", help="Show record counts")
    s.set_defaults(func=cmd_summary)

    s = sub.add_parser("list", help="List records of one kind")
    s.add_argument("kind", choices=sorted(KIND_CHOICES))
    s.set_defaults(func=cmd_list)

    s = sub.add_parser("show", help="Show one record and its relations")
    s.add_argument("kind", choices=sorted(KIND_CHOICES))
    s.add_argument("id")
    s.set_defaults(func=cmd_show)

    s = sub.add_parser("delete", help="Delete a record and its dependents")
    s.add_argument("kind", choices=sorted(KIND_CHOICES))
    s.add_argument("id")
    s.add_argument("--preview", action="store_true", help="Only show what would be deleted")
    s.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    s.set_defaults(func=cmd_delete)

    s = sub.add_parser("presets", help="List preset countries")
    s.set_defaults(func=cmd_presets)
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    if not hasattr(args, "func"):
        p.print_help()
        return 2
    LoggingConfig.configure()
    if args.verbose:
        LoggingConfig.set_module_level("claimdesk", "DEBUG")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
