#!/usr/bin/env python
"""Idempotent seed script for system roles, role permission rows, demo users and webhook events.

Usage:
    python backend/scripts/seed_authz.py               # seed normally
    python backend/scripts/seed_authz.py --show-roles  # print role -> allowed/denied counts (after seeding)
    python backend/scripts/seed_authz.py --dry-run     # report what would be created, write nothing
    python backend/scripts/seed_authz.py --export-json # dump role -> allowed resource.action list
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from sleepdesk import create_app, get_db  # type: ignore
from sqlalchemy import text
from sleepdesk.config.settings import AUDIT_SINK_INLINE
from sleepdesk.constants.permissions import SYSTEM_ROLES, RESOURCE_ACTIONS
from sleepdesk.extensions import current_services
from sleepdesk.services.policy import role_id_for
from sleepdesk.services.roles import permission_id
from sleepdesk.services.users import DEMO_USERS
from sleepdesk.services.webhooks import default_event_records
from sleepdesk.store import ROLES, PERMISSIONS, USERS, WEBHOOK_EVENTS


def plan(store):
    """Counts of records a real run would create."""
    counts = {'roles': 0, 'permissions': 0, 'users': 0, 'webhook_events': 0}
    for name in SYSTEM_ROLES:
        rid = role_id_for(name)
        if store.get(ROLES, rid) is None:
            counts['roles'] += 1
        existing = {r['id'] for r in store.list(PERMISSIONS, role_id=rid)}
        for resource, actions in RESOURCE_ACTIONS.items():
            counts['permissions'] += sum(1 for a in actions if permission_id(rid, resource, a) not in existing)
    counts['users'] = sum(1 for u in DEMO_USERS if store.get(USERS, u['id']) is None)
    counts['webhook_events'] = sum(1 for e in default_event_records() if store.get(WEBHOOK_EVENTS, e['id']) is None)
    return counts


def seed(services):
    counts = services.roles.seed_system_roles(services.resolver.fallback)
    counts['users'] = services.users.seed_demo_users()
    counts['webhook_events'] = services.webhooks.seed_events()
    return counts


def build_role_permission_map(store):
    mapping = {}
    for role in store.list(ROLES):
        rows = store.list(PERMISSIONS, role_id=role['id'])
        mapping[role['name']] = sorted(f"{r['resource']}.{r['action']}" for r in rows if r['allowed'])
    return mapping


def print_role_summary(store):
    rows = []
    for role in store.list(ROLES):
        perms = store.list(PERMISSIONS, role_id=role['id'])
        allowed = sum(1 for p in perms if p['allowed'])
        rows.append((role['name'], allowed, len(perms) - allowed))
    if not rows:
        print("[INFO] No roles present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Allowed | Denied")
    print('-' * (name_w + 20))
    for name, allowed, denied in rows:
        print(f"{name.ljust(name_w)} | {str(allowed).rjust(7)} | {str(denied).rjust(6)}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed roles, permission rows, demo users & webhook events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show roles: seed_authz.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role allowed/denied counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Only report what would be created')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export role->permissions JSON (to FILE or stdout if omitted)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app({'AUDIT_SINK': AUDIT_SINK_INLINE})
    with app.app_context():
        session = get_db()
        try:
            # Ensure tables exist (lightweight fallback if migrations not run yet)
            session.execute(text('SELECT 1 FROM permissions LIMIT 1'))
        except Exception:
            session.rollback()
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            from sleepdesk.models.authz import Base
            import sleepdesk.models.audit, sleepdesk.models.webhook, sleepdesk.models.record  # noqa: F401
            Base.metadata.create_all(session.get_bind())
        finally:
            session.commit()

        services = current_services()
        if args.dry_run:
            print(f"[DRY-RUN] Would create: {json.dumps(plan(services.store), sort_keys=True)}")
        else:
            counts = seed(services)
            print(f"[DONE] Created: {json.dumps(counts, sort_keys=True)}")
        if args.show_roles:
            print('\nRole Permission Summary:')
            print_role_summary(services.store)
        if args.export_json is not None:
            role_perm_map = build_role_permission_map(services.store)
            # Deterministic checksum for change detection
            canonical = json.dumps(role_perm_map, sort_keys=True, separators=(',', ':'))
            payload = {
                'roles': role_perm_map,
                'meta': {
                    'roles_checksum_sha256': hashlib.sha256(canonical.encode('utf-8')).hexdigest(),
                    'dry_run': args.dry_run,
                }
            }
            if args.export_json == '-':
                print(json.dumps(payload, indent=2, sort_keys=True))
            else:
                with open(args.export_json, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, indent=2, sort_keys=True)
                print(f"[INFO] Exported JSON to {args.export_json}")

if __name__ == '__main__':
    main()
