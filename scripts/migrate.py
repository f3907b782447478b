"""Run or create Alembic migrations for the scheduler database."""

import argparse
import sys

from alembic import command
from alembic.config import Config


def main() -> int:
    """Dispatch a migration command."""
    parser = argparse.ArgumentParser(description=__doc__)
    sub = parser.add_subparsers(dest="action")

    upgrade = sub.add_parser("upgrade", help="upgrade to a revision (default: head)")
    upgrade.add_argument("revision", nargs="?", default="head")

    downgrade = sub.add_parser("downgrade", help="downgrade to a revision")
    downgrade.add_argument("revision")

    create = sub.add_parser("create", help="autogenerate a new revision")
    create.add_argument("message", nargs="+")

    sub.add_parser("current", help="show the current revision")

    args = parser.parse_args()
    alembic_cfg = Config("alembic.ini")

    try:
        if args.action == "downgrade":
            command.downgrade(alembic_cfg, args.revision)
        elif args.action == "create":
            command.revision(alembic_cfg, message=" ".join(args.message), autogenerate=True)
        elif args.action == "current":
            command.current(alembic_cfg, verbose=True)
        else:
            command.upgrade(alembic_cfg, getattr(args, "revision", "head"))
    except Exception as e:
        print(f"✗ Migration command failed: {e}", file=sys.stderr)
        return 1

    print("✓ Done")
    return 0


if __name__ == "__main__":
    sys.exit(main())
