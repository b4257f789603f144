import argparse
import logging
import os
import sys
from pathlib import Path
from uuid import UUID

from inkwell.adapters.sqlite.migrator import SQLiteMigrator
from inkwell.app_shell.config import DATA_DIR_ENV, RULES_PATH_ENV, SIGNING_KEY_ENV
from inkwell.app_shell.context import ServiceContext
from inkwell.components.release import ReleaseError
from inkwell.components.subscriptions import CleanupInput, run_cleanup
from inkwell.rules.loader import load_rules

logger = logging.getLogger("cli")

DEFAULT_DATA_DIR = "./data"
DEFAULT_RULES_PATH = "rules.yaml"


def get_context() -> ServiceContext:
    rules_path = Path(os.environ.get(RULES_PATH_ENV, DEFAULT_RULES_PATH))
    if not rules_path.exists():
        logger.error("Rules file %s not found.", rules_path)
        sys.exit(1)

    try:
        rules = load_rules(rules_path)
    except ValueError as e:
        logger.error("%s", e)
        sys.exit(1)

    data_dir = Path(os.environ.get(DATA_DIR_ENV, DEFAULT_DATA_DIR))
    data_dir.mkdir(parents=True, exist_ok=True)

    signing_key = os.environ.get(SIGNING_KEY_ENV, "")
    if not signing_key:
        logger.error("%s must be set.", SIGNING_KEY_ENV)
        sys.exit(1)

    return ServiceContext.create(data_dir, rules, signing_key)


def handle_migrate(ctx: ServiceContext, args: argparse.Namespace) -> None:
    applied = SQLiteMigrator(ctx.db_path).run_migrations()
    print(f"Applied {len(applied)} migrations.")


def handle_release(ctx: ServiceContext, args: argparse.Namespace) -> None:
    try:
        newsletter_id = UUID(args.newsletter_id)
    except ValueError:
        logger.error("Invalid newsletter id: %s", args.newsletter_id)
        sys.exit(2)

    try:
        output = ctx.release_scheduler.schedule(newsletter_id)
    except ReleaseError as e:
        logger.error("Release failed: %s", e)
        sys.exit(1)

    print(f"Released newsletter {output.newsletter_id}: {output.jobs_scheduled} emails scheduled.")
    if output.first_scheduled_at and output.last_scheduled_at:
        print(f"Sending from {output.first_scheduled_at} to {output.last_scheduled_at}.")


def handle_send_due(ctx: ServiceContext, args: argparse.Namespace) -> None:
    max_jobs = args.max_jobs or ctx.rules.ops.delivery.batch_size
    batch = ctx.delivery_runner.run_due(max_jobs=max_jobs)
    print(
        f"Processed {batch.total_processed} emails: "
        f"{batch.succeeded} sent, {batch.retried} retried, {batch.failed} failed."
    )


def handle_cleanup(ctx: ServiceContext, args: argparse.Namespace) -> None:
    output = run_cleanup(
        CleanupInput(),
        uow_factory=ctx.uow_factory,
        time=ctx.clock,
        config=ctx.subscription_config,
    )
    print(f"Removed {output.deleted} unverified subscribers.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inkwell", description="Inkwell CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending database migrations")

    # release
    release_parser = subparsers.add_parser("release", help="Release a newsletter")
    release_parser.add_argument("newsletter_id", help="ID of the newsletter to release")

    # send_due
    send_parser = subparsers.add_parser("send_due", help="Send scheduled emails that are due")
    send_parser.add_argument("--max-jobs", type=int, default=None, help="Batch size override")

    # cleanup_subscribers
    subparsers.add_parser(
        "cleanup_subscribers", help="Remove unverified subscribers past retention"
    )

    return parser


HANDLERS = {
    "migrate": handle_migrate,
    "release": handle_release,
    "send_due": handle_send_due,
    "cleanup_subscribers": handle_cleanup,
}


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)

    args = build_parser().parse_args(argv)
    ctx = get_context()
    HANDLERS[args.command](ctx, args)


if __name__ == "__main__":
    main()
