"""Cron entry point for sweeping orphaned scratch and staging artifacts."""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from dataclasses import dataclass

from src.clipgate.config import AppConfig, load_config
from src.clipgate.exceptions import NotFoundError
from src.clipgate.media.temp_media_store import TempMediaStore
from src.clipgate.providers.providers_factory import create_staging_store
from src.clipgate.repositories.media_item_repository import MediaItemRepository
from src.clipgate.staging.staging_client import StagingClient


@dataclass(slots=True)
class CleanupSummary:
    scratch_removed: int
    staging_removed: int
    dry_run: bool


def _orphaned_staging(
    staging: StagingClient, repository: MediaItemRepository
) -> list[str]:
    """Staged objects whose item is terminal or unknown."""
    orphaned: list[str] = []
    for uri, item_id in asyncio.run(staging.list_staged()):
        try:
            item = repository.get_item(item_id)
        except NotFoundError:
            orphaned.append(uri)
            continue
        if item.status.is_terminal:
            orphaned.append(uri)
    return orphaned


def perform_cleanup(
    *,
    dry_run: bool,
    reference_time: float | None = None,
    config: AppConfig | None = None,
) -> CleanupSummary:
    """Execute cleanup logic and return summary counters."""
    cfg = config or load_config()
    settings = cfg.settings
    repository = MediaItemRepository(cfg.session_factory)
    scratch = TempMediaStore(
        root=cfg.scratch_paths.root,
        ttl_seconds=settings.scratch_ttl_hours * 3600,
    )
    staging = StagingClient(
        store=create_staging_store(settings),
        bucket=settings.staging_bucket,
        prefix=settings.staging_prefix,
        timeout_seconds=settings.staging_timeout_seconds,
    )

    now = reference_time if reference_time is not None else time.time()
    orphaned = _orphaned_staging(staging, repository)

    if dry_run:
        return CleanupSummary(
            scratch_removed=len(scratch.expired_items(now)),
            staging_removed=len(orphaned),
            dry_run=True,
        )

    removed_scratch = scratch.cleanup_expired(now)
    for uri in orphaned:
        asyncio.run(staging.delete(uri))
    return CleanupSummary(
        scratch_removed=removed_scratch,
        staging_removed=len(orphaned),
        dry_run=False,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cleanup orphaned media artifacts.")
    parser.add_argument("--dry-run", action="store_true", help="Only report counts without deleting files.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        summary = perform_cleanup(dry_run=args.dry_run)
    except Exception as exc:
        print(f"cleanup failed: {exc}", file=sys.stderr)
        return 2

    if summary.dry_run:
        print(
            f"cleanup dry-run, scratch_expired={summary.scratch_removed}, staging_orphaned={summary.staging_removed}",
            file=sys.stdout,
        )
    else:
        print(
            f"cleanup done, scratch_removed={summary.scratch_removed}, staging_removed={summary.staging_removed}",
            file=sys.stdout,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
