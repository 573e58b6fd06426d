"""Re-resolve the routing branch of stored quote requests.

Usage:
    quote-routing-backfill [--force] [--page-size N]

Rows with a manual override are never touched. Without ``--force``, rows that
already have a successful resolution are skipped. The JSON summary is printed
on stdout; the exit code is 1 only when the run itself cannot complete.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from quote_routing.config import Settings, settings as default_settings
from quote_routing.repositories.admin_activity_repository import AdminActivityRepository
from quote_routing.repositories.cotizacion_repository import CotizacionRepository
from quote_routing.services.routing.reconciler import BackfillSummary, BatchReconciler
from quote_routing.services.routing.service import RoutingService
from quote_routing.utils.logging import get_logger

LOGGER = get_logger(__name__, level=default_settings.log_level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Re-resolve routing for stored quote requests.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-resolve rows that are already resolved.",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Rows per page (default: ROUTING_BACKFILL_PAGE_SIZE).",
    )
    return parser


async def run_backfill(
    force: bool,
    page_size: Optional[int] = None,
    settings: Settings = default_settings,
) -> BackfillSummary:
    """Run the reconciler against the configured database.

    Raises:
        Exception: If the database is unreachable; no row is read in that case
    """
    from quote_routing.database.client import async_session_maker, close_database, db_client

    try:
        await db_client.connect()

        routing_service = RoutingService(settings, async_session_maker)
        try:
            async with async_session_maker() as session:
                reconciler = BatchReconciler(
                    cotizacion_repository=CotizacionRepository(session),
                    resolver=routing_service.resolve,
                    activity_repository=AdminActivityRepository(session),
                    page_size=page_size or settings.routing.backfill_page_size,
                    epsilon=settings.routing.distance_epsilon,
                )
                return await reconciler.run(force=force)
        finally:
            await routing_service.aclose()
    finally:
        await close_database()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.page_size is not None and args.page_size < 1:
        LOGGER.error("--page-size must be >= 1")
        return 2

    try:
        summary = asyncio.run(run_backfill(force=args.force, page_size=args.page_size))
    except Exception:
        LOGGER.error("Routing backfill failed", exc_info=True)
        return 1

    print(json.dumps(summary.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
