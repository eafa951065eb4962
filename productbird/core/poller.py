"""Background poller that settles generation jobs whose webhook never arrived."""

import asyncio
import logging
from collections import Counter
from typing import Dict, Optional

import typer
from rich.console import Console
from sqlalchemy.orm import Session

from productbird.config import settings
from productbird.core.api_client import ProductbirdAPIError, ProductbirdClient
from productbird.core.item_store import ItemStore, SqlItemStore
from productbird.core.reconciliation import ReconciliationEngine
from productbird.core.status_store import StatusStore
from productbird.database import SessionLocal

logger = logging.getLogger(__name__)

app = typer.Typer(help="Productbird generation status poller")


async def sweep(
    db: Session,
    client: ProductbirdClient,
    items: Optional[ItemStore] = None,
    page_size: Optional[int] = None,
) -> Dict[str, int]:
    """Poll every record that still holds an external job ID.

    Runs as one pass over the store, paginated so large catalogs are not
    loaded at once. API errors for one item are logged and skipped.

    Returns:
        Counts per resulting status, plus ``errors`` for failed polls
    """
    store = StatusStore(db)
    engine = ReconciliationEngine(store, items or SqlItemStore(db))
    counts: Counter = Counter()

    for live_job in store.iter_live_jobs(page_size or settings.poller_page_size):
        try:
            result = await client.poll_status(live_job.job_id)
        except ProductbirdAPIError as e:
            logger.error(f"Poller: error checking status for product {live_job.item_id}: {e}")
            counts["errors"] += 1
            continue

        logger.info(f"Poller: processing product {live_job.item_id} with workflow state {result.workflow_state}")
        status = engine.apply_poll_result(live_job.item_id, live_job.job_id, result)
        counts[status.value] += 1

    return dict(counts)


async def _sweep_once(page_size: Optional[int]) -> Dict[str, int]:
    if not settings.productbird_api_key:
        logger.warning("Poller: API key not configured, skipping sweep")
        return {}

    client = ProductbirdClient(settings.productbird_api_key)
    db = SessionLocal()
    try:
        return await sweep(db, client, page_size=page_size)
    finally:
        db.close()
        await client.aclose()


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command("sweep")
def sweep_command(
    page_size: int = typer.Option(None, help="Records per page (default from POLLER_PAGE_SIZE)"),
):
    """Run a single polling pass over all in-flight generation jobs."""
    _configure_logging()
    console = Console()
    counts = asyncio.run(_sweep_once(page_size))
    if not counts:
        console.print("No generation jobs to poll.")
        return
    summary = ", ".join(f"{status}: {count}" for status, count in sorted(counts.items()))
    console.print(f"[green]Sweep finished[/green] ({summary})")


@app.command("run")
def run_command(
    interval: int = typer.Option(None, help="Seconds between sweeps (default from POLLER_INTERVAL_SECONDS)"),
    page_size: int = typer.Option(None, help="Records per page (default from POLLER_PAGE_SIZE)"),
):
    """Poll repeatedly until interrupted."""
    _configure_logging()
    console = Console()
    interval = interval or settings.poller_interval_seconds

    async def loop() -> None:
        while True:
            try:
                counts = await _sweep_once(page_size)
                logger.info(f"Poller sweep finished: {counts}")
            except Exception as e:
                logger.exception(f"Poller sweep failed: {e}")
            await asyncio.sleep(interval)

    console.print(f"Polling every {interval}s. Press Ctrl+C to stop.")
    try:
        asyncio.run(loop())
    except KeyboardInterrupt:
        console.print("Poller stopped.")


if __name__ == "__main__":
    app()
