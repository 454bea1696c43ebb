"""Generate reports for every stored business and record the outcome in a CSV."""

import csv
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from sqlalchemy.orm import Session

from . import storage
from .errors import CompetitorWatcherError
from .main import run_report_for_business

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    business_id: str
    business_name: str
    success: bool
    report_id: str | None = None
    error: str | None = None


def write_results_csv(results: list[BatchResult], path: Path) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=[f.name for f in fields(BatchResult)])
        writer.writeheader()
        writer.writerows(asdict(r) for r in results)


async def run_scheduled_reports(
    session: Session,
    language: str = "en",
    output_path: Path | None = None,
    on_result: Callable[[BatchResult], None] | None = None,
) -> list[BatchResult]:
    """
    Run a report for each business, skipping pending locations.

    Failures are recorded and the batch continues. When ``output_path`` is
    given the CSV is rewritten after each business, so a crash keeps the
    results so far.
    """
    businesses = storage.list_businesses(session)
    logger.info("Running reports for %d businesses", len(businesses))
    results: list[BatchResult] = []

    for business in businesses:
        if business.location_status == "pending" or business.latitude is None or business.longitude is None:
            result = BatchResult(business.id, business.name, False, error="Pending location verification")
        else:
            try:
                report = await run_report_for_business(
                    session, business.id, language=language, user_id=business.user_id
                )
                result = BatchResult(business.id, business.name, True, report_id=report.id)
            except CompetitorWatcherError as e:
                logger.warning("Report failed for %s: %s", business.name, e)
                session.rollback()
                result = BatchResult(business.id, business.name, False, error=str(e))
            except Exception as e:
                logger.exception("Unexpected error generating report for %s", business.name)
                session.rollback()
                result = BatchResult(business.id, business.name, False, error=f"{type(e).__name__}: {e}")

        results.append(result)
        if on_result:
            on_result(result)
        if output_path is not None:
            write_results_csv(results, output_path)

    succeeded = sum(1 for r in results if r.success)
    logger.info("Batch complete: %d succeeded, %d failed", succeeded, len(results) - succeeded)
    return results
