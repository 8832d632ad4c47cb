"""
Bulk PDF generation across worker threads.

Student reports are split into chunks, one chunk per worker, and each
chunk reuses a single StudentReportPDF. Sponsor reports are dealt out
round robin, one report per call. App settings are read once, before any
worker starts, and shared by every report.
"""

import logging
from typing import Callable, List, Optional
from queries import SettingsQueries
from workers import ChunkedWorkerPool, RoundRobinWorkerPool, WorkerResult
from .paths import output_dir
from .pdf_reports import StudentReportPDF, SponsorReportPDF

logger = logging.getLogger(__name__)


def _student_chunk(student_ids: List[str], directory, academic_year, settings) -> List:
    report = StudentReportPDF(settings)
    paths = []
    for student_id in student_ids:
        try:
            paths.append(report.export(student_id, directory, academic_year))
        except Exception as e:
            logger.error(f"Failed to export report for student {student_id}: {str(e)}")
            paths.append(e)
    return paths


def _unwrap(results: List[WorkerResult]) -> List[WorkerResult]:
    """Move exceptions returned as values into the error slot."""
    for result in results:
        if isinstance(result.value, Exception):
            result.error, result.value = result.value, None
    return results


def export_student_reports(student_ids: List[str], directory=None, num_workers: int = 3,
                           academic_year: str = None) -> List[WorkerResult]:
    """
    Write one PDF per student.

    Args:
        student_ids: Student UUIDs or slugs
        directory: Output directory (defaults to EXPORT_DIR)
        num_workers: Number of threads
        academic_year: Limit exam history to this year

    Returns:
        One WorkerResult per student, in input order; value is the PDF path

    Example:
        >>> results = export_student_reports([s['id'] for s in students])
        >>> failed = [r.item for r in results if not r.ok]
    """
    directory = output_dir(directory)
    logger.info(f"Exporting {len(student_ids)} student reports to {directory} with {num_workers} workers")
    settings = SettingsQueries.get_app_settings()
    pool = ChunkedWorkerPool(student_ids, _student_chunk, (directory, academic_year, settings), num_workers)
    results = _unwrap(pool.run())
    logger.info(f"Student reports done: {sum(r.ok for r in results)}/{len(results)} succeeded")
    return results


def export_sponsor_reports(sponsor_ids: List[str], directory=None, num_workers: int = 3,
                           progress: Optional[Callable[[int, int], None]] = None) -> List[WorkerResult]:
    """One PDF per sponsor; same contract as export_student_reports."""
    directory = output_dir(directory)
    logger.info(f"Exporting {len(sponsor_ids)} sponsor reports to {directory} with {num_workers} workers")
    settings = SettingsQueries.get_app_settings()
    pool = RoundRobinWorkerPool(
        sponsor_ids,
        lambda sponsor_id: SponsorReportPDF(settings).export(sponsor_id, directory),
        num_workers=num_workers,
        progress=progress,
    )
    results = pool.run()
    logger.info(f"Sponsor reports done: {sum(r.ok for r in results)}/{len(results)} succeeded")
    return results
