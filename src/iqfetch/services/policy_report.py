"""Latest policy report aggregation across IQ Server applications."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from iqfetch.client.types import Application, Organization, ReportInfo, ViolationReport
from iqfetch.errors import (
    ApplicationReportError,
    IQFetchError,
    NoApplicationsError,
    RemoteFetchError,
    ReportCancelledError,
    ReportLocatorError,
)
from iqfetch.report.csv_writer import write_csv
from iqfetch.report.flatten import flatten_violations
from iqfetch.report.types import FlatRow

MAX_CONCURRENT_APPLICATIONS = 10
REPORT_ID_MARKER = "/report/"


class ReportSource(Protocol):
    """Remote operations the aggregation needs; ``IQClient`` implements this."""

    def get_applications(self, org_id: str | None = None) -> list[Application]: ...

    def get_organizations(self) -> list[Organization]: ...

    def get_latest_report_info(self, app_id: str) -> ReportInfo | None: ...

    def get_policy_violations(self, public_id: str, report_id: str) -> ViolationReport: ...


@dataclass(frozen=True)
class Deadline:
    """Upper bound for a whole run, measured on a monotonic clock."""

    expires_at: float | None = None
    clock: Callable[[], float] = field(default=time.monotonic, compare=False)

    @classmethod
    def after(cls, seconds: float | None, clock: Callable[[], float] = time.monotonic) -> Deadline:
        if seconds is None:
            return cls(None, clock)
        return cls(clock() + seconds, clock)

    def expired(self) -> bool:
        return self.expires_at is not None and self.clock() >= self.expires_at


@dataclass
class AggregationOutcome:
    """Result of one application's task; consumed once by the merge loop."""

    index: int
    rows: list[FlatRow] = field(default_factory=list)
    error: IQFetchError | None = None


def parse_report_id(locator: str) -> str:
    """Extract the report id that follows ``/report/`` in a report URL."""
    _, marker, report_id = locator.partition(REPORT_ID_MARKER)
    if not marker or not report_id:
        raise ReportLocatorError(locator)
    return report_id


class PolicyReportService:
    """Fetch every application's latest policy report and export one CSV."""

    def __init__(
        self,
        source: ReportSource,
        output_dir: Path,
        *,
        max_concurrent: int = MAX_CONCURRENT_APPLICATIONS,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.source = source
        self.output_dir = output_dir
        self.max_concurrent = max_concurrent
        self.logger = logger or logging.getLogger(__name__)

    def generate_latest_policy_report(
        self,
        org_id: str | None,
        filename: str,
        *,
        timeout: float | None = None,
        stable_order: bool = False,
    ) -> Path:
        """Write ``output_dir/filename`` and return its absolute path.

        Args:
            org_id: Only report applications owned by this organization
            filename: CSV file name inside the output directory
            timeout: Seconds after which tasks that have not started yet give up
            stable_order: Concatenate rows in application order rather than
                completion order

        Raises:
            NoApplicationsError: If the listing is empty
            RemoteFetchError: If a setup request fails
            ApplicationReportError: For the first failing application
            ReportWriteError: If the CSV cannot be persisted
        """
        deadline = Deadline.after(timeout)
        self.logger.info(
            "Generating latest policy report",
            extra={"org_id": org_id or "all", "report_filename": filename},
        )

        try:
            applications = self.source.get_applications(org_id)
        except RemoteFetchError as exc:
            self.logger.error("Failed to retrieve application list", extra={"org_id": org_id, "error": str(exc)})
            raise RemoteFetchError(f"get applications: {exc}", status_code=exc.status_code) from exc
        self.logger.info("Fetched applications", extra={"count": len(applications)})

        if not applications:
            self.logger.warning("No applications found matching criteria", extra={"org_id": org_id})
            raise NoApplicationsError(org_id)

        try:
            organizations = self.source.get_organizations()
        except RemoteFetchError as exc:
            self.logger.error("Failed to retrieve organization list", extra={"error": str(exc)})
            raise RemoteFetchError(f"get organizations: {exc}", status_code=exc.status_code) from exc
        org_names = {org.id: org.name for org in organizations}
        self.logger.info("Built organization name lookup", extra={"count": len(org_names)})

        rows = self._collect_rows(applications, org_names, deadline, stable_order=stable_order)

        target = (self.output_dir / filename).absolute()
        self.logger.info("Writing CSV report", extra={"path": str(target), "total_rows": len(rows)})
        write_csv(target, rows, logger=self.logger)
        self.logger.info("Report written", extra={"path": str(target)})
        return target

    # Internal helpers -----------------------------------------------------------

    def _collect_rows(
        self,
        applications: list[Application],
        org_names: dict[str, str],
        deadline: Deadline,
        *,
        stable_order: bool,
    ) -> list[FlatRow]:
        self.logger.info(
            "Starting concurrent report fetching",
            extra={"applications": len(applications), "max_concurrent": self.max_concurrent},
        )
        slots: list[list[FlatRow]] = [[] for _ in applications]
        merged: list[FlatRow] = []

        executor = ThreadPoolExecutor(max_workers=self.max_concurrent, thread_name_prefix="iqfetch-app")
        try:
            futures: list[Future[AggregationOutcome]] = [
                executor.submit(self._process_application, index, app, org_names, deadline)
                for index, app in enumerate(applications)
            ]
            for future in as_completed(futures):
                outcome = future.result()
                if outcome.error is not None:
                    self.logger.error("Aborting report generation", extra={"error": str(outcome.error)})
                    raise outcome.error
                if stable_order:
                    slots[outcome.index] = outcome.rows
                else:
                    merged.extend(outcome.rows)
        finally:
            # Tasks still queued are dropped; running ones finish in the background.
            executor.shutdown(wait=False, cancel_futures=True)

        if stable_order:
            return [row for app_rows in slots for row in app_rows]
        return merged

    def _process_application(
        self,
        index: int,
        app: Application,
        org_names: dict[str, str],
        deadline: Deadline,
    ) -> AggregationOutcome:
        if deadline.expired():
            cause = ReportCancelledError("deadline exceeded before request started")
            return self._failed(index, app, cause, "start")

        app_fields = {"app_public_id": app.public_id, "app_internal_id": app.id}

        try:
            report_info = self.source.get_latest_report_info(app.id)
        except IQFetchError as exc:
            return self._failed(index, app, exc, "latest report")

        if report_info is None or not report_info.report_html_url.strip():
            self.logger.info("No recent report found for application, skipping", extra=app_fields)
            return AggregationOutcome(index)

        try:
            report_id = parse_report_id(report_info.report_html_url)
        except ReportLocatorError as exc:
            return self._failed(index, app, exc, "report id")
        self.logger.debug(
            "Parsed report id",
            extra={**app_fields, "report_id": report_id, "stage": report_info.stage},
        )

        org_name = org_names.get(app.organization_id)
        if org_name is None:
            org_name = app.organization_id
            self.logger.warning(
                "Organization name not found, using id as fallback",
                extra={**app_fields, "org_id": app.organization_id},
            )

        try:
            report = self.source.get_policy_violations(app.public_id, report_id)
        except IQFetchError as exc:
            return self._failed(index, app, exc, "policy violations")

        rows = flatten_violations(report, app.public_id, org_name)
        self.logger.debug("Flattened policy violations", extra={**app_fields, "rows": len(rows)})
        return AggregationOutcome(index, rows=rows)

    def _failed(self, index: int, app: Application, exc: IQFetchError, stage: str) -> AggregationOutcome:
        error = ApplicationReportError(app.public_id, exc, stage=stage)
        error.__cause__ = exc
        return AggregationOutcome(index, error=error)
