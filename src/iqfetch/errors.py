"""Error kinds raised by the report pipeline."""

from __future__ import annotations

from pathlib import Path


class IQFetchError(RuntimeError):
    """Base class for fatal report generation failures."""


class RemoteFetchError(IQFetchError):
    """Raised on transport failure or non-success status from IQ Server."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NoApplicationsError(IQFetchError):
    """Raised when the application listing comes back empty."""

    def __init__(self, org_id: str | None = None) -> None:
        scope = f" for organization {org_id}" if org_id else ""
        super().__init__(f"no applications found{scope}")
        self.org_id = org_id


class ReportLocatorError(IQFetchError):
    """Raised when a report id cannot be parsed from a report URL."""

    def __init__(self, locator: str) -> None:
        super().__init__(f"cannot parse report id from {locator!r}")
        self.locator = locator


class ReportCancelledError(IQFetchError):
    """Raised by a task that starts after the run deadline has passed."""


class ApplicationReportError(IQFetchError):
    """Wraps a per-application failure with the application's public id."""

    def __init__(self, public_id: str, cause: BaseException, *, stage: str = "report") -> None:
        super().__init__(f"{stage} for {public_id}: {cause}")
        self.public_id = public_id
        self.stage = stage


class ReportWriteError(IQFetchError):
    """Raised when persisting the CSV fails; ``step`` names the failing step."""

    def __init__(self, step: str, path: Path, cause: BaseException) -> None:
        super().__init__(f"{step}: {path}: {cause}")
        self.step = step
        self.path = path
