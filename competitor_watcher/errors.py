"""Domain exceptions shared by the web API, CLI and report pipeline."""


class CompetitorWatcherError(Exception):
    """Base class for all application errors."""

    status_code = 500


class ValidationError(CompetitorWatcherError):
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(CompetitorWatcherError):
    status_code = 404


class ForbiddenError(CompetitorWatcherError):
    status_code = 403


class PlanLimitError(ForbiddenError):
    """Raised when an action would exceed the user's subscription plan."""


class PendingLocationError(CompetitorWatcherError):
    """Raised when a report is requested for a business without verified coordinates."""

    status_code = 400


class AnalysisError(CompetitorWatcherError):
    """Raised when the language model request fails."""

    status_code = 502
