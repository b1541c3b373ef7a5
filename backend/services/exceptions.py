class ValidationError(Exception):
    """Client-caused problem with an upload or a CSV row."""

    def __init__(self, message: str, violations: list[str] | None = None):
        self.message = message
        self.violations = list(violations or [])
        super().__init__(message)


class SkipLimitExceeded(Exception):
    def __init__(self, skip_count: int, skip_limit: int):
        self.skip_count = skip_count
        self.skip_limit = skip_limit
        super().__init__(f"Skip limit of {skip_limit} exceeded ({skip_count} records skipped)")


class PersistenceError(Exception):
    """A chunk could not be committed; the chunk's rows were rolled back."""


class LaunchError(Exception):
    """Staging the upload or starting the job failed."""

    def __init__(self, message: str, execution_id: int | None = None):
        self.message = message
        self.execution_id = execution_id
        super().__init__(message)


class AccessDenied(Exception):
    pass


class NotFound(Exception):
    pass
