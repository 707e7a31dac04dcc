"""Error taxonomy shared by the scanner components."""


class HookscanError(Exception):
    pass


class MissingCredential(HookscanError):
    """Raised at setup when the GitHub token is absent."""


class SearchError(HookscanError):
    def __init__(self, message, status=None, headers=None):
        super().__init__(message)
        self.status = status
        self.headers = dict(headers or {})


class RateLimited(SearchError):
    """Search quota exhausted; retry the same page after ``reset_at``."""

    def __init__(self, reset_at, status=403, headers=None):
        super().__init__(f"rate limit exceeded, resets at {reset_at}", status, headers)
        self.reset_at = float(reset_at)


class TransientFetchFailure(HookscanError):
    """A single file could not be fetched; skip it and carry on."""


class QueryAborted(HookscanError):
    """The remaining pages of one query were abandoned."""


class PersistenceFailure(HookscanError):
    """A chunk or checkpoint write did not complete."""
