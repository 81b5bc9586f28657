# errors.py
#
# Purpose:
# One place for the exceptions that cross module boundaries.
#
# Only two of these ever end a rating request without a result:
#   - UpstreamNotFound (the GitHub user does not exist)
#   - UpstreamRateLimited (GitHub said "slow down")
# Plain UpstreamError also ends the request, but with no retry hint.
#
# AIUnavailable and PersistenceFailure are raised by their collaborators and
# always caught by the orchestrator, which falls back to a best-effort result.


class RatingError(Exception):
    """Base class for everything the rating pipeline raises on purpose."""


class UpstreamError(RatingError):
    """
    GitHub could not give us what we asked for (network error, 5xx,
    unexpected status, response that is not JSON).
    """

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamNotFound(UpstreamError):
    """The requested username (or resource) does not exist on GitHub."""

    def __init__(self, message, status_code=404):
        super().__init__(message, status_code=status_code)


class UpstreamRateLimited(UpstreamError):
    """
    GitHub refused the request because of quota.

    retry_after is the number of seconds the caller should wait, or None
    when GitHub did not tell us.
    """

    def __init__(self, message, retry_after=None, status_code=403):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class AIUnavailable(RatingError):
    """The AI assessor failed (missing key, quota, bad output, network)."""


class PersistenceFailure(RatingError):
    """The rating store could not be written."""
