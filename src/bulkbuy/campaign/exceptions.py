"""Ledger-specific failures.

Invalid arguments surface as ``protean.exceptions.ValidationError`` and unknown
campaigns as ``protean.exceptions.ObjectNotFoundError``; the classes below cover
the remaining outcomes a caller has to tell apart.
"""

from protean.exceptions import ExpectedVersionError, InvalidOperationError


class CampaignClosedError(InvalidOperationError):
    """The campaign is no longer Open (already Fulfilled or Failed)."""


class CampaignExpiredError(InvalidOperationError):
    """The campaign deadline has passed."""


class ContributionConflictError(ExpectedVersionError):
    """Concurrent writes kept invalidating the campaign version; retries exhausted."""
