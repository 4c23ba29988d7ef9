"""
Ranking error taxonomy.

The core never retries; these propagate to app.api.rankings, which maps each
one to a status code and an error envelope.
"""


class RankingError(Exception):
    """Base class for all ranking failures."""


class DuplicateItemError(RankingError):
    """Raised when the owner has already ranked the candidate movie."""


class NoActiveSessionError(RankingError):
    """Raised when a preference arrives with no open comparison session."""


class InvalidPreferenceError(RankingError):
    """Raised when the preferred movie is neither the candidate nor the comparator."""


class ComparisonStateInvalidError(RankingError):
    """Raised when a session no longer matches the owner's list. The session is dropped."""


class RankingNotFoundError(RankingError):
    """Raised when a ranked movie is not found or not owned by the user."""


class StorageError(RankingError):
    """Raised when the database fails underneath a rank operation."""
