"""Error taxonomy for the reconciliation engine.

  ConfigurationError  - bad endpoint / unknown provider. Fatal at startup.
  AuthenticationError - trigger credential mismatch. Rejected before any work.
  SourceFetchError    - the source entity set could not be fetched. Fatal to
                        one run only; the run is marked failed.
  RecordSyncError     - a single entity's create/update failed. Tallied, the
                        run continues.
  PersistenceError    - a mapping write failed. Handled like RecordSyncError.
"""


class RubicSyncError(RuntimeError):
    """Base class for every error raised by rubicsync."""


class ConfigurationError(RubicSyncError):
    """Raised when an endpoint or provider in the configuration is invalid."""


class AuthenticationError(RubicSyncError):
    """Raised when a trigger request carries the wrong shared secret."""


class SourceFetchError(RubicSyncError):
    """Raised when the complete source entity set cannot be retrieved."""


class RecordSyncError(RubicSyncError):
    """Raised when one entity cannot be written to the target system."""


class TargetRequestError(RecordSyncError):
    """Raised by the Tripletex client when an HTTP call fails."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(RecordSyncError):
    """Raised when a mapping row cannot be written."""
