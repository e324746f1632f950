"""Domain error taxonomy for the detection -> verification -> response pipeline.

Two families drive the orchestrator's retry decision:

- FatalError: retrying cannot help (missing entity, missing identifier,
  illegal state). The job fails immediately and a failure notification fires.
- TransientError: a collaborator was unreachable or rejected the call.
  The job is retried with backoff until its attempt budget is spent.

OracleError never leaves the oracle boundary: callers receive an
OracleResult carrying the error and take their fallback branch.
"""

from typing import Optional


class ReputationSystemError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str, entity_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id


class FatalError(ReputationSystemError):
    """Error that no amount of retrying can fix."""


class NotFoundError(FatalError):
    """A referenced Threat, Response, DetectedPost or Monitor does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}", entity_id=entity_id)
        self.entity = entity


class ConfigurationError(FatalError):
    """A required identifier or setting is missing."""


class InvalidStateError(FatalError):
    """An operation was requested in a lifecycle state that forbids it."""


class TransientError(ReputationSystemError):
    """Error from an external collaborator that may succeed on retry."""


class EvidenceUnavailableError(TransientError):
    """The evidence store query failed or timed out."""


class PublicationError(TransientError):
    """The target platform rejected or did not answer a publish request."""

    def __init__(
        self,
        message: str,
        entity_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, entity_id=entity_id)
        self.status_code = status_code


class OracleError(ReputationSystemError):
    """The judgment oracle failed, timed out, or returned malformed output."""
