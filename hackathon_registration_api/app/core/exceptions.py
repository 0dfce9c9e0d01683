"""
Error taxonomy shared by the storage backends and the services.

Two families exist.  ``RegistrationError`` subclasses are expected,
non‑fatal outcomes (bad input, conflicts, unknown ids) that the
service layer turns into structured results.  ``StorageError``
subclasses describe failures of the persistence layer itself; they
propagate to the HTTP layer and carry a ``kind`` and a ``retryable``
flag so callers can tell "try again" from "call an administrator".
"""

from typing import Optional


class RegistrationError(Exception):
    """Base class for expected registration and catalog outcomes."""


class RegistrationConflict(RegistrationError):
    """The write was rejected because of the current state."""


class DuplicateTeamError(RegistrationConflict):
    def __init__(self, team_number: str):
        super().__init__(f"Team number {team_number} already registered")
        self.team_number = team_number


class ProblemStatementFullError(RegistrationConflict):
    def __init__(self, problem_statement_id: str):
        super().__init__(f"Problem statement {problem_statement_id} is full")
        self.problem_statement_id = problem_statement_id


class DuplicateProblemStatementError(RegistrationConflict):
    def __init__(self, problem_statement_id: str):
        super().__init__(f"Problem statement {problem_statement_id} already exists")
        self.problem_statement_id = problem_statement_id


class ProblemStatementNotFoundError(RegistrationError):
    def __init__(self, problem_statement_id: str):
        super().__init__(f"Problem statement {problem_statement_id} not found")
        self.problem_statement_id = problem_statement_id


class StorageError(Exception):
    """Base class for persistence failures."""

    kind = "storage"
    retryable = False

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class LockAcquisitionError(StorageError):
    """The file lock could not be acquired within the retry budget."""

    kind = "contention"
    retryable = True


class TransactionContentionError(StorageError):
    """A database transaction kept conflicting and ran out of retries."""

    kind = "contention"
    retryable = True


class StorageConnectivityError(StorageError):
    """The backend could not be reached."""

    kind = "connectivity"
    retryable = True


class DataInconsistencyError(StorageError):
    """Stored data violates a uniqueness rule and could not be healed."""

    kind = "inconsistency"
