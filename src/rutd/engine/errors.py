# src/rutd/engine/errors.py

"""
Error taxonomy.

Every failure a command can report derives from RutdError. The `kind`
attribute is a stable identifier suitable for tests and messages; the
exception text is the human-readable explanation shown to the user.
"""

from dataclasses import dataclass


class RutdError(Exception):
    """
    Base class for all expected failures.
    """

    kind = "Error"


# ---------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------

class TaskNotFound(RutdError):
    kind = "NotFound"


class AmbiguousPrefix(RutdError):
    kind = "AmbiguousPrefix"


# ---------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------

class TransitionError(RutdError):
    """
    Raised when a command would break the task status machine.
    """


class AlreadyCompleted(TransitionError):
    kind = "AlreadyCompleted"


class AlreadyAborted(TransitionError):
    kind = "AlreadyAborted"


class CannotStartCompleted(TransitionError):
    kind = "CannotStartCompleted"


class CannotStartAborted(TransitionError):
    kind = "CannotStartAborted"


class CannotAbortCompleted(TransitionError):
    kind = "CannotAbortCompleted"


class AlreadyActive(TransitionError):
    kind = "AlreadyActive"


class NoActiveTask(TransitionError):
    kind = "NoActiveTask"


# ---------------------------------------------------------------------
# User input
# ---------------------------------------------------------------------

class InvalidDate(RutdError):
    kind = "InvalidDate"


class InvalidSortSpec(RutdError):
    kind = "InvalidSortSpec"


class InvalidConfigKey(RutdError):
    kind = "InvalidConfigKey"


class InvalidConfigValue(RutdError):
    kind = "InvalidConfigValue"


# ---------------------------------------------------------------------
# Version control
# ---------------------------------------------------------------------

class GitError(RutdError):
    """
    A git command failed for a reason not covered by a narrower kind.
    """

    kind = "GitFailure"


class TargetNotEmpty(GitError):
    kind = "TargetNotEmpty"


class CloneFailed(GitError):
    kind = "CloneFailed"


class FetchFailed(GitError):
    kind = "FetchFailed"


class PushRejected(GitError):
    kind = "PushRejected"


class MergeConflict(GitError):
    kind = "MergeConflict"


# ---------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------

class IOFailure(RutdError):
    kind = "IOFailure"


@dataclass(eq=False)
class ParseError(IOFailure):
    """
    Raised when a record file is syntactically or structurally invalid.
    """

    path: str
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"
