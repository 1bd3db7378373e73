"""Custom exceptions for task management functionality."""


class TaskManagementError(Exception):
    """Base exception for task management errors."""

    pass


class DatabaseError(TaskManagementError):
    """Exception raised for database related errors."""

    pass


class SchemaError(DatabaseError):
    """Exception raised for database schema errors."""

    pass


class TaskNotFoundError(TaskManagementError):
    """Exception raised when a task is not found."""

    pass


class InvalidChangeError(TaskManagementError):
    """Exception raised when an action carries values that cannot be applied."""

    pass


class FolderError(TaskManagementError):
    """Base exception for folder validation errors."""

    pass


class DuplicateFolderError(FolderError):
    """Exception raised when creating a folder whose name already exists."""

    pass


class ProtectedFolderError(FolderError):
    """Exception raised when deleting one of the reserved folders."""

    pass


class FolderNotFoundError(FolderError):
    """Exception raised when a folder is not found."""

    pass


class ExtractionError(TaskManagementError):
    """
    Base exception for the extraction phase.

    Extraction errors abort the whole request; their message is meant to be
    shown to the user as-is.
    """

    pass


class EmptyInputError(ExtractionError):
    """Exception raised when the input text is blank."""

    pass


class EngineUnavailableError(ExtractionError):
    """Exception raised when the completion engine cannot be reached."""

    pass


class ExtractionTimeoutError(ExtractionError):
    """Exception raised when the completion engine does not answer in time."""

    pass


class MalformedResponseError(ExtractionError):
    """Exception raised when the engine response holds no usable JSON array."""

    pass


class NoActionsExtractedError(ExtractionError):
    """Exception raised when a response normalizes to zero actions."""

    pass


class ExtractionInProgressError(ExtractionError):
    """Exception raised when a request arrives while another is in flight."""

    pass
