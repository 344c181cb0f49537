"""
Custom exception classes for the pipeline.

This module defines a hierarchy of custom exceptions used throughout the
pipeline. All exceptions inherit from MesPipelineError, allowing catch-all
exception handling while maintaining specific error types for better error
messages and debugging.

Most of the pipeline degrades instead of raising: malformed documents become
placeholder records and storage failures fall back to the flat-key store.
These exceptions are raised at the edges (repositories, file reading) and
caught by the services that own the degradation policy.

Exception hierarchy:
- MesPipelineError (base)
  - ValidationError (invalid arguments such as unknown quick-filter names)
  - DatabaseError (SQLite operation failures)
    - StorageUnavailableError (primary store not configured or closed)
  - FileLoadError (uploaded file bytes could not be read)
"""


class MesPipelineError(Exception):
    """
    Base exception for all pipeline errors.
    
    Don't raise this directly - use more specific exceptions instead.
    """
    pass


class ValidationError(MesPipelineError):
    """
    Raised when a caller passes an argument the pipeline cannot interpret.
    
    Examples: an unknown quick-filter name, an inverted date range.
    Never raised for malformed uploaded documents - those are normalized
    into placeholder records instead.
    """
    pass


class DatabaseError(MesPipelineError):
    """
    Raised when a database operation fails.
    
    Wraps SQLite errors and provides pipeline-specific context. Raised by
    repositories; the StorageEngine catches it and switches to the
    fallback store.
    """
    pass


class StorageUnavailableError(DatabaseError):
    """
    Raised when the primary store has no usable connection.
    
    Covers a StorageEngine built without a connection (the database could
    not be opened) as well as a connection that has been closed.
    """
    pass


class FileLoadError(MesPipelineError):
    """
    Raised when an uploaded file cannot be read at all.
    
    This is the only fatal error of an import: the bytes of the file are
    unavailable (missing file, permission denied, I/O failure). Content
    problems never raise this error.
    """
    pass
