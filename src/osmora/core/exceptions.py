"""Domain-specific exceptions.

All exceptions in the osmora system inherit from OsmoraError,
making it easy to catch all system errors while still being able
to handle specific error types.
"""

from __future__ import annotations


class OsmoraError(Exception):
    """Base exception for all osmora errors.

    All custom exceptions in the system should inherit from this class
    to enable catching all osmora-specific errors with a single except clause.
    """

    pass


class StoreError(OsmoraError):
    """Persistence layer failed.

    Raised by store adapters when the backing database is unavailable
    or a write did not produce the expected row. The auth service
    reports it to callers as an internal error.
    """

    pass
