"""
perfboard.errors — Domain Error Taxonomy
=========================================

Raised by the service layer, translated to HTTP responses by the
exception handlers in :mod:`perfboard.api.main`.
"""

from __future__ import annotations


class PerfboardError(Exception):
    """Base class for all domain errors."""

    status_code = 500


class NotFoundError(PerfboardError):
    """Referenced employee or history entry does not exist."""

    status_code = 404


class NegativeBalanceError(PerfboardError):
    """An edit or delete would drive an employee's total below zero."""

    status_code = 400


class ValidationError(PerfboardError):
    """Malformed input, rejected before any transaction begins."""

    status_code = 400


class StorageError(PerfboardError):
    """The database operation itself failed.  Safe to retry as a whole."""

    status_code = 500
