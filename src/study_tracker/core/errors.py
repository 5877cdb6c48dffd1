# src/study_tracker/core/errors.py

"""
Error taxonomy of the tracker core.

Operations raise these and leave state unchanged; the request boundary
(api/dispatch.py) maps them to response statuses.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for every error raised by the tracker core."""


class ValidationError(TrackerError):
    """Malformed input: a field constraint is violated."""


class NotFoundError(TrackerError):
    """Referenced task/user is absent or not owned by the caller."""


class ConflictError(TrackerError):
    """
    The request clashes with current state: day already ended, session already
    active, task in the wrong status for the transition, duplicate summary.
    """


class IntegrityFault(TrackerError):
    """
    Stored rows contradict each other (e.g. an active session pointing at a task
    that is not in progress). Never expected; surfaced as an opaque internal error.
    """


class AuthenticationError(TrackerError):
    """The operation needs a caller and none was resolved."""
