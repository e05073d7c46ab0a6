"""Error taxonomy of the authorization engine."""

from __future__ import annotations


class AuthzError(Exception):
    """Base class for every error raised by the engine."""


class NotFound(AuthzError):
    """Unknown user, region, group or permission id."""


class Forbidden(AuthzError):
    """A mutation guard evaluated to false for the acting user."""


class Unavailable(AuthzError):
    """The persistent store could not be reached during resolution."""


class InvalidRequest(AuthzError):
    """A mutation payload is malformed or self-contradicting."""


class Conflict(InvalidRequest):
    """A mutation would duplicate existing state."""
