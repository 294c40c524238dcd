"""
auth/errors.py -- Outcome exceptions raised by the authorization gate.

Every security decision is final once one of these is raised. The transport
layer maps each class to exactly one status code and one fixed message
(see api/main.py); the exception text is for logs only and never reaches a
client.
"""


class AuthError(Exception):
    """Base class for authentication and authorization outcomes."""


class InvalidCredentials(AuthError):
    """Unknown identifier, wrong secret or inactive account. Never says which."""


class TokenInvalid(AuthError):
    """Malformed, mis-signed or expired token, or the principal is gone."""


class Forbidden(AuthError):
    """Authenticated, but not permitted to perform the action."""


class CollaboratorUnavailable(AuthError):
    """The principal store could not answer. The only retryable outcome."""
