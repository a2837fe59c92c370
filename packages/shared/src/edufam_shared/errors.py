"""Error taxonomy for identity resolution.

Only ResolutionError subclasses are fatal: they cross the session controller
boundary and carry a message meant for the person signing in. The rest are
recovered where they are raised:

  - TransientStoreError: the profile store failed or timed out; resolution
    continues without a persisted role.
  - ResolutionTimeout: the whole resolution overran its budget; the session
    degrades to signed-out without an error banner.

An unrecognized role string is not an error at all. Role.parse returns None
and the resolver moves on to the next source.
"""


class AccessEngineError(Exception):
    """Base class for access engine errors."""


class TransientStoreError(AccessEngineError):
    """The durable profile store could not answer (connection, pool, timeout)."""


class ResolutionTimeout(AccessEngineError):
    """Resolution did not finish within the session's init timeout."""


class ResolutionError(AccessEngineError):
    """Fatal resolution failure. No SessionIdentity is produced."""

    kind = "resolution_error"
    user_message = "We could not sign you in. Please contact your administrator."

    def __init__(self, principal_id: str, detail: str = "") -> None:
        self.principal_id = principal_id
        self.detail = detail
        super().__init__(detail or self.user_message)


class AccountDeactivated(ResolutionError):
    """Profile or provider metadata marks the account inactive. Forces sign-out."""

    kind = "account_deactivated"
    user_message = "Your account has been deactivated. Please contact your administrator."


class MissingEmail(ResolutionError):
    """The principal has no email address; the identity is unusable."""

    kind = "missing_email"
    user_message = "Your account is missing an email address. Please contact your administrator."
