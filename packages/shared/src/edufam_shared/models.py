"""Result envelope shared by the access-engine activities.

resolve_session and check_access both answer with a subclass of AccessResult.
Callers branch on `success` and, when it is False, on `error_kind`, which is
the machine-readable ResolutionError kind (or `invalid_token`). A deactivated
account is an answer, not an exception.
"""

from pydantic import BaseModel, model_validator


class AccessResult(BaseModel):
    """Base of every access-engine activity result.

    `message` is for logs and operators; `error_kind` is what callers switch on.
    A successful result never carries an error kind.
    """

    success: bool
    message: str
    error_kind: str | None = None  # invalid_token, account_deactivated, missing_email

    @model_validator(mode="after")
    def _error_kind_only_on_failure(self) -> "AccessResult":
        if self.success and self.error_kind is not None:
            raise ValueError(f"successful result cannot carry error_kind '{self.error_kind}'")
        return self
