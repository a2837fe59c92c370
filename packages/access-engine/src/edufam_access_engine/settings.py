"""Timeout and retry settings for identity resolution.

There is exactly one set of numbers for the whole engine:

  - profile_fetch_timeout: budget for the profile lookup, retries included.
  - profile_fetch_attempts: attempts for transient store failures.
  - init_timeout: how long the session controller lets one resolution run
    before degrading to signed-out.

The fetch budget must be strictly shorter than init_timeout; otherwise a slow
store would always trip the controller's watchdog instead of falling back to
heuristic resolution.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, model_validator


class ResolutionSettings(BaseModel):
    profile_fetch_timeout: float = Field(default=3.0, gt=0)
    profile_fetch_attempts: int = Field(default=2, ge=1)
    retry_backoff_min: float = Field(default=0.1, ge=0)
    retry_backoff_max: float = Field(default=1.0, ge=0)
    init_timeout: float = Field(default=6.0, gt=0)

    @model_validator(mode="after")
    def _fetch_fits_inside_init(self) -> ResolutionSettings:
        if self.profile_fetch_timeout >= self.init_timeout:
            raise ValueError(
                f"profile_fetch_timeout ({self.profile_fetch_timeout}s) must be shorter "
                f"than init_timeout ({self.init_timeout}s)"
            )
        return self

    @classmethod
    def from_env(cls) -> ResolutionSettings:
        """Read overrides from EDUFAM_* environment variables."""
        overrides: dict[str, str] = {}
        env_map = {
            "EDUFAM_PROFILE_FETCH_TIMEOUT": "profile_fetch_timeout",
            "EDUFAM_PROFILE_FETCH_ATTEMPTS": "profile_fetch_attempts",
            "EDUFAM_SESSION_INIT_TIMEOUT": "init_timeout",
        }
        for env_var, field_name in env_map.items():
            value = os.environ.get(env_var)
            if value:
                overrides[field_name] = value
        return cls(**overrides)
