"""Workspace configuration loaded from environment variables."""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

_TRUE_VALUES = {"1", "true", "yes", "on"}


class WorkspaceConfig(BaseModel):
    """Tunable engine settings.

    Args:
        sync_min_delay: Minimum seconds before a simulated sync settles.
        sync_jitter: Maximum extra random seconds per sync.
        sync_failure_rate: Probability that a simulated sync ends in error.
        auto_sync: Submit touched items for sync after every mutation.
        history_max_size: Maximum history entries per stack (None = unlimited).
        storage_path: JSON file for preferences and favorites (None = in-memory).
    """

    sync_min_delay: float = Field(default=2.0, ge=0.0)
    sync_jitter: float = Field(default=3.0, ge=0.0)
    sync_failure_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    auto_sync: bool = False
    history_max_size: Optional[int] = None
    storage_path: Optional[str] = None

    @field_validator("history_max_size")
    @classmethod
    def validate_history_max_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("history_max_size must be positive")
        return v

    @classmethod
    def from_env(cls) -> "WorkspaceConfig":
        """Build a config from ``WORKSPACE_*`` environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a variable holds an invalid value.
        """
        values: dict = {}
        env = os.environ
        if "WORKSPACE_SYNC_MIN_DELAY" in env:
            values["sync_min_delay"] = float(env["WORKSPACE_SYNC_MIN_DELAY"])
        if "WORKSPACE_SYNC_JITTER" in env:
            values["sync_jitter"] = float(env["WORKSPACE_SYNC_JITTER"])
        if "WORKSPACE_SYNC_FAILURE_RATE" in env:
            values["sync_failure_rate"] = float(env["WORKSPACE_SYNC_FAILURE_RATE"])
        if "WORKSPACE_AUTO_SYNC" in env:
            values["auto_sync"] = env["WORKSPACE_AUTO_SYNC"].strip().lower() in _TRUE_VALUES
        if env.get("WORKSPACE_HISTORY_MAX_SIZE"):
            values["history_max_size"] = int(env["WORKSPACE_HISTORY_MAX_SIZE"])
        if env.get("WORKSPACE_STORAGE_PATH"):
            values["storage_path"] = env["WORKSPACE_STORAGE_PATH"]
        return cls(**values)
