"""
Configuration for a reaper run.

Values come from the environment (see ``from_env``) and may be overridden
by CLI options. Nothing here is stored at module level; every sweep gets
its own ``ReaperConfig``.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_INSTANCE_STATUS = "RUNNING"
DEFAULT_DISK_STATUS = "available"
DEFAULT_CALL_TIMEOUT = 60.0
MAX_LISTING_WORKERS = 16

PROJECT_ENV_VARS = ("REAPER_PROJECT_ID", "projectID", "GOOGLE_CLOUD_PROJECT")


@dataclass(frozen=True)
class ReaperConfig:
    """Settings shared by every sweep a reaper performs."""
    project_id: str
    credentials_file: Optional[str] = None
    instance_status_filter: Optional[str] = DEFAULT_INSTANCE_STATUS
    disk_status_filter: Optional[str] = DEFAULT_DISK_STATUS
    continue_on_zone_failure: bool = True
    max_workers: int = 1
    call_timeout: float = DEFAULT_CALL_TIMEOUT

    def __post_init__(self):
        if not self.project_id:
            raise ValueError("project_id must not be empty")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.call_timeout <= 0:
            raise ValueError(f"call_timeout must be positive, got {self.call_timeout}")

    @property
    def listing_workers(self) -> int:
        """Upper bound on concurrent zone listings."""
        return min(self.max_workers, MAX_LISTING_WORKERS)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ReaperConfig":
        """
        Build a configuration from environment variables.
        
        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Explicit values that win over the environment
            
        Returns:
            ReaperConfig instance
            
        Raises:
            ValueError: If no project is configured or a numeric variable is malformed
        """
        env = os.environ if environ is None else environ
        
        project_id = next((env[name] for name in PROJECT_ENV_VARS if env.get(name)), "")
        values = {
            "project_id": project_id,
            "credentials_file": env.get("GOOGLE_APPLICATION_CREDENTIALS") or None,
        }
        
        if env.get("REAPER_MAX_WORKERS"):
            try:
                values["max_workers"] = int(env["REAPER_MAX_WORKERS"])
            except ValueError:
                raise ValueError(f"REAPER_MAX_WORKERS must be an integer, got {env['REAPER_MAX_WORKERS']!r}")
        
        if env.get("REAPER_CALL_TIMEOUT"):
            try:
                values["call_timeout"] = float(env["REAPER_CALL_TIMEOUT"])
            except ValueError:
                raise ValueError(f"REAPER_CALL_TIMEOUT must be a number, got {env['REAPER_CALL_TIMEOUT']!r}")
        
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
