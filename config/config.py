"""
Configuration for the stock reconciliation and automation engine.
Defaults are type-safe dataclass fields; ``from_env`` applies ``RECON_*``
overrides from the environment or a project-level ``.env`` file.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path

from dotenv import load_dotenv

from models.errors import InvalidArgumentError

ENV_PREFIX = "RECON_"


@dataclass
class ReconciliationConfig:
    ledger_write_timeout_seconds: float = 5.0
    persistence_timeout_seconds: float = 5.0
    rule_action_max_attempts: int = 2
    rule_retry_delay_seconds: float = 0.05
    dispatch_queue_size: int = 1000
    import_plan_ttl_seconds: float = 3600.0
    recent_outcome_limit: int = 500
    unassigned_location: str = "Unassigned"
    default_location_color: str = "#CCCCCC"
    location_placeholder: str = "N/A"
    default_category: str = "Uncategorized"
    default_discrepancy_reason: str = "Cycle Count Adjustment"
    log_level: str = "INFO"
    redis_url: str = ""  # Empty keeps the activity log in memory

    @classmethod
    def from_env(cls, dotenv_path: Path | None = None) -> "ReconciliationConfig":
        """
        Build a config from ``RECON_<FIELD_NAME>`` variables, e.g.
        ``RECON_LEDGER_WRITE_TIMEOUT_SECONDS=2.5``. Values already present in the
        process environment win over the ``.env`` file.
        """
        if dotenv_path is None:
            dotenv_path = Path(__file__).resolve().parent.parent / ".env"
        if dotenv_path.exists():
            load_dotenv(dotenv_path=dotenv_path, override=False)

        overrides = {}
        for f in fields(cls):
            raw = os.getenv(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None:
                continue
            try:
                if f.type in (int, "int"):
                    overrides[f.name] = int(raw)
                elif f.type in (float, "float"):
                    overrides[f.name] = float(raw)
                else:
                    overrides[f.name] = raw
            except ValueError as e:
                raise InvalidArgumentError(
                    f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}"
                ) from e
        return cls(**overrides)
