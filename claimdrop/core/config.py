"""
Distributor configuration for claimdrop.

Defines reward economics, round timing, and enumeration limits.

Sources, lowest to highest precedence:
1. Dataclass defaults
2. A JSON or TOML config file
3. CLAIMDROP_* environment variables (a .env file is loaded first)
"""

import json
import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

ENV_PREFIX = "CLAIMDROP_"


@dataclass
class DistributorConfig:
    """Distribution configuration parameters"""

    # Reward economics
    reward_per_item: int = 100  # Tokens paid per held item
    authority: str = ""  # Controlling authority address

    # Push rounds
    cooldown_seconds: float = 86_400.0  # Minimum time between rounds (1 day)

    # Enumeration
    batch_size: int = 100  # Parallel owner lookups per batch
    retry_attempts: int = 3  # Attempts per read before aborting
    retry_base_delay: float = 1.0  # Seconds; doubles after each failure
    first_item_id: int = 1  # Item IDs run first_item_id..first_item_id+supply-1

    # External item ledger
    rpc_url: str = ""
    item_contract: str = ""
    rpc_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"  # Level name for the claimdrop root logger
    log_to_file: bool = False  # Also write log_dir/claimdrop.log

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.log_dir = Path(self.log_dir)
        if self.reward_per_item <= 0:
            raise ValueError(f"reward_per_item must be positive, got {self.reward_per_item}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.retry_attempts < 1:
            raise ValueError(f"retry_attempts must be >= 1, got {self.retry_attempts}")
        if self.cooldown_seconds < 0:
            raise ValueError(f"cooldown_seconds must be >= 0, got {self.cooldown_seconds}")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ValueError(f"log_level must be a logging level name, got {self.log_level!r}")

    def ensure_dirs(self):
        """Create data and log directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        self.log_dir.mkdir(exist_ok=True, parents=True)


def _read_file(config_path: Path) -> Dict[str, Any]:
    text = config_path.read_text()
    if config_path.suffix == ".toml":
        data = tomllib.loads(text)
        # Allow a [claimdrop] table or top-level keys
        return data.get("claimdrop", data)
    return json.loads(text)


def _coerce(value: str, current: Any) -> Any:
    if isinstance(current, bool):
        return value.strip().lower() in ("1", "true", "yes")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, Path):
        return Path(value)
    return value


def load_config(
    config_path: Optional[str] = None,
    env_file: Optional[str] = None,
) -> DistributorConfig:
    """
    Load configuration from file and environment.

    Args:
        config_path: Optional path to a JSON or TOML config file
        env_file: Optional .env file; default searches from the cwd

    Returns:
        DistributorConfig instance
    """
    load_dotenv(env_file)

    defaults = DistributorConfig()
    values: Dict[str, Any] = {}

    if config_path:
        known = {f.name for f in fields(DistributorConfig)}
        for key, value in _read_file(Path(config_path)).items():
            if key not in known:
                raise ValueError(f"Unknown config key: {key}")
            values[key] = value

    for f in fields(DistributorConfig):
        env_value = os.environ.get(ENV_PREFIX + f.name.upper())
        if env_value is not None:
            values[f.name] = _coerce(env_value, getattr(defaults, f.name))

    return DistributorConfig(**values)
