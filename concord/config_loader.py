"""Engine configuration loader.

Loads engine defaults from defaults.toml and applies environment
overrides.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from concord.schemas.config import EngineConfig
from concord.schemas.decision import SuccessCriteria

# Default config directory relative to the concord package
_CONFIG_DIR = Path(__file__).parent / "config"

DB_PATH_ENV = "CONCORD_DB_PATH"


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine defaults from a TOML file.

    Args:
        config_path: Path to defaults.toml. Defaults to concord/config/defaults.toml.

    Returns:
        EngineConfig with values from the TOML file, then ``CONCORD_DB_PATH``.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If a value is invalid.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    engine = raw.get("engine", {})
    records = raw.get("records", {})
    if not isinstance(engine, dict) or not isinstance(records, dict):
        raise ValueError(f"[engine] and [records] must be tables in {path}")

    defaults = EngineConfig()
    criteria = engine.get("default_success_criteria", defaults.default_success_criteria)
    try:
        criteria = SuccessCriteria(criteria)
    except ValueError:
        raise ValueError(
            f"Invalid default_success_criteria '{criteria}' in {path}"
        ) from None

    config = EngineConfig(
        db_path=engine.get("db_path", defaults.db_path),
        default_success_criteria=criteria,
        deadline_business_days=engine.get(
            "deadline_business_days", defaults.deadline_business_days,
        ),
        write_records=records.get("write_records", defaults.write_records),
        record_dir=records.get("record_dir", defaults.record_dir),
    )

    env_db = os.environ.get(DB_PATH_ENV)
    if env_db:
        config.db_path = env_db
    return config
