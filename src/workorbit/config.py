"""Configuration management for WorkOrbit.

Handles:
- .workorbit/config.yaml parsing (user-facing config)
- .workorbit/metadata.json parsing (internal metadata config)
- Environment variable overrides
- .workorbit/ directory discovery
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

import yaml


CONFIG_YAML = "config.yaml"
METADATA_JSON = "metadata.json"
WORKORBIT_DIR = ".workorbit"
DEFAULT_DB_NAME = "board.db"

ROLES = ("owner", "admin", "manager", "member")
DEFAULT_ROLE = "member"


@dataclass
class WorkOrbitConfig:
    """User-facing config from config.yaml."""
    actor: str = ""
    role: str = ""
    db: str = ""
    json_output: bool = False
    log_level: str = ""

    @classmethod
    def load(cls, workorbit_dir: str) -> WorkOrbitConfig:
        """Load config.yaml from the project directory."""
        config_path = os.path.join(workorbit_dir, CONFIG_YAML)
        cfg = cls()
        if os.path.exists(config_path):
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            cfg.actor = str(data.get("actor", "") or "")
            cfg.role = str(data.get("role", "") or "")
            cfg.db = str(data.get("db", "") or "")
            cfg.json_output = bool(data.get("json", False))
            cfg.log_level = str(data.get("log-level", "") or "")

        # Environment variable overrides
        if os.environ.get("WO_ACTOR"):
            cfg.actor = os.environ["WO_ACTOR"]
        if os.environ.get("WO_ROLE"):
            cfg.role = os.environ["WO_ROLE"]
        if os.environ.get("WORKORBIT_DB"):
            cfg.db = os.environ["WORKORBIT_DB"]
        if os.environ.get("WO_JSON"):
            cfg.json_output = os.environ["WO_JSON"].lower() in ("1", "true", "yes")

        return cfg

    def save(self, workorbit_dir: str) -> None:
        """Save config to config.yaml."""
        config_path = os.path.join(workorbit_dir, CONFIG_YAML)
        data: dict[str, Any] = {}
        if self.actor:
            data["actor"] = self.actor
        if self.role:
            data["role"] = self.role
        if self.db:
            data["db"] = self.db
        if self.json_output:
            data["json"] = self.json_output
        if self.log_level:
            data["log-level"] = self.log_level

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)


@dataclass
class MetadataConfig:
    """Internal metadata from metadata.json."""
    database: str = DEFAULT_DB_NAME

    @classmethod
    def load(cls, workorbit_dir: str) -> MetadataConfig:
        meta_path = os.path.join(workorbit_dir, METADATA_JSON)
        cfg = cls()
        if os.path.exists(meta_path):
            with open(meta_path) as f:
                data = json.load(f)
            cfg.database = data.get("database", DEFAULT_DB_NAME)
        return cfg

    def save(self, workorbit_dir: str) -> None:
        meta_path = os.path.join(workorbit_dir, METADATA_JSON)
        with open(meta_path, "w") as f:
            json.dump({"database": self.database}, f, indent=2)
            f.write("\n")


def find_workorbit_dir(start: str | None = None) -> str | None:
    """Walk up from start directory to find .workorbit/.

    Returns the absolute path, or None if not found.
    """
    if start is None:
        start = os.getcwd()
    current = os.path.abspath(start)
    while True:
        candidate = os.path.join(current, WORKORBIT_DIR)
        if os.path.isdir(candidate):
            return candidate
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def get_db_path(workorbit_dir: str, config: WorkOrbitConfig | None = None) -> str:
    """Get the full path to the SQLite database."""
    env_db = os.environ.get("WORKORBIT_DB")
    if env_db:
        return env_db
    if config and config.db:
        if os.path.isabs(config.db):
            return config.db
        return os.path.join(workorbit_dir, config.db)
    meta = MetadataConfig.load(workorbit_dir)
    return os.path.join(workorbit_dir, meta.database)


def get_actor(config: WorkOrbitConfig | None = None) -> str:
    """Get the actor id recorded on created entities and history rows."""
    if os.environ.get("WO_ACTOR"):
        return os.environ["WO_ACTOR"]
    if config and config.actor:
        return config.actor
    # Try git user
    try:
        import subprocess
        result = subprocess.run(
            ["git", "config", "user.email"],
            capture_output=True, text=True, timeout=5
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass
    return os.environ.get("USER", "unknown")


def get_role(config: WorkOrbitConfig | None = None) -> str:
    """Get the caller's role, falling back to "member"."""
    role = os.environ.get("WO_ROLE") or (config.role if config else "") or DEFAULT_ROLE
    return role.lower()
