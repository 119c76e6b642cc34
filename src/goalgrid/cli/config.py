"""CLI configuration.

Loads from ~/.goalgrid/config.yaml with environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


@dataclass
class CliConfig:
    """Where the CLI keeps the local draft and which account it syncs into."""

    draft_path: Path = field(default_factory=lambda: Path.home() / ".goalgrid" / "draft.json")
    db_path: Path = field(default_factory=lambda: Path.home() / ".goalgrid" / "cards.db")
    owner: str = ""

    CONFIG_FILE: Path = field(
        default_factory=lambda: Path.home() / ".goalgrid" / "config.yaml",
        repr=False,
    )

    @classmethod
    def load(cls, config_path: Path | None = None) -> CliConfig:
        """Load config from file and environment variables.

        Priority (highest wins):
          1. Environment variables (GOALGRID_DRAFT_PATH, GOALGRID_DB_PATH, GOALGRID_OWNER)
          2. Config file (~/.goalgrid/config.yaml or custom path)
          3. Defaults
        """
        config = cls()
        file_path = config_path or config.CONFIG_FILE

        if file_path.exists():
            try:
                with open(file_path) as f:
                    data = yaml.safe_load(f) or {}
                if "draft_path" in data:
                    config.draft_path = Path(data["draft_path"]).expanduser()
                if "db_path" in data:
                    config.db_path = Path(data["db_path"]).expanduser()
                config.owner = str(data.get("owner", config.owner))
            except (yaml.YAMLError, OSError) as e:
                logger.warning("Ignoring unreadable config %s: %s", file_path, e)

        if env_draft := os.environ.get("GOALGRID_DRAFT_PATH"):
            config.draft_path = Path(env_draft).expanduser()
        if env_db := os.environ.get("GOALGRID_DB_PATH"):
            config.db_path = Path(env_db).expanduser()
        config.owner = os.environ.get("GOALGRID_OWNER", config.owner)

        return config

    def save(self, config_path: Path | None = None) -> None:
        file_path = config_path or self.CONFIG_FILE
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "draft_path": str(self.draft_path),
            "db_path": str(self.db_path),
            "owner": self.owner,
        }

        with open(file_path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)
