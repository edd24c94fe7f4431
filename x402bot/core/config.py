from __future__ import annotations
import os
import yaml
from typing import Any

DEFAULT_DATA_DIR = "data"
DEFAULT_DB_FILENAME = "x402.db"


class Config(dict):
    @staticmethod
    def load(path: str) -> "Config":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return Config(data)

    def get(self, *keys, default=None):
        cur: Any = self
        for k in keys:
            if isinstance(cur, dict) and k in cur:
                cur = cur[k]
            else:
                return default
        return cur

    def db_path(self, base_dir: str) -> str:
        """SQLite file location; relative data dirs resolve against ``base_dir``."""
        data_dir = self.get("data", "dir", default=DEFAULT_DATA_DIR) or DEFAULT_DATA_DIR
        filename = self.get("data", "filename", default=DEFAULT_DB_FILENAME) or DEFAULT_DB_FILENAME
        if not os.path.isabs(data_dir):
            data_dir = os.path.join(base_dir, data_dir)
        return os.path.join(data_dir, filename)

    def guild_ids(self) -> list[int]:
        raw = self.get("guilds", default=[]) or []
        if not isinstance(raw, (list, tuple)):
            raw = str(raw).split(",")
        ids = []
        for gid in raw:
            gid = str(gid).strip()
            if gid:
                ids.append(int(gid))
        return ids
