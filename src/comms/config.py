from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

_ENV_REF_RE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")

MAX_STORE_PAGE_SIZE = 100


class ConfigError(Exception):
    pass


def _resolve_env(value: Any) -> Any:
    """
    Resolve "${ENV_NAME}" strings from the process environment (empty string when unset).
    """
    if isinstance(value, str):
        m = _ENV_REF_RE.match(value.strip())
        if m:
            return os.getenv(m.group(1), "")
    return value


@dataclass
class AppConfig:
    raw: Dict[str, Any]

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    def _store(self, key: str, default: Any = None) -> Any:
        return _resolve_env(self._section("store").get(key, default))

    @property
    def base_url(self) -> str:
        return str(self._store("base_url", "https://api.wexa.ai")).rstrip("/")

    @property
    def project_id(self) -> str:
        return str(self._store("project_id") or "")

    @property
    def candidates_table_id(self) -> str:
        return str(self._store("candidates_table_id") or "")

    @property
    def jobs_table_id(self) -> Optional[str]:
        value = self._store("jobs_table_id")
        return str(value) if value else None

    @property
    def api_key_env(self) -> str:
        return str(self._store("api_key_env", "STORE_API_KEY"))

    @property
    def page_size(self) -> int:
        # The store never honours more than 100 records per page
        return max(1, min(int(self._store("page_size", MAX_STORE_PAGE_SIZE)), MAX_STORE_PAGE_SIZE))

    @property
    def concurrency(self) -> int:
        return max(1, int(self._store("concurrency", 8)))

    @property
    def timeout_s(self) -> int:
        return int(self._store("timeout_s", 30))

    @property
    def sort_key(self) -> str:
        return str(self._store("sort_key", "_id"))

    @property
    def message_sender_flow_id(self) -> str:
        return str(_resolve_env(self._section("moderation").get("message_sender_flow_id")) or "")

    @property
    def whatsapp_flow_id(self) -> str:
        return str(_resolve_env(self._section("moderation").get("whatsapp_flow_id")) or "")

    @property
    def executed_by(self) -> Optional[str]:
        value = _resolve_env(self._section("moderation").get("executed_by"))
        return str(value) if value else None

    @property
    def default_page_size(self) -> int:
        return int(self._section("view").get("page_size", 10))

    @property
    def max_page_size(self) -> int:
        return int(self._section("view").get("max_page_size", 100))

    def api_key(self) -> str:
        key = os.getenv(self.api_key_env)
        if not key:
            raise ConfigError(f"Missing API key. Set environment variable {self.api_key_env} (e.g., in .env).")
        return key

    def validate_store(self) -> None:
        missing = [k for k in ("project_id", "candidates_table_id") if not getattr(self, k)]
        if missing:
            raise ConfigError(f"store section is missing required keys: {', '.join(missing)}")


def load_config(path: Path) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config file not found: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML at {p}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {p} must be a mapping at the top level")
    return AppConfig(raw=data)
