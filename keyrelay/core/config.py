"""
Configuration management for keyrelay
"""

import json
import os
import re
import aiofiles
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..utils.logging import setup_logging

logger = setup_logging()

KEY_VAR_PATTERN = re.compile(r"^KEY(\d+)$")


@dataclass
class ProxyConfig:
    """Credentials and tuning parameters consumed by the rotation engine"""
    keys: List[str] = field(default_factory=list)
    upstream_url: str = "https://openrouter.ai/api/v1/chat/completions"
    default_model: str = "deepseek/deepseek-chat-v3-0324:free"
    http_referer: str = "https://render.com"
    x_title: str = "KeyRelay Rotator"
    max_concurrent: int = 3
    min_interval_ms: int = 150
    attempt_timeout_seconds: float = 30.0
    rate_limit_pause: bool = True
    max_rate_limit_pause_ms: int = 1000
    success_cooldown_ms: int = 0
    log_capacity: int = 500
    admin_token: Optional[str] = None
    admin_allowed_ips: str = "127.0.0.1"
    trusted_proxies: str = ""


# Environment variable for each ProxyConfig field (keys are handled separately)
ENV_VARS = {
    "upstream_url": "UPSTREAM_URL",
    "default_model": "MODEL",
    "http_referer": "HTTP_REFERER",
    "x_title": "X_TITLE",
    "max_concurrent": "MAX_CONCURRENT",
    "min_interval_ms": "MIN_INTERVAL_MS",
    "attempt_timeout_seconds": "ATTEMPT_TIMEOUT_SECONDS",
    "rate_limit_pause": "RATE_LIMIT_PAUSE",
    "max_rate_limit_pause_ms": "MAX_RATE_LIMIT_PAUSE_MS",
    "success_cooldown_ms": "SUCCESS_COOLDOWN_MS",
    "log_capacity": "LOG_CAPACITY",
    "admin_token": "ADMIN_TOKEN",
    "admin_allowed_ips": "ADMIN_ALLOWED_IPS",
    "trusted_proxies": "TRUSTED_PROXIES",
}


def keys_from_env(env: Mapping[str, str]) -> List[str]:
    """Collect KEY1..KEYn in numeric order, then any comma-separated KEYS"""
    numbered = []
    for name, value in env.items():
        match = KEY_VAR_PATTERN.match(name)
        if match and value.strip():
            numbered.append((int(match.group(1)), value.strip()))

    keys = [value for _, value in sorted(numbered)]
    keys.extend(k.strip() for k in env.get("KEYS", "").split(",") if k.strip())
    return keys


def _dedupe(keys: List[str]) -> List[str]:
    seen = set()
    unique = []
    for key in keys:
        if key not in seen:
            seen.add(key)
            unique.append(key)
    return unique


class ConfigManager:
    """Builds ProxyConfig from an optional JSON file overlaid with environment variables"""

    def __init__(self, config_file: Optional[str] = None, env: Optional[Mapping[str, str]] = None):
        self.env = os.environ if env is None else env
        self.config_file = Path(config_file or self.env.get("CONFIG_FILE", "config/keyrelay.json"))
        self.config = ProxyConfig()

    async def load_config(self) -> ProxyConfig:
        """Load configuration from file (if present) and environment"""
        raw: Dict[str, Any] = await self._load_file()

        for name, var in ENV_VARS.items():
            if var in self.env and self.env[var] != "":
                raw[name] = self.env[var]

        file_keys = raw.pop("keys", []) or []
        if isinstance(file_keys, str):
            file_keys = [k.strip() for k in file_keys.split(",")]
        keys = _dedupe([k for k in file_keys if k] + keys_from_env(self.env))

        self.config = self._build(raw, keys)
        logger.info("Loaded proxy configuration",
                    key_count=len(self.config.keys),
                    upstream_url=self.config.upstream_url,
                    max_concurrent=self.config.max_concurrent,
                    min_interval_ms=self.config.min_interval_ms)
        return self.config

    async def _load_file(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            return {}

        try:
            async with aiofiles.open(self.config_file, 'r') as f:
                content = await f.read()
                data = json.loads(content)
        except Exception as e:
            logger.error("Failed to load configuration file",
                         file_path=str(self.config_file), error=str(e))
            raise

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain a JSON object: {self.config_file}")

        logger.info("Read configuration file", file_path=str(self.config_file))
        return data

    def _build(self, raw: Dict[str, Any], keys: List[str]) -> ProxyConfig:
        defaults = ProxyConfig()
        values: Dict[str, Any] = {"keys": keys}

        for f in fields(ProxyConfig):
            if f.name == "keys" or f.name not in raw:
                continue
            default = getattr(defaults, f.name)
            values[f.name] = self._coerce(f.name, raw[f.name], default)

        config = ProxyConfig(**values)
        config.max_concurrent = max(1, config.max_concurrent)
        config.min_interval_ms = max(0, config.min_interval_ms)
        config.log_capacity = max(1, config.log_capacity)
        return config

    def _coerce(self, name: str, value: Any, default: Any) -> Any:
        """Convert a raw value to the type of its default, falling back on failure"""
        try:
            if isinstance(default, bool):
                if isinstance(value, bool):
                    return value
                return str(value).strip().lower() in ("1", "true", "yes", "on")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return None if value is None else str(value)
        except (TypeError, ValueError):
            logger.warning("Invalid configuration value, using default",
                           field=name, value=str(value), default=default)
            return default
