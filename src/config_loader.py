"""

Configuration loader for the Computrabajo scraper
Reads and validates settings.yaml
"""

import yaml
import os
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime
import logging

from http_client import DEFAULT_ACCEPT_LANGUAGE, DEFAULT_USER_AGENT
from models import SearchInput

logger = logging.getLogger(__name__)

MAX_JOBS_CEILING = 10000
DEFAULT_MAX_JOBS = 50


class ConfigValidationError(ValueError):
    """Raised when configuration fails invariant validation."""
    pass


def _validate_non_negative(value: Any, field: str) -> None:
    """Validate that a numeric value is non-negative."""
    if value is not None and float(value) < 0:
        raise ConfigValidationError(
            f"Invalid config: '{field}' must be non-negative, got {value}"
        )


def _validate_positive(value: Any, field: str) -> None:
    """Validate that a numeric value is positive (> 0)."""
    if value is not None and float(value) <= 0:
        raise ConfigValidationError(
            f"Invalid config: '{field}' must be positive (> 0), got {value}"
        )


def _validate_min_max_pair(min_val: Any, max_val: Any, min_field: str, max_field: str) -> None:
    """Validate that min_val <= max_val for a delay/range pair."""
    if min_val is not None and max_val is not None:
        if float(min_val) > float(max_val):
            raise ConfigValidationError(
                f"Invalid config: '{min_field}' ({min_val}) must be <= '{max_field}' ({max_val})"
            )


def _set_path(data: Dict[str, Any], key: str, value: Any) -> None:
    keys = key.split('.')
    node = data
    for k in keys[:-1]:
        child = node.get(k)
        if not isinstance(child, dict):
            child = {}
            node[k] = child
        node = child
    node[keys[-1]] = value


class ConfigLoader:
    """Loads and validates configuration from YAML file"""

    def __init__(self, config_path: Optional[str] = "config/settings.yaml", data: Optional[Dict[str, Any]] = None):
        self.config_path = Path(config_path) if config_path else None
        self.config: Dict[str, Any] = {}
        if data is not None:
            self.config = dict(data)
            self._validate_invariants()
        else:
            self._load()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConfigLoader":
        return cls(config_path=None, data=data)

    def _load(self) -> None:
        """Load config from YAML file"""
        if self.config_path is None or not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self.config = yaml.safe_load(f) or {}
            logger.info(f"✓ Config loaded from {self.config_path}")
        except yaml.YAMLError as e:
            logger.error(f"Error parsing config file: {e}")
            raise

        self._validate_invariants()

    def _validate_invariants(self) -> None:
        """Validate configuration invariants. Raises ConfigValidationError on failure."""
        # Search limits
        _validate_non_negative(self.get('search.max_jobs'), 'search.max_jobs')
        _validate_non_negative(self.get('search.max_pages'), 'search.max_pages')

        # HTTP pacing and budgets
        min_delay = self.get('http.min_delay')
        max_delay = self.get('http.max_delay')
        _validate_non_negative(min_delay, 'http.min_delay')
        _validate_non_negative(max_delay, 'http.max_delay')
        _validate_min_max_pair(min_delay, max_delay, 'http.min_delay', 'http.max_delay')
        _validate_positive(self.get('http.timeout'), 'http.timeout')
        _validate_non_negative(self.get('http.retries'), 'http.retries')
        _validate_positive(self.get('http.api_timeout'), 'http.api_timeout')
        _validate_non_negative(self.get('http.api_retries'), 'http.api_retries')

        # Enrichment
        _validate_positive(self.get('enrichment.concurrency'), 'enrichment.concurrency')
        _validate_positive(self.get('enrichment.timeout'), 'enrichment.timeout')
        _validate_non_negative(self.get('enrichment.retries'), 'enrichment.retries')

        # Browser
        _validate_positive(self.get('browser.navigation_timeout'), 'browser.navigation_timeout')
        _validate_positive(self.get('browser.idle_timeout'), 'browser.idle_timeout')
        _validate_positive(self.get('browser.max_pages'), 'browser.max_pages')

        # Output
        _validate_positive(self.get('output.batch_size'), 'output.batch_size')

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value by dot notation (e.g., 'search.max_jobs')"""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k, default)
            else:
                return default

        return value

    def apply_overrides(self, overrides: Dict[str, Any]) -> None:
        """Apply dot-notation overrides (CLI flags); None values are ignored"""
        for key, value in overrides.items():
            if value is not None:
                _set_path(self.config, key, value)
        self._validate_invariants()

    # === Search Config ===

    def get_country(self) -> str:
        return str(self.get('search.country', 'ar') or 'ar')

    def get_search_query(self) -> str:
        return str(self.get('search.query', 'administracion-y-oficina') or 'administracion-y-oficina')

    def get_location(self) -> str:
        return str(self.get('search.location', '') or '')

    def get_search_url(self) -> str:
        """Explicit listing URL override"""
        return str(self.get('search.url', '') or '').strip()

    def get_job_type(self) -> str:
        return str(self.get('search.job_type', '') or '').strip()

    def get_search_input(self) -> SearchInput:
        return SearchInput(
            country=self.get_country(),
            query=self.get_search_query(),
            location=self.get_location(),
            url=self.get_search_url(),
            job_type=self.get_job_type(),
        )

    def get_max_jobs(self) -> int:
        """Get requested job count; 0 means the hard ceiling"""
        value = self.get('search.max_jobs', DEFAULT_MAX_JOBS)
        value = DEFAULT_MAX_JOBS if value is None else int(value)
        if value < 0:
            raise ConfigValidationError("search.max_jobs must be non-negative")
        if value == 0:
            return MAX_JOBS_CEILING
        return min(value, MAX_JOBS_CEILING)

    def get_max_pages(self) -> int:
        """Get page limit for HTTP pagination (0 = derive from max_jobs)"""
        return int(self.get('search.max_pages', 0) or 0)

    def include_full_description(self) -> bool:
        return bool(self.get('search.include_full_description', True))

    def is_enrichment_enabled(self) -> bool:
        """Detail fetches default to on whenever full descriptions are wanted"""
        explicit = self.get('search.enrich_details', None)
        if explicit is not None:
            return bool(explicit)
        return self.include_full_description()

    # === HTTP Config ===

    def get_http_timeout(self) -> float:
        return float(self.get('http.timeout', 15))

    def get_http_retries(self) -> int:
        return int(self.get('http.retries', 2))

    def get_api_timeout(self) -> float:
        return float(self.get('http.api_timeout', 10))

    def get_api_retries(self) -> int:
        return int(self.get('http.api_retries', 1))

    def get_http_min_delay(self) -> float:
        return float(self.get('http.min_delay', 0.3))

    def get_http_max_delay(self) -> float:
        return float(self.get('http.max_delay', 1.2))

    def get_user_agent(self) -> str:
        return self.get('http.user_agent', '') or DEFAULT_USER_AGENT

    def get_accept_language(self) -> str:
        return self.get('http.accept_language', '') or DEFAULT_ACCEPT_LANGUAGE

    # === Enrichment Config ===

    def get_enrichment_concurrency(self) -> int:
        return max(1, min(int(self.get('enrichment.concurrency', 10)), 10))

    def get_enrichment_timeout(self) -> float:
        return float(self.get('enrichment.timeout', 15))

    def get_enrichment_retries(self) -> int:
        return int(self.get('enrichment.retries', 1))

    # === Browser Config ===

    def is_browser_enabled(self) -> bool:
        return bool(self.get('browser.enabled', True))

    def is_headless(self) -> bool:
        """Check if browser should run in headless mode"""
        return bool(self.get('browser.headless', True))

    def use_stealth(self) -> bool:
        """Check if Playwright stealth should be enabled"""
        return bool(self.get('browser.use_stealth', True))

    def get_navigation_timeout(self) -> int:
        """Get navigation timeout in milliseconds"""
        return int(float(self.get('browser.navigation_timeout', 45)) * 1000)

    def get_idle_timeout(self) -> int:
        """Get network-idle wait in milliseconds"""
        return int(float(self.get('browser.idle_timeout', 15)) * 1000)

    def get_browser_locale(self) -> str:
        return self.get('browser.locale', 'es-ES') or 'es-ES'

    def get_browser_max_pages(self) -> int:
        """Click-pagination page ceiling inside the browser"""
        value = self.get('browser.max_pages', 10)
        return 10 if value is None else int(value)

    # === Proxy Config ===

    def is_proxy_enabled(self) -> bool:
        """Check if proxy routing is enabled (disabled by default)."""
        return bool(self.get("proxy.enabled", False))

    def _get_proxy_server_raw(self) -> str:
        server = (self.get("proxy.server", "") or "").strip()
        if server:
            return server

        host = (
            (self.get("proxy.host", "") or "").strip()
            or (os.getenv("PROXY_HOST") or "").strip()
        )
        port = str(
            self.get("proxy.port", "")
            or (os.getenv("PROXY_PORT") or "").strip()
        ).strip()
        if host and port:
            return f"{host}:{port}"
        return ""

    def get_proxy_settings(self) -> Dict[str, Any]:
        """
        Return settings for proxy_manager.ProxyManager.

        Values may fall back to env vars (PROXY_HOST/PORT/USER/PASS), but the
        enabled flag must come from config (proxy.enabled).
        """
        enabled = self.is_proxy_enabled()
        server = self._get_proxy_server_raw()
        if enabled and not server:
            raise ConfigValidationError(
                "Proxy is enabled but no server is configured. "
                "Set proxy.server or proxy.host+proxy.port "
                "(or env PROXY_HOST+PROXY_PORT)."
            )
        username = (
            (self.get("proxy.username", "") or "").strip()
            or (os.getenv("PROXY_USER") or "").strip()
        )
        password = (
            (self.get("proxy.password", "") or "").strip()
            or (os.getenv("PROXY_PASS") or "").strip()
        )
        return {
            "enabled": enabled,
            "server": server,
            "username": username,
            "password": password,
            "username_template": (self.get("proxy.username_template", "") or "").strip() or None,
            "sticky_session": bool(self.get("proxy.sticky_session", True)),
            "session_ttl_seconds": max(int(self.get("proxy.session_ttl_seconds", 0) or 0), 0),
        }

    # === Output Config ===

    def get_dataset_path(self) -> str:
        """Dataset file template ({timestamp} is rendered by the writer)"""
        return self.get('output.dataset_file', 'output/jobs_{timestamp}.jsonl')

    def get_batch_size(self) -> int:
        return max(1, min(int(self.get('output.batch_size', 20)), 100))

    def get_key_value_store_dir(self) -> Path:
        return Path(self.get('output.key_value_store', 'output/key_value_store'))

    # === Logging Config ===

    def get_log_level(self) -> str:
        """Get logging level"""
        return str(self.get('logging.level', 'INFO')).upper()

    def get_log_file(self) -> Path:
        """Get log file path with timestamp"""
        template = self.get('logging.log_file', 'logs/scraper_{timestamp}.log')
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = template.replace('{timestamp}', timestamp)
        return Path(filename)

    def __repr__(self) -> str:
        return f"<Config: {self.get_search_input()}, max_jobs={self.get('search.max_jobs', DEFAULT_MAX_JOBS)}>"


# Convenience function
def load_config(config_path: str = "config/settings.yaml") -> ConfigLoader:
    """Load configuration from file"""
    return ConfigLoader(config_path)
