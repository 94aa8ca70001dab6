"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "sourcerr",
    "environment": "dev",
    "http": {
        "timeout_seconds": 30.0,
        "follow_redirects": True,
        "user_agent": "Sourcerr/0.1.0",
    },
    "fetch": {
        "proxies": [],
        "selected_proxy": None,
        "attempt_timeout_seconds": 8.0,
        "direct_attempts": 3,
        "direct_attempts_after_proxies": 2,
        "backoff_base_seconds": 1.0,
        "max_backoff_seconds": 8.0,
    },
    "sources": {
        "aggregator_url": "https://torrentio.strem.fun",
        "aggregator_name": "Torrentio",
        "aggregator_token": "torbox",
        "aggregator_timeout_seconds": 15.0,
        "dmm_url": "https://zileanfortheweebs.midnightignite.me",
        "dmm_name": "Zilean",
        "dmm_timeout_seconds": 15.0,
        "provider_timeout_seconds": 60.0,
        "manifest_timeout_seconds": 15.0,
        "request_deadline_seconds": None,
    },
    "debrid": {
        "api_url": "https://api.torbox.app/v1/api",
        "timeout_seconds": 30.0,
        "url_cache_ttl_seconds": 1800,
        "file_batch_size": 5,
        "file_batch_delay_seconds": 0.1,
    },
    "ranking": {
        "aggregator_cap": 10,
        "default_sort": "high_to_low",
    },
    "settings": {
        "third_party_enabled": False,
        "active_source": "torrent_aggregator",
        "debrid_api_key": None,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "dir": "./.cache/sourcerr",
        "backend": "diskcache",
        "ttl_seconds": 3600,
    },
}
