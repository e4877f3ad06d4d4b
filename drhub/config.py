from __future__ import annotations

from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


PATCH_MODES = {"sequential", "concurrent"}


def _get_config_value(*keys: str, default: str = "") -> str:
    for key in keys:
        value = os.getenv(key, "").strip()
        if value:
            return value
    return default


def _get_float(*keys: str, default: float) -> float:
    raw = _get_config_value(*keys)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _get_int(*keys: str, default: int) -> int:
    raw = _get_config_value(*keys)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    app_env: str
    kubeconfig: str
    kube_context: str
    request_timeout_seconds: float
    sync_delay_warning_ratio: float
    sync_delay_critical_ratio: float
    patch_concurrency: str
    patch_max_workers: int
    event_log_size: int
    log_level: str
    api_host: str
    api_port: int

    def thresholds_valid(self) -> bool:
        return 0 < self.sync_delay_warning_ratio < self.sync_delay_critical_ratio

    def concurrent_patches(self) -> bool:
        return self.patch_concurrency == "concurrent"


def load_settings() -> Settings:
    patch_concurrency = _get_config_value("PATCH_CONCURRENCY", default="sequential").lower()
    if patch_concurrency not in PATCH_MODES:
        patch_concurrency = "sequential"
    return Settings(
        app_env=_get_config_value("APP_ENV", default="dev"),
        kubeconfig=_get_config_value("HUB_KUBECONFIG", "KUBECONFIG"),
        kube_context=_get_config_value("HUB_KUBE_CONTEXT"),
        request_timeout_seconds=_get_float("HUB_REQUEST_TIMEOUT_SECONDS", default=10.0),
        sync_delay_warning_ratio=_get_float("SYNC_DELAY_WARNING_RATIO", default=1.0),
        sync_delay_critical_ratio=_get_float("SYNC_DELAY_CRITICAL_RATIO", default=2.0),
        patch_concurrency=patch_concurrency,
        patch_max_workers=max(1, _get_int("PATCH_MAX_WORKERS", default=4)),
        event_log_size=max(0, _get_int("EVENT_LOG_SIZE", default=500)),
        log_level=_get_config_value("LOG_LEVEL", default="INFO").upper(),
        api_host=_get_config_value("API_HOST", default="0.0.0.0"),
        api_port=_get_int("API_PORT", default=8000),
    )


settings = load_settings()
