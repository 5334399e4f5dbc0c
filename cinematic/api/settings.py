# lectura de env vars + defaults
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# En producción no sobre-escribimos env vars ya definidas.
load_dotenv(override=False)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    val = raw.strip()
    return val if val else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    val = raw.strip().lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """
    Settings centralizados (env vars). Esto evita `os.getenv(...)` disperso.

    Notas importantes:
    - CORS: si CORS_ORIGINS="*" -> allow_credentials=False para compatibilidad browser.
    - ORIGIN_API_KEY vacío: el origen se considera no disponible y todo sale de caché.
    - ADMIN_TOKEN_SECRET vacío: se genera uno aleatorio por proceso
      (los tokens no sobreviven a un reinicio).
    """

    log_level: str

    cors_origins_raw: str
    cors_allow_credentials: bool

    gzip_min_size: int

    site_url: str

    origin_base_url: str
    origin_api_key: str
    origin_http_timeout_seconds: float
    origin_http_retry_total: int
    origin_http_user_agent: str

    presence_timeout_seconds: float
    presence_sweep_interval_seconds: float

    site_offline_after_seconds: float
    site_sweep_interval_seconds: float

    admin_username: str
    admin_password: str
    admin_token_secret: str
    admin_token_ttl_seconds: int

    warmup_enabled: bool
    warmup_delay_seconds: float

    def cors_allow_origins(self) -> list[str]:
        raw = self.cors_origins_raw.strip()
        if raw == "*":
            return ["*"]
        parts = [p.strip() for p in raw.split(",")]
        return [p for p in parts if p]

    @staticmethod
    def from_env() -> "Settings":
        cors_raw = _env_str("CORS_ORIGINS", "*")
        allow_origins = ["*"] if cors_raw.strip() == "*" else [p.strip() for p in cors_raw.split(",") if p.strip()]

        # Regla browser: "*" + credentials=True no es válido
        cors_allow_credentials = True
        if allow_origins == ["*"]:
            cors_allow_credentials = False

        return Settings(
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
            cors_origins_raw=cors_raw,
            cors_allow_credentials=cors_allow_credentials,
            gzip_min_size=_env_int("GZIP_MIN_SIZE", 800),
            site_url=_env_str("SITE_URL", "https://cinematic.site").rstrip("/"),
            origin_base_url=_env_str("ORIGIN_BASE_URL", "https://kinopoiskapiunofficial.tech/api/v2.2").rstrip("/"),
            origin_api_key=_env_str("ORIGIN_API_KEY", ""),
            origin_http_timeout_seconds=max(0.5, _env_float("ORIGIN_HTTP_TIMEOUT_SECONDS", 10.0)),
            origin_http_retry_total=max(0, _env_int("ORIGIN_HTTP_RETRY_TOTAL", 0)),
            origin_http_user_agent=_env_str("ORIGIN_HTTP_USER_AGENT", "Cinematic/1.0"),
            presence_timeout_seconds=max(1.0, _env_float("PRESENCE_TIMEOUT_SECONDS", 60.0)),
            presence_sweep_interval_seconds=max(0.1, _env_float("PRESENCE_SWEEP_INTERVAL_SECONDS", 30.0)),
            site_offline_after_seconds=max(1.0, _env_float("SITE_OFFLINE_AFTER_SECONDS", 120.0)),
            site_sweep_interval_seconds=max(0.1, _env_float("SITE_SWEEP_INTERVAL_SECONDS", 60.0)),
            admin_username=_env_str("ADMIN_USERNAME", "admin"),
            admin_password=_env_str("ADMIN_PASSWORD", "cinema2024"),
            admin_token_secret=_env_str("ADMIN_TOKEN_SECRET", ""),
            admin_token_ttl_seconds=max(60, _env_int("ADMIN_TOKEN_TTL_SECONDS", 24 * 60 * 60)),
            warmup_enabled=_env_bool("WARMUP_ENABLED", False),
            warmup_delay_seconds=max(0.0, _env_float("WARMUP_DELAY_SECONDS", 0.35)),
        )
