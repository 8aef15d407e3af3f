# ======================================
# config.py
# (Loads critical environment variables)
# ======================================
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

# Load .env when running locally
load_dotenv()


# ----------------------
# Provider credentials
# ----------------------
@dataclass(frozen=True)
class MtnSettings:
    user_id: str
    api_key: str
    primary_key: str
    # Disbursement product may use its own API user / subscription key.
    disbursement_user_id: Optional[str] = None
    disbursement_api_key: Optional[str] = None
    disbursement_primary_key: Optional[str] = None
    base_url: str = "https://sandbox.momodeveloper.mtn.com"
    target_environment: str = "sandbox"
    currency: str = "EUR"
    country_code: str = "256"

    def credentials_for(self, product: str) -> tuple:
        """Return (user_id, api_key, subscription_key) for 'collection' or 'disbursement'."""
        if product == "disbursement":
            return (
                self.disbursement_user_id or self.user_id,
                self.disbursement_api_key or self.api_key,
                self.disbursement_primary_key or self.primary_key,
            )
        return self.user_id, self.api_key, self.primary_key


@dataclass(frozen=True)
class AirtelSettings:
    client_id: str
    client_secret: str
    base_url: str = "https://openapiuat.airtel.africa"
    country: str = "UG"
    currency: str = "UGX"
    country_code: str = "256"


@dataclass(frozen=True)
class Settings:
    database_url: str
    jwt_secret: str
    mtn: MtnSettings
    airtel: AirtelSettings

    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "http://localhost:8081"])
    port: int = 8000
    log_level: str = "INFO"
    sentry_dsn: Optional[str] = None
    environment: str = "production"
    sql_echo: bool = False

    # Settlement / payout timing
    settlement_max_attempts: int = 10
    settlement_interval_ms: int = 3000
    payout_response_wait_seconds: float = 5.0
    http_timeout_seconds: float = 30.0
    token_expiry_skew_seconds: int = 60
    shutdown_grace_seconds: float = 30.0

    # Background tasks
    stale_payout_minutes: int = 30
    sweep_interval_seconds: int = 300
    enable_background_tasks: bool = True
    auto_create_tables: bool = False


REQUIRED_VARS = (
    "DATABASE_URL",
    "JWT_SECRET",
    "MTN_USER_ID",
    "MTN_API_KEY",
    "MTN_PRIMARY_KEY",
    "AIRTEL_CLIENT_ID",
    "AIRTEL_CLIENT_SECRET",
)


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _split_csv(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.
    Missing provider credentials are a startup error, never a runtime surprise.
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_VARS if not env.get(name)]
    if missing:
        raise RuntimeError(f"❌ Missing required environment variables: {', '.join(missing)}")

    mtn = MtnSettings(
        user_id=env["MTN_USER_ID"],
        api_key=env["MTN_API_KEY"],
        primary_key=env["MTN_PRIMARY_KEY"],
        disbursement_user_id=env.get("MTN_DISBURSEMENT_USER_ID") or None,
        disbursement_api_key=env.get("MTN_DISBURSEMENT_API_KEY") or None,
        disbursement_primary_key=env.get("MTN_DISBURSEMENT_PRIMARY_KEY") or None,
        base_url=env.get("MTN_BASE_URL", "https://sandbox.momodeveloper.mtn.com").rstrip("/"),
        target_environment=env.get("MTN_TARGET_ENVIRONMENT", "sandbox"),
        currency=env.get("MTN_CURRENCY", "EUR"),
        country_code=env.get("MTN_COUNTRY_CODE", "256"),
    )
    airtel = AirtelSettings(
        client_id=env["AIRTEL_CLIENT_ID"],
        client_secret=env["AIRTEL_CLIENT_SECRET"],
        base_url=env.get("AIRTEL_BASE_URL", "https://openapiuat.airtel.africa").rstrip("/"),
        country=env.get("AIRTEL_COUNTRY", "UG"),
        currency=env.get("AIRTEL_CURRENCY", "UGX"),
        country_code=env.get("AIRTEL_COUNTRY_CODE", "256"),
    )

    cors_origins = _split_csv(env.get("CORS_ORIGINS")) or ["http://localhost:3000", "http://localhost:8081"]

    return Settings(
        database_url=env["DATABASE_URL"],
        jwt_secret=env["JWT_SECRET"],
        mtn=mtn,
        airtel=airtel,
        cors_origins=cors_origins,
        port=int(env.get("PORT", "8000")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        sentry_dsn=env.get("SENTRY_DSN") or None,
        environment=env.get("ENVIRONMENT", "production"),
        sql_echo=_as_bool(env.get("SQL_ECHO")),
        settlement_max_attempts=int(env.get("SETTLEMENT_MAX_ATTEMPTS", "10")),
        settlement_interval_ms=int(env.get("SETTLEMENT_INTERVAL_MS", "3000")),
        payout_response_wait_seconds=float(env.get("PAYOUT_RESPONSE_WAIT_SECONDS", "5")),
        http_timeout_seconds=float(env.get("HTTP_TIMEOUT_SECONDS", "30")),
        token_expiry_skew_seconds=int(env.get("TOKEN_EXPIRY_SKEW_SECONDS", "60")),
        shutdown_grace_seconds=float(env.get("SHUTDOWN_GRACE_SECONDS", "30")),
        stale_payout_minutes=int(env.get("STALE_PAYOUT_MINUTES", "30")),
        sweep_interval_seconds=int(env.get("SWEEP_INTERVAL_SECONDS", "300")),
        enable_background_tasks=_as_bool(env.get("ENABLE_BACKGROUND_TASKS"), default=True),
        auto_create_tables=_as_bool(env.get("AUTO_CREATE_TABLES")),
    )
