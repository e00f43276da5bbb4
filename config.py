import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./meta_ledger.db")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    API_RELOAD = bool(data.get("API_RELOAD", False))
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENABLE_SENTRY = data.get("ENABLE_SENTRY", 0)
    DSN_SENTRY = data.get("DSN_SENTRY", "")
    SENTRY_ENVIRONMENT = data.get("SENTRY_ENVIRONMENT", "dev")

    # Credit lots
    LOT_VALIDITY_DAYS = data.get("LOT_VALIDITY_DAYS", 180)
    CONSUME_MAX_ATTEMPTS = data.get("CONSUME_MAX_ATTEMPTS", 3)

    # Monthly free-use counters reset at the calendar month boundary in this zone
    USAGE_TIMEZONE = data.get("USAGE_TIMEZONE", "Asia/Tokyo")

    # Optional override of the built-in feature catalog, keyed by feature_key
    FEATURE_POLICIES = data.get("FEATURE_POLICIES", None)

    # Lot Expiry Sweeper
    SWEEP_ENABLED = bool(data.get("SWEEP_ENABLED", True))
    SWEEP_INTERVAL_SECONDS = data.get("SWEEP_INTERVAL_SECONDS", 86400)  # Daily
    SWEEP_BATCH_SIZE = data.get("SWEEP_BATCH_SIZE", 500)

    # Balance cache reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily
    RECONCILIATION_AUTO_REPAIR = bool(data.get("RECONCILIATION_AUTO_REPAIR", False))
