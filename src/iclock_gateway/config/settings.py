import os


def strtobool(val):
    """Convert a string representation of truth to true (1) or false (0)."""
    val = val.lower()
    if val in ('y', 'yes', 't', 'true', 'on', '1'):
        return 1
    elif val in ('n', 'no', 'f', 'false', 'off', '0'):
        return 0
    else:
        raise ValueError(f"invalid truth value {val!r}")


def env_flag(name: str, default: str) -> bool:
    return bool(strtobool(os.getenv(name, default)))


SECRET_KEY = os.getenv("SECRET_KEY", "default-secret-key-for-iclock-gateway")
DEBUG = env_flag("FLASK_DEBUG", "false")

# Routing
ICLOCK_ROUTE_PREFIX = os.getenv("ICLOCK_ROUTE_PREFIX", "")
# WSGI middleware callables; only settable through the create_app() mapping
ICLOCK_MIDDLEWARE = []

# Protocol behaviour
ICLOCK_TIMEZONE = os.getenv("ICLOCK_TIMEZONE", "UTC")
ICLOCK_AUTO_CREATE_USERS = env_flag("ICLOCK_AUTO_CREATE_USERS", "true")
ICLOCK_EMPLOYEE_FIELD = os.getenv("ICLOCK_EMPLOYEE_FIELD", "employee_code")

# Advisory command settings
ICLOCK_COMMAND_TIMEOUT = int(os.getenv("ICLOCK_COMMAND_TIMEOUT", 300))
ICLOCK_COMMAND_RETRY_ATTEMPTS = int(os.getenv("ICLOCK_COMMAND_RETRY_ATTEMPTS", 3))

# Storage
ICLOCK_DB_PATH = os.getenv("ICLOCK_DB_PATH", "iclock_gateway.db")

# Logging categories
ICLOCK_LOGGING_ENABLED = env_flag("ICLOCK_LOGGING_ENABLED", "true")
ICLOCK_LOG_ATTENDANCE_DATA = env_flag("ICLOCK_LOG_ATTENDANCE_DATA", "true")
ICLOCK_LOG_DEVICE_COMMANDS = env_flag("ICLOCK_LOG_DEVICE_COMMANDS", "true")
ICLOCK_LOG_API_REQUESTS = env_flag("ICLOCK_LOG_API_REQUESTS", "true")
ICLOCK_LOG_DATABASE_OPERATIONS = env_flag("ICLOCK_LOG_DATABASE_OPERATIONS", "false")
ICLOCK_LOG_RESPONSE_DETAILS = env_flag("ICLOCK_LOG_RESPONSE_DETAILS", "true")
ICLOCK_LOG_REQUEST_HEADERS = env_flag("ICLOCK_LOG_REQUEST_HEADERS", "true")
ICLOCK_LOG_PROCESSING_TIME = env_flag("ICLOCK_LOG_PROCESSING_TIME", "true")

# Host application user lookup over HTTP (optional)
EXTERNAL_API_URL = os.getenv("EXTERNAL_API_URL", "")
EXTERNAL_API_KEY = os.getenv("EXTERNAL_API_KEY", "")

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
LOG_FILE_SIZE = os.getenv("LOG_FILE_SIZE", "10485760")
