from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping

from iclock_gateway.config.settings import strtobool


@dataclass
class LoggingConfig:
    """Per-category logging switches"""

    enabled: bool = True
    attendance_data: bool = True
    device_commands: bool = True
    api_requests: bool = True
    database_operations: bool = False
    response_details: bool = True
    request_headers: bool = True
    processing_time: bool = True


@dataclass
class GatewayConfig:
    """Resolved gateway settings handed to services at construction time"""

    route_prefix: str = ""
    middleware: List[Callable] = field(default_factory=list)
    timezone: str = "UTC"
    auto_create_users: bool = True
    employee_field: str = "employee_code"
    command_timeout: int = 300
    command_retry_attempts: int = 3
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "GatewayConfig":
        """Build from a Flask config (or any dict using the ICLOCK_* keys)"""
        defaults = cls()
        log_defaults = LoggingConfig()

        def get(key, default):
            value = mapping.get(key)
            return default if value is None else value

        def flag(key, default):
            value = get(key, default)
            if isinstance(value, str):
                return bool(strtobool(value.strip()))
            return bool(value)

        return cls(
            route_prefix=get("ICLOCK_ROUTE_PREFIX", defaults.route_prefix).rstrip("/"),
            middleware=list(get("ICLOCK_MIDDLEWARE", [])),
            timezone=get("ICLOCK_TIMEZONE", defaults.timezone),
            auto_create_users=flag("ICLOCK_AUTO_CREATE_USERS", defaults.auto_create_users),
            employee_field=get("ICLOCK_EMPLOYEE_FIELD", defaults.employee_field),
            command_timeout=int(get("ICLOCK_COMMAND_TIMEOUT", defaults.command_timeout)),
            command_retry_attempts=int(
                get("ICLOCK_COMMAND_RETRY_ATTEMPTS", defaults.command_retry_attempts)
            ),
            logging=LoggingConfig(
                enabled=flag("ICLOCK_LOGGING_ENABLED", log_defaults.enabled),
                attendance_data=flag("ICLOCK_LOG_ATTENDANCE_DATA", log_defaults.attendance_data),
                device_commands=flag("ICLOCK_LOG_DEVICE_COMMANDS", log_defaults.device_commands),
                api_requests=flag("ICLOCK_LOG_API_REQUESTS", log_defaults.api_requests),
                database_operations=flag(
                    "ICLOCK_LOG_DATABASE_OPERATIONS", log_defaults.database_operations
                ),
                response_details=flag(
                    "ICLOCK_LOG_RESPONSE_DETAILS", log_defaults.response_details
                ),
                request_headers=flag("ICLOCK_LOG_REQUEST_HEADERS", log_defaults.request_headers),
                processing_time=flag("ICLOCK_LOG_PROCESSING_TIME", log_defaults.processing_time),
            ),
        )
