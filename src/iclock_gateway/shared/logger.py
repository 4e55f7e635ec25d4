import logging
import sys
from logging.handlers import RotatingFileHandler
import os


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output"""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    # Special colors for different log types
    ICLOCK_COLOR = "\033[34m"  # Blue for [ICLOCK]
    COMMAND_COLOR = "\033[95m"  # Light magenta for command lifecycle
    DEVICE_COLOR = "\033[96m"  # Light cyan for device

    def format(self, record):
        log_message = super().format(record)

        levelname = record.levelname
        if levelname in self.COLORS:
            colored_levelname = (
                f"{self.COLORS[levelname]}{self.BOLD}{levelname}{self.RESET}"
            )
            log_message = log_message.replace(levelname, colored_levelname, 1)

        if "[ICLOCK]" in log_message:
            log_message = log_message.replace(
                "[ICLOCK]", f"{self.ICLOCK_COLOR}[ICLOCK]{self.RESET}"
            )

        if "Command" in log_message:
            log_message = log_message.replace(
                "Command", f"{self.COMMAND_COLOR}Command{self.RESET}", 1
            )

        if "Device " in log_message:
            log_message = log_message.replace(
                "Device ", f"{self.DEVICE_COLOR}Device{self.RESET} ", 1
            )

        return log_message


def get_user_log_dir():
    """Get user-writable directory for log files"""
    env_dir = os.getenv("ICLOCK_LOG_DIR")
    if env_dir:
        log_dir = env_dir
    elif os.name == "nt":  # Windows
        appdata = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
        log_dir = (
            os.path.join(appdata, "iClockGateway")
            if appdata
            else os.path.join(os.path.expanduser("~"), "iClockGateway")
        )
    else:  # Unix/Linux/macOS
        log_dir = os.path.join(
            os.path.expanduser("~"), ".local", "share", "iclock-gateway"
        )
        if not os.access(os.path.dirname(os.path.dirname(log_dir)), os.W_OK):
            log_dir = "/tmp"

    try:
        os.makedirs(log_dir, exist_ok=True)
    except (OSError, PermissionError):
        log_dir = os.path.join(os.path.expanduser("~"), "iclock_gateway_logs")
        try:
            os.makedirs(log_dir, exist_ok=True)
        except (OSError, PermissionError):
            # Last resort - current directory
            log_dir = os.getcwd()

    return log_dir


def create_log_handler():
    """Create file handler for logging"""
    log_file_size = int(os.getenv("LOG_FILE_SIZE", 10485760))

    log_dir = get_user_log_dir()
    log_file_path = os.path.join(log_dir, "iclock_gateway.log")
    handler = RotatingFileHandler(log_file_path, maxBytes=log_file_size, backupCount=3)

    # No colors for file output
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"
    )
    handler.setFormatter(formatter)

    return handler


def create_console_handler():
    """Create console handler with colored output"""
    console_handler = logging.StreamHandler(sys.stdout)

    colored_formatter = ColoredFormatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(colored_formatter)

    return console_handler


def log_category(config, category: str) -> bool:
    """
    Check whether a logging category is switched on.

    Args:
        config: GatewayConfig (or None, meaning defaults)
        category: one of the LoggingConfig field names, e.g. 'attendance_data'

    Returns:
        bool: True when both the master toggle and the category are on
    """
    if config is None:
        return True
    logging_config = config.logging
    if not logging_config.enabled:
        return False
    return bool(getattr(logging_config, category, True))


# Logger instance shared by services, repositories and blueprints
app_logger = logging.getLogger("iclock_gateway")

# Only add handlers once (module reloads, repeated app factories in tests)
if not app_logger.handlers:
    app_logger.addHandler(create_log_handler())
    app_logger.addHandler(create_console_handler())

app_logger.setLevel(logging.INFO)

# Prevent propagation to root logger (which might cause duplicates)
app_logger.propagate = False
