import time

from flask import g, request

from iclock_gateway.shared.logger import app_logger, log_category

SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key", "x-auth-token")
REDACTED = "[REDACTED]"


def sanitize_headers(headers) -> dict:
    sanitized = {}
    for key, value in headers.items():
        sanitized[key] = REDACTED if key.lower() in SENSITIVE_HEADERS else value
    return sanitized


def register_request_logging(app, config, blueprint_name="iclock"):
    """Log device requests and responses according to the logging toggles"""

    @app.before_request
    def log_request():
        if request.blueprint != blueprint_name:
            return
        g.iclock_started_at = time.perf_counter()

        if not log_category(config, "api_requests"):
            return

        message = (
            f"[ICLOCK] {request.method} {request.path} from {request.remote_addr} "
            f"query={request.args.to_dict()} content_length={request.content_length or 0}"
        )
        if log_category(config, "request_headers"):
            message += f" headers={sanitize_headers(request.headers)}"
        app_logger.info(message)

    @app.after_request
    def log_response(response):
        if request.blueprint != blueprint_name:
            return response
        if not log_category(config, "response_details"):
            return response

        message = (
            f"[ICLOCK] Response {request.path} status={response.status_code} "
            f"length={response.calculate_content_length()}"
        )
        started_at = g.get("iclock_started_at")
        if started_at is not None and log_category(config, "processing_time"):
            message += f" processing_time={(time.perf_counter() - started_at) * 1000:.2f}ms"
        app_logger.debug(message)
        return response
