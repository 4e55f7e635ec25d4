from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS
import logging
import sentry_sdk
from iclock_gateway.api.iclock import bp as iclock_blueprint
from iclock_gateway.api.management import bp as management_blueprint
from iclock_gateway.api.events import bp as event_blueprint
from iclock_gateway.api.request_logging import register_request_logging
from iclock_gateway.config.gateway_config import GatewayConfig
from iclock_gateway.database.connection import db_manager
from iclock_gateway.services.attendance_ledger import AttendanceLedger
from iclock_gateway.services.command_queue import CommandQueue
from iclock_gateway.services.device_registry import DeviceRegistry
from iclock_gateway.services.enrollment_recorder import EnrollmentRecorder
from iclock_gateway.services.gateway import Gateway
from iclock_gateway.services.resolvers import build_employee_resolver
from iclock_gateway.services.sinks import EventStreamSink
from iclock_gateway.shared.logger import app_logger


class EndpointFilter(logging.Filter):
    """Suppress noisy request logs for specific endpoints."""

    def __init__(self, *paths):
        super().__init__()
        self.paths = paths

    def filter(self, record):
        message = record.getMessage()
        return not any(path in message for path in self.paths)

load_dotenv()

def create_app(config=None, employee_resolver=None, attendance_sink=None):
    """
    Build the gateway application.

    Args:
        config: mapping overriding ``iclock_gateway.config.settings``
        employee_resolver: EmployeeResolver used for auto-provisioning
            (defaults to the HTTP resolver when EXTERNAL_API_URL is set)
        attendance_sink: AttendanceSink notified of stored punches
            (defaults to the SSE event stream)
    """
    app = Flask(__name__)

    CORS(app,
         origins=["*"],
         allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
         supports_credentials=True)

    app.config.from_object("iclock_gateway.config.settings")
    if config:
        app.config.update(config)

    if app.config.get("SENTRY_DSN"):
        init_sentry(app.config["SENTRY_DSN"])

    # Devices poll getrequest every few seconds
    werkzeug_logger = logging.getLogger('werkzeug')
    werkzeug_logger.addFilter(EndpointFilter('/iclock/getrequest', '/iclock/ping'))

    db_manager.configure(app.config["ICLOCK_DB_PATH"])

    gateway_config = GatewayConfig.from_mapping(app.config)
    app.extensions["iclock_gateway"] = build_gateway(
        gateway_config,
        employee_resolver or build_employee_resolver(app.config),
        attendance_sink or EventStreamSink(),
    )

    # Register the blueprints
    prefix = gateway_config.route_prefix
    app.register_blueprint(iclock_blueprint, url_prefix=prefix or None)
    app.register_blueprint(management_blueprint, url_prefix=f"{prefix}{management_blueprint.url_prefix}")
    app.register_blueprint(event_blueprint, url_prefix=f"{prefix}{event_blueprint.url_prefix}")
    register_request_logging(app, gateway_config, iclock_blueprint.name)
    app_logger.info(f"[ICLOCK] Routes registered under '{prefix or '/'}'")

    for middleware in gateway_config.middleware:
        app.wsgi_app = middleware(app.wsgi_app)

    # Register teardown handler to close database connections after each request
    @app.teardown_appcontext
    def teardown_db(exception=None):
        """Close database connection at the end of each request"""
        db_manager.close_connection()

    return app


def build_gateway(gateway_config, employee_resolver, attendance_sink):
    registry = DeviceRegistry(config=gateway_config)
    enrollments = EnrollmentRecorder(config=gateway_config)
    return Gateway(
        config=gateway_config,
        registry=registry,
        enrollments=enrollments,
        ledger=AttendanceLedger(
            config=gateway_config,
            enrollments=enrollments,
            resolver=employee_resolver,
            sink=attendance_sink,
        ),
        commands=CommandQueue(config=gateway_config, enrollments=enrollments),
    )


def init_sentry(dsn):
    sentry_sdk.init(
        dsn=dsn,
        # Set traces_sample_rate to 1.0 to capture 100%
        # of transactions for performance monitoring.
        traces_sample_rate=1.0,
    )
