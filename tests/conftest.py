import os
import tempfile

# Keep test runs from writing into the user's log directory
os.environ.setdefault("ICLOCK_LOG_DIR", tempfile.mkdtemp(prefix="iclock-logs-"))

import pytest

from iclock_gateway import create_app
from iclock_gateway.config.gateway_config import GatewayConfig
from iclock_gateway.database.connection import db_manager
from iclock_gateway.services.attendance_ledger import AttendanceLedger
from iclock_gateway.services.command_queue import CommandQueue
from iclock_gateway.services.device_registry import DeviceRegistry
from iclock_gateway.services.enrollment_recorder import EnrollmentRecorder
from iclock_gateway.services.resolvers import StaticEmployeeResolver
from iclock_gateway.services.sinks import CollectingSink

SERIAL = "ABC123"


@pytest.fixture()
def db_path(tmp_path):
    path = tmp_path / "iclock_test.db"
    db_manager.configure(str(path))
    yield str(path)
    db_manager.close_all_connections()


@pytest.fixture()
def gateway_config():
    return GatewayConfig()


@pytest.fixture()
def registry(db_path, gateway_config):
    return DeviceRegistry(config=gateway_config)


@pytest.fixture()
def device(registry):
    return registry.register(SERIAL, device_name="Front door", address="10.0.0.5")


@pytest.fixture()
def enrollments(db_path, gateway_config):
    return EnrollmentRecorder(config=gateway_config)


@pytest.fixture()
def sink():
    return CollectingSink()


@pytest.fixture()
def resolver():
    return StaticEmployeeResolver({"001": "42", "1001": "77"})


@pytest.fixture()
def ledger(db_path, gateway_config, enrollments, resolver, sink):
    return AttendanceLedger(
        config=gateway_config, enrollments=enrollments, resolver=resolver, sink=sink
    )


@pytest.fixture()
def commands(db_path, gateway_config, enrollments):
    return CommandQueue(config=gateway_config, enrollments=enrollments)


@pytest.fixture()
def app_config(db_path):
    return {"TESTING": True, "ICLOCK_DB_PATH": db_path, "ICLOCK_TIMEZONE": "UTC"}


@pytest.fixture()
def app(app_config, resolver, sink):
    return create_app(config=app_config, employee_resolver=resolver, attendance_sink=sink)


@pytest.fixture()
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture()
def gateway(app):
    return app.extensions["iclock_gateway"]


@pytest.fixture()
def registered_device(gateway):
    return gateway.registry.register(SERIAL, device_name="Front door")
