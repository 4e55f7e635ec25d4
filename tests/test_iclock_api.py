from datetime import timedelta

import pytest

from iclock_gateway import create_app
from iclock_gateway.models.command import CommandStatus, CommandType
from iclock_gateway.models.device import DeviceStatus
from iclock_gateway.protocol import codec
from iclock_gateway.repositories import attendance_repo

PUSH_BODY = "001\t2024-01-15 09:00:00\t0\n001\t2024-01-15 17:30:00\t1"


def test_handshake_returns_option_block(client, registered_device):
    res = client.get("/iclock/cdata?SN=abc123&options=all")

    assert res.status_code == 200
    assert res.mimetype == "text/plain"
    lines = res.get_data(as_text=True).split("\r\n")
    assert lines[0] == "GET OPTION FROM: ABC123"
    assert "TimeZone=0" in lines
    assert "Realtime=1" in lines


def test_handshake_uses_configured_timezone(app_config, resolver, sink):
    app = create_app(
        config=dict(app_config, ICLOCK_TIMEZONE="Asia/Kolkata"),
        employee_resolver=resolver,
        attendance_sink=sink,
    )
    app.extensions["iclock_gateway"].registry.register("ABC123")

    res = app.test_client().get("/iclock/cdata?SN=ABC123")

    assert "TimeZone=330" in res.get_data(as_text=True).split("\r\n")


@pytest.mark.parametrize("tz_name, expected", [("+05:30", "TimeZone=330"), ("-05:00", "TimeZone=-300")])
def test_handshake_with_fixed_offset_timezone(app_config, resolver, sink, tz_name, expected):
    app = create_app(
        config=dict(app_config, ICLOCK_TIMEZONE=tz_name),
        employee_resolver=resolver,
        attendance_sink=sink,
    )
    app.extensions["iclock_gateway"].registry.register("ABC123")

    res = app.test_client().get("/iclock/cdata?SN=ABC123")

    assert expected in res.get_data(as_text=True).split("\r\n")


def test_handshake_with_invalid_timezone_offers_zero(app_config, resolver, sink):
    app = create_app(
        config=dict(app_config, ICLOCK_TIMEZONE="Mars/Olympus"),
        employee_resolver=resolver,
        attendance_sink=sink,
    )
    app.extensions["iclock_gateway"].registry.register("ABC123")

    res = app.test_client().get("/iclock/cdata?SN=ABC123")

    assert "TimeZone=0" in res.get_data(as_text=True).split("\r\n")


def test_handshake_marks_device_online(client, gateway, registered_device):
    client.get("/iclock/cdata?SN=ABC123")

    device = gateway.registry.lookup("ABC123")
    assert device.status == DeviceStatus.ONLINE
    assert device.device_ip == "127.0.0.1"


def test_missing_serial_is_rejected(client):
    res = client.get("/iclock/cdata")
    assert res.status_code == 400
    assert res.get_data(as_text=True) == "ERROR: Missing device SN"

    res = client.post("/iclock/cdata", data=PUSH_BODY)
    assert res.status_code == 400


def test_unknown_serial_is_rejected_without_side_effects(client):
    res = client.post("/iclock/cdata?SN=NOPE", data=PUSH_BODY)

    assert res.status_code == 404
    assert res.get_data(as_text=True) == "Device not found"
    assert attendance_repo.get_all() == []


def test_push_attendance_scenario(client, registered_device, sink):
    res = client.post("/iclock/cdata?SN=ABC123&table=ATTLOG&Stamp=9999", data=PUSH_BODY)

    assert res.status_code == 200
    assert res.get_data(as_text=True) == "OK"

    punches = sorted(attendance_repo.get_all(employee_id="001"), key=lambda p: p.timestamp)
    assert [p.status1 for p in punches] == [0, 1]
    assert [p.table for p in punches] == ["ATTLOG", "ATTLOG"]
    assert punches[0].user_id == "42"
    assert len(sink.punches) == 2


def test_repeated_push_is_idempotent(client, registered_device):
    client.post("/iclock/cdata?SN=ABC123", data=PUSH_BODY)
    client.post("/iclock/cdata?SN=ABC123", data=PUSH_BODY)

    assert len(attendance_repo.get_all(employee_id="001")) == 2


def test_push_enrollment_fragments(client, gateway, registered_device):
    body = "FP PIN=1001\tFID=3\tSize=4\tValid=1\tTMP=AAAA\r\nUSER PIN=1001\tName=J\tCard=77\r\n"

    res = client.post("/iclock/cdata?SN=ABC123&table=OPERLOG", data=body)

    assert res.get_data(as_text=True) == "OK"
    enrollment = gateway.enrollments.get("1001")
    assert enrollment.fingerprint_id == "3"
    assert enrollment.card_number == "77"
    assert attendance_repo.get_all() == []


def test_push_with_drifted_clock_queues_time_sync(client, gateway, registered_device):
    stale = (codec.now_in_timezone("UTC") - timedelta(hours=2)).strftime("%Y-%m-%d %H:%M:%S")

    res = client.post("/iclock/cdata", query_string={"SN": "ABC123", "timestamp": stale}, data="")

    assert res.get_data(as_text=True) == "OK"
    pending = gateway.commands.pending_commands("ABC123")
    assert [c.type for c in pending] == [CommandType.SYNCTIME]


def test_push_with_garbage_clock_still_acknowledges(client, gateway, registered_device):
    res = client.post(
        "/iclock/cdata", query_string={"SN": "ABC123", "timestamp": "soon"}, data=PUSH_BODY
    )

    assert res.get_data(as_text=True) == "OK"
    assert gateway.commands.pending_commands("ABC123") == []


def test_poll_scenario(client, gateway, registered_device):
    res = client.get("/iclock/getrequest?SN=ABC123")
    assert res.get_data(as_text=True) == "OK"

    command = gateway.commands.create_user("ABC123", "1001", "Jane", user_id="42")

    res = client.get("/iclock/getrequest?SN=ABC123")

    assert res.get_data(as_text=True) == command.command
    assert gateway.commands.get(command.command_id).status == CommandStatus.SENT

    res = client.get("/iclock/getrequest?SN=ABC123")
    assert res.get_data(as_text=True) == "OK"


def test_poll_from_unknown_device_replies_ok(client):
    assert client.get("/iclock/getrequest?SN=NOPE").get_data(as_text=True) == "OK"
    assert client.get("/iclock/getrequest").get_data(as_text=True) == "OK"


def test_result_report_executes_and_provisions(client, gateway, registered_device):
    command = gateway.commands.create_user("ABC123", "1001", "Jane", user_id="42")
    client.get("/iclock/getrequest?SN=ABC123")

    res = client.post(
        "/iclock/devicecmd?SN=ABC123", data=f"ID={command.command_id}&Return=0&CMD=DATA\n"
    )

    assert res.get_data(as_text=True) == "OK"
    assert gateway.commands.get(command.command_id).status == CommandStatus.EXECUTED
    assert gateway.enrollments.get("1001").user_id == "42"


def test_result_report_failure(client, gateway, registered_device):
    command = gateway.commands.delete_user("ABC123", "1001")

    client.post("/iclock/devicecmd?SN=ABC123", data=f"ID={command.command_id}&Return=-1&CMD=DATA")

    assert gateway.commands.get(command.command_id).status == CommandStatus.FAILED


def test_result_report_always_acknowledged(client, gateway, registered_device):
    command = gateway.commands.delete_user("ABC123", "1001")

    assert client.post("/iclock/devicecmd?SN=ABC123", data="Return=0").get_data(as_text=True) == "OK"
    assert client.post(
        "/iclock/devicecmd?SN=NOPE", data=f"ID={command.command_id}&Return=0"
    ).get_data(as_text=True) == "OK"
    assert gateway.commands.get(command.command_id).status == CommandStatus.PENDING


def test_ping(client, gateway, registered_device):
    assert client.get("/iclock/ping?SN=abc123").get_data(as_text=True) == "OK"
    assert gateway.registry.lookup("ABC123").status == DeviceStatus.ONLINE
    assert client.get("/iclock/ping?SN=NOPE").get_data(as_text=True) == "OK"


def test_route_prefix(app_config, resolver, sink):
    app = create_app(
        config=dict(app_config, ICLOCK_ROUTE_PREFIX="/zk/"),
        employee_resolver=resolver,
        attendance_sink=sink,
    )
    client = app.test_client()

    assert client.get("/zk/iclock/ping?SN=X").status_code == 200
    assert client.get("/iclock/ping?SN=X").status_code == 404
    assert client.get("/zk/api/iclock/devices").status_code == 200


def test_middleware_wraps_wsgi_app(app_config, resolver, sink):
    seen = []

    def tagging_middleware(wsgi_app):
        def wrapped(environ, start_response):
            seen.append(environ["PATH_INFO"])
            return wsgi_app(environ, start_response)
        return wrapped

    app = create_app(
        config=dict(app_config, ICLOCK_MIDDLEWARE=[tagging_middleware]),
        employee_resolver=resolver,
        attendance_sink=sink,
    )
    app.test_client().get("/iclock/ping?SN=X")

    assert seen == ["/iclock/ping"]


def test_string_flag_in_config_mapping_disables_auto_provisioning(app_config, resolver, sink):
    app = create_app(
        config=dict(app_config, ICLOCK_AUTO_CREATE_USERS="false"),
        employee_resolver=resolver,
        attendance_sink=sink,
    )
    gateway = app.extensions["iclock_gateway"]
    gateway.registry.register("ABC123")

    res = app.test_client().post("/iclock/cdata?SN=ABC123&table=ATTLOG", data=PUSH_BODY)

    assert res.status_code == 200
    assert gateway.config.auto_create_users is False
    assert gateway.enrollments.get("001") is None
    assert [p.user_id for p in sink.punches] == [None, None]
