from iclock_gateway.models.command import CommandStatus, CommandType


def test_register_and_list_devices(client):
    res = client.post("/api/iclock/devices", json={"serial_number": "abc123", "device_name": "Gate"})

    assert res.status_code == 201
    assert res.get_json()["data"]["serial_number"] == "ABC123"

    res = client.get("/api/iclock/devices")
    assert [d["serial_number"] for d in res.get_json()["data"]] == ["ABC123"]


def test_register_validation(client, registered_device):
    assert client.post("/api/iclock/devices", json={}).status_code == 400
    assert client.post("/api/iclock/devices", json={"serial_number": "ABC123"}).status_code == 409


def test_mark_offline(client, gateway, registered_device):
    assert client.post("/api/iclock/devices/ABC123/offline").status_code == 200
    assert gateway.registry.lookup("ABC123").status == "offline"
    assert client.post("/api/iclock/devices/NOPE/offline").status_code == 404


def test_queue_create_user(client, gateway, registered_device):
    res = client.post(
        "/api/iclock/devices/ABC123/users", json={"pin": "1001", "name": "Jane", "user_id": 42}
    )

    assert res.status_code == 201
    data = res.get_json()["data"]
    assert data["type"] == CommandType.CREATEUSER
    assert data["status"] == CommandStatus.PENDING
    assert data["user_id"] == "42"
    assert data["is_overdue"] is False
    assert gateway.commands.next_pending("ABC123").command_id == data["command_id"]


def test_queue_create_user_requires_pin(client, registered_device):
    assert client.post("/api/iclock/devices/ABC123/users", json={"name": "x"}).status_code == 400


def test_commands_for_unknown_device(client):
    assert client.post("/api/iclock/devices/NOPE/users", json={"pin": "1"}).status_code == 404
    assert client.get("/api/iclock/devices/NOPE/commands").status_code == 404


def test_delete_and_query_user(client, registered_device):
    deleted = client.delete("/api/iclock/devices/ABC123/users/1001").get_json()["data"]
    queried = client.post("/api/iclock/devices/ABC123/users/1001/query").get_json()["data"]

    assert deleted["command"].endswith(":DATA DELETE USERINFO PIN=1001\n")
    assert queried["command"].endswith(":DATA QUERY USERINFO PIN=1001\n")


def test_sync_time_endpoints(client, gateway, registered_device):
    gateway.registry.register("XYZ999")

    one = client.post("/api/iclock/devices/ABC123/sync-time").get_json()["data"]
    everyone = client.post("/api/iclock/sync-time").get_json()["data"]

    assert len(one) == 1
    assert sorted(c["device_serial_number"] for c in everyone) == ["ABC123", "XYZ999"]


def test_list_commands_with_status_filter(client, registered_device):
    client.post("/api/iclock/devices/ABC123/users/1/query")
    client.post("/api/iclock/devices/ABC123/users/2/query")
    client.get("/iclock/getrequest?SN=ABC123")

    everything = client.get("/api/iclock/devices/ABC123/commands").get_json()["data"]
    pending = client.get("/api/iclock/devices/ABC123/commands?status=pending").get_json()["data"]

    assert len(everything) == 2
    assert len(pending) == 1


def test_list_commands_with_unknown_status_is_rejected(client, registered_device):
    res = client.get("/api/iclock/devices/ABC123/commands?status=queued")

    assert res.status_code == 400
    assert res.get_json()["success"] is False


def test_retry_command(client, gateway, registered_device):
    command = gateway.commands.delete_user("ABC123", "1001")

    assert client.post(f"/api/iclock/commands/{command.command_id}/retry").status_code == 400

    gateway.commands.report_result(command.command_id, "-1")
    res = client.post(f"/api/iclock/commands/{command.command_id}/retry")

    assert res.status_code == 201
    assert res.get_json()["data"]["retry_of"] == command.command_id
    assert client.post("/api/iclock/commands/NOPE-1/retry").status_code == 404


def test_attendance_query(client, registered_device):
    client.post(
        "/iclock/cdata?SN=ABC123",
        data="001\t2024-01-15 09:00:00\t0\n002\t2024-01-15 09:05:00\t0\n001\t2024-01-16 09:00:00\t0",
    )

    res = client.get("/api/iclock/attendance?employee_id=001")
    assert [p["timestamp"] for p in res.get_json()["data"]] == [
        "2024-01-16 09:00:00",
        "2024-01-15 09:00:00",
    ]

    res = client.get(
        "/api/iclock/attendance",
        query_string={"start": "2024-01-15 00:00:00", "end": "2024-01-15 23:59:59"},
    )
    assert len(res.get_json()["data"]) == 2

    assert client.get("/api/iclock/attendance?start=yesterday").status_code == 400


def test_employee_lookup(client, registered_device):
    client.post("/iclock/cdata?SN=ABC123", data="USER PIN=1001\tName=J\tCard=77")

    res = client.get("/api/iclock/employees/1001")

    assert res.status_code == 200
    assert res.get_json()["data"]["card_number"] == "77"
    assert "photo" not in res.get_json()["data"]
    assert client.get("/api/iclock/employees/404").status_code == 404
