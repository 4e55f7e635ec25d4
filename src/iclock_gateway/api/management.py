"""
iClock Management API

Operator-facing JSON endpoints under ``/api/iclock``: device registration,
command queueing and attendance/enrollment lookups. Queued commands are
delivered on the device's next poll.
"""

from flask import Blueprint, current_app, jsonify, request

from iclock_gateway.services.gateway import Gateway
from iclock_gateway.shared.exceptions import CommandError, DeviceAlreadyRegisteredError
from iclock_gateway.shared.logger import app_logger
from iclock_gateway.utils.datetime_helpers import from_db

bp = Blueprint("iclock_management", __name__, url_prefix="/api/iclock")


def _gateway() -> Gateway:
    return current_app.extensions["iclock_gateway"]


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _command_to_dict(command):
    data = command.to_dict()
    data["is_overdue"] = _gateway().commands.is_overdue(command)
    return data


def _require_device(serial_number: str):
    return _gateway().registry.lookup(serial_number)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@bp.errorhandler(CommandError)
def handle_command_error(error):
    app_logger.warning(f"[ICLOCK API] {error}")
    return _error(str(error), 400)


@bp.errorhandler(ValueError)
def handle_value_error(error):
    return _error(str(error), 400)


@bp.errorhandler(DeviceAlreadyRegisteredError)
def handle_duplicate_device(error):
    return _error(str(error), 409)


# ============================================================================
# DEVICES
# ============================================================================

@bp.route("/devices", methods=["GET"])
def list_devices():
    devices = _gateway().registry.list_devices()
    return jsonify({"success": True, "data": [device.to_dict() for device in devices]})


@bp.route("/devices", methods=["POST"])
def register_device():
    """
    Register a device so it may talk to the gateway.

    Request Body (JSON):
        {"serial_number": "ABC123", "device_name": "Front door", "device_ip": "10.0.0.5"}
    """
    data = request.get_json(silent=True) or {}
    device = _gateway().registry.register(
        data.get("serial_number"),
        device_name=data.get("device_name"),
        address=data.get("device_ip"),
    )
    return jsonify({"success": True, "data": device.to_dict()}), 201


@bp.route("/devices/<serial_number>/offline", methods=["POST"])
def mark_device_offline(serial_number):
    if not _gateway().registry.mark_offline(serial_number):
        return _error("Device not found", 404)
    return jsonify({"success": True})


# ============================================================================
# COMMANDS
# ============================================================================

@bp.route("/devices/<serial_number>/users", methods=["POST"])
def create_device_user(serial_number):
    """
    Queue a CREATEUSER command.

    Request Body (JSON):
        {"pin": "1001", "name": "Jane Doe", "user_id": "42"}
    """
    if _require_device(serial_number) is None:
        return _error("Device not found", 404)

    data = request.get_json(silent=True) or {}
    pin = str(data.get("pin") or "").strip()
    if not pin:
        raise ValueError("pin is required")

    command = _gateway().commands.create_user(
        serial_number, pin, data.get("name") or "", user_id=data.get("user_id")
    )
    return jsonify({"success": True, "data": _command_to_dict(command)}), 201


@bp.route("/devices/<serial_number>/users/<pin>", methods=["DELETE"])
def delete_device_user(serial_number, pin):
    if _require_device(serial_number) is None:
        return _error("Device not found", 404)
    command = _gateway().commands.delete_user(serial_number, pin)
    return jsonify({"success": True, "data": _command_to_dict(command)}), 201


@bp.route("/devices/<serial_number>/users/<pin>/query", methods=["POST"])
def query_device_user(serial_number, pin):
    if _require_device(serial_number) is None:
        return _error("Device not found", 404)
    command = _gateway().commands.query_user(serial_number, pin)
    return jsonify({"success": True, "data": _command_to_dict(command)}), 201


@bp.route("/devices/<serial_number>/sync-time", methods=["POST"])
def sync_device_time(serial_number):
    if _require_device(serial_number) is None:
        return _error("Device not found", 404)
    commands = _gateway().commands.sync_time(serial_number)
    return jsonify({"success": True, "data": [_command_to_dict(c) for c in commands]}), 201


@bp.route("/sync-time", methods=["POST"])
def sync_all_devices_time():
    commands = _gateway().commands.sync_time()
    return jsonify({"success": True, "data": [_command_to_dict(c) for c in commands]}), 201


@bp.route("/devices/<serial_number>/commands", methods=["GET"])
def list_device_commands(serial_number):
    """Query Parameters: status (pending, sent, executed, failed)"""
    if _require_device(serial_number) is None:
        return _error("Device not found", 404)
    commands = _gateway().commands.list_commands(serial_number, request.args.get("status"))
    return jsonify({"success": True, "data": [_command_to_dict(c) for c in commands]})


@bp.route("/commands/<command_id>/retry", methods=["POST"])
def retry_command(command_id):
    if _gateway().commands.get(command_id) is None:
        return _error("Command not found", 404)
    command = _gateway().commands.requeue(command_id)
    return jsonify({"success": True, "data": _command_to_dict(command)}), 201


# ============================================================================
# ATTENDANCE / ENROLLMENTS
# ============================================================================

@bp.route("/attendance", methods=["GET"])
def list_attendance():
    """
    Query Parameters:
        device (str, optional): device serial number
        employee_id (str, optional): device PIN
        start, end (str, optional): ``YYYY-MM-DD HH:MM:SS`` bounds
        limit (int, optional): default 1000
    """
    args = request.args
    start = from_db(args["start"]) if args.get("start") else None
    end = from_db(args["end"]) if args.get("end") else None
    if (args.get("start") and start is None) or (args.get("end") and end is None):
        raise ValueError("start/end must be formatted as YYYY-MM-DD HH:MM:SS")

    punches = _gateway().ledger.punches(
        device_serial=args.get("device"),
        employee_id=args.get("employee_id"),
        start=start,
        end=end,
        limit=args.get("limit", 1000, type=int),
    )
    return jsonify({"success": True, "data": [punch.to_dict() for punch in punches]})


@bp.route("/employees/<pin>", methods=["GET"])
def get_employee(pin):
    enrollment = _gateway().enrollments.get(pin)
    if enrollment is None:
        return _error("Employee not found", 404)
    return jsonify({"success": True, "data": enrollment.to_dict()})
