"""
iClock Push Protocol API

Device-facing endpoints. Devices connect to these on their own schedule;
every response is plain text.

Endpoints:
- GET  /iclock/cdata       - Handshake (option block)
- POST /iclock/cdata       - Attendance / enrollment upload
- GET  /iclock/getrequest  - Command poll
- POST /iclock/devicecmd   - Command result report
- GET  /iclock/ping        - Keep-alive
"""

from typing import Dict, Any

from flask import Blueprint, Response, current_app, request

from iclock_gateway.services.gateway import Gateway, GatewayResponse, OK
from iclock_gateway.shared.logger import app_logger


# ============================================================================
# BLUEPRINT SETUP
# ============================================================================

bp = Blueprint("iclock", __name__)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _gateway() -> Gateway:
    return current_app.extensions["iclock_gateway"]


def _get_query_params() -> Dict[str, Any]:
    """
    Get query parameters from request as dictionary.

    Example:
        ?SN=ABC123&table=ATTLOG → {'SN': 'ABC123', 'table': 'ATTLOG'}
    """
    return request.args.to_dict()


def _serial_number() -> str:
    return request.args.get("SN", "")


def _create_text_response(result: GatewayResponse) -> Response:
    """ZKTeco devices only understand plain text bodies"""
    return Response(result.body, status=result.status, mimetype="text/plain")


# ============================================================================
# PUSH PROTOCOL ENDPOINTS (Device-facing)
# ============================================================================

@bp.route("/iclock/cdata", methods=["GET"])
def device_handshake():
    """
    Device handshake - initial connection establishment.

    Query Parameters:
        SN (str): Device serial number
        options (str, optional): Device options

    Returns:
        Response: option block starting with ``GET OPTION FROM: {SN}``,
        ``ERROR: Missing device SN`` (400) or ``Device not found`` (404)

    Example Request:
        GET /iclock/cdata?SN=ABC123456&options=all
    """
    app_logger.debug(f"[ICLOCK] Device handshake: {_get_query_params()}")
    result = _gateway().handshake(_serial_number(), request.remote_addr)
    return _create_text_response(result)


@bp.route("/iclock/cdata", methods=["POST"])
def device_data_upload():
    """
    Device data upload - punches or enrollment fragments.

    Query Parameters:
        SN (str): Device serial number
        table (str, optional): ATTLOG, OPERLOG, ...
        Stamp (str, optional): Device stamp
        timestamp (str, optional): Device clock, used for the drift check

    Example Request (ATTLOG):
        POST /iclock/cdata?SN=ABC123&table=ATTLOG&Stamp=9999

        1001\t2025-01-09 15:30:00\t0\t1\t0\t0\t0
        1002\t2025-01-09 15:31:00\t1\t15\t0\t0\t0

    Example Request (enrollment):
        POST /iclock/cdata?SN=ABC123&table=OPERLOG

        USER PIN=1001\tName=John Doe\tPri=0\tCard=3542119\tGrp=1
    """
    query_params = _get_query_params()
    raw_data = request.get_data(as_text=True)

    app_logger.debug(
        f"[ICLOCK] Data upload: table={query_params.get('table', 'UNKNOWN')}, "
        f"SN={query_params.get('SN')}, data_length={len(raw_data)}"
    )

    result = _gateway().data_push(
        _serial_number(), request.remote_addr, raw_data, query_params
    )
    return _create_text_response(result)


@bp.route("/iclock/getrequest", methods=["GET"])
def device_poll():
    """
    Command poll. Called every few seconds by the device.

    Returns:
        Response: oldest pending command text (``C:{id}:...``) or ``OK``
    """
    try:
        result = _gateway().poll(_serial_number(), request.remote_addr)
    except Exception as e:
        app_logger.error(f"[ICLOCK] Error in device_poll: {e}", exc_info=True)
        result = GatewayResponse(OK)
    return _create_text_response(result)


@bp.route("/iclock/devicecmd", methods=["POST"])
def device_command_result():
    """
    Command result report.

    Request Body:
        ID=CREATEUSER-5f1c...&Return=0&CMD=DATA

    Returns:
        Response: always ``OK``
    """
    try:
        result = _gateway().command_result(_serial_number(), request.get_data(as_text=True))
    except Exception as e:
        app_logger.error(f"[ICLOCK] Error in device_command_result: {e}", exc_info=True)
        result = GatewayResponse(OK)
    return _create_text_response(result)


@bp.route("/iclock/ping", methods=["GET"])
def device_ping():
    try:
        result = _gateway().ping(_serial_number(), request.remote_addr)
    except Exception as e:
        app_logger.error(f"[ICLOCK] Error in device_ping: {e}", exc_info=True)
        result = GatewayResponse(OK)
    return _create_text_response(result)
