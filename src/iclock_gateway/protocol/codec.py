"""
Codec for the ZKTeco iClock push protocol.

Devices talk plain ASCII over HTTP:

- ``POST /iclock/cdata`` bodies are newline separated records. Attendance
  (ATTLOG) records are positional and tab separated::

      1001\t2025-01-09 15:30:00\t0\t1\t0\t0\t0

  Enrollment records start with a typed key and carry ``KEY=VALUE`` tokens::

      FP PIN=1001\tFID=6\tSize=1184\tValid=1\tTMP=TVNTUzIx...
      USER PIN=1001\tName=Jane\tPri=0\tPasswd=\tCard=3542119\tGrp=1
      BIOPHOTO PIN=1001\tFileName=1001.jpg\tSize=9304\tContent=/9j/4AAQ...

- ``POST /iclock/devicecmd`` bodies report command results as a query string::

      ID=CREATEUSER-5f1c...&Return=0&CMD=DATA

Everything here is pure: malformed input yields ``None`` (or is skipped),
it never raises towards the caller.
"""

import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Dict, List, Optional, Union
from urllib.parse import parse_qsl

import pytz

from iclock_gateway.shared.logger import app_logger


LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")
UTC_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")

FINGERPRINT = "fingerprint"
USER = "user"
PHOTO = "photo"

# Line prefix -> (sub-type, minimum number of tab separated tokens)
ENROLLMENT_PREFIXES = {
    "FP PIN=": (FINGERPRINT, 2),
    "USER PIN=": (USER, 2),
    "BIOPHOTO PIN=": (PHOTO, 2),
}

TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%d/%m/%Y %H:%M:%S",
)

HANDSHAKE_OPTIONS = (
    ("Stamp", "9999"),
    ("OpStamp", None),
    ("ErrorDelay", "60"),
    ("Delay", "30"),
    ("ResLogDay", "18250"),
    ("ResLogDelCount", "10000"),
    ("ResLogCount", "50000"),
    ("TransTimes", "00:00;14:05"),
    ("TransInterval", "1"),
    ("TransFlag", "1111000000"),
    ("TimeZone", None),
    ("Realtime", "1"),
    ("Encrypt", "0"),
)


# ============================================================================
# TYPE DEFINITIONS
# ============================================================================


@dataclass
class AttendanceLine:
    """
    One ATTLOG record.

    Format: employee_id \t timestamp \t verify \t code2 \t code3 \t code4 \t code5
    """

    employee_id: str
    timestamp: str
    verify: Optional[str] = None
    codes: List[Optional[int]] = field(default_factory=lambda: [None, None, None, None])


@dataclass
class EnrollmentFragment:
    """One FP / USER / BIOPHOTO record; ``fields`` holds the remaining KEY=VALUE tokens"""

    subtype: str
    employee_id: str
    fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class CommandResult:
    command_id: str
    return_code: str
    command: str = ""


# ============================================================================
# PUSH PAYLOADS (cdata)
# ============================================================================


def split_lines(raw: Union[bytes, str, None]) -> List[str]:
    """Split a push body on any line ending, dropping empty lines"""
    if not raw:
        return []
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return [line for line in LINE_SPLIT_RE.split(raw) if line.strip()]


def is_enrollment_payload(lines: List[str]) -> bool:
    """True when any line is an FP, USER or BIOPHOTO record"""
    return any(line.startswith(prefix) for line in lines for prefix in ENROLLMENT_PREFIXES)


def parse_enrollment_line(line: str) -> Optional[EnrollmentFragment]:
    parts = line.split("\t")
    head = parts[0]

    for prefix, (subtype, min_tokens) in ENROLLMENT_PREFIXES.items():
        if head.startswith(prefix):
            break
    else:
        return None

    if len(parts) < min_tokens:
        return None

    employee_id = head[len(prefix):].strip()
    if not employee_id:
        return None

    fields = {}
    for token in parts[1:]:
        if "=" not in token:
            continue
        key, value = token.split("=", 1)
        fields[key.strip()] = value

    return EnrollmentFragment(subtype=subtype, employee_id=employee_id, fields=fields)


def parse_enrollment_payload(lines: List[str]) -> List[EnrollmentFragment]:
    fragments = []
    for line in lines:
        fragment = parse_enrollment_line(line)
        if fragment is not None:
            fragments.append(fragment)
    return fragments


def parse_int_code(value: Optional[str]) -> Optional[int]:
    """Integer device code, or None for missing/blank/non-numeric values"""
    if value is None:
        return None
    value = value.strip()
    if not value or not value.lstrip("-").isdigit():
        return None
    return int(value)


def parse_attendance_line(line: str) -> Optional[AttendanceLine]:
    parts = line.split("\t")
    if len(parts) < 2:
        return None

    employee_id = parts[0].strip()
    if not employee_id:
        return None

    extra = parts[3:7]
    codes = [parse_int_code(value) for value in extra]
    codes.extend([None] * (4 - len(codes)))

    return AttendanceLine(
        employee_id=employee_id,
        timestamp=parts[1].strip(),
        verify=parts[2].strip() if len(parts) > 2 else None,
        codes=codes,
    )


# ============================================================================
# TIME
# ============================================================================


def resolve_timezone(name: str) -> Optional[tzinfo]:
    """IANA zone name or a fixed ``+HH:MM`` / ``-HHMM`` UTC offset"""
    match = UTC_OFFSET_RE.match((name or "").strip())
    if match:
        sign, hours, minutes = match.groups()
        offset = int(hours) * 60 + int(minutes)
        return pytz.FixedOffset(-offset if sign == "-" else offset)

    try:
        return pytz.timezone(name)
    except (pytz.UnknownTimeZoneError, AttributeError) as e:
        app_logger.error(f"[ICLOCK] Invalid timezone configuration {name!r}: {e}")
        return None


def timezone_offset_minutes(name: str, at: Optional[datetime] = None) -> int:
    """
    Current UTC offset of a zone in minutes (Asia/Kolkata -> 330, -05:00 -> -300).

    Invalid names degrade to 0.
    """
    tz = resolve_timezone(name)
    if tz is None:
        return 0

    moment = at or datetime.now(pytz.utc)
    if moment.tzinfo is None:
        moment = pytz.utc.localize(moment)
    offset = moment.astimezone(tz).utcoffset()
    return int(offset.total_seconds() // 60) if offset is not None else 0


def parse_device_timestamp(raw: Optional[str], timezone_name: str = "UTC") -> Optional[datetime]:
    """
    Parse a device timestamp into a naive wall-clock datetime in ``timezone_name``.

    Naive strings are taken as already being in the configured zone; strings
    carrying an offset are converted into it. Returns None for the literal
    zero timestamp and for anything unparsable.
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw or raw == "0":
        return None

    parsed = None
    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(raw, fmt)
            break
        except ValueError:
            continue

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is not None:
        tz = resolve_timezone(timezone_name)
        if tz is not None:
            parsed = parsed.astimezone(tz)
        parsed = parsed.replace(tzinfo=None)

    return parsed.replace(microsecond=0)


def now_in_timezone(timezone_name: str) -> datetime:
    """Server time as naive wall clock in the configured zone"""
    tz = resolve_timezone(timezone_name)
    if tz is None:
        return datetime.now().replace(microsecond=0)
    return datetime.now(tz).replace(tzinfo=None, microsecond=0)


# ============================================================================
# COMMAND RESULTS (devicecmd)
# ============================================================================


def parse_command_result(body: Union[bytes, str, None]) -> Optional[CommandResult]:
    """Decode ``ID=...&Return=...&CMD=...``; a report without an ID is ignored"""
    if not body:
        return None
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")

    flattened = body.replace("\r", "").replace("\n", "")
    params = dict(parse_qsl(flattened, keep_blank_values=True))

    command_id = params.get("ID", "").strip()
    if not command_id:
        return None

    return CommandResult(
        command_id=command_id,
        return_code=params.get("Return", "").strip(),
        command=params.get("CMD", ""),
    )


# ============================================================================
# SERVER -> DEVICE TEXT
# ============================================================================


def build_handshake(serial_number: str, offset_minutes: int, op_stamp: Optional[int] = None) -> str:
    """Option block returned on ``GET /iclock/cdata``"""
    op_stamp = int(time.time()) if op_stamp is None else op_stamp
    dynamic = {"OpStamp": str(op_stamp), "TimeZone": str(offset_minutes)}

    lines = [f"GET OPTION FROM: {serial_number}"]
    for key, value in HANDSHAKE_OPTIONS:
        lines.append(f"{key}={dynamic.get(key, value)}")
    return "\r\n".join(lines)


def new_command_id(command_type: str) -> str:
    return f"{command_type}-{uuid.uuid4().hex}"


def build_create_user_command(command_id: str, pin: str, name: str) -> str:
    return f"C:{command_id}:DATA USER PIN={pin}\tName={name}\n"


def build_query_user_command(command_id: str, pin: str) -> str:
    return f"C:{command_id}:DATA QUERY USERINFO PIN={pin}\n"


def build_delete_user_command(command_id: str, pin: str) -> str:
    return f"C:{command_id}:DATA DELETE USERINFO PIN={pin}\n"


def build_sync_time_command(command_id: str, when: datetime) -> str:
    return f"C:{command_id}:SET OPTIONS DateTime={when.strftime('%Y-%m-%d %H:%M:%S')}\n"
