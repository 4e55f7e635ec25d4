from iclock_gateway.repositories.device_repository import DeviceRepository
from iclock_gateway.repositories.enrollment_repository import EnrollmentRepository
from iclock_gateway.repositories.attendance_repository import AttendanceRepository
from iclock_gateway.repositories.command_repository import CommandRepository

# Repository instances
device_repo = DeviceRepository()
enrollment_repo = EnrollmentRepository()
attendance_repo = AttendanceRepository()
command_repo = CommandRepository()


__all__ = [
    "DeviceRepository",
    "EnrollmentRepository",
    "AttendanceRepository",
    "CommandRepository",
    "device_repo",
    "enrollment_repo",
    "attendance_repo",
    "command_repo",
]
