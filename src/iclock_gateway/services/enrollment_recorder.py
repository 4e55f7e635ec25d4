from typing import Dict, List, Optional

from iclock_gateway.models.enrollment import Enrollment
from iclock_gateway.protocol import codec
from iclock_gateway.repositories import enrollment_repo
from iclock_gateway.shared.logger import app_logger, log_category


class EnrollmentRecorder:
    """
    Merge FP / USER / BIOPHOTO fragments into enrollment records.

    Every fragment is an upsert keyed by the device PIN that writes only the
    fields it carries, so a card fragment never wipes an earlier fingerprint.
    """

    def __init__(self, repository=None, config=None):
        self.repository = repository or enrollment_repo
        self.config = config

    def get(self, employee_id: str) -> Optional[Enrollment]:
        return self.repository.get_by_employee_id(employee_id)

    def list_enrollments(self) -> List[Enrollment]:
        return self.repository.get_all()

    def ensure(self, employee_id: str, user_id: Optional[str]) -> Enrollment:
        """Create an enrollment bound to ``user_id`` unless one already exists"""
        return self.repository.create_if_absent(employee_id, user_id)

    def link_user(self, employee_id: str, user_id: str) -> Enrollment:
        return self.repository.upsert(employee_id, {"user_id": user_id})

    def apply_fragment(self, device_serial: str, subtype: str, employee_id: str,
                       fields: Dict[str, str]) -> Optional[Enrollment]:
        """
        Apply one fragment.

        Returns:
            The merged Enrollment, or None when the fragment lacks its PIN or
            its mandatory field (FID, Card or Content).
        """
        if not employee_id:
            return None

        if subtype == codec.FINGERPRINT:
            fingerprint_id = fields.get("FID")
            if not fingerprint_id:
                return None
            updates = {"has_fingerprint": True, "fingerprint_id": fingerprint_id}
            if "TMP" in fields:
                updates["fingerprint_template"] = fields["TMP"]

        elif subtype == codec.USER:
            card_number = fields.get("Card")
            if not card_number:
                return None
            updates = {"card_number": card_number}

        elif subtype == codec.PHOTO:
            content = fields.get("Content")
            if not content:
                return None
            updates = {"has_photo": True, "photo": content}

        else:
            return None

        enrollment = self.repository.upsert(employee_id, updates)

        if log_category(self.config, "attendance_data"):
            app_logger.info(
                f"[ICLOCK] Enrollment {subtype} fragment for PIN={employee_id} "
                f"from device {device_serial} merged ({', '.join(sorted(updates))})"
            )
        return enrollment

    def record_lines(self, device_serial: str, lines: List[str]) -> int:
        """Apply every enrollment line of a push body; returns the number applied"""
        applied = 0
        for fragment in codec.parse_enrollment_payload(lines):
            try:
                if self.apply_fragment(
                    device_serial, fragment.subtype, fragment.employee_id, fragment.fields
                ):
                    applied += 1
            except Exception as e:
                # Only this fragment is lost
                app_logger.error(
                    f"[ICLOCK] Failed to store {fragment.subtype} fragment for "
                    f"PIN={fragment.employee_id}: {e}"
                )
        return applied
