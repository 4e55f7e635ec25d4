from dataclasses import dataclass, asdict
from typing import Optional


@dataclass
class Enrollment:
    """Biometric/card metadata merged from device fragments, keyed by device PIN"""

    biometric_employee_id: str
    user_id: Optional[str] = None  # host application user
    card_number: Optional[str] = None
    has_fingerprint: bool = False
    fingerprint_id: Optional[str] = None
    fingerprint_template: Optional[str] = None
    has_photo: bool = False
    photo: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self, include_blobs: bool = False):
        """Convert to dictionary for API responses (templates and photos omitted by default)"""
        data = asdict(self)
        if not include_blobs:
            data.pop('fingerprint_template')
            data.pop('photo')
        return data
