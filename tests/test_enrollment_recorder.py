import pytest

from iclock_gateway.protocol import codec


def test_fingerprint_fragment_creates_enrollment(enrollments):
    enrollment = enrollments.apply_fragment(
        "ABC123", codec.FINGERPRINT, "1001", {"FID": "6", "TMP": "TVNT"}
    )

    assert enrollment.has_fingerprint is True
    assert enrollment.fingerprint_id == "6"
    assert enrollment.fingerprint_template == "TVNT"


def test_card_after_fingerprint_keeps_fingerprint(enrollments):
    enrollments.apply_fragment("ABC123", codec.FINGERPRINT, "1001", {"FID": "6", "TMP": "TVNT"})

    enrollment = enrollments.apply_fragment("ABC123", codec.USER, "1001", {"Card": "3542119"})

    assert enrollment.card_number == "3542119"
    assert enrollment.has_fingerprint is True
    assert enrollment.fingerprint_id == "6"
    assert enrollment.fingerprint_template == "TVNT"


def test_photo_fragment_keeps_linked_user(enrollments):
    enrollments.ensure("1001", "42")

    enrollment = enrollments.apply_fragment("ABC123", codec.PHOTO, "1001", {"Content": "/9j/"})

    assert enrollment.has_photo is True
    assert enrollment.photo == "/9j/"
    assert enrollment.user_id == "42"


@pytest.mark.parametrize("subtype, fields", [
    (codec.FINGERPRINT, {"TMP": "TVNT"}),
    (codec.USER, {"Name": "Jane"}),
    (codec.PHOTO, {"FileName": "a.jpg"}),
    ("unknown", {"Card": "1"}),
])
def test_fragment_without_mandatory_field_is_dropped(enrollments, subtype, fields):
    assert enrollments.apply_fragment("ABC123", subtype, "1001", fields) is None
    assert enrollments.get("1001") is None


def test_record_lines_merges_a_whole_payload(enrollments):
    lines = codec.split_lines(
        "FP PIN=1001\tFID=1\tSize=4\tValid=1\tTMP=AAAA\n"
        "USER PIN=1001\tName=Jane\tPri=0\tPasswd=\tCard=99\tGrp=1\n"
        "USER PIN=1002\n"
        "BIOPHOTO PIN=1002\tFileName=1002.jpg\tContent=BBBB\n"
    )

    applied = enrollments.record_lines("ABC123", lines)

    assert applied == 3
    first = enrollments.get("1001")
    assert (first.card_number, first.fingerprint_id) == ("99", "1")
    assert enrollments.get("1002").has_photo is True


def test_ensure_is_idempotent(enrollments):
    enrollments.ensure("1001", "42")
    enrollments.ensure("1001", "99")

    assert enrollments.get("1001").user_id == "42"
    assert len(enrollments.list_enrollments()) == 1


def test_link_user(enrollments):
    enrollments.apply_fragment("ABC123", codec.USER, "1001", {"Card": "5"})

    enrollment = enrollments.link_user("1001", "42")

    assert enrollment.user_id == "42"
    assert enrollment.card_number == "5"


def test_blobs_are_omitted_from_dict_by_default(enrollments):
    enrollment = enrollments.apply_fragment(
        "ABC123", codec.FINGERPRINT, "1001", {"FID": "6", "TMP": "TVNT"}
    )

    assert "fingerprint_template" not in enrollment.to_dict()
    assert enrollment.to_dict(include_blobs=True)["fingerprint_template"] == "TVNT"
