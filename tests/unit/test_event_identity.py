from datetime import datetime

from domains.archive.identity import (
    parse_filename_timestamp,
    resolve_identity,
    strip_postfixes,
    unmatched_identity,
)


def test_resolve_identity_subtracts_lead_in(tmp_path):
    path = tmp_path / "cam1_20230101120000.jpg"

    identity = resolve_identity(str(path))

    assert identity is not None
    assert identity.event_id == "cam1_"
    assert identity.start_time == datetime(2023, 1, 1, 11, 59, 57)
    assert identity.base_path == str(tmp_path)
    assert not identity.is_unmatched


def test_resolve_identity_keeps_inner_underscores():
    identity = resolve_identity("/aiinput/NVR_01_20210114103511.jpg", lead_in=0)

    assert identity.event_id == "NVR_01_"
    assert identity.start_time == datetime(2021, 1, 14, 10, 35, 11)


def test_resolve_identity_strips_annotation_marker():
    plain = resolve_identity("/aiinput/cam1_20230101120000.jpg")
    annotated = resolve_identity("/aiinput/cam1_att_20230101120000.jpg")

    assert annotated.event_id == plain.event_id == "cam1_"
    assert annotated.start_time == plain.start_time


def test_strip_postfixes_only_touches_tail():
    assert strip_postfixes("att_cam_", ["_att"]) == "att_cam_"
    assert strip_postfixes("cam_att_", ["_att"]) == "cam_"
    assert strip_postfixes("cam_", []) == "cam_"


def test_unparseable_names_resolve_to_none():
    assert resolve_identity("/aiinput/snapshot.jpg") is None
    assert resolve_identity("/aiinput/cam1_latest.jpg") is None
    assert resolve_identity("/aiinput/cam1_20231301120000.jpg") is None
    assert resolve_identity("/aiinput/cam1_2023010112.jpg") is None
    assert parse_filename_timestamp("cam1_20230101120000") == datetime(2023, 1, 1, 12, 0, 0)


def test_unmatched_identity_uses_file_name():
    identity = unmatched_identity("/aiinput/snapshot.jpg")

    assert identity.event_id == "snapshot.jpg"
    assert identity.start_time is None
    assert identity.is_unmatched
