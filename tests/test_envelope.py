from __future__ import annotations

from analytics.envelope import unwrap


def test_summary_and_categories_paths():
    body = {"success": True, "data": {"summary": {"totalRequests": 9}, "categories": ["a"]}}
    assert unwrap("summary", body) == {"totalRequests": 9}
    assert unwrap("categoriesAnalytics", body) == ["a"]


def test_status_flag_also_marks_an_envelope():
    body = {"status": True, "data": [{"name": "x"}]}
    assert unwrap("smartLinks", body) == [{"name": "x"}]


def test_qr_prefers_qr_data_then_data():
    assert unwrap("qrAnalytics", {"success": True, "data": {"qrData": {"qr_scan_count": 3}}}) == {"qr_scan_count": 3}
    assert unwrap("qrAnalytics", {"success": True, "data": {"qr_scan_count": 4}}) == {"qr_scan_count": 4}


def test_unrecognised_shapes_fall_back_to_raw_body():
    raw = {"analytics": [1, 2]}
    assert unwrap("completeAnalytics", raw) is raw
    assert unwrap("completeAnalytics", [1, 2]) == [1, 2]
    assert unwrap("summary", "text") == "text"

    no_path = {"success": True, "data": {"other": 1}}
    assert unwrap("summary", no_path) is no_path


def test_failed_envelope_is_returned_verbatim():
    body = {"success": False, "message": "nope"}
    assert unwrap("summary", body) is body
