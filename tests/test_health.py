# tests/test_health.py
from http import HTTPStatus

from attendance_monitor.core.config import get_settings


def test_health_endpoint_ok(client):
    """
    /health should respond with 200 OK and the expected JSON shape.
    """
    response = client.get("/health")

    assert response.status_code == HTTPStatus.OK
    data = response.json()

    assert data["status"] == "ok"
    assert isinstance(data["app_name"], str)
    assert isinstance(data["environment"], str)
    assert "timestamp_utc" in data


def test_health_reports_default_course_name(client):
    response = client.get("/health")

    assert response.status_code == HTTPStatus.OK
    assert response.json()["default_course_name"] == get_settings().DEFAULT_COURSE_NAME
