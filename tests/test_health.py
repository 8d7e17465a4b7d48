# tests/test_health.py
from fastapi import status


def test_health_check(client) -> None:
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_root_describes_api(client, test_settings) -> None:
    response = client.get("/")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["name"] == "UrbanFix API"
    assert response.json()["version"] == test_settings.app_version
