import urllib.parse

import httpx
from starlette.testclient import TestClient

from auth.google_oauth2 import GOOGLE_TOKEN_URL
from calrelay.app import create_app
from tests.oauth_helpers import _build_settings


def _form(request: httpx.Request) -> dict[str, str]:
    return dict(urllib.parse.parse_qsl(request.content.decode()))


def test_token_exchange_through_upstream_client(httpx_mock) -> None:
    httpx_mock.add_response(
        url=GOOGLE_TOKEN_URL,
        method="POST",
        json={
            "access_token": "a",
            "refresh_token": "r",
            "expires_in": 3599,
            "token_type": "Bearer",
            "scope": "cal",
            "id_token": "not-relayed",
        },
    )

    with TestClient(create_app(_build_settings())) as client:
        response = client.post("/oauth/token", json={"code": "auth-code"})

    assert response.status_code == 200
    assert response.json() == {
        "access_token": "a",
        "refresh_token": "r",
        "expires_in": 3599,
        "token_type": "Bearer",
        "scope": "cal",
    }
    assert _form(httpx_mock.get_request()) == {
        "client_id": "google-client",
        "client_secret": "google-secret",
        "code": "auth-code",
        "grant_type": "authorization_code",
        "redirect_uri": "postmessage",
    }


def test_token_exchange_missing_code_sends_nothing_upstream(httpx_mock) -> None:
    with TestClient(create_app(_build_settings())) as client:
        response = client.post("/oauth/token", json={})

    assert response.status_code == 400
    assert httpx_mock.get_requests() == []


def test_token_exchange_timeout_is_server_error(httpx_mock) -> None:
    httpx_mock.add_exception(httpx.ReadTimeout("upstream too slow"), url=GOOGLE_TOKEN_URL)

    with TestClient(create_app(_build_settings())) as client:
        response = client.post("/oauth/token", json={"code": "auth-code"})

    assert response.status_code == 500
    assert response.json() == {"error": "Token exchange failed"}


def test_token_exchange_non_json_body_is_server_error(httpx_mock) -> None:
    httpx_mock.add_response(url=GOOGLE_TOKEN_URL, method="POST", text="<html>oops</html>")

    with TestClient(create_app(_build_settings())) as client:
        response = client.post("/oauth/token", json={"code": "auth-code"})

    assert response.status_code == 500
    assert response.json() == {"error": "Token exchange failed"}


def test_token_exchange_rejection_through_upstream_client(httpx_mock) -> None:
    httpx_mock.add_response(
        url=GOOGLE_TOKEN_URL,
        method="POST",
        status_code=400,
        json={"error": "invalid_grant", "error_description": "Bad code"},
    )

    with TestClient(create_app(_build_settings())) as client:
        response = client.post("/oauth/token", json={"code": "reused"})

    assert response.status_code == 400
    assert response.json() == {"error": "invalid_grant", "description": "Bad code"}
    assert len(httpx_mock.get_requests()) == 1


def test_refresh_through_upstream_client_drops_rotated_token(httpx_mock) -> None:
    httpx_mock.add_response(
        url=GOOGLE_TOKEN_URL,
        method="POST",
        json={
            "access_token": "a2",
            "refresh_token": "r2",
            "expires_in": 3599,
            "token_type": "Bearer",
            "scope": "cal",
        },
    )

    with TestClient(create_app(_build_settings())) as client:
        response = client.post("/oauth/refresh", json={"refresh_token": "r"})

    assert response.status_code == 200
    assert "refresh_token" not in response.json()
    assert _form(httpx_mock.get_request())["grant_type"] == "refresh_token"


def test_refresh_non_json_body_is_server_error(httpx_mock) -> None:
    httpx_mock.add_response(url=GOOGLE_TOKEN_URL, method="POST", text="not json")

    with TestClient(create_app(_build_settings())) as client:
        response = client.post("/oauth/refresh", json={"refresh_token": "r"})

    assert response.status_code == 500
    assert response.json() == {"error": "Token refresh failed"}
