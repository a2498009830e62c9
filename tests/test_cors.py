from tests.oauth_helpers import _build_relay


def test_cors_allows_configured_origin() -> None:
    client = _build_relay()["client"]

    response = client.post(
        "/oauth/token",
        json={"code": "auth-code"},
        headers={"Origin": "https://roamresearch.com"},
    )

    assert response.headers["access-control-allow-origin"] == "https://roamresearch.com"
    assert response.headers["access-control-allow-credentials"] == "true"
    assert response.headers["vary"] == "Origin"


def test_cors_blocks_unknown_origin() -> None:
    client = _build_relay()["client"]

    response = client.post(
        "/oauth/token",
        json={"code": "auth-code"},
        headers={"Origin": "https://unknown.example"},
    )

    assert "access-control-allow-origin" not in response.headers


def test_cors_request_without_origin_is_served() -> None:
    client = _build_relay()["client"]

    response = client.post("/oauth/token", json={"code": "auth-code"})

    assert response.status_code == 200
    assert "access-control-allow-origin" not in response.headers


def test_cors_wildcard_echoes_any_origin() -> None:
    client = _build_relay(allowed_origins=frozenset({"*"}))["client"]

    response = client.get(
        "/oauth/poll",
        params={"session": "s"},
        headers={"Origin": "https://anything.example"},
    )

    assert response.headers["access-control-allow-origin"] == "https://anything.example"


def test_cors_preflight_options() -> None:
    client = _build_relay()["client"]

    response = client.options(
        "/oauth/refresh",
        headers={
            "Origin": "https://roamresearch.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "https://roamresearch.com"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
