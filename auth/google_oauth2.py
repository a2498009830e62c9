from __future__ import annotations

from dataclasses import dataclass

import httpx

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
POSTMESSAGE_REDIRECT_URI = "postmessage"


class UpstreamOAuthError(RuntimeError):
    """The token endpoint answered with an OAuth error body."""

    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(f"{error}: {description or 'no description'}")
        self.error = error
        self.description = description


class TokenRequestError(RuntimeError):
    """The token endpoint could not be reached or returned something unusable."""


@dataclass
class TokenResponse:
    access_token: str
    expires_in: int | None
    token_type: str | None
    scope: str | None
    refresh_token: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "TokenResponse":
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenRequestError("Token response missing access_token.")

        refresh_token = payload.get("refresh_token")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise TokenRequestError("Token response refresh_token must be a string.")

        return cls(
            access_token=access_token,
            expires_in=payload.get("expires_in"),
            token_type=payload.get("token_type"),
            scope=payload.get("scope"),
            refresh_token=refresh_token,
        )

    def to_payload(self, *, include_refresh_token: bool = True) -> dict:
        payload = {"access_token": self.access_token}
        if include_refresh_token and self.refresh_token is not None:
            payload["refresh_token"] = self.refresh_token
        for key in ("expires_in", "token_type", "scope"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


async def _token_request(
    payload: dict[str, str],
    *,
    client: httpx.AsyncClient | None = None,
    token_url: str = GOOGLE_TOKEN_URL,
) -> TokenResponse:
    own_client = client is None
    http_client = client or httpx.AsyncClient(timeout=10.0)

    try:
        response = await http_client.post(
            token_url,
            data=payload,
            headers={"Accept": "application/json"},
        )
    except httpx.HTTPError as error:
        raise TokenRequestError(f"Token request failed: {error!r}") from error
    finally:
        if own_client:
            await http_client.aclose()

    try:
        data = response.json()
    except ValueError as error:
        raise TokenRequestError(
            f"Token endpoint returned non-JSON body with status {response.status_code}."
        ) from error

    if not isinstance(data, dict):
        raise TokenRequestError("Token endpoint returned a non-object JSON body.")

    if data.get("error"):
        raise UpstreamOAuthError(str(data["error"]), data.get("error_description"))

    if response.is_error:
        raise TokenRequestError(
            f"Token request failed with status {response.status_code}: {response.text}"
        )

    return TokenResponse.from_payload(data)


async def exchange_code(
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str = POSTMESSAGE_REDIRECT_URI,
    *,
    client: httpx.AsyncClient | None = None,
    token_url: str = GOOGLE_TOKEN_URL,
) -> TokenResponse:
    return await _token_request(
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        },
        client=client,
        token_url=token_url,
    )


async def refresh_token(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    *,
    client: httpx.AsyncClient | None = None,
    token_url: str = GOOGLE_TOKEN_URL,
) -> TokenResponse:
    return await _token_request(
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        client=client,
        token_url=token_url,
    )
