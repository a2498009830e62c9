from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

WILDCARD_ORIGIN = "*"


def _is_allowed_origin(origin: str | None, allowed_origins: set[str] | frozenset[str]) -> bool:
    if not origin:
        return False
    return origin in allowed_origins or WILDCARD_ORIGIN in allowed_origins


def apply_cors_response(
    request: Request,
    response: Response,
    allowed_origins: set[str] | frozenset[str],
) -> Response:
    origin = request.headers.get("origin")
    if _is_allowed_origin(origin, allowed_origins):
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Vary"] = "Origin"
    return response


def cors_preflight_response(
    request: Request, allowed_origins: set[str] | frozenset[str]
) -> Response:
    return apply_cors_response(request, Response(status_code=204), allowed_origins)


def preflight_route(path: str, allowed_origins: set[str] | frozenset[str]) -> Route:
    async def preflight(request: Request) -> Response:
        return cors_preflight_response(request, allowed_origins)

    return Route(path, preflight, methods=["OPTIONS"])


def cors_json_response(
    request: Request,
    allowed_origins: set[str] | frozenset[str],
    payload: dict,
    status_code: int = 200,
) -> Response:
    return apply_cors_response(
        request,
        JSONResponse(payload, status_code=status_code),
        allowed_origins,
    )
