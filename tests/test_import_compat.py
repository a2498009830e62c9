import server
from auth import oauth_server, session_store
from calrelay import app


EXPECTED_EXPORTS = (
    (server, ("main", "create_server_app")),
    (app, ("create_app", "RequestLogMiddleware")),
    (oauth_server, ("OAuthServer",)),
    (session_store, ("MemorySessionStore", "PendingAuthSession", "SessionStore")),
)


def test_export_surface() -> None:
    missing = [
        f"{module.__name__}.{name}"
        for module, names in EXPECTED_EXPORTS
        for name in names
        if not hasattr(module, name)
    ]
    assert missing == []
