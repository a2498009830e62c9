from __future__ import annotations

import re

STATE_DELIMITER = "|"

# Only the two escapes join_state produces are ever decoded, so any other
# %XX sequence in a client's state comes back exactly as it was issued.
_ESCAPES = {"%": "%25", STATE_DELIMITER: "%7C"}
_ESCAPE_PATTERN = re.compile(r"%(25|7[Cc])")


def _escape(value: str) -> str:
    return value.replace("%", _ESCAPES["%"]).replace(STATE_DELIMITER, _ESCAPES[STATE_DELIMITER])


def _unescape(value: str) -> str:
    return _ESCAPE_PATTERN.sub(
        lambda match: "%" if match.group(1) == "25" else STATE_DELIMITER,
        value,
    )


def join_state(csrf_state: str, session_id: str) -> str:
    """Build the composite ``state`` a desktop client sends to the provider.

    ``%`` and ``|`` are escaped in both halves, so the delimiter appears exactly once.
    """
    return _escape(csrf_state) + STATE_DELIMITER + _escape(session_id)


def split_state(raw: str | None) -> tuple[str, str | None]:
    """Return ``(csrf_state, session_id)``; ``session_id`` is None for plain states.

    A value with zero or several delimiters is ambiguous and is kept whole as
    the CSRF state with no session.
    """
    if not raw:
        return "", None
    if raw.count(STATE_DELIMITER) != 1:
        return raw, None

    csrf_part, session_part = raw.split(STATE_DELIMITER, 1)
    session_id = _unescape(session_part)
    if not session_id:
        return _unescape(csrf_part), None
    return _unescape(csrf_part), session_id
