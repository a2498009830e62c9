from __future__ import annotations

import json

MESSAGE_TYPE = "oauth_callback"
CLOSE_DELAY_MS = 1000

_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
</head>
<body>
  <h1>{title}</h1>
  <p id="message">{message}</p>
  <script>
    (function () {{
      var result = {result_json};
      var targetOrigins = {origins_json};
      if (window.opener && !window.opener.closed) {{
        for (var i = 0; i < targetOrigins.length; i++) {{
          try {{
            window.opener.postMessage(result, targetOrigins[i]);
          }} catch (e) {{}}
        }}
        document.getElementById("message").textContent = "This window will close automatically.";
        setTimeout(function () {{ window.close(); }}, {close_delay_ms});
      }}
    }})();
  </script>
</body>
</html>
"""


def script_json(value) -> str:
    """JSON-encode a value so it cannot terminate the surrounding <script> element."""
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def message_target_origins(allowed_origins) -> list[str]:
    if "*" in allowed_origins:
        return ["*"]
    return sorted(allowed_origins)


def render_callback_page(
    *,
    code: str | None,
    state: str,
    error: str | None,
    allowed_origins,
) -> str:
    if error:
        title = "Authorization failed"
        message = "Authorization was not completed. You can close this window and return to the app."
    else:
        title = "Authorization complete"
        message = "You can close this window and return to the app."

    result = {"type": MESSAGE_TYPE, "code": code, "state": state, "error": error}
    return _PAGE_TEMPLATE.format(
        title=title,
        message=message,
        result_json=script_json(result),
        origins_json=script_json(message_target_origins(allowed_origins)),
        close_delay_ms=CLOSE_DELAY_MS,
    )
