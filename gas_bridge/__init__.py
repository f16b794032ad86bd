"""Browser automation bridge for the Apps Script login and dashboard pages."""

from typing import Any

__all__ = ["login_and_get_token", "fetch_dashboard_by_token", "shutdown", "CoreError", "ErrorCode"]


def __getattr__(name: str) -> Any:
    if name == "login_and_get_token":
        from gas_bridge.login import login_and_get_token as _login_and_get_token

        return _login_and_get_token
    if name == "fetch_dashboard_by_token":
        from gas_bridge.dashboard import fetch_dashboard_by_token as _fetch_dashboard_by_token

        return _fetch_dashboard_by_token
    if name == "shutdown":
        from gas_bridge.browser import shutdown as _shutdown

        return _shutdown
    if name in {"CoreError", "ErrorCode"}:
        from gas_bridge import errors

        return getattr(errors, name)
    raise AttributeError(name)
