from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from gas_bridge import page_selectors as sel
from gas_bridge.browser import SharedBrowserManager, shared_browser
from gas_bridge.errors import CoreError, ErrorCode, classify_driver_error
from gas_bridge.json_logger import JsonLogger, get_logger, log_event, mask_email, timed_event
from gas_bridge.polling import wait_for_frame_path, wait_for_token_or_error
from gas_bridge.urls import extract_token_param

__all__ = ["SESSION_TTL", "FIELD_WAIT_TIMEOUT_MS", "LoginResult", "login_and_get_token"]

# Client-side convention; the Apps Script app does not report a lifetime.
SESSION_TTL = timedelta(hours=3)
FIELD_WAIT_TIMEOUT_MS = 10_000


@dataclass(frozen=True)
class LoginResult:
    tokenized_url: str
    token: str
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokenizedUrl": self.tokenized_url,
            "token": self.token,
            "expiresAt": self.expires_at.isoformat(),
        }


async def login_and_get_token(
    *,
    base_url: str,
    email: str,
    password: str,
    timeout_ms: int,
    headless: bool,
    manager: Optional[SharedBrowserManager] = None,
    logger: Optional[JsonLogger] = None,
) -> LoginResult:
    """Log in through the sandboxed login form and return the issued token.

    Raises ``CoreError`` with ``LOGIN_INVALID_CREDENTIALS`` when the form shows
    its error message, ``TIMEOUT`` when a wait runs out, and ``LOGIN_FAILED``
    for anything else. The browsing context is closed on every path.
    """

    owned_logger = logger is None
    root_logger = logger or get_logger()
    flow_logger = root_logger.bind(flow="login", email=mask_email(email))
    try:
        result = await _login(
            base_url=base_url,
            email=email,
            password=password,
            timeout_ms=timeout_ms,
            headless=headless,
            manager=manager or shared_browser,
            logger=flow_logger,
        )
    except CoreError as exc:
        log_event(logger=flow_logger, phase="login", status="error", message=exc.message, error_code=exc.code.value)
        raise
    finally:
        if owned_logger:
            with contextlib.suppress(Exception):
                root_logger.close()
    return result


async def _login(
    *,
    base_url: str,
    email: str,
    password: str,
    timeout_ms: int,
    headless: bool,
    manager: SharedBrowserManager,
    logger: JsonLogger,
) -> LoginResult:
    try:
        async with manager.browsing_context(headless) as context:
            page = await context.new_page()
            page.set_default_timeout(timeout_ms)
            with timed_event(logger=logger, phase="navigate", message="Opened login page"):
                await page.goto(base_url, wait_until="domcontentloaded", timeout=timeout_ms)

            with timed_event(logger=logger, phase="login_frame", message="Located login frame"):
                login_frame = await wait_for_frame_path(
                    page, sel.LOGIN_FRAME_PATH, timeout_ms=timeout_ms, require_non_blank_url=True
                )

            await login_frame.wait_for_selector(sel.LOGIN_EMAIL, timeout=FIELD_WAIT_TIMEOUT_MS)
            await login_frame.wait_for_selector(sel.LOGIN_PASSWORD, timeout=FIELD_WAIT_TIMEOUT_MS)
            await login_frame.fill(sel.LOGIN_EMAIL, email.strip())
            await login_frame.fill(sel.LOGIN_PASSWORD, password)

            with timed_event(logger=logger, phase="submit", message="Submitted login form"):
                await asyncio.gather(
                    page.wait_for_load_state("networkidle", timeout=timeout_ms),
                    login_frame.click(sel.LOGIN_SUBMIT),
                )

            with timed_event(logger=logger, phase="resolve", message="Login frame resolved"):
                token_frame = await wait_for_token_or_error(page, timeout_ms=timeout_ms)

            tokenized_url = token_frame.url
    except CoreError:
        raise
    except Exception as exc:
        # Includes context setup and teardown.
        raise classify_driver_error(exc, fallback=ErrorCode.LOGIN_FAILED) from exc

    token = extract_token_param(tokenized_url)
    if not token:
        raise CoreError(
            ErrorCode.LOGIN_FAILED,
            "Login berhasil, tetapi token tidak ditemukan pada URL hasil login.",
        )

    expires_at = datetime.now(timezone.utc) + SESSION_TTL
    log_event(logger=logger, phase="login", message="Login succeeded", expires_at=expires_at)
    return LoginResult(tokenized_url=tokenized_url, token=token, expires_at=expires_at)
