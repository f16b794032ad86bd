"""Bounded polling of DOM and frame state.

Nothing inside the sandboxed frames can be observed through events, so every
wait in the login and dashboard flows samples state on a fixed tick until a
probe reports ready, reports a definitive failure, or the deadline passes.
"""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Mapping, Optional, Sequence, TypeVar

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Frame, Page

from gas_bridge import page_selectors as sel
from gas_bridge.errors import CoreError, ErrorCode
from gas_bridge.frames import frame_by_path

__all__ = [
    "POLL_INTERVAL_MS",
    "Outcome",
    "Probe",
    "TableState",
    "poll_until",
    "wait_for_frame_path",
    "wait_for_token_or_error",
    "wait_for_table_ready",
    "classify_table_snapshot",
    "login_error_visible",
]

POLL_INTERVAL_MS = 300
FRAME_DETACHED = "FRAME_DETACHED"

T = TypeVar("T")

LOGIN_ERROR_SCRIPT = """
(selector) => {
  const el = document.querySelector(selector);
  if (!el) return { found: false };
  const style = window.getComputedStyle(el);
  return {
    found: true,
    display: style.display,
    visibility: style.visibility,
    opacity: style.opacity,
    text: (el.textContent || '').trim(),
  };
}
"""

TABLE_SNAPSHOT_SCRIPT = """
(selector) => {
  const body = document.querySelector(selector);
  if (!body) return null;
  const rows = Array.from(body.querySelectorAll('tr')).map((tr) =>
    Array.from(tr.querySelectorAll('td,th')).map((cell) => (cell.textContent || '').trim())
  );
  return { text: body.textContent || '', rows };
}
"""


class Outcome(str, Enum):
    WAITING = "waiting"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class Probe(Generic[T]):
    """One sample of polled state: keep waiting, succeed with a value, or fail."""

    outcome: Outcome
    value: Optional[T] = None
    state: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def waiting(cls, state: str) -> "Probe[Any]":
        return cls(outcome=Outcome.WAITING, state=state)

    @classmethod
    def ready(cls, value: T) -> "Probe[T]":
        return cls(outcome=Outcome.READY, value=value)

    @classmethod
    def failed(cls, error: BaseException) -> "Probe[Any]":
        return cls(outcome=Outcome.FAILED, error=error)


async def poll_until(
    probe: Callable[[], Awaitable[Probe[T]]],
    *,
    timeout_ms: int,
    timeout_message: str,
    interval_ms: int | None = None,
) -> T:
    """Sample ``probe`` every ``interval_ms`` until it is ready or fails.

    Raises ``CoreError(TIMEOUT)`` carrying the last waiting state once
    ``timeout_ms`` has elapsed. The probe always runs at least once.
    """

    interval = POLL_INTERVAL_MS if interval_ms is None else interval_ms
    loop = asyncio.get_event_loop()
    deadline = loop.time() + (timeout_ms / 1000)
    last_state = "unknown"

    while True:
        result = await probe()
        if result.outcome is Outcome.READY:
            return result.value  # type: ignore[return-value]
        if result.outcome is Outcome.FAILED:
            raise result.error  # type: ignore[misc]
        last_state = result.state or last_state
        if loop.time() >= deadline:
            break
        await asyncio.sleep(interval / 1000)

    raise CoreError(ErrorCode.TIMEOUT, f"{timeout_message} {last_state}")


def _is_detached(exc: PlaywrightError) -> bool:
    message = str(exc).lower()
    return "execution context was destroyed" in message or "detached" in message


async def wait_for_frame_path(
    page: Page,
    names: Sequence[str],
    *,
    timeout_ms: int,
    require_non_blank_url: bool = False,
) -> Frame:
    path_label = " > ".join(names)

    async def _probe() -> Probe[Frame]:
        frame = frame_by_path(page, names)
        frame_url = frame.url if frame is not None else "(not-found)"
        if frame is not None and (not require_non_blank_url or (frame_url and frame_url != sel.BLANK_FRAME_URL)):
            return Probe.ready(frame)
        return Probe.waiting(f"path={path_label}, url={frame_url}")

    return await poll_until(_probe, timeout_ms=timeout_ms, timeout_message="Timeout menunggu frame path.")


def login_error_visible(state: Mapping[str, Any] | None) -> bool:
    if not state or not state.get("found"):
        return False
    return (
        state.get("display") != "none"
        and state.get("visibility") != "hidden"
        and str(state.get("opacity")) != "0"
        and bool((state.get("text") or "").strip())
    )


async def wait_for_token_or_error(page: Page, *, timeout_ms: int) -> Frame:
    """Wait for the login frame to carry a token, failing fast on a visible login error."""

    last_url = ""

    async def _probe() -> Probe[Frame]:
        nonlocal last_url
        frame = frame_by_path(page, sel.LOGIN_FRAME_PATH)
        if frame is None:
            return Probe.waiting(last_url or "(kosong)")

        url = frame.url
        last_url = url
        if url and "token=" in url:
            return Probe.ready(frame)

        try:
            error_state = await frame.evaluate(LOGIN_ERROR_SCRIPT, sel.LOGIN_ERROR)
        except PlaywrightError as exc:
            if _is_detached(exc):
                return Probe.waiting(last_url or "(kosong)")
            raise
        if login_error_visible(error_state):
            text = (error_state.get("text") or "").strip()
            return Probe.failed(
                CoreError(ErrorCode.LOGIN_INVALID_CREDENTIALS, text or sel.LOGIN_ERROR_DEFAULT_TEXT)
            )
        return Probe.waiting(last_url or "(kosong)")

    return await poll_until(
        _probe,
        timeout_ms=timeout_ms,
        timeout_message="Timeout menunggu URL token pada stack ke-3 atau pesan login error. URL terakhir:",
    )


class TableState(str, Enum):
    TABLE_BODY_NOT_FOUND = "TABLE_BODY_NOT_FOUND"
    LOADING_PLACEHOLDER = "LOADING_PLACEHOLDER"
    ROWS_EMPTY = "ROWS_EMPTY"
    READY = "READY"


def classify_table_snapshot(snapshot: Mapping[str, Any] | None) -> TableState:
    if snapshot is None:
        return TableState.TABLE_BODY_NOT_FOUND

    text = re.sub(r"\s+", " ", snapshot.get("text") or "").strip()
    if sel.LOADING_PLACEHOLDER.match(text):
        return TableState.LOADING_PLACEHOLDER

    rows = snapshot.get("rows") or []
    if not any(any((cell or "").strip() for cell in row) for row in rows):
        return TableState.ROWS_EMPTY
    return TableState.READY


async def wait_for_table_ready(frame: Frame, *, timeout_ms: int) -> TableState:
    async def _probe() -> Probe[TableState]:
        try:
            snapshot = await frame.evaluate(TABLE_SNAPSHOT_SCRIPT, sel.DASHBOARD_TABLE_BODY)
        except PlaywrightError as exc:
            if _is_detached(exc):
                return Probe.waiting(FRAME_DETACHED)
            raise
        state = classify_table_snapshot(snapshot)
        if state is TableState.READY:
            return Probe.ready(state)
        return Probe.waiting(state.value)

    return await poll_until(
        _probe,
        timeout_ms=timeout_ms,
        timeout_message="Timeout menunggu data dashboard siap. State terakhir:",
    )
