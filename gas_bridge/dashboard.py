from __future__ import annotations

import contextlib
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from gas_bridge import page_selectors as sel
from gas_bridge.browser import SharedBrowserManager, shared_browser
from gas_bridge.errors import CoreError, ErrorCode, classify_driver_error
from gas_bridge.frames import describe_frame_tree, frame_containing
from gas_bridge.json_logger import JsonLogger, get_logger, log_event, timed_event
from gas_bridge.polling import wait_for_frame_path, wait_for_table_ready
from gas_bridge.urls import build_tokenized_url

__all__ = [
    "KeyedRecord",
    "PositionalRecord",
    "DashboardRecord",
    "DashboardResult",
    "as_number",
    "parse_dashboard_table",
    "fetch_dashboard_by_token",
]

DASHBOARD_SOURCE = "table"

EXTRACT_TABLE_SCRIPT = """
(selector) => {
  const body = document.querySelector(selector);
  if (!body) return null;
  const table = body.closest('table');
  const headers = table
    ? Array.from(table.querySelectorAll('thead th')).map((th) => (th.textContent || '').trim())
    : [];
  const rows = Array.from(body.querySelectorAll('tr')).map((tr) =>
    Array.from(tr.querySelectorAll('td,th')).map((cell) => (cell.textContent || '').trim())
  );
  return { headers, rows, pageText: (document.body && document.body.innerText) || '' };
}
"""


@dataclass(frozen=True)
class KeyedRecord:
    """A row whose cells line up with the header row."""

    fields: Dict[str, str]

    def to_json(self) -> Dict[str, str]:
        return dict(self.fields)


@dataclass(frozen=True)
class PositionalRecord:
    """A row whose cell count differs from the header count."""

    cells: List[str]

    def to_json(self) -> List[str]:
        return list(self.cells)


DashboardRecord = Union[KeyedRecord, PositionalRecord]


@dataclass(frozen=True)
class DashboardResult:
    user: str
    periode: str
    total_transaksi: Union[int, float]
    headers: List[str]
    data: List[DashboardRecord]
    tokenized_url: str = ""
    source: str = DASHBOARD_SOURCE
    row_count: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "row_count", len(self.data))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "user": self.user,
            "periode": self.periode,
            "totalTransaksi": self.total_transaksi,
            "rowCount": self.row_count,
            "headers": list(self.headers),
            "data": [record.to_json() for record in self.data],
            "tokenizedUrl": self.tokenized_url,
        }


def as_number(value: Any) -> Union[int, float]:
    """Parse ``"1,234,500"`` style totals; anything unparseable is 0."""

    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value if value == value and value not in (float("inf"), float("-inf")) else 0
    if not isinstance(value, str):
        return 0
    cleaned = value.replace(",", "").strip()
    if not cleaned:
        return 0
    try:
        number = float(cleaned)
    except ValueError:
        return 0
    if number != number or number in (float("inf"), float("-inf")):
        return 0
    return int(number) if number.is_integer() else number


def _find_field(pattern: re.Pattern[str], page_text: str) -> str:
    for line in page_text.splitlines():
        match = pattern.search(line)
        if match:
            return match.group(1).strip()
    return ""


def _to_record(headers: Sequence[str], cells: Sequence[str]) -> DashboardRecord:
    if headers and len(headers) == len(cells):
        return KeyedRecord(fields={header: cells[idx] or "" for idx, header in enumerate(headers)})
    return PositionalRecord(cells=list(cells))


def parse_dashboard_table(raw: Optional[Mapping[str, Any]], *, tokenized_url: str = "") -> Optional[DashboardResult]:
    """Turn the raw table read from the data frame into a ``DashboardResult``.

    Blank header cells are dropped, as are rows whose cells are all empty.
    ``user``, ``periode`` and ``totalTransaksi`` are looked up in the frame's
    visible text line by line and default to empty/zero.
    """

    if raw is None:
        return None

    headers = [str(h).strip() for h in raw.get("headers") or [] if str(h or "").strip()]
    data: List[DashboardRecord] = []
    for row in raw.get("rows") or []:
        cells = [str(cell or "").strip() for cell in row]
        if not any(cells):
            continue
        data.append(_to_record(headers, cells))

    page_text = raw.get("pageText") or ""
    return DashboardResult(
        user=_find_field(sel.USER_FIELD, page_text),
        periode=_find_field(sel.PERIODE_FIELD, page_text),
        total_transaksi=as_number(_find_field(sel.TOTAL_TRANSAKSI_FIELD, page_text)),
        headers=headers,
        data=data,
        tokenized_url=tokenized_url,
    )


async def fetch_dashboard_by_token(
    *,
    base_url: str,
    token_or_url: str,
    timeout_ms: int,
    headless: bool,
    manager: Optional[SharedBrowserManager] = None,
    logger: Optional[JsonLogger] = None,
) -> DashboardResult:
    """Open the tokenized dashboard and scrape its data table.

    Raises ``CoreError`` with ``TOKEN_INVALID`` for an empty token or when no
    frame holds the data table, ``TIMEOUT`` when a wait runs out,
    ``DASHBOARD_PARSE_FAILED`` when the table vanished mid-read and
    ``DASHBOARD_FETCH_FAILED`` for anything else.
    """

    target_url = build_tokenized_url(base_url, token_or_url)
    if not target_url:
        raise CoreError(ErrorCode.TOKEN_INVALID, "Token kosong.")

    owned_logger = logger is None
    root_logger = logger or get_logger()
    flow_logger = root_logger.bind(flow="dashboard")
    try:
        result = await _fetch(
            target_url=target_url,
            timeout_ms=timeout_ms,
            headless=headless,
            manager=manager or shared_browser,
            logger=flow_logger,
        )
    except CoreError as exc:
        log_event(
            logger=flow_logger, phase="dashboard", status="error", message=exc.message, error_code=exc.code.value
        )
        raise
    finally:
        if owned_logger:
            with contextlib.suppress(Exception):
                root_logger.close()
    return result


async def _fetch(
    *,
    target_url: str,
    timeout_ms: int,
    headless: bool,
    manager: SharedBrowserManager,
    logger: JsonLogger,
) -> DashboardResult:
    try:
        async with manager.browsing_context(headless) as context:
            page = await context.new_page()
            page.set_default_timeout(timeout_ms)
            with timed_event(logger=logger, phase="navigate", message="Opened tokenized dashboard"):
                await page.goto(target_url, wait_until="networkidle", timeout=timeout_ms)

            initial_frame = await wait_for_frame_path(
                page, sel.LOGIN_FRAME_PATH, timeout_ms=timeout_ms, require_non_blank_url=True
            )
            data_frame = await frame_containing(initial_frame, sel.DASHBOARD_TABLE_BODY)
            if data_frame is None:
                data_frame = await frame_containing(page.main_frame, sel.DASHBOARD_TABLE_BODY)
            if data_frame is None:
                log_event(
                    logger=logger,
                    phase="data_frame",
                    status="warn",
                    message="Data table not found in any frame",
                    frame_tree=describe_frame_tree(page.main_frame),
                )
                raise CoreError(
                    ErrorCode.TOKEN_INVALID,
                    f"Data table ({sel.DASHBOARD_TABLE_BODY}) tidak ditemukan. Token mungkin tidak valid.",
                )

            with timed_event(logger=logger, phase="table_ready", message="Dashboard table populated"):
                await wait_for_table_ready(data_frame, timeout_ms=timeout_ms)

            raw = await data_frame.evaluate(EXTRACT_TABLE_SCRIPT, sel.DASHBOARD_TABLE_BODY)
    except CoreError:
        raise
    except Exception as exc:
        # Includes context setup and teardown.
        raise classify_driver_error(exc, fallback=ErrorCode.DASHBOARD_FETCH_FAILED) from exc

    result = parse_dashboard_table(raw, tokenized_url=target_url)
    if result is None:
        raise CoreError(ErrorCode.DASHBOARD_PARSE_FAILED, "Gagal parsing data table dashboard.")

    log_event(
        logger=logger,
        phase="extract",
        message="Dashboard extracted",
        row_count=result.row_count,
        headers=result.headers,
    )
    return result
