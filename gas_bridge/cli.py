from __future__ import annotations

import argparse
import asyncio
import json
import re
import sys
from typing import Any, Dict, Optional, Sequence, TYPE_CHECKING

from gas_bridge.json_logger import JsonLogger, get_logger, log_event, mask_email, new_run_id

if TYPE_CHECKING:  # pragma: no cover - import cycles avoided at runtime
    from gas_bridge.config import Config

__all__ = ["main", "validate_credentials", "validate_token", "validate_timeout", "InputValidationError"]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_PASSWORD_LENGTH = 256
MAX_TOKEN_LENGTH = 5000

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2


class InputValidationError(Exception):
    """Raised when command arguments are unusable before any browser work."""


def validate_credentials(email: Optional[str], password: Optional[str]) -> str:
    trimmed = (email or "").strip()
    if not trimmed or not password:
        raise InputValidationError("Email dan password wajib diisi.")
    if not EMAIL_PATTERN.match(trimmed):
        raise InputValidationError("Format email tidak valid.")
    if len(password) > MAX_PASSWORD_LENGTH:
        raise InputValidationError("Password terlalu panjang.")
    return trimmed


def validate_token(token: Optional[str]) -> str:
    trimmed = (token or "").strip()
    if not trimmed:
        raise InputValidationError("Token wajib diisi.")
    if len(trimmed) > MAX_TOKEN_LENGTH:
        raise InputValidationError("Parameter token terlalu panjang.")
    return trimmed


def validate_timeout(timeout_ms: Optional[int], *, default: int) -> int:
    if timeout_ms is None:
        return default
    if timeout_ms <= 0:
        raise InputValidationError("Timeout harus lebih besar dari 0 ms.")
    return timeout_ms


def _emit_result(payload: Dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
    sys.stdout.flush()


async def _run_login(args: argparse.Namespace, app_config: Config, logger: JsonLogger) -> int:
    from gas_bridge.login import login_and_get_token

    email = args.email or app_config.login_email
    password = args.password or app_config.login_password
    try:
        trimmed_email = validate_credentials(email, password)
        timeout_ms = validate_timeout(args.timeout_ms, default=app_config.navigation_timeout_ms)
    except InputValidationError as exc:
        log_event(logger=logger, phase="prereq", status="error", message=str(exc))
        return EXIT_INVALID_INPUT

    result = await login_and_get_token(
        base_url=app_config.apps_script_url,
        email=trimmed_email,
        password=password,
        timeout_ms=timeout_ms,
        headless=app_config.headless if args.headless is None else args.headless,
        logger=logger,
    )
    log_event(logger=logger, phase="login", message="LOGIN_SUCCESS", email=mask_email(trimmed_email))
    _emit_result({"success": True, **result.to_dict()})
    return EXIT_OK


async def _run_dashboard(args: argparse.Namespace, app_config: Config, logger: JsonLogger) -> int:
    from gas_bridge.dashboard import fetch_dashboard_by_token

    try:
        token = validate_token(args.token)
        timeout_ms = validate_timeout(args.timeout_ms, default=app_config.navigation_timeout_ms)
    except InputValidationError as exc:
        log_event(logger=logger, phase="prereq", status="error", message=str(exc))
        return EXIT_INVALID_INPUT

    result = await fetch_dashboard_by_token(
        base_url=app_config.apps_script_url,
        token_or_url=token,
        timeout_ms=timeout_ms,
        headless=app_config.headless if args.headless is None else args.headless,
        logger=logger,
    )
    _emit_result({"success": True, **result.to_dict()})
    return EXIT_OK


async def _run_async(args: argparse.Namespace) -> int:
    from gas_bridge.browser import shared_browser, shutdown
    from gas_bridge.config import ConfigError, get_config
    from gas_bridge.errors import CoreError

    logger = get_logger(run_id=args.run_id or new_run_id())
    try:
        try:
            app_config = get_config()
        except ConfigError as exc:
            log_event(logger=logger, phase="prereq", status="error", message=str(exc))
            return EXIT_INVALID_INPUT

        shared_browser.attach_logger(logger)
        runner = _run_login if args.command == "login" else _run_dashboard
        try:
            return await runner(args, app_config, logger)
        except CoreError as exc:
            log_event(
                logger=logger,
                phase="orchestrator",
                status="error",
                message=f"{args.command} failed",
                error_code=exc.code.value,
                error=exc.message,
            )
            _emit_result({"success": False, "code": exc.code.value, "message": exc.message})
            return EXIT_FAILED
        finally:
            await shutdown()
    finally:
        logger.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gas_bridge", description="Apps Script dashboard bridge")
    parser.add_argument("--run-id", dest="run_id", type=str, default=None, help="Override generated run id")
    parser.add_argument(
        "--timeout-ms",
        dest="timeout_ms",
        type=int,
        default=None,
        help="Navigation/operation timeout (defaults to NAVIGATION_TIMEOUT_MS)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--headed", dest="headless", action="store_false", default=None, help="Show the browser window")
    mode.add_argument("--headless", dest="headless", action="store_true", default=None, help="Force headless mode")

    subparsers = parser.add_subparsers(dest="command", required=True)

    login_parser = subparsers.add_parser("login", help="Log in and print the issued token")
    login_parser.add_argument("--email", type=str, default=None, help="Defaults to LOGIN_EMAIL")
    login_parser.add_argument("--password", type=str, default=None, help="Defaults to LOGIN_PASSWORD")

    dashboard_parser = subparsers.add_parser("dashboard", help="Fetch dashboard rows for a token or tokenized URL")
    dashboard_parser.add_argument("--token", type=str, required=True, help="Raw token or full tokenized URL")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    return asyncio.run(_run_async(args))
