import io
import json
from datetime import datetime, timezone

import pytest

from gas_bridge import browser as browser_module
from gas_bridge import cli
from gas_bridge import config as config_module
from gas_bridge import dashboard as dashboard_module
from gas_bridge import login as login_module
from gas_bridge.config import Config, ConfigError
from gas_bridge.dashboard import DashboardResult, KeyedRecord
from gas_bridge.errors import CoreError, ErrorCode
from gas_bridge.json_logger import JsonLogger
from gas_bridge.login import LoginResult

BASE_URL = "https://script.google.com/macros/s/abc/exec"


@pytest.fixture
def cli_env(monkeypatch):
    observed: dict[str, object] = {"shutdown_calls": 0, "log": io.StringIO()}

    async def fake_shutdown() -> None:
        observed["shutdown_calls"] += 1

    monkeypatch.setattr(browser_module, "shutdown", fake_shutdown)
    monkeypatch.setattr(
        config_module,
        "get_config",
        lambda: Config(
            apps_script_url=BASE_URL,
            headless=True,
            navigation_timeout_ms=45_000,
            login_email="env@example.com",
            login_password="env-secret",
        ),
    )
    monkeypatch.setattr(
        cli,
        "get_logger",
        lambda run_id: JsonLogger(run_id=run_id, stream=observed["log"], log_file_path=None),
    )
    return observed


def test_login_prints_result_json(monkeypatch, capsys, cli_env):
    expires_at = datetime(2024, 1, 1, 3, 0, tzinfo=timezone.utc)

    async def fake_login(**kwargs):
        cli_env["login_kwargs"] = kwargs
        return LoginResult(tokenized_url=f"{BASE_URL}?token=tok", token="tok", expires_at=expires_at)

    monkeypatch.setattr(login_module, "login_and_get_token", fake_login)

    exit_code = cli.main(["--run-id", "run-test", "--headed", "login", "--email", " kasir@example.com "])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == {
        "success": True,
        "tokenizedUrl": f"{BASE_URL}?token=tok",
        "token": "tok",
        "expiresAt": "2024-01-01T03:00:00+00:00",
    }
    kwargs = cli_env["login_kwargs"]
    assert kwargs["email"] == "kasir@example.com"
    assert kwargs["password"] == "env-secret"
    assert kwargs["headless"] is False
    assert kwargs["timeout_ms"] == 45_000
    assert cli_env["shutdown_calls"] == 1
    assert "env-secret" not in cli_env["log"].getvalue()


@pytest.mark.parametrize(
    "argv",
    [
        ["login", "--email", "not-an-email", "--password", "x"],
        ["login", "--email", "kasir@example.com", "--password", "x" * 257],
        ["dashboard", "--token", "   "],
        ["dashboard", "--token", "t" * 5001],
        ["--timeout-ms", "0", "dashboard", "--token", "tok"],
        ["--timeout-ms", "-5", "login", "--email", "kasir@example.com", "--password", "x"],
    ],
)
def test_invalid_input_exits_with_status_2(monkeypatch, capsys, cli_env, argv):
    async def unexpected(**kwargs):
        raise AssertionError("flow must not run on invalid input")

    monkeypatch.setattr(login_module, "login_and_get_token", unexpected)
    monkeypatch.setattr(dashboard_module, "fetch_dashboard_by_token", unexpected)

    assert cli.main(argv) == 2
    assert capsys.readouterr().out == ""
    assert cli_env["shutdown_calls"] == 1


def test_core_error_exits_with_status_1(monkeypatch, capsys, cli_env):
    async def fake_fetch(**kwargs):
        raise CoreError(ErrorCode.TOKEN_INVALID, "Token kosong.")

    monkeypatch.setattr(dashboard_module, "fetch_dashboard_by_token", fake_fetch)

    assert cli.main(["dashboard", "--token", "tok"]) == 1
    assert json.loads(capsys.readouterr().out) == {
        "success": False,
        "code": "TOKEN_INVALID",
        "message": "Token kosong.",
    }
    events = [json.loads(line) for line in cli_env["log"].getvalue().splitlines()]
    assert events[-1]["error_code"] == "TOKEN_INVALID"
    assert cli_env["shutdown_calls"] == 1


def test_dashboard_prints_result_json(monkeypatch, capsys, cli_env):
    async def fake_fetch(**kwargs):
        cli_env["fetch_kwargs"] = kwargs
        return DashboardResult(
            user="Budi",
            periode="Januari 2024",
            total_transaksi=10,
            headers=["No"],
            data=[KeyedRecord(fields={"No": "1"})],
            tokenized_url=f"{BASE_URL}?token=tok",
        )

    monkeypatch.setattr(dashboard_module, "fetch_dashboard_by_token", fake_fetch)

    assert cli.main(["--timeout-ms", "5000", "dashboard", "--token", " tok "]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["success"] is True
    assert payload["rowCount"] == 1
    assert payload["data"] == [{"No": "1"}]
    assert cli_env["fetch_kwargs"]["token_or_url"] == "tok"
    assert cli_env["fetch_kwargs"]["timeout_ms"] == 5000
    assert cli_env["fetch_kwargs"]["headless"] is True


def test_config_error_exits_with_status_2(monkeypatch, capsys, cli_env):
    def broken_config():
        raise ConfigError("Missing required environment variable: APPS_SCRIPT_URL")

    monkeypatch.setattr(config_module, "get_config", broken_config)

    assert cli.main(["dashboard", "--token", "tok"]) == 2
    assert capsys.readouterr().out == ""


def test_main_rejects_conflicting_display_flags():
    with pytest.raises(SystemExit):
        cli.main(["--headed", "--headless", "dashboard", "--token", "tok"])

    with pytest.raises(SystemExit):
        cli.main(["dashboard"])


@pytest.mark.parametrize("value, expected", [(None, 60_000), (1, 1), (15_000, 15_000)])
def test_validate_timeout_accepts_positive_values(value, expected):
    assert cli.validate_timeout(value, default=60_000) == expected


@pytest.mark.parametrize("value", [0, -1])
def test_validate_timeout_rejects_non_positive_values(value):
    with pytest.raises(cli.InputValidationError):
        cli.validate_timeout(value, default=60_000)
