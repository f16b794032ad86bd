import io
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

for path in (ROOT, ROOT / "tests"):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from gas_bridge import polling  # noqa: E402
from gas_bridge.json_logger import JsonLogger  # noqa: E402


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> JsonLogger:
    return JsonLogger(run_id="test-run", stream=log_stream, log_file_path=None)


@pytest.fixture
def fast_polling(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(polling, "POLL_INTERVAL_MS", 1)
