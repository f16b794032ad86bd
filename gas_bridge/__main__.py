from __future__ import annotations

from gas_bridge.cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
