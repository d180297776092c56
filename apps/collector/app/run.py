"""Entry point: ``python -m apps.collector.app.run``."""

from __future__ import annotations

import os

import uvicorn


def main() -> None:  # pragma: no cover - process wiring
    uvicorn.run(
        "apps.collector.app.main:app",
        host=os.environ.get("COLLECTOR_HOST", "0.0.0.0"),
        port=int(os.environ.get("COLLECTOR_PORT", "8000")),
    )


if __name__ == "__main__":  # pragma: no cover
    main()
