"""
Development server entry point.

Usage: python run_server.py
"""

from __future__ import annotations

import uvicorn

from tasktracker.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "tasktracker.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.app_env == "development",
        reload_dirs=["tasktracker"],
        # logging is configured by create_app via structlog
        log_config=None,
    )


if __name__ == "__main__":
    main()
