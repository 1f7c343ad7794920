"""
Launcher for the replication tracker processes.

    replication-tracker [server|ui|both]

``server`` (the default) serves the HTTP API on ``API_HOST:API_PORT``,
``ui`` serves the admin statistics dashboard on ``DASHBOARD_PORT`` and
``both`` runs the API in a daemon thread beside the dashboard.
"""

from __future__ import annotations

import subprocess
import sys
import threading
import time
from pathlib import Path

from replication_app.backend.config import (
    configure_logging,
    get_api_host,
    get_api_port,
    get_dashboard_port,
)

USAGE = "Usage: replication-tracker [server|ui|both]"


def run_server() -> None:
    """Serve the HTTP API until interrupted."""
    from replication_app.backend import api_server
    api_server.run(host=get_api_host(), port=get_api_port())


def run_ui() -> None:
    """Serve the statistics dashboard through the ``streamlit`` CLI."""
    dashboard = Path(__file__).parent / "app.py"
    subprocess.run([
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(dashboard),
        "--server.port",
        str(get_dashboard_port()),
        "--server.address",
        "0.0.0.0",
    ])


def run_both() -> None:
    api_thread = threading.Thread(target=run_server, daemon=True)
    api_thread.start()
    # let uvicorn bind its port before streamlit takes over the terminal
    time.sleep(2)
    run_ui()


COMMANDS = {
    "server": run_server,
    "ui": run_ui,
    "both": run_both,
}


def main() -> None:
    """``replication-tracker`` console script."""
    configure_logging()
    args = sys.argv[1:]
    command = args[0].lower() if args else "server"
    runner = COMMANDS.get(command)
    if runner is None:
        print(f"Unknown command: {command}")
        print(USAGE)
        sys.exit(1)
    runner()


if __name__ == "__main__":
    main()
