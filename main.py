"""
main.py: Console launcher and entry point.

Run this file to start the hostel portal console and open it automatically:

    python main.py

The console will open at http://127.0.0.1:8501 (see HOSTEL_DASHBOARD_HOST /
HOSTEL_DASHBOARD_PORT).

This file does NOT contain application logic. See hostel_portal/portal.py for
the client wiring and dashboard/app.py for the Streamlit pages.

Direct streamlit usage (without browser auto-open):
    streamlit run dashboard/app.py
"""

from __future__ import annotations

import subprocess
import sys
import threading
import time
import webbrowser
from pathlib import Path

from hostel_portal.utils.config import get_settings


DASHBOARD_SCRIPT = Path(__file__).resolve().parent / "dashboard" / "app.py"


def _open_browser_after_startup(url: str, delay_seconds: float = 2.0) -> None:
    """
    Open the console in the default browser after a short delay.

    The delay allows streamlit to bind its port before the browser hits it.
    """
    time.sleep(delay_seconds)
    print(f"\n  Opening console → {url}\n")
    webbrowser.open(url)


def main() -> int:
    """Start the Streamlit console and open it in the browser."""
    settings = get_settings()
    url = f"http://{settings.dashboard_host}:{settings.dashboard_port}"

    print("=" * 60)
    print(f"  {settings.app_name} v{settings.app_version}")
    print("=" * 60)
    print(f"  Console : {url}")
    print(f"  API     : {settings.api_base_url}")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    browser_thread = threading.Thread(
        target=_open_browser_after_startup,
        args=(url,),
        daemon=True,
    )
    browser_thread.start()

    command = [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(DASHBOARD_SCRIPT),
        "--server.address",
        settings.dashboard_host,
        "--server.port",
        str(settings.dashboard_port),
        "--server.headless",
        "true",
    ]
    try:
        return subprocess.call(command)
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
