"""
VinScan — Demo Launcher

Starts the FastAPI backend and opens the interactive API docs, where an
image can be uploaded to /api/v1/scans and routed through lookup and
decision.

Usage:
  python run_demo.py
"""

import os
import subprocess
import sys
import threading
import time
import webbrowser

from vinscan.config import get_settings


def run_backend(host: str, port: int) -> None:
    print("🚀 Starting VinScan Backend (FastAPI)...")
    subprocess.run(
        [sys.executable, "-m", "uvicorn", "vinscan.services.main:app", "--host", host, "--port", str(port)],
        env=os.environ.copy(),
    )


if __name__ == "__main__":
    settings = get_settings()
    threading.Thread(target=run_backend, args=(settings.api_host, settings.api_port), daemon=True).start()

    docs_url = f"http://localhost:{settings.api_port}/docs"
    print("\n" + "=" * 50)
    print("✅ VinScan Started!")
    print("=" * 50)
    print(f"Backend API:  {docs_url}")
    print("Seed data:    python populate_inventory.py")
    print("Press Ctrl+C to stop.\n")

    # Wait for the server to bind before opening the docs
    time.sleep(2)
    webbrowser.open(docs_url)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nShutting down VinScan...")
        sys.exit(0)
