"""
VinScan — Demo Inventory Populator

Pushes a handful of typed VINs through the running API
(manual scan → lookup → decision) so the inventory has data to match against.

Usage:
  python run_demo.py            # in another terminal
  python populate_inventory.py
"""

import time

import requests

API = "http://localhost:8000"

DEMO_VINS = [
    ("HONDA ACCORD 1HGCM82633A004352", "ADD_TO_INVENTORY"),
    ("VOYAH FREE 2024 WHITE LVGBE5AM1PY123456", "ADD_TO_NEW_ARRIVALS"),
    ("TESLA MODEL 3 5YJ3E1EA2KF317000", "ADD_TO_INVENTORY"),
    ("1M8GDM9AXKP042788", "ADD_TO_NEW_ARRIVALS"),
]


def post(url, payload=None):
    try:
        response = requests.post(f"{API}{url}", json=payload, timeout=10.0)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        print(f"Failed POST {url}: {e}")
        return None


print("--- VinScan Demo Data Populator ---")

for text, decision in DEMO_VINS:
    scan = post("/api/v1/scans/manual", {"text": text, "client_id": "populator"})
    if scan is None:
        continue
    vin = (scan.get("result") or {}).get("vin") or {}
    print(f"Scanned {vin.get('normalized')} (confidence {scan['result']['confidence']}): {scan['message']}")

    session_id = scan["session_id"]
    looked_up = post(f"/api/v1/scans/{session_id}/lookup")
    if looked_up is None:
        continue

    if looked_up["state"] == "FOUND":
        print("  already in inventory, moving to showroom")
        post(f"/api/v1/scans/{session_id}/decision",
             {"kind": "MOVE_TO_INVENTORY", "target_location": "SHOWROOM_1"})
    else:
        print(f"  new vehicle, {decision}")
        post(f"/api/v1/scans/{session_id}/decision", {"kind": decision})
    time.sleep(0.2)

print("Done! Inventory at: " + API + "/api/v1/inventory")
