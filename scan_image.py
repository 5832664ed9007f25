"""
VinScan — One-shot Scan CLI

Runs a single image (or typed text) through the scan pipeline in-process and
prints the recognition result. Optionally checks the VIN against the local
inventory database.

Usage:
  python scan_image.py photo.jpg
  python scan_image.py photo.jpg --lookup
  python scan_image.py --text "1HGCM82633A004352"
  python scan_image.py --camera
"""

import argparse
import json
import sys
from pathlib import Path

from vinscan.common.errors import VinScanError
from vinscan.common.schemas import RawCapture
from vinscan.common.utils import format_vin
from vinscan.database.session import Base, engine
from vinscan.edge.camera_manager import CameraPermissionManager
from vinscan.services.inventory import SqlInventoryGateway
from vinscan.services.lookup_router import CarLookupRouter
from vinscan.services.pipeline import ScanPipeline
from vinscan.services.scan_session import ScanSession


def main() -> None:
    parser = argparse.ArgumentParser(description="VinScan one-shot VIN scanner")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("image", nargs="?", type=Path, help="Image of a VIN plate or label")
    source.add_argument("--text", help="Score typed text instead of an image")
    source.add_argument("--camera", action="store_true", help="Capture one frame from the configured camera")
    parser.add_argument("--lookup", action="store_true", help="Check the VIN against the inventory database")
    parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    args = parser.parse_args()

    pipeline = ScanPipeline()
    session = ScanSession(client_id="cli")

    try:
        if args.text is not None:
            outcome = pipeline.process_manual(session, args.text)
        else:
            if args.camera:
                camera = CameraPermissionManager()
                try:
                    capture = camera.capture_frame()
                finally:
                    camera.stop()
            else:
                capture = RawCapture(image=args.image.read_bytes())
            outcome = pipeline.process(session, capture)
    except (OSError, VinScanError) as exc:
        print(f"✗ {exc}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(outcome.model_dump(mode="json"), indent=2))
    else:
        result = outcome.result
        print(f"  {outcome.message}")
        if result is not None:
            vin = result.vin
            if vin and vin.normalized:
                print(f"  VIN:          {format_vin(vin.normalized)}")
                print(f"  Year:         {vin.decoded_year or 'Unknown'}")
                print(f"  Country:      {vin.decoded_country}")
                print(f"  Manufacturer: {vin.decoded_manufacturer}")
            print(f"  Brand/Model:  {result.brand or '-'} / {result.model or '-'}")
            print(f"  Category:     {result.category.value}")
            print(f"  Confidence:   {result.confidence:.2f}")

    if args.lookup and session.normalized_vin:
        Base.metadata.create_all(bind=engine)
        router = CarLookupRouter(session, SqlInventoryGateway())
        try:
            lookup = router.lookup()
        except VinScanError as exc:
            print(f"✗ {exc}", file=sys.stderr)
            sys.exit(1)
        if lookup.matched:
            vehicle = lookup.existing_vehicle
            print(f"  In inventory: {vehicle.id} at {vehicle.current_location}")
        else:
            print("  Not in inventory")
        router.cancel()


if __name__ == "__main__":
    main()
