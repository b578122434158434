"""Create a demo event and upload sample photos through the REST API."""

from __future__ import annotations

import argparse
import mimetypes
from pathlib import Path
from typing import Sequence

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DATA_DIR = REPO_ROOT / "sample_data"
IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp", ".heic"}


def _rest_request(method: str, rest_base: str, path: str, **kwargs) -> requests.Response:
    url = f"{rest_base.rstrip('/')}{path}"
    resp = requests.request(method, url, timeout=30, **kwargs)
    resp.raise_for_status()
    return resp


def _discover_images(data_dir: Path) -> list[Path]:
    if not data_dir.exists():
        raise FileNotFoundError(f"Sample data directory not found: {data_dir}")
    return [path for path in sorted(data_dir.rglob("*")) if path.suffix.lower() in IMAGE_SUFFIXES]


def seed(
    rest_base: str,
    images: Sequence[Path],
    *,
    name: str,
    drive_folder_id: str | None,
    device_prefix: str,
    uploader_name: str,
) -> str:
    created = _rest_request(
        "post",
        rest_base,
        "/events",
        json={"name": name, "driveFolderId": drive_folder_id},
    ).json()
    event_id = created["eventId"]
    print(f"Created event {name} ({event_id})")
    print(f" -> guests: {created['publicUrl']}")
    print(f" -> owner connect: {created['connectUrl']}")

    config = _rest_request("get", rest_base, f"/events/{event_id}").json()
    per_device = max(1, int(config["uploadLimit"]))
    for index, path in enumerate(images):
        # Spread uploads across devices so the per-device limit is not tripped.
        device_id = f"{device_prefix}-{index // per_device}"
        mime_type = mimetypes.guess_type(path.name)[0] or "image/jpeg"
        print(f"Uploading {path.name} as {device_id}")
        with path.open("rb") as handle:
            _rest_request(
                "post",
                rest_base,
                f"/events/{event_id}/upload",
                files={"file": (path.name, handle, mime_type)},
                headers={"X-Device-Id": device_id, "X-Uploader-Name": uploader_name},
            )
    return event_id


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed a demo event with sample photos")
    parser.add_argument("--rest-base", default="http://localhost:8080", help="REST base URL")
    parser.add_argument("--data-dir", type=Path, default=DEFAULT_DATA_DIR, help="Directory of sample images")
    parser.add_argument("--name", default="Demo Wedding")
    parser.add_argument("--drive-folder-id", default=None, help="Drive folder; server default when omitted")
    parser.add_argument("--device-prefix", default="seed-device")
    parser.add_argument("--uploader-name", default="Seeder")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    images = _discover_images(args.data_dir)
    if not images:
        raise SystemExit(f"No images found in {args.data_dir}")
    seed(
        args.rest_base,
        images,
        name=args.name,
        drive_folder_id=args.drive_folder_id,
        device_prefix=args.device_prefix,
        uploader_name=args.uploader_name,
    )


if __name__ == "__main__":
    main()
