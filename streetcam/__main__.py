"""
Headless driver: load imagery around a point and print what was found.

    python -m streetcam --center -122.4194 37.7749 --zoom 17
    python -m streetcam --center 13.405 52.52 --offsets
"""
from __future__ import annotations

import argparse
import logging
import time

from .config import load_config
from .geo.projection import MercatorProjection
from .ingest.errors import OffsetError
from .ingest.offset_client import ImageryOffsetService
from .logger import setup_logging
from .service import StreetcamService

log = logging.getLogger(__name__)


def _wait_idle(service: StreetcamService, timeout: float) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        with service.loader.lock:
            if not service.cache.inflight:
                return True
        time.sleep(0.2)
    return False


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Load street-level imagery around a location.",
    )
    parser.add_argument(
        "--center",
        nargs=2,
        type=float,
        metavar=("LON", "LAT"),
        required=True,
        help="Map centre in degrees.",
    )
    parser.add_argument("--zoom", type=float, default=17.0, help="View zoom level.")
    parser.add_argument(
        "--size",
        nargs=2,
        type=int,
        metavar=("W", "H"),
        default=(1024, 768),
        help="Viewport size in pixels.",
    )
    parser.add_argument("--config", default=None, help="Path to a JSON config file.")
    parser.add_argument("--timeout", type=float, default=60.0, help="Seconds to wait for loading.")
    parser.add_argument(
        "--offsets",
        action="store_true",
        help="Also look up imagery offsets at the centre.",
    )
    args = parser.parse_args()

    cfg = load_config(args.config)
    setup_logging(cfg.log_level)

    projection = MercatorProjection.at_zoom(tuple(args.center), args.zoom, tuple(args.size))
    service = StreetcamService(cfg)
    try:
        service.load_images(projection)
        if not _wait_idle(service, args.timeout):
            log.warning("Gave up waiting after %.0f s", args.timeout)

        stats = service.cache.stats()
        markers = service.images(projection)
        lines = service.sequences(projection)
        print(f"pages loaded: {stats['loaded_pages']}, images: {stats['images']}, "
              f"sequences: {stats['sequences']}")
        print(f"markers in view: {len(markers)}, sequence lines: {len(lines)}")
    finally:
        service.shutdown()

    if args.offsets:
        offsets = ImageryOffsetService.from_config(cfg)
        try:
            found = offsets.search(tuple(args.center)).result(timeout=cfg.timeout * 2)
            for o in found:
                print(f"offset {o.imagery or '?'} at {o.loc} by {o.author or '?'}")
        except OffsetError as exc:
            print(f"offsets: {exc}")
        finally:
            offsets.shutdown()


if __name__ == "__main__":
    main()
