"""Command-line entrypoints for the location resolver."""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

try:
    import uvloop
except ImportError:  # pragma: no cover - uvloop optional on some platforms
    uvloop = None

from locator.cache.store import FileKeyValueStore
from locator.config import LocationConfig, load_settings
from locator.geo import SEARCH_RADIUS_KM, GeoPoint, nearby
from locator.observability.log import configure_logging
from locator.platform.ipgeo import IpGeolocationPlatform
from locator.platform.nominatim import NominatimGeocoder
from locator.service import LocationService

DEFAULT_SETTINGS = Path("config/settings.toml")
DEFAULT_LOGGING = Path("config/logging.yaml")


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="locator", description="Device location resolver")
    parser.add_argument("--config", default=str(DEFAULT_SETTINGS), help="Path to settings TOML")
    sub = parser.add_subparsers(dest="command", required=True)

    locate = sub.add_parser("locate", help="Resolve the current location")
    locate.add_argument("--refresh", action="store_true", help="Bypass the cache")

    sub.add_parser("cached", help="Show the cached location without acquiring")
    sub.add_parser("clear-cache", help="Drop the memory and durable cache")

    near = sub.add_parser("nearby", help="List sellers around the current location")
    near.add_argument("--sellers", required=True, help="JSON file with a list of sellers")
    near.add_argument("--radius", type=float, default=SEARCH_RADIUS_KM, help="Search radius in km")
    near.add_argument("--refresh", action="store_true", help="Bypass the cache")

    return parser


def build_service(settings: Dict[str, object]) -> LocationService:
    """Wire the service with file storage and the HTTP-backed adapters."""
    config = LocationConfig.from_settings(settings)
    geocoder_cfg = settings.get("geocoder", {})
    geocoder = None
    if geocoder_cfg.get("enabled", True):
        geocoder = NominatimGeocoder.from_config(geocoder_cfg)
    return LocationService(
        platform=IpGeolocationPlatform.from_config(settings.get("ipgeo", {})),
        store=FileKeyValueStore(config.store_dir),
        geocoder=geocoder,
        config=config,
    )


async def run_command(args: argparse.Namespace, service: LocationService) -> object:
    """Execute one command and return its JSON-serialisable result."""
    await service.warm_up()
    if args.command == "locate":
        snapshot = await service.get_current_location(force_refresh=args.refresh)
        return snapshot.to_dict()
    if args.command == "cached":
        cached = service.get_cached_location()
        return cached.to_dict() if cached is not None else None
    if args.command == "clear-cache":
        await service.clear_cache()
        return {"cleared": True}
    if args.command == "nearby":
        sellers = json.loads(Path(args.sellers).read_text(encoding="utf-8"))
        snapshot = await service.get_current_location(force_refresh=args.refresh)
        origin = GeoPoint(snapshot.latitude, snapshot.longitude)
        return {
            "origin": snapshot.to_dict(),
            "radius_km": args.radius,
            "sellers": nearby(origin, sellers, radius_km=args.radius),
        }
    raise ValueError(f"unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    config_path = Path(args.config)
    settings = load_settings(config_path) if config_path.exists() else {}
    configure_logging(DEFAULT_LOGGING)

    if uvloop is not None:
        uvloop.install()

    service = build_service(settings)
    result = asyncio.run(run_command(args, service))
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
