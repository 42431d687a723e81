"""CLI script to recompute station active-alert/incident flags."""

import argparse
import asyncio
import json
import logging
import sys

from dispatchdesk.directory.flags import compute_station_flags, refresh_station_flags
from dispatchdesk.directory.store import StationStore

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


async def run_refresh(
    station_ids: list[str] | None = None, dry_run: bool = False, output_json: bool = False
) -> int:
    """Recompute flags for the given stations, or every station.

    Args:
        station_ids: Stations to check (default: all)
        dry_run: If True, report drift without writing
        output_json: If True, output results as JSON

    Returns:
        Exit code
    """
    async with StationStore() as stations:
        if station_ids:
            found = await stations.get_many(station_ids)
            missing = [s for s in station_ids if s not in found]
            targets = list(found.values())
        else:
            missing = []
            targets = await stations.query(order_by="name")

    for station_id in missing:
        logger.error(f"Station not found: {station_id}")

    logger.info("=" * 50)
    logger.info("Station Flag Refresh")
    logger.info("=" * 50)
    if dry_run:
        logger.info("DRY RUN - no changes will be made")

    results = []
    for station in targets:
        has_alert, has_incident = await compute_station_flags(station.id)
        drifted = (station.has_active_alert, station.has_active_incident) != (
            has_alert,
            has_incident,
        )
        if drifted and not dry_run:
            await refresh_station_flags(station.id)
        results.append(
            {
                "id": station.id,
                "name": station.name,
                "has_active_alert": has_alert,
                "has_active_incident": has_incident,
                "changed": drifted,
            }
        )

    if output_json:
        print(json.dumps(results, indent=2))
    else:
        for row in results:
            marker = "*" if row["changed"] else " "
            logger.info(
                f"{marker} {row['name']}: alert={row['has_active_alert']} "
                f"incident={row['has_active_incident']}"
            )
        logger.info("")
        logger.info(
            f"Checked {len(results)} station(s), {sum(r['changed'] for r in results)} changed"
        )

    return 1 if missing else 0


def main():
    """CLI entry point for dispatchdesk-station-flags."""
    parser = argparse.ArgumentParser(description="Recompute station active alert/incident flags")
    parser.add_argument("station_ids", nargs="*", help="Station IDs (default: all stations)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show which stations drifted without updating them",
    )
    parser.add_argument("--json", action="store_true", help="Output results as JSON")

    args = parser.parse_args()
    exit_code = asyncio.run(
        run_refresh(args.station_ids or None, dry_run=args.dry_run, output_json=args.json)
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
