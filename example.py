"""
Print a natal chart to the terminal.

    python example.py --city "New York" --date 1990-06-15T14:30:00 --tz America/New_York
    python example.py --lat 49.9935 --lon 36.2304
"""

import argparse
import logging
import sys
from datetime import datetime

import pytz

from cities import find_city
from exceptions import NatalChartAPIException
from natal import format_chart_text, parse_datetime, to_utc
from routers import build_orchestrator
from settings import get_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Calculate and print a natal chart.")
    parser.add_argument('--date', help="ISO 8601 date and time (default: now, UTC)")
    parser.add_argument('--tz', help="IANA timezone for a date without offset")
    parser.add_argument('--city', help="City from the built-in gazetteer")
    parser.add_argument('--lat', type=float, help="Latitude, North positive")
    parser.add_argument('--lon', type=float, help="Longitude, East positive")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    try:
        moment = parse_datetime(args.date) if args.date else datetime.now(pytz.UTC)
        moment = to_utc(moment, args.tz)

        if args.city:
            city = find_city(args.city)
            latitude, longitude = city.latitude, city.longitude
        elif args.lat is not None and args.lon is not None:
            latitude, longitude = args.lat, args.lon
        else:
            city = find_city('New York')
            latitude, longitude = city.latitude, city.longitude

        result = build_orchestrator(settings).calculate(moment, longitude, latitude)
    except NatalChartAPIException as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_chart_text(result))
    if result.source != 'swisseph':
        print()
        print("Note: Swiss Ephemeris failed, placeholder positions shown.")
        print(f"Run `python download_ephe.py {settings.ephemeris_path or 'ephe'}` "
              "and point NATAL_EPHEMERIS_PATH at that directory.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
