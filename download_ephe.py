"""
Download the Swiss Ephemeris data files used by the API.

    python download_ephe.py               # into ./ephe, the default NATAL_EPHEMERIS_PATH
    python download_ephe.py /srv/ephe --file seas_18.se1

Without these files the analytic Moshier ephemeris is used, which covers the
planets but not Chiron.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional, Sequence

import httpx

from settings import DEFAULT_EPHEMERIS_DIR

logger = logging.getLogger(__name__)

BASE_URL = "https://raw.githubusercontent.com/aloistr/swisseph/master/ephe/"

# Planets, Moon and main asteroids (Chiron) for 1800-2400 CE
EPHEMERIS_FILES = ('sepl_18.se1', 'semo_18.se1', 'seas_18.se1')


def download_file(client: httpx.Client, filename: str, directory: str,
                  base_url: str = BASE_URL) -> bool:
    """Fetch one file into *directory*. Returns False if it was already there.

    The body is streamed into a ``.part`` file and renamed once complete, so
    an interrupted download never leaves a truncated ``.se1`` behind.
    """
    target = os.path.join(directory, filename)
    if os.path.exists(target):
        logger.info("%s already exists, skipping", filename)
        return False

    partial = target + '.part'
    logger.info("Downloading %s", filename)
    try:
        with client.stream('GET', base_url + filename) as response:
            response.raise_for_status()
            with open(partial, 'wb') as fh:
                for chunk in response.iter_bytes():
                    fh.write(chunk)
    except (httpx.HTTPError, OSError):
        if os.path.exists(partial):
            os.remove(partial)
        raise

    os.replace(partial, target)
    return True


def download_all(directory: str = DEFAULT_EPHEMERIS_DIR,
                 files: Sequence[str] = EPHEMERIS_FILES,
                 client: Optional[httpx.Client] = None) -> List[str]:
    """Download every missing file; returns the names actually fetched."""
    os.makedirs(directory, exist_ok=True)

    owns_client = client is None
    if owns_client:
        client = httpx.Client(follow_redirects=True, timeout=60.0)
    try:
        return [name for name in files if download_file(client, name, directory)]
    finally:
        if owns_client:
            client.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Download Swiss Ephemeris .se1 files.")
    parser.add_argument('directory', nargs='?', default=DEFAULT_EPHEMERIS_DIR,
                        help=f"Target directory (default: {DEFAULT_EPHEMERIS_DIR})")
    parser.add_argument('--file', dest='files', action='append',
                        help="File to fetch, may be repeated (default: planets, Moon, asteroids)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    try:
        fetched = download_all(args.directory, args.files or EPHEMERIS_FILES)
    except httpx.HTTPError as exc:
        logger.error("Download failed: %s", exc)
        logger.error("Fetch the files by hand from %s into %s", BASE_URL, args.directory)
        return 1

    logger.info("%d file(s) downloaded into %s", len(fetched), args.directory)
    logger.info("Set NATAL_EPHEMERIS_PATH=%s if that is not the configured path", args.directory)
    return 0


if __name__ == "__main__":
    sys.exit(main())
