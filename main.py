"""
PrefetchViewer - Main Entry Point

Headless viewer loop: opens the configured remote image list, waits for the
first images and walks forward through the stream at a fixed interval,
logging what would be displayed.
"""
import argparse
import sys
import threading
from typing import List, Optional

from core.constants import DEFAULT_READY_TIMEOUT_SEC, DEFAULT_SLIDESHOW_INTERVAL_SEC
from core.logging.logger import get_log_dir, get_logger, setup_logging
from core.logging.tags import TAG_FALLBACK, TAG_LIFECYCLE
from core.settings.settings_manager import SettingsManager
from engine.errors import ConfigError
from engine.image_list import ImageList, ListJump
from versioning import APP_DESCRIPTION, APP_EXE_NAME, APP_VERSION

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_EXE_NAME, description=APP_DESCRIPTION)
    parser.add_argument('--version', action='version', version=f"%(prog)s {APP_VERSION}")
    parser.add_argument('-c', '--config', action='append', default=[], metavar='KEY=VALUE',
                        help="Override a setting, e.g. list.www_url=https://example.com/random")
    parser.add_argument('--settings', metavar='INI',
                        help="Read settings from an INI file instead of the platform store")
    parser.add_argument('-d', '--debug', action='store_true', help="Debug logging on the console")
    parser.add_argument('-v', '--verbose', action='store_true', help="High-volume debug logging")
    parser.add_argument('--interval', type=float, default=DEFAULT_SLIDESHOW_INTERVAL_SEC,
                        help="Seconds between images (default: %(default)s)")
    parser.add_argument('--count', type=int, default=0,
                        help="Stop after this many images; 0 runs until interrupted")
    parser.add_argument('--min-ready', type=int, default=1,
                        help="Images to have cached before the first one is shown")
    parser.add_argument('--ready-timeout', type=float, default=DEFAULT_READY_TIMEOUT_SEC,
                        help="Seconds to wait for the first images (default: %(default)s)")
    return parser


def walk(images: ImageList, interval: float, count: int, stop_event: threading.Event) -> int:
    """Show images forward until ``count`` were shown or ``stop_event`` is set.

    Returns:
        Number of distinct images shown
    """
    shown = 0
    entry = images.current()
    if entry.is_placeholder:
        logger.warning(f"{TAG_FALLBACK} No image available yet, showing placeholder")
    else:
        logger.info(f"Showing #{entry.index}: {entry.image}")
        shown += 1

    while not stop_event.is_set() and (count <= 0 or shown < count):
        if stop_event.wait(interval):
            break
        if not images.jump(ListJump.NEXT_FILE):
            stats = images.get_stats()
            logger.info(
                f"{TAG_FALLBACK} Next image not ready (cached={stats['cached']}, failed={stats['failed']})"
            )
            continue
        entry = images.current()
        logger.info(f"Showing #{entry.index}: {entry.image}")
        shown += 1
    return shown


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the headless viewer."""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug, verbose=args.verbose)

    logger.info("=" * 60)
    logger.info(f"PrefetchViewer {APP_VERSION} Starting")
    logger.info("=" * 60)

    try:
        settings = SettingsManager(path=args.settings)
        settings.apply_overrides(args.config)
        images = ImageList(settings)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        print(f"{APP_EXE_NAME}: {e}", file=sys.stderr)
        return EXIT_CONFIG

    stop_event = threading.Event()
    exit_code = EXIT_OK
    try:
        images.open()
        if not images.wait_until_ready(args.min_ready, timeout=args.ready_timeout):
            logger.warning(
                f"{TAG_FALLBACK} Fewer than {args.min_ready} images after {args.ready_timeout}s, "
                "starting anyway"
            )
        shown = walk(images, args.interval, args.count, stop_event)
        logger.info(f"{TAG_LIFECYCLE} Walk finished after {shown} images")
    except KeyboardInterrupt:
        logger.info(f"{TAG_LIFECYCLE} Interrupted, shutting down")
        stop_event.set()
    except Exception as e:
        logger.exception(f"Fatal error in main: {e}")
        exit_code = EXIT_ERROR
    finally:
        images.close()

    logger.info(f"PrefetchViewer exiting with code {exit_code} (log: {get_log_dir()})")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
