"""
Command line runner for Smart Bridge.

Loads a release, starts adaptive playback on a simulated device and logs
every playback snapshot until the queue finishes or the process is
interrupted.

    python -m smartbridge <release-id-or-url> [--restricted] [--seed N]
                          [--simulate-duration SEC] [--speed X]
"""

import argparse
import logging
import logging.handlers
import signal
import sys
import threading
from typing import Optional

import numpy as np

from smartbridge.app.adaptive_player import AdaptivePlaybackService
from smartbridge.app.config import SmartBridgeConfig, load_config
from smartbridge.broadcast_core.state_machine import STATE_FINISHED, PlaybackSnapshot
from smartbridge.catalog.loader import CatalogLoader
from smartbridge.clock.scheduler import ThreadingScheduler
from smartbridge.outputs.simulated_device import SimulatedDevice
from smartbridge.resolver.source_resolver import PlaybackUrlClient
from smartbridge.state.collection_store import CollectionStore

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(config: SmartBridgeConfig) -> None:
    """Configure root logging; optionally add a rotation-tolerant file handler."""
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not config.log_file:
        return
    try:
        # WatchedFileHandler reopens the file after external rotation
        handler = logging.handlers.WatchedFileHandler(config.log_file, mode='a')
    except OSError as e:
        logger.warning(f"Cannot open log file {config.log_file}: {e}")
        return
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    original_emit = handler.emit

    def safe_emit(record):
        try:
            original_emit(record)
        except (IOError, OSError):
            # Log write failures must not interrupt playback
            pass

    handler.emit = safe_emit
    logging.getLogger().addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smartbridge",
        description="Play a release in adaptive (Smart Bridge) mode on a simulated device",
    )
    parser.add_argument("release", help="Release share id (24 hex chars) or manifest URL")
    parser.add_argument(
        "--restricted",
        action="store_true",
        help="Force preview mode (each item capped); default depends on the collection",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for route and delay randomness")
    parser.add_argument(
        "--simulate-duration",
        type=float,
        default=180.0,
        help="Simulated duration of every item in seconds (default: 180)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Simulated seconds per wall-clock second (default: 1.0)",
    )
    parser.add_argument(
        "--block-autoplay",
        action="store_true",
        help="Device refuses to start until a (simulated) user presses play",
    )
    return parser


def _describe(snapshot: PlaybackSnapshot) -> str:
    item = snapshot.current_queue_item
    if item is None:
        where = "-"
    elif item.type == "song":
        where = f"song {item.slot}{item.choice}"
    else:
        where = f"bridge {item.from_slot}-{item.to_slot}"
    flags = []
    if snapshot.autoplay_blocked:
        flags.append("autoplay-blocked")
    if snapshot.highlight_visible:
        flags.append(f"highlight={snapshot.active_song_slot}")
    extra = f" [{', '.join(flags)}]" if flags else ""
    return f"{snapshot.state} @ {where} | '{snapshot.now_playing_label}'{extra}"


def main(args: Optional[list] = None) -> int:
    """
    Main entry point for the Smart Bridge runner.

    Returns:
        Process exit code
    """
    options = build_parser().parse_args(args)

    try:
        config = load_config()
    except ValueError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error(f"Invalid configuration: {e}")
        return 2

    setup_logging(config)

    logger.info("=" * 70)
    logger.info("Smart Bridge - adaptive playback")
    logger.info("=" * 70)

    scheduler = ThreadingScheduler()
    device = SimulatedDevice(
        default_duration=options.simulate_duration,
        speed=options.speed,
        block_autoplay=options.block_autoplay,
    )
    resolver = PlaybackUrlClient(
        config.api_base,
        timeout=config.resolve_timeout_sec,
        max_attempts=config.resolve_max_attempts,
    )
    loader = CatalogLoader(config.api_base, timeout=config.catalog_timeout_sec)
    service = AdaptivePlaybackService(
        device,
        resolver,
        scheduler,
        config=config,
        rng=np.random.default_rng(options.seed),
        collection=CollectionStore(config.collection_path),
        loader=loader,
    )

    done = threading.Event()
    blocked = threading.Event()

    def on_snapshot(snapshot: PlaybackSnapshot) -> None:
        logger.info(f"[RUNNER] {_describe(snapshot)}")
        if snapshot.autoplay_blocked:
            blocked.set()
        if snapshot.state == STATE_FINISHED:
            done.set()

    # Graceful shutdown: SIGINT and SIGTERM are treated identically
    def signal_handler(sig, frame):
        if done.is_set():
            logger.debug("[RUNNER] Shutdown already in progress, ignoring duplicate signal")
            return
        signal_name = "SIGTERM" if sig == signal.SIGTERM else "SIGINT"
        logger.info(f"[RUNNER] Received {signal_name} signal - stopping")
        done.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    service.on_playback_state_change(on_snapshot)
    device.start()
    exit_code = 0
    try:
        result = service.start_adaptive_playback_for_release(
            options.release,
            restricted=True if options.restricted else None,
        )
        if not result.ok:
            logger.error(f"[RUNNER] Cannot start adaptive playback: {result.reason}")
            exit_code = 1
        else:
            while not done.wait(0.1):
                if blocked.is_set():
                    blocked.clear()
                    logger.info("[RUNNER] Autoplay blocked, pressing play")
                    device.allow_autoplay()
                    service.user_play()
    except Exception as e:
        logger.error(f"[RUNNER] Error: {e}", exc_info=True)
        exit_code = 1
    finally:
        service.stop_adaptive_playback()
        device.close()
        scheduler.shutdown()
        resolver.close()
        loader.close()
        logger.info("[RUNNER] Stopped")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
