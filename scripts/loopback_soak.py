#!/usr/bin/env python3
"""
Loopback Soak Script
====================

Standalone script to exercise the whole pipeline on one machine.

This script:
    1. Starts a headless receiver on a free loopback port
    2. Starts N producer sessions sending noise frames to it
    3. Optionally switches resolution half way through
    4. Logs ingestion stats every few seconds
    5. Reports final summary

Usage:
    python scripts/loopback_soak.py --duration 30
    python scripts/loopback_soak.py --producers 3 --fps 50 --resize
"""

import argparse
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from framecast.producer import NoiseGenerator, ProducerSession
from framecast.stream import ConnectionAcceptor, DisplaySurface


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_soak(
    producers: int,
    duration: int,
    fps: float,
    resize: bool,
    report_interval: int,
) -> dict:
    """
    Run the soak test.

    Args:
        producers: Number of concurrent producer sessions
        duration: Test duration in seconds
        fps: Frames per second per producer
        resize: Switch every producer to a new resolution half way
        report_interval: Seconds between progress reports

    Returns:
        Final metrics dict
    """
    logger.info("=" * 60)
    logger.info("Loopback Soak")
    logger.info("=" * 60)
    logger.info(f"Producers: {producers}")
    logger.info(f"Duration: {duration} seconds")
    logger.info(f"FPS per producer: {fps}")
    logger.info("=" * 60)

    surface = DisplaySurface()
    acceptor = ConnectionAcceptor(surface, host="127.0.0.1", port=0)
    host, port = acceptor.bind()
    acceptor.start()

    sources = [NoiseGenerator(320, 240, seed=i) for i in range(producers)]
    sessions = [
        ProducerSession(servers=[(host, port)], source=source, fps=fps)
        for source in sources
    ]
    for session in sessions:
        session.connect()
        session.start()

    start_time = time.time()
    last_report_time = start_time
    resized = False
    torn = 0

    try:
        while True:
            elapsed = time.time() - start_time
            if elapsed >= duration:
                logger.info(f"Test duration ({duration}s) reached")
                break

            if resize and not resized and elapsed >= duration / 2:
                for i, source in enumerate(sources):
                    source.resize(200 + 40 * i, 150 + 30 * i)
                resized = True
                logger.info("Switched producer resolutions")

            snapshot = surface.wait_for_frame(timeout=0.1)
            if snapshot is not None and len(snapshot.pixels) != snapshot.width * snapshot.height:
                torn += 1

            if time.time() - last_report_time >= report_interval:
                metrics = acceptor.metrics()
                display = surface.metrics()
                logger.info("-" * 40)
                logger.info(f"Progress Report (elapsed: {elapsed:.0f}s)")
                logger.info(f"  Active connections: {metrics['active_connections']}")
                logger.info(f"  Frames published: {display['frames_published']}")
                logger.info(f"  Frames overwritten: {display['frames_overwritten']}")
                logger.info(f"  Display: {display['width']}x{display['height']}")
                last_report_time = time.time()

    except KeyboardInterrupt:
        logger.info("Test interrupted by user")
    finally:
        for session in sessions:
            session.stop()
        clean = acceptor.stop(timeout=5.0)

    total_time = time.time() - start_time
    display = surface.metrics()
    avg_fps = display["frames_published"] / total_time if total_time > 0 else 0

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    logger.info(f"Frames published: {display['frames_published']}")
    logger.info(f"Average publish rate: {avg_fps:.1f}/s")
    logger.info(f"Resizes: {display['resize_count']}")
    logger.info(f"Torn reads: {torn}")
    logger.info(f"Clean shutdown: {clean}")
    logger.info(f"Disconnects: {acceptor.metrics()['disconnects']}")
    logger.info("=" * 60)

    return {
        "duration": total_time,
        "frames_published": display["frames_published"],
        "torn_reads": torn,
        "clean_shutdown": clean,
    }


def main():
    parser = argparse.ArgumentParser(description="Loopback soak test for framecast")
    parser.add_argument("--producers", type=int, default=2, help="Concurrent producers (default: 2)")
    parser.add_argument("--duration", type=int, default=30, help="Test duration in seconds (default: 30)")
    parser.add_argument("--fps", type=float, default=25.0, help="FPS per producer (default: 25)")
    parser.add_argument("--resize", action="store_true", help="Change resolution half way through")
    parser.add_argument("--report-interval", type=int, default=5, help="Seconds between reports (default: 5)")

    args = parser.parse_args()

    result = run_soak(
        producers=args.producers,
        duration=args.duration,
        fps=args.fps,
        resize=args.resize,
        report_interval=args.report_interval,
    )

    ok = result["frames_published"] > 0 and result["torn_reads"] == 0 and result["clean_shutdown"]
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
