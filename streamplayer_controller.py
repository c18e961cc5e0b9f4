#!/usr/bin/env python3
"""
StreamPlayer Controller CLI
Command-line tool for controlling a single BluOS or Sonos player.
Uses the player client library for core functionality.
"""

import argparse
import logging
import sys

from player_client import create_client
from player_config import settings
from player_errors import PlayerError
from player_models import DeviceFamily, DiscoveredDevice

# --play without a preset number
RESUME = "resume"


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Control BluOS and Sonos players"
    )
    parser.add_argument(
        "ip",
        help="IP address of the player (e.g., 192.168.1.100)"
    )
    parser.add_argument(
        "--family",
        "-f",
        choices=[family.value for family in DeviceFamily],
        default=DeviceFamily.BLUOS.value,
        help="Player family (default: bluos)"
    )
    parser.add_argument("--status", action="store_true", help="Show current playback status")
    parser.add_argument("--presets", action="store_true", help="List presets / radio favorites")
    parser.add_argument(
        "--play",
        nargs="?",
        type=int,
        const=RESUME,
        default=None,
        metavar="PRESET",
        help="Resume playback, or play the given preset"
    )
    parser.add_argument("--pause", action="store_true", help="Pause playback")
    parser.add_argument("--stop", action="store_true", help="Stop playback")
    parser.add_argument("--next", action="store_true", help="Next track")
    parser.add_argument("--prev", action="store_true", help="Previous track")
    parser.add_argument("--volume", type=int, default=None, help="Set volume (0-100)")
    parser.add_argument("--diagnose", action="store_true", help="Test which device endpoints respond")
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.REQUEST_TIMEOUT,
        help=f"Request timeout in seconds (default: {settings.REQUEST_TIMEOUT})"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    client = create_client(DiscoveredDevice(args.ip, family=DeviceFamily(args.family)), timeout=args.timeout)

    try:
        if args.presets:
            print("\n[*] Presets:")
            for preset in client.list_presets():
                print(f"  [{preset.preset_id}] {preset.name}")

        if args.play is not None:
            if args.play is RESUME:
                client.play()
                print("[+] Playback started")
            else:
                client.play_preset(args.play)
                print(f"[+] Playing preset {args.play}")

        if args.pause:
            client.pause()
            print("[+] Paused")

        if args.stop:
            client.stop()
            print("[+] Stopped")

        if args.next:
            client.next()
            print("[+] Next track")

        if args.prev:
            client.previous()
            print("[+] Previous track")

        if args.volume is not None:
            client.set_volume(args.volume)
            print(f"[+] Volume set to {args.volume}%")

        if args.diagnose:
            print(client.diagnose())

        if args.status:
            status = client.get_status()
            print("\n[*] Status:")
            print(f"  State:   {status.state}")
            print(f"  Volume:  {status.volume}%")
            if status.has_track:
                print(f"  Track:   {status.song}")
                print(f"  Artist:  {status.artist}")
                print(f"  Album:   {status.album}")
            else:
                print("  Track:   (nothing playing)")

    except PlayerError as e:
        print(f"[!] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
