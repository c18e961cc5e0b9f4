#!/usr/bin/env python3
"""
StreamPlayer Discovery CLI
Command-line tool for discovering BluOS and Sonos players.
Uses player_discovery.py for core functionality.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from player_config import settings
from player_discovery import NetworkInterface, PlayerDiscovery, get_subnet
from player_errors import DiscoveryError


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="Discover BluOS and Sonos players on your network"
    )
    parser.add_argument(
        "--network",
        action="append",
        help="Interface address to scan around (its /24 is scanned, repeatable). Auto-detect if not specified.",
        default=None
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.SCAN_TIMEOUT,
        help=f"Per-probe timeout in seconds (default: {settings.SCAN_TIMEOUT})"
    )
    parser.add_argument(
        "--export",
        help="Write the device list to this JSON file",
        default=None
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    interfaces = None
    if args.network:
        interfaces = [NetworkInterface("manual", ip, get_subnet(ip)) for ip in args.network]

    print("[*] Starting discovery...")

    scanner = PlayerDiscovery(interfaces=interfaces, timeout=args.timeout)
    try:
        devices = scanner.scan()
    except DiscoveryError as e:
        print(f"[!] {e}")
        sys.exit(1)

    print(f"\n[*] Found {len(devices)} player(s)")
    print("\n" + "="*80)
    print("DISCOVERED PLAYERS")
    print("="*80)

    for i, device in enumerate(devices, 1):
        print(f"\n[Player {i}]")
        print(f"  Name:    {device.name}")
        print(f"  Brand:   {device.brand}")
        print(f"  Model:   {device.model}")
        print(f"  IP:      {device.address}")
        print(f"  Family:  {device.family.label}")

    print("\n" + "="*80)

    if args.export:
        output_file = Path(args.export)
        with open(output_file, 'w') as f:
            json.dump([device.to_dict() for device in devices], f, indent=2)
        print(f"\n[*] Device list exported to: {output_file}")


if __name__ == "__main__":
    main()
