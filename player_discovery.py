"""
StreamPlayer Discovery Library
Finds BluOS and Sonos players on every local IPv4 /24 network.

Each host address is probed once per family in its own thread:
  BluOS - GET http://IP:11000/SyncStatus              (<SyncStatus name brand model>)
  Sonos - GET http://IP:1400/xml/device_description.xml (must mention Sonos/RINCON)
"""

import ipaddress
import logging
import re
import threading
import xml.etree.ElementTree as ET
from typing import List, NamedTuple, Optional

import netifaces
import psutil
import requests

from player_config import settings
from player_errors import NoDevicesError, NoInterfacesError
from player_models import DeviceFamily, DiscoveredDevice

logger = logging.getLogger(__name__)

SONOS_SIGNATURES = ("Sonos", "RINCON")

# Networks where players are unlikely: VirtualBox NAT and the Docker bridge
EXCLUDED_NETWORKS = (
    ipaddress.IPv4Network("10.0.2.0/24"),
    ipaddress.IPv4Network("172.17.0.0/16"),
)

_FRIENDLY_NAME_RE = re.compile(r'<friendlyName>(.*?)</friendlyName>', re.S)
_MODEL_NAME_RE = re.compile(r'<modelName>(.*?)</modelName>', re.S)
_IP_IN_NAME_RE = re.compile(r'\d+\.\d+\.\d+\.\d+\s*-?\s*')


class NetworkInterface(NamedTuple):
    """A local IPv4 address and the /24 prefix to scan around it."""

    name: str
    address: str
    subnet: str  # first three octets, e.g. "192.168.1"

    @property
    def network(self) -> str:
        return f"{self.subnet}.0/24"


# ============================================================================
# Network enumeration
# ============================================================================

def is_useful_network(ip: str) -> bool:
    """False for virtualization/container ranges that rarely host players."""
    try:
        address = ipaddress.IPv4Address(ip)
    except ValueError:
        return False
    return not any(address in network for network in EXCLUDED_NETWORKS)


def get_subnet(ip: str) -> str:
    return ".".join(ip.split(".")[:3])


def _ipv4_interfaces() -> List[NetworkInterface]:
    """Every up, non-loopback IPv4 address of this host."""
    try:
        names = netifaces.interfaces()
        stats = psutil.net_if_stats()
    except Exception as e:
        raise NoInterfacesError(f"could not list network interfaces: {e}") from e

    interfaces = []
    for iface in names:
        addrs = netifaces.ifaddresses(iface)
        if netifaces.AF_INET not in addrs:
            continue
        # Windows: netifaces reports GUIDs, psutil friendly names; unknown names are kept
        if iface in stats and not stats[iface].isup:
            logger.debug("Skipping %s (interface down)", iface)
            continue
        for addr in addrs[netifaces.AF_INET]:
            ip = addr.get('addr')
            if not ip:
                continue
            try:
                if ipaddress.IPv4Address(ip).is_loopback:
                    continue
            except ValueError:
                continue
            interfaces.append(NetworkInterface(iface, ip, get_subnet(ip)))
    return interfaces


def get_network_interfaces() -> List[NetworkInterface]:
    """
    List the interfaces worth scanning.

    Virtualization and container networks are dropped, unless that would
    leave nothing to scan; then all IPv4 interfaces are returned.
    """
    interfaces = _ipv4_interfaces()
    useful = [iface for iface in interfaces if is_useful_network(iface.address)]
    return useful or interfaces


# ============================================================================
# Probes
# ============================================================================

def parse_sync_status(xml_text, ip: str) -> Optional[DiscoveredDevice]:
    """Parse a BluOS /SyncStatus document."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError:
        return None
    if root.tag != 'SyncStatus':
        return None
    return DiscoveredDevice(
        address=ip,
        name=root.get('name', ''),
        brand=root.get('brand', ''),
        model=root.get('model', ''),
        family=DeviceFamily.BLUOS,
    )


def probe_bluos(ip: str, port: int = None, timeout: float = None) -> Optional[DiscoveredDevice]:
    """Check one address for a BluOS player. Never raises."""
    url = f"http://{ip}:{port or settings.BLUOS_PORT}/SyncStatus"
    try:
        response = requests.get(url, timeout=timeout or settings.SCAN_TIMEOUT)
    except requests.RequestException:
        return None
    if response.status_code != 200:
        return None
    return parse_sync_status(response.content, ip)


def clean_friendly_name(name: str) -> str:
    """Drop the ' - RINCON_xxx' suffix and any embedded IP addresses."""
    name = name.strip()
    idx = name.find(" - RINCON")
    if idx != -1:
        name = name[:idx].strip()
    return _IP_IN_NAME_RE.sub("", name).strip()


def parse_device_description(body: str, ip: str) -> Optional[DiscoveredDevice]:
    """
    Parse a Sonos device description.

    The display name falls back from friendlyName to modelName to
    'Sonos-<last octet>'; a friendly name longer than 50 characters or still
    containing a dot is not used.
    """
    if not any(signature in body for signature in SONOS_SIGNATURES):
        return None

    name = ""
    match = _FRIENDLY_NAME_RE.search(body)
    if match:
        name = clean_friendly_name(match.group(1))

    model = "Sonos"
    match = _MODEL_NAME_RE.search(body)
    if match:
        model = match.group(1).strip()

    if not name or len(name) > 50 or "." in name:
        if model and model != "Sonos":
            name = model
        else:
            name = f"Sonos-{ip.rsplit('.', 1)[-1]}"

    return DiscoveredDevice(
        address=ip,
        name=name,
        brand="Sonos",
        model=model,
        family=DeviceFamily.SONOS,
    )


def probe_sonos(ip: str, port: int = None, timeout: float = None) -> Optional[DiscoveredDevice]:
    """Check one address for a Sonos player. Never raises."""
    url = f"http://{ip}:{port or settings.SONOS_PORT}/xml/device_description.xml"
    try:
        response = requests.get(url, timeout=timeout or settings.SCAN_TIMEOUT)
    except requests.RequestException:
        return None
    if response.status_code != 200:
        return None
    return parse_device_description(response.text, ip)


# ============================================================================
# Scanner
# ============================================================================

class PlayerDiscovery:
    """Discovers BluOS and Sonos players on all local networks."""

    def __init__(self, interfaces: Optional[List[NetworkInterface]] = None, timeout: float = None):
        """
        Initialize the discovery scanner.

        Args:
            interfaces: Interfaces to scan. If None, auto-detect.
            timeout: Per-probe timeout in seconds (default: settings.SCAN_TIMEOUT)
        """
        self.interfaces = interfaces
        self.timeout = timeout or settings.SCAN_TIMEOUT
        self.devices: List[DiscoveredDevice] = []
        self.lock = threading.Lock()

    def _add_device(self, device: DiscoveredDevice) -> None:
        with self.lock:
            if device in self.devices:
                return
            self.devices.append(device)
        logger.info("Found %s (%s %s) at %s [%s]",
                    device.name, device.brand, device.model, device.address, device.family.label)

    def _probe_host(self, ip: str, family: DeviceFamily) -> None:
        """Run one family's probe against one host."""
        try:
            if family is DeviceFamily.BLUOS:
                device = probe_bluos(ip, timeout=self.timeout)
            else:
                device = probe_sonos(ip, timeout=self.timeout)
        except Exception as e:
            logger.debug("Probe %s for %s failed: %s", family.value, ip, e)
            return
        if device is not None:
            self._add_device(device)

    def scan(self) -> List[DiscoveredDevice]:
        """
        Scan hosts .1-.254 of every interface's /24 for both families.

        Blocks until every probe has finished.

        Returns:
            Discovered players, one per address, sorted by address

        Raises:
            NoInterfacesError: nothing to scan
            NoDevicesError: scan completed without finding a player
        """
        interfaces = self.interfaces if self.interfaces is not None else get_network_interfaces()
        if not interfaces:
            raise NoInterfacesError("no network interfaces found")

        logger.info("Scanning %d network interface(s)", len(interfaces))
        self.devices = []

        threads = []
        for iface in interfaces:
            logger.info("Scanning %s (%s)", iface.name, iface.network)
            for host in range(1, 255):
                ip = f"{iface.subnet}.{host}"
                for family in DeviceFamily:
                    thread = threading.Thread(target=self._probe_host, args=(ip, family))
                    thread.daemon = True
                    thread.start()
                    threads.append(thread)

        for thread in threads:
            thread.join()

        logger.info("Scan complete. Found %d player(s) on %d interface(s)", len(self.devices), len(interfaces))

        if not self.devices:
            raise NoDevicesError("no players found")

        return sorted(self.devices, key=lambda d: ipaddress.IPv4Address(d.address))
