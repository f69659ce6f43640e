"""
Address helpers: MAC/IPv4 format checks, CIDR arithmetic and longest-prefix match.

Numeric helpers (ip_to_number, is_ip_in_subnet, is_private_ip, ...) assume a
well-formed dotted quad / "a.b.c.d/n" string. Validate first with
is_valid_ipv4 when the input comes from outside.
"""
from __future__ import annotations
import random
import re
import string
import time
from typing import Iterable, Optional

from .config import BROADCAST_MAC


_MAC_RE = re.compile(r'^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$')
_ID_ALPHABET = string.digits + string.ascii_lowercase


# ─── Time / IDs ──────────────────────────────────────────────────────────────

def current_millis() -> int:
    """Wall-clock time in milliseconds, used for packet and table timestamps."""
    return int(time.time() * 1000)


def generate_packet_id() -> str:
    """Returns an id like 'pkt_1712345678901_k3j9x0a1b'."""
    suffix = ''.join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"pkt_{current_millis()}_{suffix}"


def generate_mac() -> str:
    """Random upper-case MAC for simulated hosts, same notation as the MAC tables."""
    value = random.getrandbits(48)
    return ":".join(f"{(value >> shift) & 0xFF:02X}" for shift in range(40, -1, -8))


# ─── MAC Helpers ─────────────────────────────────────────────────────────────

def is_valid_mac(mac: str) -> bool:
    """Six colon-separated hex octets, either case."""
    return bool(_MAC_RE.match(mac))


def mac_equals(mac1: str, mac2: str) -> bool:
    return mac1.upper() == mac2.upper()


def is_broadcast_mac(mac: str) -> bool:
    return mac.upper() == BROADCAST_MAC


# ─── IPv4 Helpers ────────────────────────────────────────────────────────────

def is_valid_ipv4(ip: str) -> bool:
    """
    Four dot-separated decimal octets in 0-255. Octets must be written in
    canonical form, so '01' or '+1' are rejected.
    """
    parts = ip.split('.')
    if len(parts) != 4:
        return False
    for part in parts:
        if not (part.isascii() and part.isdigit()):
            return False
        num = int(part)
        if num > 255 or part != str(num):
            return False
    return True


def is_private_ip(ip: str) -> bool:
    """True for RFC 1918 addresses (10/8, 172.16/12, 192.168/16)."""
    parts = list(map(int, ip.split('.')))
    if len(parts) != 4:
        return False

    if parts[0] == 10:
        return True
    if parts[0] == 172 and 16 <= parts[1] <= 31:
        return True
    if parts[0] == 192 and parts[1] == 168:
        return True
    return False


def ip_to_number(ip: str) -> int:
    """'192.168.1.1' -> 3232235777. Mask and route arithmetic work on these."""
    number = 0
    for octet in ip.split('.'):
        number = (number << 8) | int(octet)
    return number


def number_to_ip(num: int) -> str:
    """Inverse of ip_to_number, used to print network addresses."""
    return '.'.join(str((num >> shift) & 0xFF) for shift in (24, 16, 8, 0))


# ─── CIDR Helpers ────────────────────────────────────────────────────────────

def _split_cidr(cidr: str):
    network, prefix_str = cidr.split('/')
    return network, int(prefix_str)


def is_valid_cidr(cidr: str) -> bool:
    """A valid IPv4 network followed by '/0' to '/32'."""
    network, sep, prefix = cidr.partition('/')
    if not sep or not (prefix.isascii() and prefix.isdigit()):
        return False
    return is_valid_ipv4(network) and int(prefix) <= 32


def prefix_mask(prefix: int) -> int:
    """Subnet mask for a prefix length; /0 yields 0 and matches everything."""
    if prefix == 0:
        return 0
    return (0xFFFFFFFF << (32 - prefix)) & 0xFFFFFFFF


def prefix_length(cidr: str) -> int:
    return _split_cidr(cidr)[1]


def is_ip_in_subnet(ip: str, cidr: str) -> bool:
    """Returns True if ip lies inside the 'network/prefix' range."""
    network, prefix = _split_cidr(cidr)
    mask = prefix_mask(prefix)
    return (ip_to_number(ip) & mask) == (ip_to_number(network) & mask)


def get_network_address(cidr: str) -> str:
    """'192.168.1.77/24' -> '192.168.1.0'."""
    network, prefix = _split_cidr(cidr)
    return number_to_ip(ip_to_number(network) & prefix_mask(prefix))


def longest_prefix_match(ip: str, cidrs: Iterable[str]) -> Optional[str]:
    """
    Returns the most specific CIDR containing ip, or None.
    On equal prefix lengths the first candidate wins.
    """
    best_match = None
    best_prefix = -1
    for cidr in cidrs:
        prefix = prefix_length(cidr)
        if prefix > best_prefix and is_ip_in_subnet(ip, cidr):
            best_match = cidr
            best_prefix = prefix
    return best_match


# ─── NAT Helpers ─────────────────────────────────────────────────────────────

def five_tuple_key(protocol: str, src_ip: str, src_port: int, dst_ip: str, dst_port: int) -> str:
    """Flat connection key: 'TCP:10.0.0.5:40000:8.8.8.8:53'."""
    return f"{protocol}:{src_ip}:{src_port}:{dst_ip}:{dst_port}"
