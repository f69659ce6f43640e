"""
Packet construction, validation and inspection.

Every factory returns a fresh Packet with a new id and the current timestamp.
Packets are immutable; build a new one rather than editing headers.
"""
from __future__ import annotations
from typing import Optional

from .config import BROADCAST_IP, BROADCAST_MAC, DEFAULT_TTL, MIN_FRAME_SIZE
from .models import (
    ARPData,
    Layer2Headers,
    Layer3Headers,
    Layer4Headers,
    Packet,
    PacketValidation,
    Protocol,
)
from .network import (
    current_millis,
    generate_packet_id,
    is_broadcast_mac,
    is_valid_ipv4,
    is_valid_mac,
)


# ─── Packet Factory ──────────────────────────────────────────────────────────

def _new_packet(layer2: Layer2Headers, ingress_port: Optional[str], payload: Optional[str], **layers) -> Packet:
    return Packet(
        id=generate_packet_id(),
        timestamp=current_millis(),
        layer2=layer2,
        size=MIN_FRAME_SIZE,
        ingressPort=ingress_port,
        payload=payload,
        **layers,
    )


def create_l2_packet(
    src_mac: str,
    dst_mac: str,
    vlan: Optional[int] = None,
    ingress_port: Optional[str] = None,
    payload: Optional[str] = None,
) -> Packet:
    """Creates a bare Ethernet frame."""
    return _new_packet(
        Layer2Headers(srcMAC=src_mac, dstMAC=dst_mac, vlan=vlan),
        ingress_port, payload,
    )


def create_l3_packet(
    src_mac: str,
    dst_mac: str,
    src_ip: str,
    dst_ip: str,
    protocol: Protocol = 'IP',
    vlan: Optional[int] = None,
    ingress_port: Optional[str] = None,
    payload: Optional[str] = None,
) -> Packet:
    """Creates a frame carrying an IPv4 header (TTL 64)."""
    return _new_packet(
        Layer2Headers(srcMAC=src_mac, dstMAC=dst_mac, vlan=vlan),
        ingress_port, payload,
        layer3=Layer3Headers(srcIP=src_ip, dstIP=dst_ip, protocol=protocol, ttl=DEFAULT_TTL),
    )


def create_l4_packet(
    src_mac: str,
    dst_mac: str,
    src_ip: str,
    dst_ip: str,
    src_port: int,
    dst_port: int,
    protocol: Protocol = 'TCP',
    vlan: Optional[int] = None,
    ingress_port: Optional[str] = None,
    payload: Optional[str] = None,
) -> Packet:
    """Creates a TCP/UDP segment inside an IPv4 packet."""
    return _new_packet(
        Layer2Headers(srcMAC=src_mac, dstMAC=dst_mac, vlan=vlan),
        ingress_port, payload,
        layer3=Layer3Headers(srcIP=src_ip, dstIP=dst_ip, protocol=protocol, ttl=DEFAULT_TTL),
        layer4=Layer4Headers(srcPort=src_port, dstPort=dst_port),
    )


def create_arp_request(
    sender_mac: str,
    sender_ip: str,
    target_ip: str,
    vlan: Optional[int] = None,
    ingress_port: Optional[str] = None,
) -> Packet:
    """'Who has target_ip? Tell sender_ip', sent to the broadcast MAC."""
    return _new_packet(
        Layer2Headers(srcMAC=sender_mac, dstMAC=BROADCAST_MAC, vlan=vlan),
        ingress_port, None,
        layer3=Layer3Headers(srcIP=sender_ip, dstIP=target_ip, protocol='ARP'),
        arp=ARPData(
            operation='request',
            senderMAC=sender_mac,
            senderIP=sender_ip,
            targetIP=target_ip,
        ),
    )


def create_arp_reply(
    sender_mac: str,
    sender_ip: str,
    target_mac: str,
    target_ip: str,
    vlan: Optional[int] = None,
    ingress_port: Optional[str] = None,
) -> Packet:
    """'sender_ip is at sender_mac', unicast back to the requester."""
    return _new_packet(
        Layer2Headers(srcMAC=sender_mac, dstMAC=target_mac, vlan=vlan),
        ingress_port, None,
        layer3=Layer3Headers(srcIP=sender_ip, dstIP=target_ip, protocol='ARP'),
        arp=ARPData(
            operation='reply',
            senderMAC=sender_mac,
            senderIP=sender_ip,
            targetMAC=target_mac,
            targetIP=target_ip,
        ),
    )


def create_broadcast_packet(
    src_mac: str,
    src_ip: Optional[str] = None,
    vlan: Optional[int] = None,
    ingress_port: Optional[str] = None,
    payload: Optional[str] = None,
) -> Packet:
    """
    Creates a broadcast frame. With src_ip it also carries an IP header
    addressed to 255.255.255.255.
    """
    layers = {}
    if src_ip:
        layers['layer3'] = Layer3Headers(
            srcIP=src_ip, dstIP=BROADCAST_IP, protocol='IP', ttl=DEFAULT_TTL,
        )
    return _new_packet(
        Layer2Headers(srcMAC=src_mac, dstMAC=BROADCAST_MAC, vlan=vlan),
        ingress_port, payload,
        **layers,
    )


# ─── Validation ──────────────────────────────────────────────────────────────

def _valid_port(port: int) -> bool:
    return 0 <= port <= 65535


def validate_packet(packet: Packet) -> PacketValidation:
    """
    Checks address formats and port ranges on every present layer.
    All problems are collected; nothing short-circuits.
    """
    errors = []

    l2 = packet.layer2
    if not is_valid_mac(l2.srcMAC):
        errors.append(f"Invalid source MAC: {l2.srcMAC}")
    if not is_valid_mac(l2.dstMAC):
        errors.append(f"Invalid destination MAC: {l2.dstMAC}")

    if packet.layer3:
        if not is_valid_ipv4(packet.layer3.srcIP):
            errors.append(f"Invalid source IP: {packet.layer3.srcIP}")
        if not is_valid_ipv4(packet.layer3.dstIP):
            errors.append(f"Invalid destination IP: {packet.layer3.dstIP}")

    if packet.layer4:
        if not _valid_port(packet.layer4.srcPort):
            errors.append(f"Invalid source port: {packet.layer4.srcPort}")
        if not _valid_port(packet.layer4.dstPort):
            errors.append(f"Invalid destination port: {packet.layer4.dstPort}")

    if packet.arp:
        if not is_valid_mac(packet.arp.senderMAC):
            errors.append(f"Invalid ARP sender MAC: {packet.arp.senderMAC}")
        if not is_valid_ipv4(packet.arp.senderIP):
            errors.append(f"Invalid ARP sender IP: {packet.arp.senderIP}")
        if not is_valid_ipv4(packet.arp.targetIP):
            errors.append(f"Invalid ARP target IP: {packet.arp.targetIP}")

    return PacketValidation(valid=not errors, errors=errors)


# ─── Inspection ──────────────────────────────────────────────────────────────

def is_broadcast(packet: Packet) -> bool:
    return is_broadcast_mac(packet.layer2.dstMAC)


def is_arp(packet: Packet) -> bool:
    return (packet.layer3 is not None and packet.layer3.protocol == 'ARP') or packet.arp is not None


def get_packet_description(packet: Packet) -> str:
    """One-line summary for the UI, most specific layer first."""
    if packet.arp:
        op = 'Request' if packet.arp.operation == 'request' else 'Reply'
        return f"ARP {op}: {packet.arp.senderIP} → {packet.arp.targetIP}"

    l3 = packet.layer3
    if packet.layer4 and l3:
        l4 = packet.layer4
        return f"{l3.protocol} {l3.srcIP}:{l4.srcPort} → {l3.dstIP}:{l4.dstPort}"

    if l3:
        return f"{l3.protocol} {l3.srcIP} → {l3.dstIP}"

    return f"{packet.layer2.srcMAC} → {packet.layer2.dstMAC}"
