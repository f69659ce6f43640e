"""
Forwarding logic for switches (Layer 2) and routers (Layer 3).

route_switch / route_router compute the ground-truth decision for a packet.
learn_mac, apply_source_nat and apply_destination_nat are the state
transitions; they return new values and leave the given device state alone.
"""
from __future__ import annotations
import logging
import random
from typing import List, Optional

from .config import (
    DEFAULT_LAN_INTERFACE,
    DEFAULT_WAN_INTERFACE,
    EPHEMERAL_PORT_MAX,
    EPHEMERAL_PORT_MIN,
)
from .models import (
    FirewallRule,
    FirewallVerdict,
    Direction,
    MACTableEntry,
    NATTableEntry,
    Packet,
    RouterState,
    RoutingDecision,
    RoutingResult,
    SourceNATResult,
    SwitchState,
)
from .network import (
    current_millis,
    is_broadcast_mac,
    is_ip_in_subnet,
    is_private_ip,
    longest_prefix_match,
    mac_equals,
)
from .packets import is_arp

logger = logging.getLogger(__name__)


# ─── Switch Helpers ──────────────────────────────────────────────────────────

def vlan_matches(a: Optional[int], b: Optional[int]) -> bool:
    """An unset VLAN (None or 0) on either side matches anything."""
    return not a or not b or a == b


def flood_ports(packet: Packet, switch: SwitchState) -> List[str]:
    """Enabled ports in the packet's VLAN, minus the one it arrived on."""
    vlan = packet.layer2.vlan
    return [
        p.id for p in switch.ports
        if p.enabled and vlan_matches(vlan, p.vlan) and p.id != packet.ingressPort
    ]


def find_mac_entry(mac_table: List[MACTableEntry], mac: str, vlan: Optional[int]) -> Optional[MACTableEntry]:
    return next(
        (e for e in mac_table if mac_equals(e.mac, mac) and vlan_matches(vlan, e.vlan)),
        None,
    )


# ─── Switch Routing ──────────────────────────────────────────────────────────

def route_switch(packet: Packet, switch: SwitchState) -> RoutingResult:
    """
    Broadcast -> flood; known destination MAC -> forward to its port;
    unknown destination -> flood so the switch can learn where it lives.
    """
    dst_mac = packet.layer2.dstMAC

    if is_broadcast_mac(dst_mac):
        ports = flood_ports(packet, switch)
        logger.debug("%s: broadcast from %s flooded to %s", switch.name, packet.layer2.srcMAC, ports)
        return RoutingResult(
            success=True,
            decision=RoutingDecision(action='flood', ports=ports, reason='Broadcast packet - flood to all ports'),
            message='Correct! Broadcast packets must be flooded to all ports.',
            correctDecision=RoutingDecision(action='flood', ports=ports, reason='Broadcast packet'),
        )

    entry = find_mac_entry(switch.macTable, dst_mac, packet.layer2.vlan)
    if entry:
        logger.debug("%s: %s known on port %s", switch.name, dst_mac, entry.port)
        return RoutingResult(
            success=True,
            decision=RoutingDecision(
                action='forward',
                port=entry.port,
                reason=f"Destination MAC {dst_mac} found in table on port {entry.port}",
            ),
            message=f"Correct! MAC {dst_mac} is on port {entry.port}.",
            correctDecision=RoutingDecision(action='forward', port=entry.port, reason='MAC found in table'),
        )

    ports = flood_ports(packet, switch)
    logger.debug("%s: %s unknown, flooding to %s", switch.name, dst_mac, ports)
    return RoutingResult(
        success=True,
        decision=RoutingDecision(
            action='flood',
            ports=ports,
            reason=f"Destination MAC {dst_mac} not in table - flood",
        ),
        message='Correct! Unknown MAC - flood to learn where it is.',
        correctDecision=RoutingDecision(action='flood', ports=ports, reason='Unknown MAC'),
    )


def learn_mac(packet: Packet, ingress_port: str, mac_table: List[MACTableEntry]) -> List[MACTableEntry]:
    """
    Records the packet's source MAC against ingress_port.
    A known MAC that moved gets its port and timestamp refreshed; a known MAC
    on the same port is left as is. Always returns a new list.
    """
    src_mac = packet.layer2.srcMAC
    vlan = packet.layer2.vlan
    existing = find_mac_entry(mac_table, src_mac, vlan)

    if existing:
        if existing.port == ingress_port:
            return list(mac_table)
        moved = existing.model_copy(update={"port": ingress_port, "timestamp": current_millis()})
        logger.debug("MAC %s moved %s -> %s", src_mac, existing.port, ingress_port)
        return [moved if e is existing else e for e in mac_table]

    logger.debug("Learned MAC %s on port %s (vlan %s)", src_mac, ingress_port, vlan)
    return list(mac_table) + [MACTableEntry(
        mac=src_mac,
        port=ingress_port,
        vlan=vlan,
        timestamp=current_millis(),
        learned=True,
    )]


# ─── Router Routing ──────────────────────────────────────────────────────────

def route_router(packet: Packet, router: RouterState) -> RoutingResult:
    """
    Order of precedence: ARP short-circuit, missing IP header (drop),
    directly connected subnet, longest-prefix match on the routing table,
    otherwise drop for lack of a route.
    """
    if is_arp(packet):
        port = packet.ingressPort or DEFAULT_LAN_INTERFACE
        return RoutingResult(
            success=True,
            decision=RoutingDecision(action='forward', port=port, reason='ARP packet'),
            message='ARP handled.',
            correctDecision=RoutingDecision(action='forward', port=port, reason='ARP'),
        )

    if packet.layer3 is None:
        return RoutingResult(
            success=False,
            decision=RoutingDecision(action='drop', reason='No Layer 3 headers - router needs IP addresses'),
            message='Wrong! Routers need IP addresses to route packets.',
            correctDecision=RoutingDecision(action='drop', reason='No IP headers'),
        )

    dst_ip = packet.layer3.dstIP

    for if_name, if_config in router.interfaces.items():
        if is_ip_in_subnet(dst_ip, if_config.subnet):
            logger.debug("%s: %s directly connected via %s", router.name, dst_ip, if_name)
            return RoutingResult(
                success=True,
                decision=RoutingDecision(
                    action='forward',
                    port=if_name,
                    reason=f"Destination {dst_ip} is in directly connected subnet {if_config.subnet}",
                ),
                message=f"Correct! {dst_ip} is on {if_name} ({if_config.subnet}).",
                correctDecision=RoutingDecision(action='forward', port=if_name, reason='Directly connected'),
            )

    matched = longest_prefix_match(dst_ip, [r.destination for r in router.routingTable])
    if matched:
        route = next(r for r in router.routingTable if r.destination == matched)
        apply_nat = (
            router.natEnabled
            and route.interface == DEFAULT_WAN_INTERFACE
            and is_private_ip(packet.layer3.srcIP)
        )
        logger.debug("%s: %s matched %s -> %s (nat=%s)", router.name, dst_ip, matched, route.interface, apply_nat)
        return RoutingResult(
            success=True,
            decision=RoutingDecision(
                action='forward',
                port=route.interface,
                reason=f"Matched route {route.destination} → {route.interface}",
                applyNAT=apply_nat,
            ),
            message=f"Correct! Route {matched} sends to {route.interface}.",
            correctDecision=RoutingDecision(action='forward', port=route.interface, reason='Routing table match'),
        )

    logger.info("%s: no route to %s", router.name, dst_ip)
    return RoutingResult(
        success=False,
        decision=RoutingDecision(action='drop', reason=f"No route to {dst_ip}"),
        message=f"Wrong! No route to {dst_ip} - packet dropped.",
        correctDecision=RoutingDecision(action='drop', reason='No route'),
    )


# ─── NAT ─────────────────────────────────────────────────────────────────────

def allocate_external_port(nat_table: List[NATTableEntry], rng=None) -> int:
    """Draws from the ephemeral range until it hits a port no entry uses."""
    rng = rng or random
    used = {e.externalPort for e in nat_table}
    port = rng.randint(EPHEMERAL_PORT_MIN, EPHEMERAL_PORT_MAX)
    while port in used:
        port = rng.randint(EPHEMERAL_PORT_MIN, EPHEMERAL_PORT_MAX)
    return port


def apply_source_nat(packet: Packet, router: RouterState, rng=None) -> Optional[SourceNATResult]:
    """
    Outbound translation: source IP/port become publicIP/<fresh port>.
    Returns the rewritten packet and the new NAT entry; the caller appends
    the entry to its NAT table. None when the packet has no TCP/UDP ports
    or the router has no public IP.
    """
    l3, l4 = packet.layer3, packet.layer4
    if l3 is None or l4 is None or not router.publicIP:
        return None
    if l3.protocol not in ('TCP', 'UDP'):
        logger.info("%s: cannot translate %s traffic", router.name, l3.protocol)
        return None

    external_port = allocate_external_port(router.natTable, rng)
    nat_entry = NATTableEntry(
        internalIP=l3.srcIP,
        internalPort=l4.srcPort,
        externalIP=router.publicIP,
        externalPort=external_port,
        protocol=l3.protocol,
        state='ESTAB',
        timestamp=current_millis(),
    )
    rewritten = packet.model_copy(update={
        "layer3": l3.model_copy(update={"srcIP": router.publicIP}),
        "layer4": l4.model_copy(update={"srcPort": external_port}),
    })
    logger.debug(
        "%s: SNAT %s:%s -> %s:%s",
        router.name, l3.srcIP, l4.srcPort, router.publicIP, external_port,
    )
    return SourceNATResult(packet=rewritten, natEntry=nat_entry)


def find_nat_entry(nat_table: List[NATTableEntry], ip: str, port: int, protocol: str) -> Optional[NATTableEntry]:
    return next(
        (e for e in nat_table
         if e.externalIP == ip and e.externalPort == port and e.protocol == protocol),
        None,
    )


def apply_destination_nat(packet: Packet, router: RouterState) -> Optional[Packet]:
    """
    Inbound translation back to the internal host. None means there is no
    session for (dstIP, dstPort, protocol) and the packet should be dropped.
    """
    l3, l4 = packet.layer3, packet.layer4
    if l3 is None or l4 is None:
        return None

    entry = find_nat_entry(router.natTable, l3.dstIP, l4.dstPort, l3.protocol)
    if entry is None:
        logger.info("%s: no NAT session for %s:%s/%s", router.name, l3.dstIP, l4.dstPort, l3.protocol)
        return None

    return packet.model_copy(update={
        "layer3": l3.model_copy(update={"dstIP": entry.internalIP}),
        "layer4": l4.model_copy(update={"dstPort": entry.internalPort}),
    })


# ─── Firewall ────────────────────────────────────────────────────────────────

def firewall_rule_applies(rule: FirewallRule, packet: Packet, direction: Direction) -> bool:
    """Unset rule fields are wildcards; every set field must match the packet."""
    if rule.direction and rule.direction != 'both' and rule.direction != direction:
        return False

    l3, l4 = packet.layer3, packet.layer4
    if rule.protocol and (l3 is None or l3.protocol != rule.protocol):
        return False
    if rule.srcIP and (l3 is None or not is_ip_in_subnet(l3.srcIP, rule.srcIP)):
        return False
    if rule.dstIP and (l3 is None or not is_ip_in_subnet(l3.dstIP, rule.dstIP)):
        return False
    if rule.srcPort is not None and (l4 is None or l4.srcPort != rule.srcPort):
        return False
    if rule.dstPort is not None and (l4 is None or l4.dstPort != rule.dstPort):
        return False
    return True


def check_firewall(packet: Packet, router: RouterState, direction: Direction) -> FirewallVerdict:
    """First applicable rule decides; no applicable rule means allowed."""
    for rule in router.firewallRules:
        if not firewall_rule_applies(rule, packet, direction):
            continue
        if rule.action == 'deny':
            logger.info("%s: firewall rule %s blocked %s packet", router.name, rule.id, direction)
            return 'blocked'
        return 'allowed'
    return 'allowed'
