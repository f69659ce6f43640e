"""
Packet Forwarding Engine
========================
Per-packet forwarding decisions for the networking game's switches and routers.

Modules:
    - packets     : Packet factories, validation and descriptions
    - network     : MAC/IPv4 checks, CIDR matching, longest-prefix match
    - routing     : Switch flood/learn/forward, router routing, NAT, firewall
    - automation  : Condition -> action rule evaluation and linting
    - validator   : Proposed vs. correct decision comparison
    - session     : One pure game-loop step over the engine
    - models      : Shared Pydantic models
    - main        : FastAPI application
"""

# --- Packets ---
from .packets import (
    create_l2_packet,
    create_l3_packet,
    create_l4_packet,
    create_arp_request,
    create_arp_reply,
    create_broadcast_packet,
    validate_packet,
    is_broadcast,
    is_arp,
    get_packet_description,
)

# --- Network primitives ---
from .network import (
    is_valid_mac,
    is_valid_ipv4,
    mac_equals,
    is_broadcast_mac,
    is_private_ip,
    ip_to_number,
    number_to_ip,
    is_ip_in_subnet,
    get_network_address,
    longest_prefix_match,
)

# --- Routing ---
from .routing import (
    route_switch,
    route_router,
    learn_mac,
    apply_source_nat,
    apply_destination_nat,
    check_firewall,
)

# --- Automation ---
from .automation import (
    evaluate_condition,
    execute_action,
    evaluate_rules,
    evaluate_all_rules,
    record_match,
    validate_rule,
    analyze_rules,
)

# --- Validation / Session ---
from .validator import validate_decision
from .session import process_packet, route_packet

# --- Models ---
from .models import (
    Packet,
    Layer2Headers,
    Layer3Headers,
    Layer4Headers,
    ARPData,
    DevicePort,
    MACTableEntry,
    RoutingTableEntry,
    NATTableEntry,
    FirewallRule,
    RouterInterface,
    SwitchState,
    RouterState,
    RoutingDecision,
    RoutingResult,
    AutomationRule,
    RuleCondition,
    RuleAction,
    ConditionParams,
    ActionParams,
)

__all__ = [
    # Packets
    "create_l2_packet",
    "create_l3_packet",
    "create_l4_packet",
    "create_arp_request",
    "create_arp_reply",
    "create_broadcast_packet",
    "validate_packet",
    "is_broadcast",
    "is_arp",
    "get_packet_description",
    # Network
    "is_valid_mac",
    "is_valid_ipv4",
    "mac_equals",
    "is_broadcast_mac",
    "is_private_ip",
    "ip_to_number",
    "number_to_ip",
    "is_ip_in_subnet",
    "get_network_address",
    "longest_prefix_match",
    # Routing
    "route_switch",
    "route_router",
    "learn_mac",
    "apply_source_nat",
    "apply_destination_nat",
    "check_firewall",
    # Automation
    "evaluate_condition",
    "execute_action",
    "evaluate_rules",
    "evaluate_all_rules",
    "record_match",
    "validate_rule",
    "analyze_rules",
    # Validation / Session
    "validate_decision",
    "process_packet",
    "route_packet",
    # Models
    "Packet",
    "Layer2Headers",
    "Layer3Headers",
    "Layer4Headers",
    "ARPData",
    "DevicePort",
    "MACTableEntry",
    "RoutingTableEntry",
    "NATTableEntry",
    "FirewallRule",
    "RouterInterface",
    "SwitchState",
    "RouterState",
    "RoutingDecision",
    "RoutingResult",
    "AutomationRule",
    "RuleCondition",
    "RuleAction",
    "ConditionParams",
    "ActionParams",
]
