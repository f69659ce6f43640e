"""
Pydantic models for packets, device state, automation rules and routing results.
Field names follow the game client's interfaces, so JSON round-trips unchanged.
"""
from __future__ import annotations
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .network import is_valid_cidr, is_valid_ipv4


# ── Shared ──────────────────────────────────────────────────────────────────

Protocol = Literal['TCP', 'UDP', 'ICMP', 'ARP', 'IP']
NATProtocol = Literal['TCP', 'UDP']
Direction = Literal['inbound', 'outbound']
FirewallVerdict = Literal['allowed', 'blocked']


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# Device configuration is parsed by the CIDR helpers, so malformed addresses
# are rejected on load. Packets stay permissive and go through validate_packet.
def _ipv4_or_none(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_ipv4(value):
        raise ValueError(f"Invalid IPv4 address: {value}")
    return value


def _cidr_or_none(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_cidr(value):
        raise ValueError(f"Invalid CIDR: {value}")
    return value


# ── Packet ──────────────────────────────────────────────────────────────────

class Layer2Headers(FrozenModel):
    srcMAC: str
    dstMAC: str
    vlan: Optional[int] = None


class Layer3Headers(FrozenModel):
    srcIP: str
    dstIP: str
    protocol: Protocol
    ttl: Optional[int] = None


class Layer4Headers(FrozenModel):
    # Range is checked by validate_packet, not here
    srcPort: int
    dstPort: int


class ARPData(FrozenModel):
    operation: Literal['request', 'reply']
    senderMAC: str
    senderIP: str
    targetMAC: Optional[str] = None
    targetIP: str


class Packet(FrozenModel):
    """
    A single simulated frame. Never mutated: NAT rewrites and other
    transformations produce a new Packet via model_copy().
    """
    id: str
    timestamp: int  # milliseconds since epoch
    layer2: Layer2Headers
    layer3: Optional[Layer3Headers] = None
    layer4: Optional[Layer4Headers] = None
    arp: Optional[ARPData] = None
    size: int = 64
    ingressPort: Optional[str] = None
    payload: Optional[str] = None

    @model_validator(mode='after')
    def _check_layering(self) -> 'Packet':
        if self.layer4 is not None and self.layer3 is None:
            raise ValueError('Layer 4 headers require Layer 3 headers')
        if self.arp is not None and (self.layer3 is None or self.layer3.protocol != 'ARP'):
            raise ValueError('ARP payload requires Layer 3 protocol ARP')
        return self


class PacketValidation(BaseModel):
    valid: bool
    errors: List[str]


# ── Device State ────────────────────────────────────────────────────────────

class DevicePort(FrozenModel):
    id: str
    name: str
    type: Literal['access', 'trunk'] = 'access'
    vlan: Optional[int] = None
    enabled: bool = True
    connectedDevice: Optional[str] = None


class MACTableEntry(FrozenModel):
    mac: str
    port: str
    vlan: Optional[int] = None
    timestamp: int
    learned: bool  # False for statically configured entries


class RoutingTableEntry(FrozenModel):
    destination: str                # CIDR, e.g. "192.168.1.0/24"
    nextHop: str                    # IPv4 address or "direct"
    interface: str
    metric: int = 0
    isDefault: Optional[bool] = None

    @field_validator('destination')
    @classmethod
    def validate_destination(cls, v: str) -> str:
        return _cidr_or_none(v)


class NATTableEntry(FrozenModel):
    internalIP: str
    internalPort: int
    externalIP: str
    externalPort: int
    protocol: NATProtocol
    state: Literal['ESTAB', 'SYN_SENT', 'CLOSING'] = 'ESTAB'
    timestamp: int


class FirewallRule(FrozenModel):
    id: str
    protocol: Optional[Literal['TCP', 'UDP', 'ICMP']] = None
    srcIP: Optional[str] = None     # CIDR
    dstIP: Optional[str] = None     # CIDR
    srcPort: Optional[int] = None
    dstPort: Optional[int] = None
    action: Literal['allow', 'deny']
    direction: Optional[Literal['inbound', 'outbound', 'both']] = None

    @field_validator('srcIP', 'dstIP')
    @classmethod
    def validate_cidrs(cls, v: Optional[str]) -> Optional[str]:
        return _cidr_or_none(v)


class RouterInterface(FrozenModel):
    ip: str
    subnet: str                     # CIDR
    mac: str
    enabled: bool = True

    @field_validator('ip')
    @classmethod
    def validate_ip(cls, v: str) -> str:
        return _ipv4_or_none(v)

    @field_validator('subnet')
    @classmethod
    def validate_subnet(cls, v: str) -> str:
        return _cidr_or_none(v)


class SwitchState(FrozenModel):
    type: Literal['switch'] = 'switch'
    name: str
    ports: List[DevicePort]
    macTable: List[MACTableEntry] = Field(default_factory=list)
    vlans: List[int] = Field(default_factory=list)


class RouterState(FrozenModel):
    type: Literal['router'] = 'router'
    name: str
    interfaces: Dict[str, RouterInterface]
    routingTable: List[RoutingTableEntry] = Field(default_factory=list)
    natTable: List[NATTableEntry] = Field(default_factory=list)
    natEnabled: bool = False
    firewallRules: List[FirewallRule] = Field(default_factory=list)
    publicIP: Optional[str] = None

    @field_validator('publicIP')
    @classmethod
    def validate_public_ip(cls, v: Optional[str]) -> Optional[str]:
        return _ipv4_or_none(v)


DeviceState = Annotated[Union[SwitchState, RouterState], Field(discriminator='type')]


# ── Routing Decisions ───────────────────────────────────────────────────────

class RoutingDecision(FrozenModel):
    action: Literal['forward', 'flood', 'drop']
    port: Optional[str] = None
    ports: Optional[List[str]] = None
    reason: str = ''
    applyNAT: Optional[bool] = None
    natType: Optional[Literal['source', 'destination']] = None


class RoutingResult(BaseModel):
    success: bool
    decision: RoutingDecision
    message: str
    correctDecision: Optional[RoutingDecision] = None


class DecisionValidation(BaseModel):
    correct: bool
    message: str


class SourceNATResult(BaseModel):
    packet: Packet
    natEntry: NATTableEntry


# ── Automation Rules ────────────────────────────────────────────────────────

# Condition and action tags are kept as plain strings on the models so that
# unknown tags coming from level data evaluate to "no match" instead of
# failing to load.
CONDITION_TYPES = (
    'dst_mac_equals',
    'dst_mac_in_table',
    'dst_mac_broadcast',
    'src_mac_equals',
    'dst_ip_in_subnet',
    'dst_ip_equals',
    'src_ip_in_subnet',
    'src_ip_private',
    'default_route',
    'vlan_equals',
    'protocol_equals',
    'dst_port_equals',
    'src_port_equals',
    'in_nat_table',
    'direction',
)

ACTION_TYPES = (
    'send_to_port',
    'send_to_interface',
    'send_to_learned_port',
    'flood_all_ports',
    'drop_packet',
    'apply_nat',
    'reverse_nat',
    'route_and_nat',
)


class ConditionParams(FrozenModel):
    mac: Optional[str] = None
    ip: Optional[str] = None
    subnet: Optional[str] = None
    port: Optional[int] = None
    protocol: Optional[Protocol] = None
    vlan: Optional[int] = None
    direction: Optional[Literal['inbound', 'outbound', 'internal']] = None

    @field_validator('subnet')
    @classmethod
    def validate_subnet(cls, v: Optional[str]) -> Optional[str]:
        return _cidr_or_none(v)


class ActionParams(FrozenModel):
    port: Optional[str] = None
    interface: Optional[str] = None
    ports: Optional[List[str]] = None
    natType: Optional[Literal['source', 'destination']] = None


class RuleCondition(FrozenModel):
    id: Optional[str] = None
    type: str
    params: ConditionParams = Field(default_factory=ConditionParams)
    label: str = ''


class RuleAction(FrozenModel):
    id: Optional[str] = None
    type: str
    params: ActionParams = Field(default_factory=ActionParams)
    label: str = ''


class AutomationRule(FrozenModel):
    id: str
    name: Optional[str] = None
    condition: RuleCondition
    action: RuleAction
    enabled: bool = True
    priority: int = 0               # lower number = evaluated first
    matchCount: int = 0


class AutomationResult(BaseModel):
    decision: Optional[RoutingDecision] = None
    matchedRule: Optional[AutomationRule] = None


class RuleEvaluation(BaseModel):
    rule: AutomationRule
    matched: bool
    reason: Optional[str] = None


class RuleCheck(BaseModel):
    valid: bool
    errors: List[str]


class RuleAnalysis(BaseModel):
    warnings: List[str]
    suggestions: List[str]


# ── Session ─────────────────────────────────────────────────────────────────

class PlayerDecision(BaseModel):
    packetId: str
    timestamp: int
    manualRouting: bool
    ruleUsed: Optional[str] = None
    decision: RoutingDecision


class PacketOutcome(BaseModel):
    result: RoutingResult
    device: DeviceState
    packet: Packet
    rules: List[AutomationRule]
    matchedRule: Optional[AutomationRule] = None
    record: PlayerDecision
