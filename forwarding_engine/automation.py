"""
Rule-based automation: ordered condition -> action rules that pick a
forwarding decision without player input.
"""
from __future__ import annotations
import logging
from typing import List, Optional, Sequence, Union

from .config import DEFAULT_LAN_INTERFACE, DEFAULT_WAN_INTERFACE, RULE_CONSOLIDATION_THRESHOLD
from .models import (
    ACTION_TYPES,
    CONDITION_TYPES,
    AutomationResult,
    AutomationRule,
    Packet,
    RouterState,
    RoutingDecision,
    RuleAction,
    RuleAnalysis,
    RuleCheck,
    RuleCondition,
    RuleEvaluation,
    SwitchState,
)
from .network import is_broadcast_mac, is_ip_in_subnet, is_private_ip, mac_equals

logger = logging.getLogger(__name__)

Device = Union[SwitchState, RouterState]


# ─── Conditions ──────────────────────────────────────────────────────────────

def evaluate_condition(condition: RuleCondition, packet: Packet, device: Device) -> bool:
    """Missing parameters, unknown condition types and wrong device kinds all yield False."""
    params = condition.params
    l2, l3, l4 = packet.layer2, packet.layer3, packet.layer4
    ctype = condition.type

    # MAC
    if ctype == 'dst_mac_equals':
        return bool(params.mac) and mac_equals(l2.dstMAC, params.mac)
    if ctype == 'src_mac_equals':
        return bool(params.mac) and mac_equals(l2.srcMAC, params.mac)
    if ctype == 'dst_mac_broadcast':
        return is_broadcast_mac(l2.dstMAC)
    if ctype == 'dst_mac_in_table':
        if not isinstance(device, SwitchState):
            return False
        return any(mac_equals(e.mac, l2.dstMAC) for e in device.macTable)

    # IP
    if ctype == 'dst_ip_equals':
        return params.ip is not None and l3 is not None and l3.dstIP == params.ip
    if ctype == 'dst_ip_in_subnet':
        return bool(params.subnet) and l3 is not None and is_ip_in_subnet(l3.dstIP, params.subnet)
    if ctype == 'src_ip_in_subnet':
        return bool(params.subnet) and l3 is not None and is_ip_in_subnet(l3.srcIP, params.subnet)
    if ctype == 'src_ip_private':
        return l3 is not None and is_private_ip(l3.srcIP)
    if ctype == 'default_route':
        # catch-all
        return True

    # VLAN / protocol / ports
    if ctype == 'vlan_equals':
        return params.vlan is not None and l2.vlan == params.vlan
    if ctype == 'protocol_equals':
        return params.protocol is not None and l3 is not None and l3.protocol == params.protocol
    if ctype == 'dst_port_equals':
        return params.port is not None and l4 is not None and l4.dstPort == params.port
    if ctype == 'src_port_equals':
        return params.port is not None and l4 is not None and l4.srcPort == params.port

    # NAT
    if ctype == 'in_nat_table':
        if not isinstance(device, RouterState) or l3 is None or l4 is None:
            return False
        return any(
            e.externalIP == l3.dstIP and e.externalPort == l4.dstPort
            for e in device.natTable
        )

    # Simplified: private source means outbound, public source means inbound
    if ctype == 'direction':
        if not params.direction or l3 is None:
            return False
        private = is_private_ip(l3.srcIP)
        if params.direction == 'outbound':
            return private
        if params.direction == 'inbound':
            return not private
        return False

    return False


# ─── Actions ─────────────────────────────────────────────────────────────────

def execute_action(action: RuleAction, packet: Packet, device: Device) -> Optional[RoutingDecision]:
    """
    Turns an action into a decision. None means the action cannot apply
    here (missing parameter, wrong device kind, unknown MAC) and evaluation
    should move on to the next rule.
    """
    params = action.params
    atype = action.type

    if atype == 'send_to_port':
        if not params.port:
            return None
        return RoutingDecision(action='forward', port=params.port, reason=f"Rule: {action.label}")

    if atype == 'send_to_interface':
        if not params.interface:
            return None
        return RoutingDecision(action='forward', port=params.interface, reason=f"Rule: {action.label}")

    if atype == 'send_to_learned_port':
        if not isinstance(device, SwitchState):
            return None
        entry = next((e for e in device.macTable if mac_equals(e.mac, packet.layer2.dstMAC)), None)
        if entry is None:
            return None
        return RoutingDecision(action='forward', port=entry.port, reason='Rule: Send to learned port')

    if atype == 'flood_all_ports':
        ports: List[str] = []
        if isinstance(device, SwitchState):
            ports = [p.id for p in device.ports if p.enabled and p.id != packet.ingressPort]
        return RoutingDecision(action='flood', ports=ports, reason='Rule: Flood all ports')

    if atype == 'drop_packet':
        return RoutingDecision(action='drop', reason='Rule: Drop packet')

    if atype == 'apply_nat':
        return RoutingDecision(
            action='forward',
            port=params.interface or DEFAULT_WAN_INTERFACE,
            reason='Rule: Apply NAT',
            applyNAT=True,
            natType='source',
        )

    if atype == 'reverse_nat':
        return RoutingDecision(
            action='forward',
            port=params.interface or DEFAULT_LAN_INTERFACE,
            reason='Rule: Reverse NAT',
            applyNAT=True,
            natType='destination',
        )

    if atype == 'route_and_nat':
        if not params.interface:
            return None
        return RoutingDecision(
            action='forward',
            port=params.interface,
            reason='Rule: Route with NAT',
            applyNAT=True,
        )

    return None


# ─── Rule Evaluation ─────────────────────────────────────────────────────────

def sort_rules(rules: Sequence[AutomationRule]) -> List[AutomationRule]:
    # sorted() is stable, so equal priorities keep their configured order
    return sorted(rules, key=lambda r: r.priority)


def evaluate_rules(packet: Packet, rules: Sequence[AutomationRule], device: Device) -> AutomationResult:
    """
    Walks enabled rules by ascending priority and returns the first one whose
    condition matches and whose action produces a decision.
    """
    for rule in sort_rules([r for r in rules if r.enabled]):
        if not evaluate_condition(rule.condition, packet, device):
            continue
        decision = execute_action(rule.action, packet, device)
        if decision is not None:
            logger.debug("Rule %s matched packet %s -> %s", rule.id, packet.id, decision.action)
            return AutomationResult(decision=decision, matchedRule=rule)
        logger.info("Rule %s matched packet %s but its action did not apply", rule.id, packet.id)

    return AutomationResult()


def evaluate_all_rules(packet: Packet, rules: Sequence[AutomationRule], device: Device) -> List[RuleEvaluation]:
    """Per-rule condition results in configured order, for the rule editor."""
    return [
        RuleEvaluation(
            rule=rule,
            matched=evaluate_condition(rule.condition, packet, device),
            reason=None if rule.enabled else 'Rule disabled',
        )
        for rule in rules
    ]


def record_match(rules: Sequence[AutomationRule], rule_id: str) -> List[AutomationRule]:
    """Returns a new rule list with rule_id's matchCount bumped by one."""
    return [
        r.model_copy(update={"matchCount": r.matchCount + 1}) if r.id == rule_id else r
        for r in rules
    ]


# ─── Rule Checks ─────────────────────────────────────────────────────────────

def validate_rule(rule: AutomationRule) -> RuleCheck:
    errors = []

    ctype = rule.condition.type
    if ctype not in CONDITION_TYPES:
        errors.append(f'Unknown condition type: {ctype}')
    elif ctype in ('dst_mac_equals', 'src_mac_equals') and not rule.condition.params.mac:
        errors.append('Condition requires MAC address')
    elif ctype in ('dst_ip_in_subnet', 'src_ip_in_subnet') and not rule.condition.params.subnet:
        errors.append('Condition requires subnet (CIDR)')

    atype = rule.action.type
    if atype not in ACTION_TYPES:
        errors.append(f'Unknown action type: {atype}')
    elif atype == 'send_to_port' and not rule.action.params.port:
        errors.append('Action requires port')
    elif atype == 'send_to_interface' and not rule.action.params.interface:
        errors.append('Action requires interface')

    return RuleCheck(valid=not errors, errors=errors)


def analyze_rules(rules: Sequence[AutomationRule]) -> RuleAnalysis:
    """
    Advisory lint. Flags rules ordered behind a catch-all 'default_route'
    rule (they can never fire) and suggests consolidating long rule lists.
    """
    warnings = []
    suggestions = []

    catch_all_seen = False
    for rule in sort_rules(rules):
        if catch_all_seen:
            warnings.append(
                f'Rule "{rule.name or rule.id}" may never execute - earlier rule catches all packets'
            )
        if rule.condition.type == 'default_route':
            catch_all_seen = True

    if len(rules) > RULE_CONSOLIDATION_THRESHOLD:
        suggestions.append('Consider combining similar rules to improve efficiency')

    for message in warnings:
        logger.warning(message)

    return RuleAnalysis(warnings=warnings, suggestions=suggestions)
