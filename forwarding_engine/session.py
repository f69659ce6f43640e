"""
One game-loop step as a pure function: learn, automate, translate, judge.
Returns the next device snapshot and rule list instead of storing them.
"""
from __future__ import annotations
import logging
from typing import Optional, Sequence, Union

from .automation import evaluate_rules, record_match
from .config import DEFAULT_WAN_INTERFACE
from .models import (
    AutomationRule,
    Packet,
    PacketOutcome,
    PlayerDecision,
    RouterState,
    RoutingDecision,
    RoutingResult,
    SwitchState,
)
from .network import current_millis
from .routing import apply_destination_nat, apply_source_nat, learn_mac, route_router, route_switch
from .validator import validate_decision

logger = logging.getLogger(__name__)

Device = Union[SwitchState, RouterState]


def route_packet(packet: Packet, device: Device) -> RoutingResult:
    """Ground truth for either device kind."""
    if isinstance(device, SwitchState):
        return route_switch(packet, device)
    return route_router(packet, device)


def _apply_nat(decision: RoutingDecision, packet: Packet, router: RouterState, rng):
    wants_source = decision.natType == 'source' or (
        decision.natType is None and decision.port == DEFAULT_WAN_INTERFACE
    )
    if wants_source:
        nat = apply_source_nat(packet, router, rng)
        if nat is None:
            return packet, router
        router = router.model_copy(update={"natTable": list(router.natTable) + [nat.natEntry]})
        return nat.packet, router

    if decision.natType == 'destination':
        rewritten = apply_destination_nat(packet, router)
        if rewritten is not None:
            return rewritten, router

    return packet, router


def process_packet(
    packet: Packet,
    decision: RoutingDecision,
    device: Device,
    rules: Sequence[AutomationRule] = (),
    manual: bool = True,
    automation_enabled: bool = False,
    rng=None,
) -> PacketOutcome:
    """
    Runs one packet through a device.

    1. Switches learn the source MAC on the ingress port.
    2. Unless routing is manual, enabled automation rules may replace `decision`.
    3. Routers apply source or destination NAT when the decision asks for it.
    4. The routing engine computes the correct decision on the resulting
       packet and device snapshot, and the chosen decision is judged against it.
    """
    working = packet
    updated = device

    if isinstance(updated, SwitchState) and working.ingressPort:
        updated = updated.model_copy(update={
            "macTable": learn_mac(working, working.ingressPort, updated.macTable),
        })

    matched_rule: Optional[AutomationRule] = None
    if not manual and automation_enabled and rules:
        automated = evaluate_rules(working, rules, updated)
        if automated.decision is not None and automated.matchedRule is not None:
            decision = automated.decision
            matched_rule = automated.matchedRule

    if isinstance(updated, RouterState) and decision.applyNAT:
        working, updated = _apply_nat(decision, working, updated, rng)

    correct = route_packet(working, updated)
    verdict = validate_decision(working, decision, correct.decision)
    logger.debug(
        "%s: packet %s %s (%s)",
        updated.name, packet.id, "ok" if verdict.correct else "wrong", verdict.message,
    )

    next_rules = record_match(rules, matched_rule.id) if matched_rule else list(rules)

    return PacketOutcome(
        result=RoutingResult(
            success=verdict.correct,
            decision=decision,
            message=verdict.message,
            correctDecision=correct.decision,
        ),
        device=updated,
        packet=working,
        rules=next_rules,
        matchedRule=matched_rule,
        record=PlayerDecision(
            packetId=packet.id,
            timestamp=current_millis(),
            manualRouting=manual,
            ruleUsed=matched_rule.id if matched_rule else None,
            decision=decision,
        ),
    )
