"""
Compares a proposed forwarding decision against the ground truth.
"""
from __future__ import annotations

from .models import DecisionValidation, Packet, RoutingDecision


def validate_decision(
    packet: Packet,
    proposed: RoutingDecision,
    correct: RoutingDecision,
) -> DecisionValidation:
    """
    The action must match; for forwards with a known port the port must match too.
    Correctness itself comes from route_switch / route_router, not from here.
    """
    if proposed.action != correct.action:
        return DecisionValidation(
            correct=False,
            message=f"Wrong action! Expected {correct.action}, got {proposed.action}. {correct.reason}",
        )

    if correct.action == 'forward' and correct.port and proposed.port != correct.port:
        return DecisionValidation(
            correct=False,
            message=f"Wrong port! Expected {correct.port}, got {proposed.port}. {correct.reason}",
        )

    return DecisionValidation(correct=True, message=f"Correct! {correct.reason}")
