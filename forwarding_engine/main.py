"""
FastAPI Backend: Packet Forwarding Engine
Exposes the switch/router engine, automation rules and decision checks as JSON endpoints.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .automation import analyze_rules, evaluate_all_rules, evaluate_rules, validate_rule
from .config import get_settings
from .models import (
    AutomationResult,
    AutomationRule,
    DecisionValidation,
    DeviceState,
    Direction,
    FirewallVerdict,
    MACTableEntry,
    Packet,
    PacketOutcome,
    PacketValidation,
    RouterState,
    RoutingDecision,
    RoutingResult,
    RuleAnalysis,
    RuleCheck,
    RuleEvaluation,
    SourceNATResult,
)
from .packets import get_packet_description, is_arp, is_broadcast, validate_packet
from .routing import apply_destination_nat, apply_source_nat, check_firewall, learn_mac
from .session import process_packet, route_packet
from .validator import validate_decision

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("forwarding_engine")


# ─────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Packet Forwarding Engine API",
    description="Switch and router forwarding decisions, NAT, firewall and automation rules for the networking game.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# Request Schemas
# ─────────────────────────────────────────────────────────────────────────────

class PacketDescription(BaseModel):
    description: str
    broadcast: bool
    arp: bool


class RouteRequest(BaseModel):
    packet: Packet
    device: DeviceState


class LearnRequest(BaseModel):
    packet: Packet
    ingressPort: str
    macTable: List[MACTableEntry] = []


class LearnResponse(BaseModel):
    macTable: List[MACTableEntry]


class NATRequest(BaseModel):
    packet: Packet
    router: RouterState


class DestinationNATResponse(BaseModel):
    packet: Optional[Packet] = None


class FirewallRequest(BaseModel):
    packet: Packet
    router: RouterState
    direction: Direction


class FirewallResponse(BaseModel):
    verdict: FirewallVerdict


class RulesRequest(BaseModel):
    packet: Packet
    rules: List[AutomationRule]
    device: DeviceState


class DecisionRequest(BaseModel):
    packet: Packet
    proposed: RoutingDecision
    correct: RoutingDecision


class StepRequest(BaseModel):
    packet: Packet
    decision: RoutingDecision
    device: DeviceState
    rules: List[AutomationRule] = []
    manual: bool = True
    automationEnabled: bool = False


# ─────────────────────────────────────────────────────────────────────────────
# Input Checks
# ─────────────────────────────────────────────────────────────────────────────

def require_valid_packet(packet: Packet) -> None:
    """
    The engine assumes well-formed addresses and ports, so packets headed for
    it are checked here and rejected with the validate_packet errors.
    """
    check = validate_packet(packet)
    if not check.valid:
        logger.info("Rejected packet %s: %s", packet.id, "; ".join(check.errors))
        raise HTTPException(status_code=422, detail=check.errors)


# ─────────────────────────────────────────────────────────────────────────────
# Health Check
# ─────────────────────────────────────────────────────────────────────────────

@app.get("/")
def root():
    return {"status": "ok", "message": "Packet Forwarding Engine API is running"}


# ─────────────────────────────────────────────────────────────────────────────
# Packet Endpoints
# ─────────────────────────────────────────────────────────────────────────────

@app.post("/api/packets/validate", response_model=PacketValidation)
def packets_validate(packet: Packet):
    """Checks MAC/IP formats and port ranges on every layer present."""
    return validate_packet(packet)


@app.post("/api/packets/describe", response_model=PacketDescription)
def packets_describe(packet: Packet):
    return PacketDescription(
        description=get_packet_description(packet),
        broadcast=is_broadcast(packet),
        arp=is_arp(packet),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Routing Endpoints
# ─────────────────────────────────────────────────────────────────────────────

@app.post("/api/routing/route", response_model=RoutingResult)
def routing_route(req: RouteRequest):
    """Computes the correct forwarding decision for a switch or router."""
    require_valid_packet(req.packet)
    return route_packet(req.packet, req.device)


@app.post("/api/routing/learn", response_model=LearnResponse)
def routing_learn(req: LearnRequest):
    """Returns the MAC table after learning the packet's source MAC."""
    require_valid_packet(req.packet)
    return LearnResponse(macTable=learn_mac(req.packet, req.ingressPort, req.macTable))


# ─────────────────────────────────────────────────────────────────────────────
# NAT / Firewall Endpoints
# ─────────────────────────────────────────────────────────────────────────────

@app.post("/api/nat/source", response_model=Optional[SourceNATResult])
def nat_source(req: NATRequest):
    """Outbound translation. Null when the packet cannot be translated."""
    require_valid_packet(req.packet)
    return apply_source_nat(req.packet, req.router)


@app.post("/api/nat/destination", response_model=DestinationNATResponse)
def nat_destination(req: NATRequest):
    """Inbound translation. A null packet means no NAT session exists."""
    require_valid_packet(req.packet)
    return DestinationNATResponse(packet=apply_destination_nat(req.packet, req.router))


@app.post("/api/firewall/check", response_model=FirewallResponse)
def firewall_check(req: FirewallRequest):
    require_valid_packet(req.packet)
    return FirewallResponse(verdict=check_firewall(req.packet, req.router, req.direction))


# ─────────────────────────────────────────────────────────────────────────────
# Automation Endpoints
# ─────────────────────────────────────────────────────────────────────────────

@app.post("/api/automation/evaluate", response_model=AutomationResult)
def automation_evaluate(req: RulesRequest):
    """First enabled rule (by priority) whose condition and action both apply."""
    require_valid_packet(req.packet)
    return evaluate_rules(req.packet, req.rules, req.device)


@app.post("/api/automation/evaluate-all", response_model=List[RuleEvaluation])
def automation_evaluate_all(req: RulesRequest):
    require_valid_packet(req.packet)
    return evaluate_all_rules(req.packet, req.rules, req.device)


@app.post("/api/automation/validate-rule", response_model=RuleCheck)
def automation_validate_rule(rule: AutomationRule):
    return validate_rule(rule)


@app.post("/api/automation/analyze", response_model=RuleAnalysis)
def automation_analyze(rules: List[AutomationRule]):
    """Advisory warnings about unreachable rules and long rule lists."""
    return analyze_rules(rules)


# ─────────────────────────────────────────────────────────────────────────────
# Decision / Session Endpoints
# ─────────────────────────────────────────────────────────────────────────────

@app.post("/api/decisions/validate", response_model=DecisionValidation)
def decisions_validate(req: DecisionRequest):
    return validate_decision(req.packet, req.proposed, req.correct)


@app.post("/api/session/step", response_model=PacketOutcome)
def session_step(req: StepRequest):
    """
    Processes one packet: MAC learning, optional automation, NAT and
    validation. The caller stores the returned device and rules.
    """
    require_valid_packet(req.packet)
    outcome = process_packet(
        req.packet, req.decision, req.device,
        rules=req.rules,
        manual=req.manual,
        automation_enabled=req.automationEnabled,
    )
    logger.info("Packet %s on %s: %s", req.packet.id, outcome.device.name, outcome.result.message)
    return outcome


def serve():
    """Console entry point: runs the API with uvicorn."""
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
