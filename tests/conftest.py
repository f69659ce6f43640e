"""Shared fixtures: a four-port switch and a NAT router."""

import pytest

from forwarding_engine.models import (
    ActionParams,
    AutomationRule,
    ConditionParams,
    DevicePort,
    RouterInterface,
    RouterState,
    RoutingTableEntry,
    RuleAction,
    RuleCondition,
    SwitchState,
)

MAC_A = "AA:AA:AA:AA:AA:AA"
MAC_B = "BB:BB:BB:BB:BB:BB"
MAC_C = "CC:CC:CC:CC:CC:CC"


@pytest.fixture
def switch() -> SwitchState:
    return SwitchState(
        name="SW1",
        ports=[DevicePort(id=f"port{i}", name=f"Port {i}") for i in range(1, 5)],
    )


@pytest.fixture
def vlan_switch() -> SwitchState:
    return SwitchState(
        name="SW2",
        ports=[
            DevicePort(id="port1", name="Port 1", vlan=10),
            DevicePort(id="port2", name="Port 2", vlan=10),
            DevicePort(id="port3", name="Port 3", vlan=20),
            DevicePort(id="port4", name="Port 4", type="trunk"),
            DevicePort(id="port5", name="Port 5", vlan=10, enabled=False),
        ],
        vlans=[10, 20],
    )


@pytest.fixture
def router() -> RouterState:
    return RouterState(
        name="R1",
        interfaces={
            "LAN": RouterInterface(ip="192.168.1.1", subnet="192.168.1.0/24", mac="00:11:22:33:44:01"),
            "WAN": RouterInterface(ip="203.0.113.2", subnet="203.0.113.0/30", mac="00:11:22:33:44:02"),
        },
        routingTable=[
            RoutingTableEntry(destination="10.0.0.0/8", nextHop="192.168.1.254", interface="LAN", metric=10),
            RoutingTableEntry(destination="0.0.0.0/0", nextHop="203.0.113.1", interface="WAN", metric=1, isDefault=True),
        ],
        natEnabled=True,
        publicIP="203.0.113.2",
    )


@pytest.fixture
def make_rule():
    def _make(rule_id, condition_type, action_type, priority=0, enabled=True,
              condition_params=None, action_params=None, name=None):
        return AutomationRule(
            id=rule_id,
            name=name,
            condition=RuleCondition(type=condition_type, params=ConditionParams(**(condition_params or {}))),
            action=RuleAction(
                type=action_type,
                params=ActionParams(**(action_params or {})),
                label=f"{action_type} rule",
            ),
            enabled=enabled,
            priority=priority,
        )
    return _make
