"""Tests for the automation rule engine."""

import pytest
from pydantic import ValidationError

from forwarding_engine.automation import (
    analyze_rules,
    evaluate_all_rules,
    evaluate_condition,
    evaluate_rules,
    execute_action,
    record_match,
    validate_rule,
)
from forwarding_engine.models import (
    ActionParams,
    ConditionParams,
    MACTableEntry,
    NATTableEntry,
    RuleAction,
    RuleCondition,
)
from forwarding_engine.packets import (
    create_broadcast_packet,
    create_l2_packet,
    create_l3_packet,
    create_l4_packet,
)

from .conftest import MAC_A, MAC_B


def condition(ctype, **params):
    return RuleCondition(type=ctype, params=ConditionParams(**params))


def action(atype, label="", **params):
    return RuleAction(type=atype, params=ActionParams(**params), label=label)


@pytest.fixture
def web_packet():
    return create_l4_packet(MAC_A, MAC_B, "192.168.1.10", "93.184.216.34", 40000, 443, "TCP", vlan=10, ingress_port="port1")


class TestConditions:
    @pytest.mark.parametrize("cond, expected", [
        (condition("dst_mac_equals", mac=MAC_B.lower()), True),
        (condition("dst_mac_equals", mac=MAC_A), False),
        (condition("dst_mac_equals"), False),
        (condition("src_mac_equals", mac=MAC_A), True),
        (condition("dst_mac_broadcast"), False),
        (condition("dst_ip_equals", ip="93.184.216.34"), True),
        (condition("dst_ip_equals"), False),
        (condition("dst_ip_in_subnet", subnet="93.184.0.0/16"), True),
        (condition("dst_ip_in_subnet", subnet="10.0.0.0/8"), False),
        (condition("src_ip_in_subnet", subnet="192.168.0.0/16"), True),
        (condition("src_ip_in_subnet"), False),
        (condition("src_ip_private"), True),
        (condition("default_route"), True),
        (condition("vlan_equals", vlan=10), True),
        (condition("vlan_equals", vlan=20), False),
        (condition("protocol_equals", protocol="TCP"), True),
        (condition("protocol_equals", protocol="UDP"), False),
        (condition("dst_port_equals", port=443), True),
        (condition("src_port_equals", port=443), False),
        (condition("src_port_equals", port=40000), True),
        (condition("direction", direction="outbound"), True),
        (condition("direction", direction="inbound"), False),
        (condition("direction", direction="internal"), False),
        (condition("direction"), False),
        (condition("no_such_condition"), False),
    ])
    def test_condition_on_switch(self, switch, web_packet, cond, expected):
        assert evaluate_condition(cond, web_packet, switch) is expected

    def test_layer3_conditions_on_plain_frame(self, switch):
        frame = create_l2_packet(MAC_A, MAC_B)
        for cond in (condition("src_ip_private"), condition("dst_ip_in_subnet", subnet="0.0.0.0/0"),
                     condition("dst_port_equals", port=80), condition("direction", direction="inbound")):
            assert evaluate_condition(cond, frame, switch) is False

    def test_broadcast_condition(self, switch):
        packet = create_broadcast_packet(MAC_A)
        assert evaluate_condition(condition("dst_mac_broadcast"), packet, switch)

    def test_mac_table_condition(self, switch, router, web_packet):
        table = [MACTableEntry(mac=MAC_B, port="port2", timestamp=1, learned=True)]
        device = switch.model_copy(update={"macTable": table})
        assert evaluate_condition(condition("dst_mac_in_table"), web_packet, device)
        assert not evaluate_condition(condition("dst_mac_in_table"), web_packet, switch)
        assert not evaluate_condition(condition("dst_mac_in_table"), web_packet, router)

    def test_nat_table_condition(self, switch, router):
        entry = NATTableEntry(internalIP="192.168.1.10", internalPort=40000, externalIP="203.0.113.2",
                              externalPort=41000, protocol="TCP", timestamp=1)
        device = router.model_copy(update={"natTable": [entry]})
        reply = create_l4_packet(MAC_B, MAC_A, "93.184.216.34", "203.0.113.2", 443, 41000)
        assert evaluate_condition(condition("in_nat_table"), reply, device)
        assert not evaluate_condition(condition("in_nat_table"), reply, router)
        assert not evaluate_condition(condition("in_nat_table"), reply, switch)


class TestActions:
    def test_send_to_port(self, switch, web_packet):
        decision = execute_action(action("send_to_port", label="to uplink", port="port4"), web_packet, switch)
        assert decision.action == "forward"
        assert decision.port == "port4"
        assert decision.reason == "Rule: to uplink"

    def test_missing_parameters_do_not_apply(self, switch, web_packet):
        assert execute_action(action("send_to_port"), web_packet, switch) is None
        assert execute_action(action("send_to_interface"), web_packet, switch) is None
        assert execute_action(action("route_and_nat"), web_packet, switch) is None

    def test_send_to_learned_port(self, switch, router, web_packet):
        table = [MACTableEntry(mac=MAC_B, port="port2", timestamp=1, learned=True)]
        device = switch.model_copy(update={"macTable": table})
        assert execute_action(action("send_to_learned_port"), web_packet, device).port == "port2"
        assert execute_action(action("send_to_learned_port"), web_packet, switch) is None
        assert execute_action(action("send_to_learned_port"), web_packet, router) is None

    def test_flood_all_ports(self, switch, router, web_packet):
        decision = execute_action(action("flood_all_ports"), web_packet, switch)
        assert decision.action == "flood"
        assert decision.ports == ["port2", "port3", "port4"]
        assert execute_action(action("flood_all_ports"), web_packet, router).ports == []

    def test_drop(self, switch, web_packet):
        assert execute_action(action("drop_packet"), web_packet, switch).action == "drop"

    def test_nat_actions(self, router, web_packet):
        snat = execute_action(action("apply_nat"), web_packet, router)
        assert (snat.port, snat.applyNAT, snat.natType) == ("WAN", True, "source")

        dnat = execute_action(action("reverse_nat"), web_packet, router)
        assert (dnat.port, dnat.applyNAT, dnat.natType) == ("LAN", True, "destination")

        routed = execute_action(action("route_and_nat", interface="WAN2"), web_packet, router)
        assert (routed.port, routed.applyNAT, routed.natType) == ("WAN2", True, None)

    def test_unknown_action(self, switch, web_packet):
        assert execute_action(action("teleport"), web_packet, switch) is None


class TestEvaluateRules:
    def test_lowest_priority_number_wins(self, switch, web_packet, make_rule):
        rules = [
            make_rule("r1", "default_route", "drop_packet", priority=10),
            make_rule("r2", "default_route", "send_to_port", priority=1, action_params={"port": "port3"}),
        ]
        result = evaluate_rules(web_packet, rules, switch)
        assert result.matchedRule.id == "r2"
        assert result.decision.port == "port3"

    def test_disabled_rules_are_skipped(self, switch, web_packet, make_rule):
        rules = [
            make_rule("off", "default_route", "drop_packet", priority=0, enabled=False),
            make_rule("on", "default_route", "flood_all_ports", priority=5),
        ]
        result = evaluate_rules(web_packet, rules, switch)
        assert result.matchedRule.id == "on"

    def test_inapplicable_action_falls_through(self, switch, web_packet, make_rule):
        rules = [
            make_rule("learned", "default_route", "send_to_learned_port", priority=1),
            make_rule("flood", "default_route", "flood_all_ports", priority=2),
        ]
        result = evaluate_rules(web_packet, rules, switch)
        assert result.matchedRule.id == "flood"
        assert result.decision.action == "flood"

    def test_equal_priority_keeps_order(self, switch, web_packet, make_rule):
        rules = [
            make_rule("first", "default_route", "drop_packet", priority=3),
            make_rule("second", "default_route", "flood_all_ports", priority=3),
        ]
        assert evaluate_rules(web_packet, rules, switch).matchedRule.id == "first"

    def test_no_match(self, switch, web_packet, make_rule):
        rules = [make_rule("udp", "protocol_equals", "drop_packet", condition_params={"protocol": "UDP"})]
        result = evaluate_rules(web_packet, rules, switch)
        assert result.decision is None
        assert result.matchedRule is None

    def test_empty_rules(self, switch, web_packet):
        assert evaluate_rules(web_packet, [], switch).decision is None

    def test_evaluate_all_rules(self, switch, web_packet, make_rule):
        rules = [
            make_rule("a", "protocol_equals", "drop_packet", condition_params={"protocol": "UDP"}),
            make_rule("b", "default_route", "drop_packet", enabled=False),
        ]
        evaluations = evaluate_all_rules(web_packet, rules, switch)
        assert [(e.rule.id, e.matched, e.reason) for e in evaluations] == [
            ("a", False, None),
            ("b", True, "Rule disabled"),
        ]

    def test_record_match(self, make_rule):
        rules = [make_rule("a", "default_route", "drop_packet"), make_rule("b", "default_route", "drop_packet")]
        updated = record_match(rules, "b")
        assert [r.matchCount for r in updated] == [0, 1]
        assert rules[1].matchCount == 0


class TestRuleChecks:
    def test_valid_rule(self, make_rule):
        rule = make_rule("r", "dst_mac_equals", "send_to_port",
                         condition_params={"mac": MAC_B}, action_params={"port": "port2"})
        assert validate_rule(rule).valid

    def test_missing_parameters(self, make_rule):
        check = validate_rule(make_rule("r", "src_mac_equals", "send_to_port"))
        assert not check.valid
        assert check.errors == ["Condition requires MAC address", "Action requires port"]

    def test_subnet_and_interface_required(self, make_rule):
        check = validate_rule(make_rule("r", "dst_ip_in_subnet", "send_to_interface"))
        assert check.errors == ["Condition requires subnet (CIDR)", "Action requires interface"]

    def test_unknown_types_are_reported(self, make_rule):
        check = validate_rule(make_rule("r", "dst_mac_is_cool", "teleport"))
        assert not check.valid
        assert check.errors == ["Unknown condition type: dst_mac_is_cool", "Unknown action type: teleport"]

    @pytest.mark.parametrize("condition_type", ["default_route", "in_nat_table", "direction"])
    def test_known_types_without_parameters_are_valid(self, make_rule, condition_type):
        assert validate_rule(make_rule("r", condition_type, "drop_packet")).valid

    def test_malformed_subnet_is_rejected(self):
        with pytest.raises(ValidationError, match="Invalid CIDR"):
            ConditionParams(subnet="10.0.0.0/99")

    def test_rules_after_catch_all_are_flagged(self, make_rule):
        rules = [
            make_rule("late", "dst_port_equals", "drop_packet", priority=5, name="Block web",
                      condition_params={"port": 80}),
            make_rule("catch-all", "default_route", "flood_all_ports", priority=1),
        ]
        analysis = analyze_rules(rules)
        assert len(analysis.warnings) == 1
        assert "Block web" in analysis.warnings[0]
        assert analysis.suggestions == []

    def test_catch_all_last_is_fine(self, make_rule):
        rules = [
            make_rule("specific", "dst_port_equals", "drop_packet", priority=1, condition_params={"port": 80}),
            make_rule("catch-all", "default_route", "flood_all_ports", priority=9),
        ]
        assert analyze_rules(rules).warnings == []

    def test_many_rules_suggest_consolidation(self, make_rule):
        rules = [make_rule(f"r{i}", "vlan_equals", "drop_packet", priority=i, condition_params={"vlan": i})
                 for i in range(6)]
        assert analyze_rules(rules).suggestions == ["Consider combining similar rules to improve efficiency"]
