"""Unit tests for topic parsing and reply topics."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from gatekeeper.services.topic_router import parse_topic, result_topic, subscription_topics


class TestParseTopic:
    def test_door_qualified_topic(self):
        route = parse_topic("doors/D1/card_input", "doors")
        assert route.door_key == "D1"
        assert route.subtype == "card_input"
        assert route.is_known

    def test_bare_subtype_has_no_door(self):
        route = parse_topic("code_input", "doors")
        assert route.door_key is None
        assert route.subtype == "code_input"
        assert route.is_known

    def test_unknown_subtype(self):
        assert not parse_topic("doors/D1/heartbeat", "doors").is_known
        assert not parse_topic("access_granted", "doors").is_known

    def test_empty_door_key_is_none(self):
        route = parse_topic("doors//egress_request", "doors")
        assert route.door_key is None
        assert route.subtype == "egress_request"

    def test_multi_segment_base(self):
        route = parse_topic("site/a/doors/LOBBY/card_input", "site/a/doors")
        assert route.door_key == "LOBBY"
        assert route.subtype == "card_input"

    def test_other_prefix_is_not_a_door(self):
        route = parse_topic("gates/D1/card_input", "doors")
        assert route.door_key is None
        assert not route.is_known


class TestTopics:
    def test_result_topic_with_door(self):
        assert result_topic("doors", "D1", True) == "doors/D1/access_granted"
        assert result_topic("doors", "D1", False) == "doors/D1/access_denied"

    def test_result_topic_bare(self):
        assert result_topic("doors", None, True) == "access_granted"
        assert result_topic("doors", None, False) == "access_denied"

    def test_subscriptions(self):
        topics = subscription_topics("doors")
        assert "card_input" in topics
        assert "doors/+/code_input" in topics
        assert len(topics) == 6
