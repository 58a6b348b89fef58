"""Tests for webhook event routing and replay protection."""

from unittest.mock import MagicMock

import pytest

from helpers import dm_payload
from urdigest.domain.dedup import InMemoryDeduplicator
from urdigest.domain.models import OnboardingState
from urdigest.domain.onboarding import OnboardingStateMachine
from urdigest.instagram.adapter import InvalidPayloadError
from urdigest.instagram.dispatcher import WebhookDispatcher


class TestDispatch:
    def test_routes_event_to_state_machine(self, dispatcher, users, sender):
        result = dispatcher.dispatch(dm_payload(sender_id="42", mid="m1"))
        assert result.received == 1
        assert result.handled == 1
        assert users.all()[0].onboarding_state == OnboardingState.AWAITING_EMAIL
        assert len(sender.sent) == 1

    def test_replayed_message_is_skipped(self, dispatcher, users, sender):
        payload = dm_payload(sender_id="42", mid="m1", text="a@b.co")
        dispatcher.dispatch(payload)
        result = dispatcher.dispatch(payload)

        assert result.duplicates == 1
        assert result.handled == 0
        assert len(users.all()) == 1
        assert len(sender.sent) == 1

    def test_events_without_id_are_always_handled(self, dispatcher, sender):
        payload = dm_payload(mid=None)
        dispatcher.dispatch(payload)
        dispatcher.dispatch(payload)
        assert len(sender.sent) == 2

    def test_echo_performs_no_lookup(self):
        users = MagicMock()
        machine = OnboardingStateMachine(users, MagicMock(), MagicMock())
        dedup = InMemoryDeduplicator()

        result = WebhookDispatcher(machine, dedup).dispatch(dm_payload(is_echo=True))

        assert result.received == 0
        users.find_by_external_id.assert_not_called()
        assert len(dedup) == 0

    def test_reaction_event_performs_no_lookup(self):
        users = MagicMock()
        machine = OnboardingStateMachine(users, MagicMock(), MagicMock())
        payload = {
            "object": "instagram",
            "entry": [{"messaging": [{"sender": {"id": "1"}, "reaction": {"mid": "m", "action": "react"}}]}],
        }
        WebhookDispatcher(machine, InMemoryDeduplicator()).dispatch(payload)
        users.find_by_external_id.assert_not_called()

    def test_failure_forgets_id_and_propagates(self):
        machine = MagicMock()
        machine.handle.side_effect = RuntimeError("db gone")
        dedup = InMemoryDeduplicator()
        dispatcher = WebhookDispatcher(machine, dedup)

        with pytest.raises(RuntimeError):
            dispatcher.dispatch(dm_payload(mid="m9"))

        assert not dedup.seen("m9")

    def test_id_recorded_before_handling(self):
        dedup = InMemoryDeduplicator()
        seen_during = []
        machine = MagicMock()
        machine.handle.side_effect = lambda event: seen_during.append(dedup.seen("m5"))

        WebhookDispatcher(machine, dedup).dispatch(dm_payload(mid="m5"))
        assert seen_during == [True]

    def test_invalid_body(self, dispatcher):
        with pytest.raises(InvalidPayloadError):
            dispatcher.dispatch(["not", "an", "object"])

    def test_full_onboarding_through_webhooks(self, dispatcher, users, posts):
        dispatcher.dispatch(dm_payload(sender_id="7", mid="1", text="hi"))
        dispatcher.dispatch(dm_payload(sender_id="7", mid="2", text="sam@example.com"))
        dispatcher.dispatch(dm_payload(sender_id="7", mid="3", text="7:30 pm"))
        dispatcher.dispatch(
            dm_payload(
                sender_id="7",
                mid="4",
                text=None,
                attachments=[{"type": "share", "payload": {"url": "https://www.instagram.com/p/Q1/"}}],
            )
        )

        [user] = users.all()
        assert user.email == "sam@example.com"
        assert user.digest_time == "19:30:00"
        assert user.onboarding_state == OnboardingState.ONBOARDED
        assert [p.instagram_post_id for p in posts.all()] == ["Q1"]
