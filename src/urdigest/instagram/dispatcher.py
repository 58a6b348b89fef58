"""Route parsed webhook events to the onboarding dialogue.

Signature checks and JSON parsing happen in the HTTP route; the dispatcher
receives the decoded body and owns replay protection and per-event routing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from urdigest.domain.dedup import MessageDeduplicator
from urdigest.domain.onboarding import OnboardingStateMachine, Outcome
from urdigest.observability.correlation import get_correlation_id
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import safe_log_context

from .adapter import extract_events

logger = get_logger(__name__)


def _id_prefix(message_id: str) -> str:
    return message_id[:8] if len(message_id) >= 8 else message_id


@dataclass
class DispatchResult:
    received: int = 0
    handled: int = 0
    duplicates: int = 0
    outcomes: list[Outcome] = field(default_factory=list)


class WebhookDispatcher:
    def __init__(self, state_machine: OnboardingStateMachine, dedup: MessageDeduplicator):
        self.state_machine = state_machine
        self.dedup = dedup

    def dispatch(self, payload: Any) -> DispatchResult:
        """Handle every processable event of a decoded webhook body in order.

        An id is recorded before its event is handled, so a redelivery that
        arrives mid-processing is skipped. If handling raises, the id is
        forgotten again and the error propagates; the webhook then answers
        with a 5xx and Meta's retry gets a fresh attempt.

        Raises:
            InvalidPayloadError: If the body is not a JSON object.
        """
        correlation_id = get_correlation_id()
        events = extract_events(payload)
        result = DispatchResult(received=len(events))

        for event in events:
            message_id = event.message_id
            if message_id:
                if self.dedup.seen(message_id):
                    result.duplicates += 1
                    logger.info(
                        "duplicate instagram message ignored",
                        extra={
                            "extra_fields": safe_log_context(
                                correlationId=correlation_id,
                                message_id_prefix=_id_prefix(message_id),
                            )
                        },
                    )
                    continue
                self.dedup.record(message_id)

            try:
                outcome = self.state_machine.handle(event)
            except Exception:
                if message_id:
                    self.dedup.forget(message_id)
                raise

            result.handled += 1
            result.outcomes.append(outcome)

        logger.info(
            "instagram webhook dispatched",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    received=result.received,
                    handled=result.handled,
                    duplicates=result.duplicates,
                )
            },
        )
        return result
