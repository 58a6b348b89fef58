"""Per-user onboarding dialogue driven by inbound Instagram DMs.

    (no user)       --any message-->      awaiting_email   (user created)
    awaiting_email  --valid email-->      awaiting_time
    awaiting_time   --valid time-->       onboarded        (digest enabled)
    onboarded       --shares/commands-->  onboarded
    <none>          --any message-->      awaiting_email   (reset)

Routing is always by the *stored* state, so re-delivering a message after
the state moved on is handled by the new state's branch (e.g. a repeated
email while awaiting_time is just an unparseable time and gets re-prompted).

Writes come first, replies second. A reply that fails to send is logged and
never rolls back or blocks a stored transition.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, assert_never

from urdigest.instagram.adapter import extract_post_id
from urdigest.instagram.models import Attachment, InboundEvent
from urdigest.instagram.sender import MessageSender, UsernameResolver
from urdigest.infra.time import utc_now
from urdigest.observability.logging import get_logger
from urdigest.observability.redaction import hash_identifier, safe_log_context

from .models import OnboardingState, User
from .replies import render
from .stores import AuthDirectory, PostStore, StoreError, UserStore
from .time_parsing import format_12h, parse_digest_time

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PLACEHOLDER_EMAIL_DOMAIN = "placeholder.urdigest"

COMMANDS = frozenset({"help", "status", "pause", "resume"})


def is_valid_email(text: str) -> bool:
    return bool(EMAIL_PATTERN.match(text))


def placeholder_email(instagram_user_id: str) -> str:
    """Synthetic unique email until the user tells us theirs."""
    return f"pending_{instagram_user_id}@{PLACEHOLDER_EMAIL_DOMAIN}"


@dataclass(frozen=True)
class Outcome:
    """What handling one event did. Used for logging and tests."""

    user_id: str | None
    state_before: OnboardingState | None
    state_after: OnboardingState | None
    reply: str | None = None
    delivered: bool = False
    created: bool = False
    posts_saved: int = 0


class OnboardingStateMachine:
    """Decides the next state and reply for one inbound event.

    Args:
        users: User records keyed by Instagram sender id.
        posts: Saved post records.
        sender: Outbound DM channel.
        username_resolver: Optional handle lookup for username backfill.
        auth: Optional auth account mirror, told about confirmed emails.
    """

    def __init__(
        self,
        users: UserStore,
        posts: PostStore,
        sender: MessageSender,
        username_resolver: UsernameResolver | None = None,
        auth: AuthDirectory | None = None,
    ):
        self.users = users
        self.posts = posts
        self.sender = sender
        self.username_resolver = username_resolver
        self.auth = auth

    # ── Entry point ──────────────────────────────────────────────────────────

    def handle(self, event: InboundEvent) -> Outcome:
        user = self.users.find_by_external_id(event.sender_id)
        if user is None:
            return self._handle_new_user(event)

        self._backfill_username(user, event)

        state = user.onboarding_state
        match state:
            case OnboardingState.AWAITING_EMAIL:
                outcome = self._handle_email(user, event)
            case OnboardingState.AWAITING_TIME:
                outcome = self._handle_time(user, event)
            case OnboardingState.ONBOARDED:
                outcome = self._handle_onboarded(user, event)
            case None:
                outcome = self._handle_missing_state(user, event)
            case _:
                assert_never(state)

        logger.info(
            "onboarding event handled",
            extra={
                "extra_fields": safe_log_context(
                    user_id=user.id,
                    state_before=state.value if state else None,
                    state_after=outcome.state_after.value if outcome.state_after else None,
                    reply=outcome.reply,
                    delivered=outcome.delivered,
                )
            },
        )
        return outcome

    # ── Replies ──────────────────────────────────────────────────────────────

    def _reply(self, recipient_id: str, template_key: str, params: dict[str, Any] | None = None) -> bool:
        delivered = self.sender.send(recipient_id, render(template_key, params))
        if not delivered:
            logger.warning(
                "reply not delivered",
                extra={
                    "extra_fields": safe_log_context(
                        to_hash=hash_identifier(recipient_id),
                        template=template_key,
                    )
                },
            )
        return delivered

    # ── Transitions ──────────────────────────────────────────────────────────

    def _handle_new_user(self, event: InboundEvent) -> Outcome:
        username = event.sender_username
        if not username and self.username_resolver is not None:
            username = self.username_resolver.resolve(event.sender_id)

        try:
            user = self.users.create(
                {
                    "email": placeholder_email(event.sender_id),
                    "instagram_user_id": event.sender_id,
                    "instagram_username": username,
                    "onboarding_state": OnboardingState.AWAITING_EMAIL,
                }
            )
        except StoreError:
            logger.exception(
                "failed to create user",
                extra={"extra_fields": safe_log_context(sender_hash=hash_identifier(event.sender_id))},
            )
            return Outcome(user_id=None, state_before=None, state_after=None)

        logger.info(
            "user created from instagram dm",
            extra={"extra_fields": safe_log_context(user_id=user.id)},
        )
        delivered = self._reply(event.sender_id, "welcome")
        return Outcome(
            user_id=user.id,
            state_before=None,
            state_after=OnboardingState.AWAITING_EMAIL,
            reply="welcome",
            delivered=delivered,
            created=True,
        )

    def _handle_missing_state(self, user: User, event: InboundEvent) -> Outcome:
        try:
            self.users.update(user.id, {"onboarding_state": OnboardingState.AWAITING_EMAIL})
        except StoreError:
            logger.exception(
                "failed to reset onboarding state",
                extra={"extra_fields": safe_log_context(user_id=user.id)},
            )
            delivered = self._reply(event.sender_id, "command_failed")
            return Outcome(user.id, None, None, "command_failed", delivered)

        delivered = self._reply(event.sender_id, "welcome_back")
        return Outcome(
            user_id=user.id,
            state_before=None,
            state_after=OnboardingState.AWAITING_EMAIL,
            reply="welcome_back",
            delivered=delivered,
        )

    def _handle_email(self, user: User, event: InboundEvent) -> Outcome:
        state = OnboardingState.AWAITING_EMAIL
        email = (event.text or "").strip().lower()

        if not is_valid_email(email):
            delivered = self._reply(event.sender_id, "invalid_email")
            return Outcome(user.id, state, state, "invalid_email", delivered)

        try:
            self.users.update(
                user.id,
                {"email": email, "onboarding_state": OnboardingState.AWAITING_TIME},
            )
        except StoreError:
            logger.exception(
                "failed to store email",
                extra={"extra_fields": safe_log_context(user_id=user.id)},
            )
            delivered = self._reply(event.sender_id, "email_save_failed")
            return Outcome(user.id, state, state, "email_save_failed", delivered)

        if self.auth is not None and not self.auth.update_email(user.id, email):
            logger.warning(
                "auth record email not updated",
                extra={"extra_fields": safe_log_context(user_id=user.id)},
            )

        delivered = self._reply(event.sender_id, "ask_time")
        return Outcome(user.id, state, OnboardingState.AWAITING_TIME, "ask_time", delivered)

    def _handle_time(self, user: User, event: InboundEvent) -> Outcome:
        state = OnboardingState.AWAITING_TIME
        digest_time = parse_digest_time(event.text or "")

        if digest_time is None:
            delivered = self._reply(event.sender_id, "invalid_time")
            return Outcome(user.id, state, state, "invalid_time", delivered)

        try:
            self.users.update(
                user.id,
                {
                    "digest_time": digest_time,
                    "digest_enabled": True,
                    "onboarding_state": OnboardingState.ONBOARDED,
                },
            )
        except StoreError:
            logger.exception(
                "failed to store digest time",
                extra={"extra_fields": safe_log_context(user_id=user.id)},
            )
            delivered = self._reply(event.sender_id, "time_save_failed")
            return Outcome(user.id, state, state, "time_save_failed", delivered)

        delivered = self._reply(event.sender_id, "onboarded")
        return Outcome(user.id, state, OnboardingState.ONBOARDED, "onboarded", delivered)

    def _handle_onboarded(self, user: User, event: InboundEvent) -> Outcome:
        state = OnboardingState.ONBOARDED

        shares = event.shares
        if shares:
            saved, duplicates = self._save_shares(user, shares)
            if saved:
                key = "post_added" if saved == 1 else "posts_added"
                params = {"count": saved} if saved > 1 else None
                delivered = self._reply(event.sender_id, key, params)
                return Outcome(user.id, state, state, key, delivered, posts_saved=saved)
            if duplicates:
                delivered = self._reply(event.sender_id, "post_already_saved")
                return Outcome(user.id, state, state, "post_already_saved", delivered)

        if not event.text:
            return Outcome(user.id, state, state)

        command = event.text.strip().lower()
        if command in COMMANDS:
            key, params = self._run_command(user, command)
        else:
            key, params = "share_hint", None

        delivered = self._reply(event.sender_id, key, params)
        return Outcome(user.id, state, state, key, delivered)

    # ── Onboarded helpers ────────────────────────────────────────────────────

    def _run_command(self, user: User, command: str) -> tuple[str, dict[str, Any] | None]:
        if command == "help":
            return "help", None

        if command == "status":
            current = self.users.get(user.id) or user
            return "status", {
                "email": current.email,
                "digest_time": format_12h(current.digest_time) if current.digest_time else "not set",
                "enabled": "Yes" if current.digest_enabled else "No",
                "posts_saved": current.total_posts_saved,
                "digests_sent": current.total_digests_sent,
            }

        enabled = command == "resume"
        try:
            self.users.update(user.id, {"digest_enabled": enabled})
        except StoreError:
            logger.exception(
                "failed to toggle digests",
                extra={"extra_fields": safe_log_context(user_id=user.id, command=command)},
            )
            return "command_failed", None
        return ("resumed" if enabled else "paused"), None

    def _save_shares(self, user: User, shares: tuple[Attachment, ...]) -> tuple[int, int]:
        """Store shared posts. Returns (saved, duplicates)."""
        saved = 0
        duplicates = 0
        for attachment in shares:
            if not attachment.url:
                logger.warning(
                    "shared attachment without url",
                    extra={"extra_fields": safe_log_context(user_id=user.id, type=attachment.type)},
                )
                continue

            post_id = extract_post_id(attachment.url)
            try:
                if post_id and self.posts.find_by_user_and_external_post_id(user.id, post_id):
                    duplicates += 1
                    continue
                self.posts.insert(
                    {
                        "user_id": user.id,
                        "instagram_post_id": post_id,
                        "instagram_url": attachment.url,
                        "processing_status": "pending",
                    }
                )
            except StoreError:
                logger.exception(
                    "failed to save shared post",
                    extra={"extra_fields": safe_log_context(user_id=user.id)},
                )
                continue
            saved += 1

        if saved:
            try:
                self.users.update(
                    user.id,
                    {
                        "total_posts_saved": user.total_posts_saved + saved,
                        "last_post_received_at": utc_now(),
                    },
                )
            except StoreError:
                logger.exception(
                    "failed to update post counters",
                    extra={"extra_fields": safe_log_context(user_id=user.id)},
                )
            logger.info(
                "shared posts saved",
                extra={"extra_fields": safe_log_context(user_id=user.id, saved=saved)},
            )
        return saved, duplicates

    def _backfill_username(self, user: User, event: InboundEvent) -> None:
        if user.instagram_username:
            return
        username = event.sender_username
        if not username and self.username_resolver is not None:
            username = self.username_resolver.resolve(event.sender_id)
        if not username:
            return
        try:
            self.users.update(user.id, {"instagram_username": username})
            user.instagram_username = username
        except StoreError:
            logger.exception(
                "failed to backfill username",
                extra={"extra_fields": safe_log_context(user_id=user.id)},
            )
