"""Production object graph for the HTTP routes.

Routes build these lazily on first use, so importing the app does not need a
database or Instagram credentials.
"""

from __future__ import annotations

from urdigest.config import ConfigurationError, env_str
from urdigest.content.enrich import ContentEnricher
from urdigest.content.ocr import TesseractOCRProvider
from urdigest.content.transcribe import WhisperTranscriptionProvider
from urdigest.domain.dedup import InMemoryDeduplicator, MessageDeduplicator
from urdigest.domain.onboarding import OnboardingStateMachine
from urdigest.infra.repositories.posts_repository import PostgresPostStore
from urdigest.infra.repositories.processed_messages_repository import PostgresDeduplicator
from urdigest.infra.repositories.users_repository import PostgresUserStore
from urdigest.instagram.dispatcher import WebhookDispatcher
from urdigest.instagram.sender import GraphMessageSender, GraphUsernameResolver


def build_deduplicator() -> MessageDeduplicator:
    """DEDUP_BACKEND=memory (default) or postgres."""
    backend = env_str("DEDUP_BACKEND", "memory").strip().lower()
    if backend == "memory":
        return InMemoryDeduplicator()
    if backend == "postgres":
        return PostgresDeduplicator()
    raise ConfigurationError(f"unknown DEDUP_BACKEND: {backend}")


def build_dispatcher() -> WebhookDispatcher:
    state_machine = OnboardingStateMachine(
        users=PostgresUserStore(),
        posts=PostgresPostStore(),
        sender=GraphMessageSender(),
        username_resolver=GraphUsernameResolver(),
    )
    return WebhookDispatcher(state_machine, build_deduplicator())


def build_enricher() -> ContentEnricher:
    return ContentEnricher(
        posts=PostgresPostStore(),
        ocr=TesseractOCRProvider(),
        transcriber=WhisperTranscriptionProvider(),
    )
