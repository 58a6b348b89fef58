"""Per-request correlation id, carried through webhook and task handling.

Meta does not send a correlation header, so webhook requests usually get a
fresh id; the scheduler may pass one to tie a task run to its trigger.
"""

import re
import uuid
from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Inbound ids end up in every log line
_ACCEPTED_ID = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def correlation_id_from_header(value: str | None) -> str:
    """Reuse a caller's id when it is short and plain, otherwise mint one."""
    if value and _ACCEPTED_ID.fullmatch(value):
        return value
    return generate_correlation_id()


def get_correlation_id() -> str:
    """Current id, or "" outside a request."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)
