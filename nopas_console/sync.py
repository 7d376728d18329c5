"""
Sync Controller — keeps the editor and the NOPAS service in step.

Two user-triggered operations:

1. refresh(): load the predefined options, then the current policy, and
   replace the editor's state with it. Unsent edits are discarded.
2. send(): serialize the editor's state and replace the service's policy
   with it. The editor is not refreshed from the response; call refresh()
   to see server-side changes.

Failures are reported through ``notify`` and leave prior state intact. The
two operations share one lock, so a send never interleaves with a refresh.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from nopas_console.integrations.nopas_client import Err, NopasClient
from nopas_console.policy.conversion import to_server, to_ui, unsendable_reason
from nopas_console.policy.editor import PolicyEditor

logger = logging.getLogger(__name__)


class RefreshOutcome(str, Enum):
    REFRESHED = "refreshed"
    DEFAULTS_FAILED = "defaults_failed"
    STATE_FAILED = "state_failed"


class SendOutcome(str, Enum):
    SENT = "sent"
    UNSENDABLE = "unsendable"
    FAILED = "failed"


def _log_notification(message: str) -> None:
    logger.error("%s", message)


class SyncController:
    """Sequences transport calls and conversions; owns no policy state."""

    def __init__(
        self,
        client: NopasClient,
        editor: PolicyEditor,
        notify: Callable[[str], None] | None = None,
    ) -> None:
        self.client = client
        self.editor = editor
        self.notify = notify or _log_notification
        self._lock = asyncio.Lock()

    async def refresh(self) -> RefreshOutcome:
        """Reload predefined options and policy from the service."""
        async with self._lock:
            defaults = await self.client.get_predefined()
            if isinstance(defaults, Err):
                self.notify(f"Could not load predefined options: {defaults.reason}")
                return RefreshOutcome.DEFAULTS_FAILED
            self.editor.set_predefined(defaults.body)

            current = await self.client.get_state()
            if isinstance(current, Err):
                self.notify(f"Could not load policy: {current.reason}")
                return RefreshOutcome.STATE_FAILED

            self.editor.replace_state(to_ui(current.body))
            logger.info("Policy refreshed from %s", self.client.base_url)
            return RefreshOutcome.REFRESHED

    async def send(self) -> SendOutcome:
        """Push the edited policy to the service as one full document."""
        async with self._lock:
            state = self.editor.snapshot()
            doc = to_server(state)
            if doc is None:
                self.notify(f"Policy not sent: {unsendable_reason(state)}")
                return SendOutcome.UNSENDABLE

            result = await self.client.post_update(doc)
            if isinstance(result, Err):
                self.notify(f"Could not send policy: {result.reason}")
                return SendOutcome.FAILED
            return SendOutcome.SENT
