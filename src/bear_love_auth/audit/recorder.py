"""SecurityLogger: best-effort writer in front of a security log store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .events import SecurityAction, SecurityEvent

if TYPE_CHECKING:
    from ..ports import ISecurityLogStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientContext:
    """Request metadata attached to every event of a session."""

    page_path: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None


class SecurityLogger:
    """Records security events without ever failing the caller's flow.

    A store error is logged and dropped: losing one audit row must not
    block a sign-in.
    """

    def __init__(
        self,
        store: ISecurityLogStore | None = None,
        *,
        context: ClientContext | None = None,
    ) -> None:
        self.store = store
        self.context = context or ClientContext()

    async def log(
        self,
        action: SecurityAction,
        success: bool,
        *,
        user_id: str | None = None,
        user_email: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if self.store is None:
            return
        event = SecurityEvent(
            action=action,
            success=success,
            user_id=user_id,
            user_email=user_email,
            details=details,
            page_path=self.context.page_path,
            user_agent=self.context.user_agent,
            ip_address=self.context.ip_address,
            error_code=error_code,
        )
        try:
            await self.store.record(event)
        except Exception:  # noqa: BLE001
            logger.warning(
                f"Failed to log security event {action.value}", exc_info=True
            )


__all__: list[str] = ["ClientContext", "SecurityLogger"]
