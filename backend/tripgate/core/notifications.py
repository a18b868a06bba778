from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tripgate.core.logging import get_logger
from tripgate.models.notification import Notification

logger = get_logger(__name__)

MEMBER_JOINED = "member_joined"
MEMBER_LEFT = "member_left"
MEMBER_ROLE_CHANGED = "member_role_changed"
PIN_ROTATED = "pin_rotated"


class Notifier:
    """
    Best-effort trip notifications.

    Called only AFTER the change it describes has committed, and written in a
    session of its own, so a failure here can lose the notification but never
    touches the membership change or the request's session state.
    """

    async def _write(self, db: AsyncSession, notification: Notification) -> None:
        async with AsyncSession(bind=db.bind, expire_on_commit=False) as own:
            own.add(notification)
            await own.commit()

    async def emit(
        self,
        db: AsyncSession,
        *,
        trip_id: str,
        type: str,
        message: str,
        created_by: Optional[str],
        payload: Optional[dict[str, Any]] = None,
    ) -> bool:
        notification = Notification(
            trip_id=trip_id,
            type=type,
            message=message,
            created_by=created_by,
            read_by=[created_by] if created_by else [],
            payload=payload or {},
        )
        try:
            await self._write(db, notification)
        except Exception as exc:  # notifications may be lost; the request must not fail
            logger.warning(
                "notification_dropped",
                trip_id=trip_id,
                notification_type=type,
                error=str(exc),
            )
            return False
        return True


notifier = Notifier()
