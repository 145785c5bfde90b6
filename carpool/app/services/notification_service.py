"""
Notification Service.

Notifications raised by the booking and trip services. Delivery is
best effort and runs after the business transaction has committed: a failure
here is logged and never propagates to the caller.
"""

import logging
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.db.session import side_session
from carpool.app.models.notification import Notification, NotificationKind
from carpool.app.models.trip import Trip
from carpool.app.models.user import User
from carpool.app.services import telegram

logger = logging.getLogger(__name__)


def build_trip_context(trip: Trip, **extra: Any) -> Dict[str, Any]:
    """Snapshot of the trip fields notification templates need."""
    context = {
        "trip_id": trip.id,
        "from_city": trip.from_city,
        "to_city": trip.to_city,
        "date": trip.date.isoformat() if trip.date else None,
        "time": trip.time,
        "pickup_location": trip.pickup_location,
    }
    context.update(extra)
    return context


def render_notification(kind: NotificationKind, ctx: Dict[str, Any]) -> tuple[str, str]:
    """Return (title, message) for a notification kind."""
    route = f"{ctx.get('from_city')} -> {ctx.get('to_city')}"
    when = f"{ctx.get('date')} at {ctx.get('time')}"

    if kind == NotificationKind.BOOKING_CREATED:
        return (
            "New booking",
            f"Passenger: {ctx.get('passenger_name', '')}\nRoute: {route}\nDate: {when}",
        )
    if kind == NotificationKind.BOOKING_CONFIRMED:
        return (
            "Booking confirmed",
            f"Driver: {ctx.get('driver_name', '')}\nRoute: {route}\nDate: {when}\n"
            f"Pickup: {ctx.get('pickup_location', '')}",
        )
    if kind == NotificationKind.BOOKING_CANCELLED:
        return (
            "Booking cancelled",
            f"Cancelled by the {ctx.get('cancelled_by', 'passenger')}\nRoute: {route}\nDate: {ctx.get('date')}",
        )
    if kind == NotificationKind.TRIP_CANCELLED:
        return (
            "Trip cancelled",
            f"Driver {ctx.get('driver_name', '')} cancelled the trip\nRoute: {route}\nDate: {ctx.get('date')}",
        )
    raise ValueError(f"Unknown notification kind: {kind}")


class NotificationService:

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        user_id: int,
        kind: NotificationKind,
        title: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Create a single in-app notification."""
        notif = Notification(
            user_id=user_id,
            kind=kind,
            title=title,
            message=message,
            metadata_payload=metadata
        )
        db.add(notif)
        await db.flush()  # Caller commits
        return notif

    @staticmethod
    async def notify(
        db: AsyncSession,
        target_user_id: int,
        kind: NotificationKind,
        trip_context: Dict[str, Any]
    ) -> None:
        """
        Fire-and-forget notification.

        Stores an in-app notification in its own session and forwards it to
        Telegram when the user has a chat linked. Never raises, and never
        touches the caller's transaction.
        """
        try:
            async with side_session(db) as session:
                user = await session.get(User, target_user_id)
                if user is None:
                    logger.warning("Notification target not found", extra={"user_id": target_user_id})
                    return

                title, message = render_notification(kind, trip_context)
                await NotificationService.create_notification(
                    session, user.id, kind, title, message, metadata=trip_context
                )
                await session.commit()
                chat_id = user.telegram_chat_id

            if chat_id:
                await telegram.send_message(chat_id, f"<b>{title}</b>\n\n{message}")
        except Exception:
            logger.warning(
                "Notification delivery failed",
                exc_info=True,
                extra={"user_id": target_user_id, "kind": kind.value}
            )
