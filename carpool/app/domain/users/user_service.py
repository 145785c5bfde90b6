"""
User profile service.

Identity fields belong to the identity service; the carpool core only owns
the rating and the default ride preferences.
"""

import logging
from typing import Any, Dict

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carpool.app.core.exceptions import ResourceNotFoundError
from carpool.app.models.preferences import preference_columns
from carpool.app.models.user import User

logger = logging.getLogger(__name__)


class UserService:

    @staticmethod
    async def get_user(db: AsyncSession, user_id: int) -> User:
        user = (await db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )).scalar_one_or_none()
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        return user

    @staticmethod
    async def update_preferences(db: AsyncSession, user_id: int, overrides: Dict[str, Any]) -> User:
        """Change the defaults copied onto the user's future trips. Existing trips keep theirs."""
        user = await UserService.get_user(db, user_id)

        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(**preference_columns(overrides, user.preferences))
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(user)

        logger.info("Ride preferences updated", extra={"user_id": user_id})
        return user
