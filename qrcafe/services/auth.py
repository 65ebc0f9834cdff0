"""
Staff Authentication Service

Checks staff credentials and bootstraps the first account.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qrcafe.core.config import get_settings
from qrcafe.core.security import hash_password, verify_password
from qrcafe.models import StaffAccount

logger = logging.getLogger(__name__)


async def authenticate(session: AsyncSession, username: str, password: str) -> Optional[StaffAccount]:
    """Return the staff account when the credentials match, else None."""
    result = await session.execute(
        select(StaffAccount).where(StaffAccount.username == username)
    )
    account = result.scalar_one_or_none()

    if account is None or not verify_password(password, account.password_hash):
        logger.warning(f"Failed staff login for '{username}'")
        return None

    logger.info(f"Staff '{username}' logged in")
    return account


async def ensure_admin_account(session_maker: async_sessionmaker) -> bool:
    """
    Create the configured admin account if it does not exist yet.

    Returns:
        True if an account was created
    """
    settings = get_settings()

    async with session_maker() as session:
        result = await session.execute(
            select(StaffAccount.id).where(StaffAccount.username == settings.admin_username)
        )
        if result.scalar_one_or_none() is not None:
            return False

        session.add(StaffAccount(
            username=settings.admin_username,
            password_hash=hash_password(settings.admin_password),
        ))
        await session.commit()

    logger.info(f"Created staff account '{settings.admin_username}'")
    return True
