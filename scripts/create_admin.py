"""
Create the tables and bootstrap an Admin account.

The API never issues the Admin role, so the first administrator is created
(or an existing account promoted) from the command line. The Admin then logs
in through the normal OTP flow.

Usage:
    python -m scripts.create_admin 9876543210 "Store Admin"
    ADMIN_PHONE=9876543210 python -m scripts.create_admin
"""

import asyncio
import logging
import os
import sys

from sqlalchemy import select

from app.database import get_db_session, init_db
from app.models import Role, User
from app.schemas.auth import _ten_digit_phone


logger = logging.getLogger("scripts.create_admin")


async def create_admin(phone_number: str, name: str) -> User:
    """Create the Admin user for phone_number, promoting it if it already exists."""
    phone_number = _ten_digit_phone(phone_number)
    await init_db()

    async with get_db_session() as db:
        user = await db.scalar(select(User).where(User.phone_number == phone_number))
        if user is None:
            user = User(name=name, phone_number=phone_number)
            db.add(user)
            logger.info(f"Creating admin user ...{phone_number[-4:]}")
        else:
            logger.info(f"Promoting existing user {user.id} to Admin")

        user.role = Role.ADMIN.value
        user.is_active = True
        user.is_phone_verified = True
        await db.flush()

    return user


def main(argv: list) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    phone_number = argv[0] if argv else os.environ.get("ADMIN_PHONE", "")
    name = argv[1] if len(argv) > 1 else os.environ.get("ADMIN_NAME", "Admin")
    if not phone_number:
        logger.error("Pass the admin phone number as an argument or set ADMIN_PHONE")
        return 2

    try:
        user = asyncio.run(create_admin(phone_number, name))
    except ValueError as e:
        logger.error(str(e))
        return 2

    logger.info(f"Admin ready: {user.id}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
