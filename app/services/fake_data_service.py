"""
Fake Data Service

Seeds demo shoppers and positive reviews so a fresh catalog has social proof.
Everything created here is flagged (User.is_fake_user, UserReview.is_fake)
and can be purged without touching genuine data.
"""

import logging
import re
import uuid
from typing import Any, Optional

from faker import Faker
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.item import Item
from app.models.review import UserReview
from app.models.user import Role, User

logger = logging.getLogger(__name__)

POSITIVE_REVIEWS = [
    "Absolutely love this product!",
    "Exceeded my expectations.",
    "Great value for the price.",
    "Very comfortable and stylish.",
    "Would definitely buy again.",
    "The quality is top-notch.",
    "Looks exactly like the picture.",
    "Fast delivery and amazing quality!",
    "Fits perfectly and looks great!",
    "Amazing experience overall!",
]
RATINGS = [4.0, 4.5, 5.0]
SIZES = ["S", "M", "L", "XL"]


class FakeDataError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class FakeDataService:
    def __init__(self, db: AsyncSession, faker: Optional[Faker] = None):
        self.db = db
        self.faker = faker or Faker("en_IN")

    # ==================== Users ====================

    def _phone(self) -> str:
        """Indian mobile number: 10 digits starting with 6-9."""
        return self.faker.random_element(["6", "7", "8", "9"]) + self.faker.numerify("#########")

    def _email(self) -> str:
        prefix = re.sub(r"[^a-z0-9]", "", self.faker.name().lower())
        return f"{prefix}{self.faker.random_int(1000, 9999)}@gmail.com"

    async def _unused_phones(self, count: int) -> list[str]:
        phones: set[str] = set()
        while len(phones) < count:
            candidates = {self._phone() for _ in range(count - len(phones))} - phones
            taken = await self.db.execute(
                select(User.phone_number).where(User.phone_number.in_(candidates))
            )
            phones |= candidates - set(taken.scalars().all())
        return list(phones)

    async def create_users(self, count: int) -> list[User]:
        users = [
            User(
                name=self.faker.name(),
                phone_number=phone,
                email=self._email(),
                role=Role.USER.value,
                is_active=True,
                is_partner=False,
                is_phone_verified=True,
                is_fake_user=True,
            )
            for phone in await self._unused_phones(count)
        ]
        self.db.add_all(users)
        await self.db.flush()
        logger.info(f"Created {len(users)} fake users")
        return users

    async def list_users(self) -> list[User]:
        result = await self.db.execute(
            select(User).where(User.is_fake_user == True).order_by(User.created_at)
        )
        return list(result.scalars().all())

    async def delete_users(self) -> int:
        fake_ids = select(User.id).where(User.is_fake_user == True)
        await self.db.execute(delete(UserReview).where(UserReview.user_id.in_(fake_ids)))
        result = await self.db.execute(delete(User).where(User.is_fake_user == True))
        if not result.rowcount:
            raise FakeDataError("No fake users found to delete", 404)
        logger.info(f"Deleted {result.rowcount} fake users")
        return result.rowcount

    async def delete_user(self, user_id: uuid.UUID) -> None:
        user = await self.db.scalar(
            select(User).where(User.id == user_id, User.is_fake_user == True)
        )
        if not user:
            raise FakeDataError("Fake user not found", 404)
        await self.db.execute(delete(UserReview).where(UserReview.user_id == user_id))
        await self.db.execute(delete(User).where(User.id == user_id))

    # ==================== Reviews ====================

    async def _get_item(self, item_id: uuid.UUID) -> Item:
        item = await self.db.get(Item, item_id)
        if not item:
            raise FakeDataError("Item not found", 404)
        return item

    async def refresh_average_rating(self, item: Item) -> float:
        """Mean of every remaining review of the item, 2 decimals (0 when none)."""
        average = await self.db.scalar(
            select(func.avg(UserReview.rating)).where(UserReview.item_id == item.id)
        )
        item.user_average_rating = round(float(average), 2) if average is not None else 0.0
        await self.db.flush()
        return item.user_average_rating

    async def create_reviews(self, item_id: uuid.UUID, count: int) -> dict[str, Any]:
        item = await self._get_item(item_id)

        reviewed = select(UserReview.user_id).where(UserReview.item_id == item.id)
        result = await self.db.execute(
            select(User).where(User.is_fake_user == True, User.id.not_in(reviewed))
        )
        available = list(result.scalars().all())
        if len(available) < count:
            raise FakeDataError(
                f"Not enough fake users available. Add more fake users. "
                f"Required: {count}, Available: {len(available)}"
            )

        reviews = [
            UserReview(
                user_id=user.id,
                item_id=item.id,
                rating=self.faker.random_element(RATINGS),
                review_text=self.faker.random_element(POSITIVE_REVIEWS),
                size_bought=self.faker.random_element(SIZES),
                is_fake=True,
            )
            for user in self.faker.random_sample(available, length=count)
        ]
        self.db.add_all(reviews)
        await self.db.flush()

        average = await self.refresh_average_rating(item)
        logger.info(f"Created {len(reviews)} fake reviews for item {item.id}, average now {average}")
        return {
            "item_id": str(item.id),
            "average_rating": average,
            "reviews": [review_dict(r) for r in reviews],
        }

    async def list_reviews(self, item_id: uuid.UUID) -> list[dict[str, Any]]:
        await self._get_item(item_id)
        result = await self.db.execute(
            select(UserReview, User)
            .join(User, User.id == UserReview.user_id)
            .where(UserReview.item_id == item_id, UserReview.is_fake == True)
            .order_by(UserReview.created_at.desc())
        )
        return [
            {**review_dict(review), "user": {"name": user.name, "email": user.email}}
            for review, user in result.all()
        ]

    async def delete_reviews(self, item_id: uuid.UUID) -> dict[str, Any]:
        item = await self._get_item(item_id)
        result = await self.db.execute(
            delete(UserReview).where(UserReview.item_id == item.id, UserReview.is_fake == True)
        )
        average = await self.refresh_average_rating(item)
        return {"deleted": result.rowcount, "average_rating": average}


def review_dict(review: UserReview) -> dict[str, Any]:
    return {
        "id": str(review.id),
        "user_id": str(review.user_id),
        "item_id": str(review.item_id),
        "rating": review.rating,
        "review_text": review.review_text,
        "size_bought": review.size_bought,
        "created_at": review.created_at,
    }
