import uuid

from faker import Faker
from sqlalchemy import func, select

from app.models import Item, Role, User, UserReview
from app.services.fake_data_service import POSITIVE_REVIEWS, RATINGS, FakeDataService
from tests.conftest import auth_header, make_item, make_user


FAKE = "/api/v1/fake"


async def test_generated_phones_look_like_indian_mobiles(db):
    service = FakeDataService(db, Faker("en_IN"))

    users = await service.create_users(5)

    assert len({u.phone_number for u in users}) == 5
    for user in users:
        assert len(user.phone_number) == 10
        assert user.phone_number[0] in "6789"
        assert user.email.endswith("@gmail.com")
        assert user.is_fake_user and user.is_phone_verified


async def test_create_and_list_fake_users(client, admin_headers):
    created = await client.post(f"{FAKE}/users", headers=admin_headers, json={"count": 3})
    listing = await client.get(f"{FAKE}/users", headers=admin_headers)

    assert created.status_code == 201
    assert created.json()["message"] == "3 fake users created"
    assert listing.json()["data"]["count"] == 3


async def test_fake_user_count_is_bounded(client, admin_headers):
    response = await client.post(f"{FAKE}/users", headers=admin_headers, json={"count": 0})

    assert response.status_code == 400


async def test_fake_data_is_admin_only(client, db):
    sub_admin = await make_user(db, role=Role.SUB_ADMIN, is_sub_admin_active=True)

    response = await client.get(f"{FAKE}/users", headers=auth_header(Role.SUB_ADMIN, sub_admin))

    assert response.status_code == 403


async def test_delete_fake_users_keeps_real_ones(client, db, admin, admin_headers, session_factory):
    await FakeDataService(db).create_users(2)
    await db.commit()

    response = await client.delete(f"{FAKE}/users", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "2 fake users deleted"
    async with session_factory() as session:
        assert await session.scalar(select(func.count(User.id))) == 1

    again = await client.delete(f"{FAKE}/users", headers=admin_headers)
    assert again.status_code == 404
    assert again.json()["message"] == "No fake users found to delete"


async def test_delete_single_fake_user(client, db, admin, admin_headers):
    [fake] = await FakeDataService(db).create_users(1)
    await db.commit()

    real = await client.delete(f"{FAKE}/users/{admin.id}", headers=admin_headers)
    removed = await client.delete(f"{FAKE}/users/{fake.id}", headers=admin_headers)

    assert real.status_code == 404
    assert real.json()["message"] == "Fake user not found"
    assert removed.status_code == 200


async def test_create_reviews_updates_average(client, db, admin_headers, session_factory):
    item = await make_item(db)
    await FakeDataService(db).create_users(4)
    await db.commit()

    response = await client.post(
        f"{FAKE}/reviews", headers=admin_headers, json={"item_id": str(item.id), "count": 3}
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert len(data["reviews"]) == 3
    assert len({r["user_id"] for r in data["reviews"]}) == 3
    for review in data["reviews"]:
        assert review["rating"] in RATINGS
        assert review["review_text"] in POSITIVE_REVIEWS
    expected = round(sum(r["rating"] for r in data["reviews"]) / 3, 2)
    assert data["average_rating"] == expected

    async with session_factory() as session:
        stored = await session.get(Item, item.id)
    assert stored.user_average_rating == expected


async def test_create_reviews_needs_enough_unused_fake_users(client, db, admin_headers):
    item = await make_item(db)
    await FakeDataService(db).create_users(2)
    await db.commit()

    first = await client.post(
        f"{FAKE}/reviews", headers=admin_headers, json={"item_id": str(item.id), "count": 2}
    )
    second = await client.post(
        f"{FAKE}/reviews", headers=admin_headers, json={"item_id": str(item.id), "count": 1}
    )

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["message"] == (
        "Not enough fake users available. Add more fake users. Required: 1, Available: 0"
    )


async def test_create_reviews_for_unknown_item(client, admin_headers):
    response = await client.post(
        f"{FAKE}/reviews", headers=admin_headers, json={"item_id": str(uuid.uuid4()), "count": 1}
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Item not found"


async def test_list_and_delete_fake_reviews(client, db, admin_headers, session_factory):
    item = await make_item(db)
    genuine = await make_user(db)
    db.add(UserReview(user_id=genuine.id, item_id=item.id, rating=3.0, review_text="Okay"))
    await db.commit()
    await FakeDataService(db).create_users(2)
    await db.commit()
    await client.post(f"{FAKE}/reviews", headers=admin_headers, json={"item_id": str(item.id), "count": 2})

    listing = await client.get(f"{FAKE}/reviews", headers=admin_headers, params={"item_id": str(item.id)})
    deleted = await client.delete(f"{FAKE}/reviews", headers=admin_headers, params={"item_id": str(item.id)})

    assert listing.json()["data"]["count"] == 2
    assert all(r["user"]["email"].endswith("@gmail.com") for r in listing.json()["data"]["reviews"])
    assert deleted.json()["data"] == {"deleted": 2, "average_rating": 3.0}
    async with session_factory() as session:
        assert await session.scalar(select(func.count(UserReview.id))) == 1


async def test_deleting_all_reviews_resets_average(client, db, admin_headers):
    item = await make_item(db)
    await FakeDataService(db).create_users(1)
    await db.commit()
    await client.post(f"{FAKE}/reviews", headers=admin_headers, json={"item_id": str(item.id), "count": 1})

    response = await client.delete(f"{FAKE}/reviews", headers=admin_headers, params={"item_id": str(item.id)})

    assert response.json()["data"]["average_rating"] == 0.0
