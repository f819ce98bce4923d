from sqlalchemy import func, select

from app.models import (
    CartItem,
    OrderStatus,
    Role,
    UserAddress,
    UserOrder,
    UserOrderItem,
    UserReview,
    UserTBYB,
    User,
    WishlistItem,
)
from tests.conftest import auth_header, make_item, make_user


ACCOUNT = "/api/v1/auth/account"


async def _seed_owned_rows(db, user, order_status=OrderStatus.DELIVERED.value):
    item = await make_item(db)
    db.add_all([
        UserOrder(
            order_number=f"ORD-{user.phone_number}",
            user_id=user.id,
            order_status=order_status,
            items=[UserOrderItem(position=0, item_id=item.id, quantity=1)],
        ),
        UserReview(user_id=user.id, item_id=item.id, rating=4.5, review_text="Nice fit"),
        UserAddress(
            user_id=user.id,
            name="Home",
            phone_number=user.phone_number,
            address_line1="1 Park Street",
            city="Kolkata",
            state="West Bengal",
            pincode="700016",
        ),
        CartItem(user_id=user.id, item_id=item.id, quantity=2),
        UserTBYB(user_id=user.id, item_id=item.id, tbyb_image_urls=["https://img.test/1.jpg"]),
        WishlistItem(user_id=user.id, item_id=item.id),
    ])
    await db.commit()


async def _count(session, model, **where):
    stmt = select(func.count()).select_from(model)
    for column, value in where.items():
        stmt = stmt.where(getattr(model, column) == value)
    return await session.scalar(stmt)


async def test_delete_refused_while_an_order_is_open(client, db, session_factory):
    user = await make_user(db)
    await _seed_owned_rows(db, user, order_status=OrderStatus.DISPATCHED.value)

    response = await client.delete(ACCOUNT, headers=auth_header(Role.USER, user))

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot delete account with active orders"
    async with session_factory() as session:
        assert await _count(session, User, id=user.id) == 1
        assert await _count(session, UserReview, user_id=user.id) == 1


async def test_delete_removes_everything_the_user_owns(client, db, session_factory):
    user = await make_user(db)
    bystander = await make_user(db)
    await _seed_owned_rows(db, user)
    await _seed_owned_rows(db, bystander)

    response = await client.delete(ACCOUNT, headers=auth_header(Role.USER, user))

    assert response.status_code == 200
    removed = response.json()["data"]["removed"]
    assert removed["orders"] == 1
    assert removed["reviews"] == 1
    assert removed["wishlist_items"] == 1

    async with session_factory() as session:
        assert await _count(session, User, id=user.id) == 0
        for model in (UserOrder, UserReview, UserAddress, CartItem, UserTBYB, WishlistItem):
            assert await _count(session, model, user_id=user.id) == 0
        assert await _count(session, UserOrderItem) == 1
        assert await _count(session, UserOrder, user_id=bystander.id) == 1


async def test_delete_also_removes_identity_account(client, db, identity):
    user = await make_user(db, firebase_uid="uid-42")

    response = await client.delete(ACCOUNT, headers=auth_header(Role.USER, user))

    assert response.status_code == 200
    assert identity.deleted == ["uid-42"]


async def test_identity_failure_does_not_block_deletion(client, db, identity, session_factory):
    user = await make_user(db, firebase_uid="uid-43")
    identity.fail_delete = True

    response = await client.delete(ACCOUNT, headers=auth_header(Role.USER, user))

    assert response.status_code == 200
    async with session_factory() as session:
        assert await _count(session, User, id=user.id) == 0


async def test_deleted_account_token_no_longer_resolves(client, db):
    user = await make_user(db)
    headers = auth_header(Role.USER, user)
    await client.delete(ACCOUNT, headers=headers)

    response = await client.get("/api/v1/auth/profile", headers=headers)

    assert response.status_code == 404
    assert response.json()["message"] == "User not found"
