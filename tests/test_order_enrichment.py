import uuid


from app.models import (
    PartnerAddress,
    PartnerOrder,
    PartnerOrderItem,
    UserAddress,
    UserOrder,
    UserOrderItem,
)
from app.services.order_enrichment import (
    OWNER_ERROR,
    EnrichmentContext,
    enrich_order,
    partner_orders_query,
    pick_color_image,
    populate_order_details,
    user_orders_query,
)
from tests.conftest import make_item, make_partner, make_user


RED_GROUPS = [
    {"color": "Blue", "images": [{"url": "blue.jpg", "priority": 0}]},
    {"color": "Red", "images": [
        {"url": "A.jpg", "priority": 2},
        {"url": "B.jpg", "priority": 1},
        {"url": "C.jpg", "priority": 3},
    ]},
]


def _address(**fields):
    values = {
        "name": "Home",
        "phone_number": "9876543210",
        "address_line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
    }
    values.update(fields)
    return values


async def _load_user_orders(session_factory, *order_numbers):
    async with session_factory() as session:
        result = await session.execute(
            user_orders_query().where(UserOrder.order_number.in_(order_numbers)).order_by(UserOrder.order_number)
        )
        orders = list(result.scalars().all())
        return orders, await populate_order_details(session, orders)


# ==================== pick_color_image ====================

def test_pick_color_image_prefers_lowest_priority_case_insensitive():
    assert pick_color_image(RED_GROUPS, "red") == "B.jpg"


def test_pick_color_image_without_match_or_color():
    assert pick_color_image(RED_GROUPS, "Green") is None
    assert pick_color_image(RED_GROUPS, None) is None
    assert pick_color_image([], "Red") is None


def test_pick_color_image_ties_keep_first_and_unranked_images_come_last():
    groups = [{"color": "Red", "images": [
        {"url": "first.jpg", "priority": 1},
        {"url": "second.jpg", "priority": 1},
    ]}]
    assert pick_color_image(groups, "RED") == "first.jpg"

    groups = [{"color": "Red", "images": [
        {"url": "ranked.jpg", "priority": 2},
        {"url": "unranked.jpg"},
    ]}]
    assert pick_color_image(groups, "Red") == "ranked.jpg"

    groups = [{"color": "Red", "images": [{"url": "unranked.jpg"}]}]
    assert pick_color_image(groups, "Red") == "unranked.jpg"


def test_pick_color_image_skips_empty_matching_group():
    groups = [
        {"color": "Red", "images": []},
        {"color": "red", "images": [{"url": "later.jpg", "priority": 4}]},
    ]
    assert pick_color_image(groups, "Red") == "later.jpg"


# ==================== populate_order_details ====================

async def test_user_order_is_fully_enriched(db, session_factory):
    user = await make_user(db, name="Asha")
    address = UserAddress(user_id=user.id, **_address())
    db.add(address)
    await db.flush()
    item = await make_item(db, images_by_color=RED_GROUPS)

    db.add(UserOrder(
        order_number="ORD-1",
        user_id=user.id,
        shipping_address_id=address.id,
        total_amount=1600,
        items=[UserOrderItem(position=0, item_id=item.id, quantity=2, size="M", color="red")],
    ))
    await db.commit()

    _, views = await _load_user_orders(session_factory, "ORD-1")
    view = views[0]

    assert "error" not in view
    assert view["order_number"] == "ORD-1"
    assert view["order_type"] == "user"
    assert view["user"]["name"] == "Asha"
    assert view["shipping_address"]["city"] == "Bengaluru"
    line = view["items"][0]
    assert line["quantity"] == 2
    assert line["item"]["name"] == "Cotton Shirt"
    assert line["item"]["image"] == "B.jpg"


async def test_order_without_owner_keeps_identity_and_gets_error_marker(db, session_factory):
    item = await make_item(db)
    db.add(UserOrder(
        order_number="ORD-ORPHAN",
        user_id=None,
        items=[UserOrderItem(position=0, item_id=item.id, quantity=1)],
    ))
    await db.commit()

    _, views = await _load_user_orders(session_factory, "ORD-ORPHAN")
    view = views[0]

    assert view["error"] == OWNER_ERROR
    assert view["order_number"] == "ORD-ORPHAN"
    assert view["items"][0]["item_id"] == str(item.id)
    assert "user" not in view


async def test_one_bad_order_does_not_fail_the_batch(db, session_factory):
    user = await make_user(db)
    db.add_all([
        UserOrder(order_number="ORD-A", user_id=user.id, items=[]),
        UserOrder(order_number="ORD-B", user_id=None, items=[]),
        UserOrder(order_number="ORD-C", user_id=user.id, items=[]),
    ])
    await db.commit()

    _, views = await _load_user_orders(session_factory, "ORD-A", "ORD-B", "ORD-C")

    assert [v["order_number"] for v in views] == ["ORD-A", "ORD-B", "ORD-C"]
    assert "error" not in views[0]
    assert views[1]["error"] == OWNER_ERROR
    assert "error" not in views[2]


async def test_pickup_in_owners_book_is_expanded(db, session_factory):
    user = await make_user(db)
    pickup = UserAddress(user_id=user.id, **_address(city="Pune"))
    db.add(pickup)
    await db.flush()
    item = await make_item(db)
    db.add(UserOrder(
        order_number="ORD-RET",
        user_id=user.id,
        items=[UserOrderItem(
            position=0,
            item_id=item.id,
            is_return=True,
            return_info={"return_reason": "Size issue", "pickup_location_id": str(pickup.id)},
        )],
    ))
    await db.commit()

    _, views = await _load_user_orders(session_factory, "ORD-RET")
    return_info = views[0]["items"][0]["return_info"]

    assert return_info["return_reason"] == "Size issue"
    assert return_info["pickup_location_id"]["city"] == "Pune"


async def test_pickup_outside_owners_book_is_left_unchanged(db, session_factory):
    owner = await make_user(db)
    stranger = await make_user(db)
    foreign = UserAddress(user_id=stranger.id, **_address())
    db.add(foreign)
    await db.flush()
    db.add(UserOrder(
        order_number="ORD-FOREIGN",
        user_id=owner.id,
        items=[UserOrderItem(
            position=0,
            is_exchange=True,
            exchange_info={"desired_size": "L", "pickup_location_id": str(foreign.id)},
        ), UserOrderItem(
            position=1,
            is_return=True,
            return_info={"pickup_location_id": "not-a-uuid"},
        )],
    ))
    await db.commit()

    _, views = await _load_user_orders(session_factory, "ORD-FOREIGN")
    lines = views[0]["items"]

    assert "error" not in views[0]
    assert lines[0]["exchange_info"]["pickup_location_id"] == str(foreign.id)
    assert lines[1]["return_info"]["pickup_location_id"] == "not-a-uuid"


async def test_missing_shipping_address_and_item_become_none(db, session_factory):
    user = await make_user(db)
    db.add(UserOrder(
        order_number="ORD-GONE",
        user_id=user.id,
        shipping_address_id=uuid.uuid4(),
        items=[UserOrderItem(position=0, item_id=None, quantity=1)],
    ))
    await db.commit()

    _, views = await _load_user_orders(session_factory, "ORD-GONE")

    assert views[0]["shipping_address"] is None
    assert views[0]["items"][0]["item"] is None


async def test_output_shape_mirrors_input(db, session_factory):
    user = await make_user(db)
    db.add(UserOrder(order_number="ORD-ONE", user_id=user.id, items=[]))
    await db.commit()

    async with session_factory() as session:
        order = (await session.execute(
            user_orders_query().where(UserOrder.order_number == "ORD-ONE")
        )).scalar_one()

        assert await populate_order_details(session, None) is None
        assert await populate_order_details(session, []) == []
        single = await populate_order_details(session, order)
        assert isinstance(single, dict)
        assert single["order_number"] == "ORD-ONE"
        batch = await populate_order_details(session, [order])
        assert isinstance(batch, list) and len(batch) == 1


async def test_partner_order_uses_first_color_group_and_order_level_pickup(db, session_factory):
    partner = await make_partner(db, name="Wholesale Co")
    pickup = PartnerAddress(partner_id=partner.id, **_address(city="Chennai"))
    db.add(pickup)
    await db.flush()
    item = await make_item(db, images_by_color=RED_GROUPS)
    db.add(PartnerOrder(
        order_number="PORD-1",
        partner_id=partner.id,
        is_cod_payment=True,
        return_info={"return_reason": "Damaged", "pickup_location_id": str(pickup.id)},
        items=[PartnerOrderItem(
            position=0,
            item_id=item.id,
            total_quantity=30,
            total_price=24000,
            order_details=[
                {"color": "Red", "size_and_quantity": [{"size": "M", "quantity": 20}]},
                {"color": "Blue", "size_and_quantity": [{"size": "L", "quantity": 10}]},
            ],
        )],
    ))
    await db.commit()

    async with session_factory() as session:
        order = (await session.execute(
            partner_orders_query().where(PartnerOrder.order_number == "PORD-1")
        )).scalar_one()
        view = await populate_order_details(session, order)

    assert view["order_type"] == "partner"
    assert view["partner"]["name"] == "Wholesale Co"
    assert view["payment_method"] == "COD"
    assert view["items"][0]["item"]["image"] == "B.jpg"
    assert view["return_info"]["pickup_location_id"]["city"] == "Chennai"


async def test_failed_item_lookup_leaves_line_items_unexpanded(db, session_factory):
    user = await make_user(db)
    item = await make_item(db)
    db.add(UserOrder(
        order_number="ORD-FAIL",
        user_id=user.id,
        items=[UserOrderItem(position=0, item_id=item.id)],
    ))
    await db.commit()

    async with session_factory() as session:
        order = (await session.execute(
            user_orders_query().where(UserOrder.order_number == "ORD-FAIL")
        )).scalar_one()

    ctx = EnrichmentContext(
        user_owners={user.id: {"id": str(user.id), "name": user.name}},
        failed={"items"},
    )
    view = enrich_order(order, ctx)

    assert "error" not in view
    assert view["user"]["name"] == user.name
    assert view["items"][0]["item"] is None
    assert view["items"][0]["item_id"] == str(item.id)
