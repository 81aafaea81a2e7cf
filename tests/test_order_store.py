import asyncio

from sqlalchemy import func, select

from restopos.database import async_session_maker
from restopos.models import OrderItem, OrderStatus
from restopos.services.orders.store import OrderDraft, OrderItemDraft, OrderStore


def _draft(menu, *lines, table_number=3) -> OrderDraft:
    return OrderDraft(
        table_number=table_number,
        items=[OrderItemDraft(menu_item_id=menu_id, quantity=qty, price=price) for menu_id, qty, price in lines],
        customer_name="Budi",
        payment_method="cash",
    )


async def _create(draft: OrderDraft):
    async with async_session_maker() as session:
        return await OrderStore(session).create_order(draft)


async def _list(status=None):
    async with async_session_maker() as session:
        return await OrderStore(session).list_orders(status)


async def _item_count() -> int:
    async with async_session_maker() as session:
        return (await session.execute(select(func.count(OrderItem.id)))).scalar()


def test_create_order_writes_order_and_items(menu):
    draft = _draft(menu, (menu["cendol"], 2, 15000), (menu["teh"], 1, 8000))
    assert draft.total_amount == 38000

    result = asyncio.run(_create(draft))
    assert result.success
    assert result.order_id is not None

    orders = asyncio.run(_list())
    assert len(orders) == 1
    order = orders[0]
    assert order.order_status is OrderStatus.PENDING
    assert order.total_amount == 38000
    assert [(i.menu_item.name, i.quantity) for i in order.items] == [
        ("Es Cendol", 2),
        ("Es Teh Manis", 1),
    ]


def test_failing_item_leaves_no_order_behind(menu):
    # quantity 0 violates the item CHECK constraint on the second line
    draft = _draft(
        menu,
        (menu["cendol"], 1, 15000),
        (menu["teh"], 0, 8000),
        (menu["cendol"], 2, 15000),
    )

    result = asyncio.run(_create(draft))

    assert not result.success
    assert result.order_id is None
    assert result.error
    assert asyncio.run(_list()) == []
    assert asyncio.run(_item_count()) == 0


def test_list_orders_is_newest_first_and_filters(menu):
    first = asyncio.run(_create(_draft(menu, (menu["cendol"], 1, 15000))))
    second = asyncio.run(_create(_draft(menu, (menu["teh"], 1, 8000), table_number=4)))

    async def _advance_first():
        async with async_session_maker() as session:
            await OrderStore(session).apply_transition(
                first.order_id, OrderStatus.PENDING, OrderStatus.PREPARING
            )

    asyncio.run(_advance_first())

    assert [o.id for o in asyncio.run(_list())] == [second.order_id, first.order_id]
    assert [o.id for o in asyncio.run(_list(OrderStatus.PREPARING))] == [first.order_id]
    assert [o.id for o in asyncio.run(_list(OrderStatus.PENDING))] == [second.order_id]


def test_conditional_update_does_nothing_on_stale_expectation(menu):
    created = asyncio.run(_create(_draft(menu, (menu["cendol"], 1, 15000))))

    async def _stale_update():
        async with async_session_maker() as session:
            store = OrderStore(session)
            rows = await store.update_status(
                created.order_id, OrderStatus.READY, expected=OrderStatus.PREPARING
            )
            await session.commit()
            applied = await store.apply_transition(
                created.order_id, OrderStatus.PREPARING, OrderStatus.READY
            )
            return rows, applied

    rows, applied = asyncio.run(_stale_update())
    assert rows == 0
    assert applied is None
    assert asyncio.run(_list())[0].order_status is OrderStatus.PENDING


def test_apply_transition_returns_reloaded_order(menu):
    created = asyncio.run(_create(_draft(menu, (menu["cendol"], 2, 15000))))

    async def _advance():
        async with async_session_maker() as session:
            return await OrderStore(session).apply_transition(
                created.order_id, OrderStatus.PENDING, OrderStatus.PREPARING
            )

    order = asyncio.run(_advance())
    assert order.order_status is OrderStatus.PREPARING
    assert order.items[0].menu_item.name == "Es Cendol"
    assert order.updated_at is not None


def test_get_menu_items_by_id(menu):
    async def _fetch():
        async with async_session_maker() as session:
            return await OrderStore(session).get_menu_items([menu["teh"], menu["teh"], 999])

    items = asyncio.run(_fetch())
    assert set(items) == {menu["teh"]}
    assert items[menu["teh"]].price == 8000
