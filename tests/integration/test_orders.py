"""
Integration tests for contest orders and entry reservation
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch
from uuid import UUID, uuid4

from app.core.errors import ContestStateError, OrderNotFound, OrderStateError, PredictionUnavailable
from app.models.enums import ContestStatus, OrderStatus
from app.repos import contest_repo, order_repo
from app.services.orders import confirm_order_payment, create_contest_order, generate_order_code


def _slot(contest, value):
    return next(s for s in contest.generated_predictions if Decimal(s["value"]) == Decimal(value))


class TestCreateOrder:
    async def test_prices_slots_and_custom_values(self, db_session, make_contest):
        contest = await make_contest(generate=True)
        low, high = _slot(contest, 125), _slot(contest, 175)

        order = await create_contest_order(
            db_session, uuid4(), contest.id, slot_ids=[low["id"], high["id"]], custom_values=[150]
        )

        assert order["status"] == OrderStatus.PENDING.value
        assert Decimal(order["total_amount"]) == Decimal("18")
        assert [p["tier_id"] for p in order["predictions"]] == ["low", "high"]
        assert order["custom_predictions"] == [{"prediction_value": "150", "tier_id": "low", "price": "5"}]
        assert order["order_code"].startswith("ORD-")

    async def test_order_does_not_reserve_entries(self, db_session, make_contest):
        contest = await make_contest(generate=True)
        slot = _slot(contest, 100)

        await create_contest_order(db_session, uuid4(), contest.id, slot_ids=[slot["id"]])

        await db_session.refresh(contest)
        assert _slot(contest, 100)["current_entries"] == 0
        assert contest.total_entries == 0

    async def test_draft_contest_rejected(self, db_session, make_contest):
        contest = await make_contest(generate=True, status=ContestStatus.DRAFT.value)

        with pytest.raises(ContestStateError):
            await create_contest_order(db_session, uuid4(), contest.id, custom_values=[100])

    async def test_selection_window_closed(self, db_session, make_contest):
        contest = await make_contest(generate=True)
        later = datetime.now(timezone.utc) + timedelta(hours=13)

        with pytest.raises(ContestStateError):
            await create_contest_order(db_session, uuid4(), contest.id, custom_values=[100], now=later)

    async def test_not_started(self, db_session, make_contest):
        contest = await make_contest(generate=True)
        earlier = datetime.now(timezone.utc) - timedelta(days=2)

        with pytest.raises(ContestStateError):
            await create_contest_order(db_session, uuid4(), contest.id, custom_values=[100], now=earlier)

    async def test_unknown_slot(self, db_session, make_contest):
        contest = await make_contest(generate=True)

        with pytest.raises(PredictionUnavailable):
            await create_contest_order(db_session, uuid4(), contest.id, slot_ids=["missing"])

    async def test_empty_order(self, db_session, make_contest):
        contest = await make_contest(generate=True)

        with pytest.raises(PredictionUnavailable):
            await create_contest_order(db_session, uuid4(), contest.id)


class TestConfirmPayment:
    async def test_reserves_entries(self, db_session, make_contest):
        contest = await make_contest(generate=True)
        slot = _slot(contest, 150)
        order = await create_contest_order(
            db_session, uuid4(), contest.id, slot_ids=[slot["id"]], custom_values=[200]
        )

        paid = await confirm_order_payment(db_session, UUID(order["id"]))

        assert paid["status"] == OrderStatus.PROCESSING.value
        assert paid["paid_at"] is not None
        await db_session.refresh(contest)
        assert _slot(contest, 150)["current_entries"] == 1
        assert _slot(contest, 150)["is_available"] is True
        assert contest.total_entries == 2

    async def test_confirm_is_idempotent(self, db_session, make_contest):
        contest = await make_contest(generate=True)
        slot = _slot(contest, 150)
        order = await create_contest_order(db_session, uuid4(), contest.id, slot_ids=[slot["id"]])

        await confirm_order_payment(db_session, UUID(order["id"]))
        again = await confirm_order_payment(db_session, UUID(order["id"]))

        assert again["status"] == OrderStatus.PROCESSING.value
        await db_session.refresh(contest)
        assert _slot(contest, 150)["current_entries"] == 1
        assert contest.total_entries == 1

    async def test_full_slot_reserves_nothing(self, db_session, make_contest):
        contest = await make_contest(generate=True)
        full, free = _slot(contest, 100), _slot(contest, 125)
        orders = [
            await create_contest_order(db_session, uuid4(), contest.id, slot_ids=[free["id"], full["id"]])
            for _ in range(3)
        ]

        await confirm_order_payment(db_session, UUID(orders[0]["id"]))
        await confirm_order_payment(db_session, UUID(orders[1]["id"]))
        with pytest.raises(PredictionUnavailable):
            await confirm_order_payment(db_session, UUID(orders[2]["id"]))

        await db_session.refresh(contest)
        assert _slot(contest, 100)["current_entries"] == 2
        assert _slot(contest, 100)["is_available"] is False
        assert _slot(contest, 125)["current_entries"] == 2
        assert contest.total_entries == 4

    async def test_sold_out_slot_cannot_be_ordered(self, db_session, make_contest):
        contest = await make_contest(generate=True, entries_per_prediction=1)
        slot = _slot(contest, 100)
        order = await create_contest_order(db_session, uuid4(), contest.id, slot_ids=[slot["id"]])
        await confirm_order_payment(db_session, UUID(order["id"]))

        with pytest.raises(PredictionUnavailable):
            await create_contest_order(db_session, uuid4(), contest.id, slot_ids=[slot["id"]])

    async def test_contest_locked_before_order(self, db_session, make_contest):
        contest = await make_contest(generate=True)
        slot = _slot(contest, 150)
        order = await create_contest_order(db_session, uuid4(), contest.id, slot_ids=[slot["id"]])
        locks = []

        async def contest_lock(session, contest_id, for_update=False):
            if for_update:
                locks.append("contest")
            return await contest_repo.get_contest_by_id(session, contest_id, for_update=for_update)

        async def order_lock(session, order_id, for_update=False):
            if for_update:
                locks.append("order")
            return await order_repo.get_order_by_id(session, order_id, for_update=for_update)

        with patch("app.services.orders.get_contest_by_id", contest_lock), \
                patch("app.services.orders.get_order_by_id", order_lock):
            await confirm_order_payment(db_session, UUID(order["id"]))

        assert locks == ["contest", "order"]

    async def test_cancelled_order(self, db_session, make_contest, make_order):
        contest = await make_contest(generate=True)
        order = await make_order(contest, [100], status=OrderStatus.CANCELLED.value)

        with pytest.raises(OrderStateError):
            await confirm_order_payment(db_session, order.id)

    async def test_unknown_order(self, db_session):
        with pytest.raises(OrderNotFound):
            await confirm_order_payment(db_session, uuid4())


def test_order_codes_are_unique():
    codes = {generate_order_code() for _ in range(50)}
    assert len(codes) == 50
