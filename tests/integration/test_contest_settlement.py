"""
Integration tests for contest settlement functionality
"""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from app.core.errors import AlreadySettled, ContestNotFound, ContestStateError, ResultUnavailable
from app.models.enums import ContestStatus, OrderStatus
from app.repos.audit_log_repo import get_audit_logs
from app.repos import contest_repo
from app.services.settlement import get_contest_results, settle_contest


class TestContestSettlementIntegration:
    """Integration tests for contest settlement"""

    async def _three_orders(self, make_contest, make_order):
        contest = await make_contest()
        order_a = await make_order(contest, [118200])
        order_b = await make_order(contest, [118600])
        order_c = await make_order(contest, [119000])
        return contest, order_a, order_b, order_c

    async def test_settlement_awards_places(self, db_session, make_contest, make_order):
        """Closest guess takes 70%, runner-up 30%, the rest lose"""
        contest, order_a, order_b, order_c = await self._three_orders(make_contest, make_order)

        result = await settle_contest(db_session, contest.id, actual_value=Decimal("118500"))

        assert result["success"] is True
        assert result["status"] == ContestStatus.COMPLETED.value
        assert result["num_orders"] == 3
        assert result["winning_predictions"] == [str(order_b.id), str(order_a.id)]
        assert Decimal(result["total_prizes"]) == Decimal("1000")

        for order in (order_a, order_b, order_c):
            await db_session.refresh(order)
        assert order_b.status == OrderStatus.WON.value
        assert order_b.result["place"] == 1
        assert Decimal(order_b.result["prize_amount"]) == Decimal("700")
        assert order_a.status == OrderStatus.WON.value
        assert order_a.result["place"] == 2
        assert Decimal(order_a.result["prize_amount"]) == Decimal("300")
        assert order_c.status == OrderStatus.LOST.value
        assert order_c.result is None

        await db_session.refresh(contest)
        assert contest.status == ContestStatus.COMPLETED.value
        assert contest.prize_distributed is True
        assert contest.actual_value == Decimal("118500")
        assert contest.winning_order_ids == [str(order_b.id), str(order_a.id)]
        assert contest.ended_at is not None

    async def test_second_settlement_is_rejected(self, db_session, make_contest, make_order):
        contest, order_a, order_b, order_c = await self._three_orders(make_contest, make_order)
        await settle_contest(db_session, contest.id, actual_value=Decimal("118500"))

        with pytest.raises(AlreadySettled):
            await settle_contest(db_session, contest.id, actual_value=Decimal("119000"))

        await db_session.refresh(order_c)
        await db_session.refresh(contest)
        assert order_c.status == OrderStatus.LOST.value
        assert contest.actual_value == Decimal("118500")

        logs = await get_audit_logs(db_session, action="contest_settlement")
        assert len(logs) == 1

    async def test_contest_without_orders(self, db_session, make_contest):
        contest = await make_contest()

        result = await settle_contest(db_session, contest.id, actual_value=Decimal("150"))

        assert result["winners"] == []
        assert result["num_orders"] == 0
        await db_session.refresh(contest)
        assert contest.status == ContestStatus.COMPLETED.value
        assert contest.prize_distributed is True

    async def test_cancelled_orders_are_untouched(self, db_session, make_contest, make_order):
        contest = await make_contest()
        cancelled = await make_order(contest, [118500], status=OrderStatus.CANCELLED.value)
        live = await make_order(contest, [100000])

        result = await settle_contest(db_session, contest.id, actual_value=Decimal("118500"))

        assert result["winning_predictions"] == [str(live.id)]
        await db_session.refresh(cancelled)
        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.result is None

    async def test_result_source_used_without_actual_value(self, db_session, make_contest, make_order):
        contest = await make_contest()
        order = await make_order(contest, [150])
        result_source = AsyncMock()
        result_source.fetch_actual_value.return_value = Decimal("140")

        result = await settle_contest(db_session, contest.id, result_source=result_source)

        assert result["actual_value"] == "140"
        assert result["winning_predictions"] == [str(order.id)]
        result_source.fetch_actual_value.assert_awaited_once()

    async def test_explicit_value_wins_over_result_source(self, db_session, make_contest):
        contest = await make_contest()
        result_source = AsyncMock()

        await settle_contest(db_session, contest.id, actual_value=Decimal("1"), result_source=result_source)

        result_source.fetch_actual_value.assert_not_called()

    async def test_missing_result_leaves_contest_open(self, db_session, make_contest, make_order):
        contest = await make_contest()
        order = await make_order(contest, [150])
        result_source = AsyncMock()
        result_source.fetch_actual_value.side_effect = ResultUnavailable("provider down")

        with pytest.raises(ResultUnavailable):
            await settle_contest(db_session, contest.id, result_source=result_source)
        with pytest.raises(ResultUnavailable):
            await settle_contest(db_session, contest.id)

        await db_session.refresh(contest)
        await db_session.refresh(order)
        assert contest.prize_distributed is False
        assert contest.status == ContestStatus.ACTIVE.value
        assert order.status == OrderStatus.PROCESSING.value

    async def test_unknown_contest(self, db_session):
        with pytest.raises(ContestNotFound):
            await settle_contest(db_session, uuid4(), actual_value=Decimal("1"))

    async def test_deleted_contest_cannot_be_settled(self, db_session, make_contest):
        contest = await make_contest(status=ContestStatus.DELETED.value)

        with pytest.raises(ContestStateError):
            await settle_contest(db_session, contest.id, actual_value=Decimal("1"))

    async def test_settlement_is_audited(self, db_session, make_contest, make_order):
        contest, *_ = await self._three_orders(make_contest, make_order)
        admin_id = uuid4()

        await settle_contest(db_session, contest.id, actual_value=Decimal("118500"), admin_id=admin_id)

        logs = await get_audit_logs(db_session, action="contest_settlement")
        assert len(logs) == 1
        assert logs[0].admin_id == admin_id
        assert logs[0].details["actual_value"] == "118500"
        assert len(logs[0].details["winners"]) == 2

    async def test_lost_latch_rolls_back_everything(self, db_session, make_contest, make_order):
        """A concurrent settlement that latches first leaves this one with nothing written"""
        contest, order_a, order_b, order_c = await self._three_orders(make_contest, make_order)
        real_mark = contest_repo.mark_contest_settled

        async def latched_elsewhere(session, contest_id, **kwargs):
            await real_mark(session, contest_id, **kwargs)
            return await real_mark(session, contest_id, **kwargs)

        with patch("app.services.settlement.mark_contest_settled", latched_elsewhere):
            with pytest.raises(AlreadySettled):
                await settle_contest(db_session, contest.id, actual_value=Decimal("118500"))

        for order in (order_a, order_b, order_c):
            await db_session.refresh(order)
            assert order.status == OrderStatus.PROCESSING.value
            assert order.result is None
        await db_session.refresh(contest)
        assert contest.prize_distributed is False
        assert contest.status == ContestStatus.ACTIVE.value
        assert await get_audit_logs(db_session, action="contest_settlement") == []

    async def test_result_fetched_before_row_lock(self, db_session, make_contest):
        contest = await make_contest()
        events = []
        real_get = contest_repo.get_contest_by_id

        async def recording_get(session, contest_id, for_update=False):
            events.append("lock" if for_update else "read")
            return await real_get(session, contest_id, for_update=for_update)

        async def fetch(_contest):
            events.append("fetch")
            return Decimal("150")

        result_source = AsyncMock()
        result_source.fetch_actual_value.side_effect = fetch

        with patch("app.services.settlement.get_contest_by_id", recording_get):
            await settle_contest(db_session, contest.id, result_source=result_source)

        assert events == ["read", "fetch", "lock"]

    async def test_latch_rechecked_under_lock(self, db_session, make_contest):
        contest = await make_contest()

        async def settled_meanwhile(_contest):
            await contest_repo.mark_contest_settled(
                db_session, contest.id, actual_value=Decimal("1"), winning_order_ids=[], ended_at=None
            )
            return Decimal("150")

        result_source = AsyncMock()
        result_source.fetch_actual_value.side_effect = settled_meanwhile
        real_mark = contest_repo.mark_contest_settled
        mark = AsyncMock(side_effect=real_mark)

        with patch("app.services.settlement.mark_contest_settled", mark):
            with pytest.raises(AlreadySettled):
                await settle_contest(db_session, contest.id, result_source=result_source)

        mark.assert_not_called()


class TestContestResults:
    async def test_results_after_settlement(self, db_session, make_contest, make_order):
        contest = await make_contest()
        order_a = await make_order(contest, [118200])
        order_b = await make_order(contest, [118600])
        await settle_contest(db_session, contest.id, actual_value=Decimal("118500"))

        report = await get_contest_results(db_session, contest.id)

        assert report["status"] == ContestStatus.COMPLETED.value
        assert report["results"]["prize_distributed"] is True
        assert Decimal(report["results"]["actual_value"]) == Decimal("118500")
        assert [w["order_id"] for w in report["winners"]] == [str(order_b.id), str(order_a.id)]
        assert [w["place"] for w in report["winners"]] == [1, 2]
        assert [Decimal(p["prize_amount"]) for p in report["prizes"]] == [Decimal("700"), Decimal("300")]

    async def test_results_before_settlement(self, db_session, make_contest):
        contest = await make_contest()

        report = await get_contest_results(db_session, contest.id)

        assert report["winners"] == []
        assert report["results"]["prize_distributed"] is False
        assert report["results"]["actual_value"] is None
