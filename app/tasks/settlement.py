"""
Celery tasks for contest settlement
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from app.celery_app import celery
from app.core.errors import AlreadySettled, ContestNotFound, ContestStateError, ResultUnavailable
from app.db.session import AsyncSessionLocal, async_engine
from app.repos.contest_repo import list_ended_active_contests
from app.services.result_source import ContestResultSource
from app.services.settlement import settle_contest

# Configure logging
logger = logging.getLogger(__name__)


def _run(coro):
    """Run a coroutine on a fresh event loop, releasing pooled connections afterwards"""
    async def _with_cleanup():
        try:
            return await coro
        finally:
            await async_engine.dispose()

    return asyncio.run(_with_cleanup())


@celery.task(bind=True, max_retries=3, default_retry_delay=600)
def settle_contest_task(self, contest_id: str, actual_value: Optional[str] = None) -> Dict:
    """
    Settle a contest in the background.

    Args:
        contest_id: Contest UUID as string
        actual_value: Outcome as a decimal string; fetched from the contest's
            result provider when omitted
    """
    logger.info(f"Settlement task started for contest {contest_id}")

    async def _process():
        async with AsyncSessionLocal() as session:
            return await settle_contest(
                session=session,
                contest_id=UUID(contest_id),
                actual_value=Decimal(actual_value) if actual_value is not None else None,
                result_source=ContestResultSource(),
            )

    try:
        return _run(_process())
    except AlreadySettled:
        logger.info(f"Contest {contest_id} was already settled, nothing to do")
        return {"success": False, "contest_id": contest_id, "reason": "already_settled"}
    except (ContestNotFound, ContestStateError) as e:
        logger.error(f"Contest {contest_id} cannot be settled: {e}")
        return {"success": False, "contest_id": contest_id, "reason": e.message}
    except ResultUnavailable as e:
        logger.warning(f"Result for contest {contest_id} not available yet: {e}")
        raise self.retry(exc=e)


@celery.task
def settle_ended_contests() -> List[str]:
    """
    Enqueue settlement for every Active contest whose end_time has passed.

    Returns:
        Contest ids that were enqueued
    """
    async def _find():
        async with AsyncSessionLocal() as session:
            contests = await list_ended_active_contests(session, datetime.now(timezone.utc))
            return [str(contest.id) for contest in contests]

    contest_ids = _run(_find())
    for contest_id in contest_ids:
        settle_contest_task.delay(contest_id)

    logger.info(f"Enqueued settlement for {len(contest_ids)} ended contests")
    return contest_ids
