"""Celery background tasks."""

import asyncio

import structlog

from taskhub.worker import celery_app

logger = structlog.get_logger()


async def run_recurring_scheduler() -> dict:
    """Run one scheduler cycle against the database."""
    from taskhub.config import get_settings
    from taskhub.db.session import engine, session_scope
    from taskhub.services.recurring_task import RecurringTaskScheduler
    from taskhub.services.rule_repository import SqlAlchemyRuleRepository

    settings = get_settings()
    try:
        async with session_scope() as db:
            scheduler = RecurringTaskScheduler(
                SqlAlchemyRuleRepository(db),
                batch_limit=settings.recurring_batch_limit,
            )
            result = await scheduler.run_due_cycle()
    finally:
        # Pooled connections are bound to this asyncio.run loop
        await engine.dispose()
    return result.to_dict()


@celery_app.task(bind=True, name="taskhub.tasks.process_recurring_tasks")
def process_recurring_tasks(self) -> dict:
    """
    Process all due recurring task rules and create tasks.

    Scheduled by Celery Beat (see ``taskhub.worker``). Returns the run
    counters; if the due rules cannot be read the error is logged and
    reported instead.
    """
    try:
        result = asyncio.run(run_recurring_scheduler())
    except Exception as e:
        logger.error(
            "recurring_tasks_processing_failed",
            error=str(e),
        )
        return {
            "status": "error",
            "error": str(e),
        }

    logger.info(
        "recurring_tasks_processed",
        tasks_created=result["created"],
        rules_deactivated=result["deactivated"],
        errors=len(result["errors"]),
    )
    return {"status": "success", **result}
