import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.tasks.recurring.spawn_due_recurring_tasks", ignore_result=True
)
def spawn_due_recurring_tasks() -> None:
    """Spawn one task per due recurrence and advance its next due date."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        spawned = spawn_due(db)
        logger.info("Spawned %d recurring tasks", spawned)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to spawn recurring tasks: %s", e)
    finally:
        db.close()


def spawn_due(db, now=None) -> int:
    from app.services.recurring_tasks import recurring_tasks

    count = 0
    for recurring in recurring_tasks.due(db, now):
        try:
            if recurring_tasks.spawn(db, recurring, now) is not None:
                count += 1
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to spawn recurring task %s", recurring.id)
    return count
