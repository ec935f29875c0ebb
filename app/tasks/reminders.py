import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.reminders.send_due_reminders", ignore_result=True)
def send_due_reminders() -> None:
    """Deliver reminders whose time has come and expire stale invitations."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        sent = send_due(db)
        logger.info("Sent %d reminders", sent)
        expire_invitations(db)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to send reminders: %s", e)
    finally:
        db.close()


def send_due(db, now=None) -> int:
    from app.services.reminders import reminders

    count = 0
    for reminder in reminders.due(db, now):
        try:
            reminders.dispatch(db, reminder, now)
            db.commit()
            count += 1
        except Exception:
            db.rollback()
            logger.exception("Failed to send reminder %s", reminder.id)
    return count


def expire_invitations(db, now=None) -> int:
    from app.services.invitations import invitations

    expired = invitations.expire_stale(db, now)
    db.commit()
    return expired
