from celery import shared_task

from .services import purge_expired_codes


@shared_task
def purge_expired_reset_codes() -> int:
    return purge_expired_codes()
