from celery import shared_task

from .services import reconcile_balances, settle_pending


@shared_task
def settle_pending_commissions() -> list[dict]:
    return [result.as_dict() for result in settle_pending()]


@shared_task
def reconcile_commission_balances() -> int:
    return reconcile_balances()
