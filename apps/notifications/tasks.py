from celery import shared_task

from apps.commissions.models import Commission

from .services import send_commission_earned


@shared_task(autoretry_for=(OSError,), retry_backoff=True, max_retries=3)
def send_commission_earned_email(commission_id: str) -> None:
    try:
        commission = Commission.objects.select_related("affiliate", "product").get(id=commission_id)
    except Commission.DoesNotExist:
        return
    send_commission_earned(commission)
