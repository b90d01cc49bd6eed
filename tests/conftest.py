from decimal import Decimal

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from apps.affiliates.services import ClientMeta, create_link, record_click
from apps.authentication.models import User
from apps.payments.gateway import GatewayCapture, GatewayError, GatewayOrder
from apps.products.models import Product


@pytest.fixture(autouse=True)
def _clear_cache():
    # Throttle counters live in the cache.
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=User.ROLE_AFFILIATE, paypal_email="payee@example.com", **extra):
        counter["n"] += 1
        n = counter["n"]
        return User.objects.create_user(
            email=extra.pop("email", f"user{n}@example.com"),
            password=extra.pop("password", "S3cure-pass-123"),
            username=extra.pop("username", f"user{n}"),
            role=role,
            paypal_email=paypal_email,
            **extra,
        )

    return _make


@pytest.fixture
def affiliate(make_user):
    return make_user(full_name="Ada Affiliate")


@pytest.fixture
def admin_user(make_user):
    return make_user(role=User.ROLE_ADMIN, paypal_email=None, is_staff=True)


@pytest.fixture
def make_product(affiliate):
    def _make(price="100.00", status=Product.STATUS_APPROVED, owner=None, **extra):
        return Product.objects.create(
            owner=owner or affiliate,
            title=extra.pop("title", "Course"),
            price=Decimal(price),
            status=status,
            **extra,
        )

    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def link(affiliate, product):
    return create_link(affiliate, product)


@pytest.fixture
def click(link):
    return record_click(link.slug, ClientMeta(ip_address="203.0.113.7", user_agent="Mozilla/5.0"))


class FakeGateway:
    """In-memory processor: captures succeed with the order amount unless told to fail."""

    name = "fake"

    def __init__(self, fail_with=None, captured_amount=None):
        self.fail_with = fail_with
        self.captured_amount = captured_amount
        self.orders = {}
        self.capture_calls = 0

    def create_order(self, amount, currency, reference, description=""):
        order_id = f"FAKE-{len(self.orders) + 1}"
        self.orders[order_id] = Decimal(amount)
        return GatewayOrder(order_id=order_id, status="CREATED", approve_url=f"https://pay.test/{order_id}")

    def capture_order(self, order_id, amount_hint=None):
        self.capture_calls += 1
        if self.fail_with:
            raise GatewayError(self.fail_with)
        amount = self.captured_amount or self.orders.get(order_id) or amount_hint
        return GatewayCapture(
            order_id=order_id,
            capture_id=f"CAP-{order_id}",
            amount=Decimal(amount),
            currency="USD",
            status="COMPLETED",
            payer_id="PAYER-1",
        )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def use_gateway(monkeypatch):
    """Route the API views through a given fake gateway."""

    def _use(fake):
        monkeypatch.setattr("apps.payments.services.get_gateway", lambda: fake)
        return fake

    return _use
