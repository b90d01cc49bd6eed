import re

import pytest

from apps.affiliates.models import TrackingLink
from apps.affiliates.services import create_link, resolve
from apps.products.models import Product
from core.exceptions import LinkNotFound, ProductNotEligible

pytestmark = pytest.mark.django_db


def test_create_link_issues_eight_char_slug(affiliate, product):
    link = create_link(affiliate, product)

    assert re.fullmatch(r"[A-Za-z0-9]{8}", link.slug)
    assert link.destination_url == f"http://testserver/products/view/{product.id}"
    assert resolve(link.slug) == link.destination_url


def test_create_link_returns_existing_link_for_same_pair(affiliate, product):
    first = create_link(affiliate, product)
    second = create_link(affiliate, product)

    assert first.pk == second.pk
    assert TrackingLink.objects.count() == 1


def test_create_link_rejects_unapproved_product(affiliate, make_product):
    pending = make_product(status=Product.STATUS_PENDING)

    with pytest.raises(ProductNotEligible):
        create_link(affiliate, pending)
    assert not TrackingLink.objects.exists()


def test_slug_is_immutable(link):
    original = link.slug
    link.slug = "changed1"
    link.destination_url = "https://elsewhere.example.com"
    link.save()
    link.refresh_from_db()

    assert link.slug == original
    assert link.destination_url.startswith("http://testserver/products/view/")


def test_resolve_unknown_slug_raises():
    with pytest.raises(LinkNotFound):
        resolve("nope1234")


def test_generate_link_endpoint(api_client, affiliate, product):
    api_client.force_authenticate(affiliate)

    resp = api_client.post("/api/affiliates/links/generate/", {"product_id": str(product.id)}, format="json")

    assert resp.status_code == 201
    assert resp.data["link"]["tracking_url"] == f"http://testserver/t/{resp.data['link']['slug']}"


def test_generate_link_for_pending_product_is_conflict(api_client, affiliate, make_product):
    api_client.force_authenticate(affiliate)
    pending = make_product(status=Product.STATUS_PENDING)

    resp = api_client.post("/api/affiliates/links/generate/", {"product_id": str(pending.id)}, format="json")

    assert resp.status_code == 409
    assert resp.data["code"] == "product_not_eligible"


def test_admin_cannot_generate_links(api_client, admin_user, product):
    api_client.force_authenticate(admin_user)

    resp = api_client.post("/api/affiliates/links/generate/", {"product_id": str(product.id)}, format="json")

    assert resp.status_code == 403


def test_list_shows_only_own_links_with_click_counts(api_client, affiliate, make_user, product, click):
    other = make_user()
    create_link(other, product)
    api_client.force_authenticate(affiliate)

    resp = api_client.get("/api/affiliates/links/")

    assert resp.status_code == 200
    assert resp.data["count"] == 1
    assert resp.data["results"][0]["click_count"] == 1
