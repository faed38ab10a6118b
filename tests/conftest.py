import pytest
from rest_framework.test import APIClient

from tests.factories import UserFactory


@pytest.fixture(autouse=True)
def billing_settings(settings, tmp_path):
    settings.MEDIA_ROOT = str(tmp_path / "media")
    settings.MEDIA_URL = "/media/"
    settings.SITE_URL = "https://ledger.test"
    settings.BILLING_CURRENCY = "USD"
    settings.INVOICE_NUMBER_PREFIX = "INV"
    settings.INVOICE_NUMBER_PADDING = 6
    settings.INVOICE_STORAGE_PREFIX = "invoices"
    settings.NARRATIVE_ENHANCEMENT_ENABLED = False
    return settings


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def anonymous_client():
    return APIClient()
