# ===============================================================================
# PYTEST CONFIGURATION FOR THE MARKETPLACE PLATFORM
# ===============================================================================
"""
Global test configuration.

Test Structure:
- tests/ mirrors apps/ structure (common, offers, wallets, api)
- Pure computation modules (offers.calculations, wallets.ledger) are tested
  with SimpleTestCase and never touch the database

Run specific app tests: pytest tests/wallets/
Run against PostgreSQL (enables the threaded wallet races): TEST_DB_ENGINE=postgresql pytest
"""

import pytest
from django.contrib.auth import get_user_model

User = get_user_model()


@pytest.fixture
def user():
    """Create a shop user"""
    return User.objects.create_user(username="shop-owner", email="shop@example.com", password="testpass123")


@pytest.fixture
def staff_user():
    """Create an admin dashboard user"""
    return User.objects.create_user(
        username="ops-admin", email="ops@example.com", password="testpass123", is_staff=True
    )
