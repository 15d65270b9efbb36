"""
Unit tests for the service factory singletons.
"""

from unittest.mock import patch

import pytest

from app.services import service_factory
from app.services.pricing_client import HttpPricingClient
from app.services.service_factory import (
    get_link_signer,
    get_orchestrator,
    get_pricing_client,
    get_storage,
    get_upload_sessions,
    public_base_url,
    reset_services,
)


@pytest.fixture(autouse=True)
def fresh_services():
    """Reset singletons before and after each test."""
    reset_services()
    yield
    reset_services()


def test_singletons_are_reused():
    """Test that repeated calls return the same instances."""
    assert get_storage() is get_storage()
    assert get_upload_sessions() is get_upload_sessions()
    assert get_orchestrator() is get_orchestrator()
    assert get_link_signer() is get_link_signer()


def test_orchestrator_shares_storage_and_signer():
    """Test the orchestrator is wired to the shared storage and signer."""
    orchestrator = get_orchestrator()

    assert orchestrator.storage is get_storage()
    assert orchestrator.signer is get_link_signer()
    assert orchestrator.sessions is not get_upload_sessions()


def test_slice_and_upload_accept_different_types():
    """Test the slice table rejects STEP while the upload table accepts it."""
    assert "step" in get_upload_sessions().accepted_types
    assert "step" not in get_orchestrator().sessions.accepted_types


def test_reset_rebuilds_instances():
    """Test reset_services clears cached instances."""
    first = get_orchestrator()

    reset_services()

    assert get_orchestrator() is not first


def test_pricing_disabled_without_url():
    """Test no pricing client is built when PRICING_API_URL is unset."""
    with patch.object(service_factory.settings, "PRICING_API_URL", None):
        assert get_pricing_client() is None


def test_pricing_enabled_with_url():
    """Test an HTTP pricing client is built from settings."""
    with patch.object(service_factory.settings, "PRICING_API_URL", "https://pricing.example.com"), \
            patch.object(service_factory.settings, "PRICING_API_KEY", "k"):
        client = get_pricing_client()

    assert isinstance(client, HttpPricingClient)
    assert client.url == "https://pricing.example.com"
    assert client.api_key == "k"


@pytest.mark.parametrize(
    "env,expected",
    [
        ("development", "http://localhost:4000"),
        ("production", "https://slice.example.com"),
    ],
)
def test_public_base_url(env, expected):
    """Test link base URL selection per environment."""
    with patch.object(service_factory.settings, "ENV", env), \
            patch.object(service_factory.settings, "PORT", 4000), \
            patch.object(service_factory.settings, "PUBLIC_BASE_URL", "https://slice.example.com"):
        assert public_base_url() == expected


def test_invoker_uses_dedicated_workdir(tmp_path):
    """Test slicing jobs run under SLICE_WORKDIR rather than the bare temp dir."""
    with patch.object(service_factory.settings, "SLICE_WORKDIR", str(tmp_path / "jobs")):
        invoker = get_orchestrator().invoker

    assert invoker.workdir_root == str(tmp_path / "jobs")
