"""Shared fixtures for audit trail tests."""

from __future__ import annotations

from typing import Any

import pytest

from audit_trail.config import IdentityFacts, TrailConfig, parse_config

PRIMARY_ACCOUNT = "123456789012"


@pytest.fixture
def raw_config() -> dict[str, Any]:
    return {
        "team": "platform",
        "service": "audit",
        "environment": "prod",
        "region": "us-east-1",
        "name": "org-audit",
        "bucket_name": "my-trail",
        "logging_bucket": "access-logs",
    }


@pytest.fixture
def make_config(raw_config):
    def _make(**overrides: Any) -> TrailConfig:
        data = dict(raw_config)
        data.update(overrides)
        return parse_config(data)

    return _make


@pytest.fixture
def identity() -> IdentityFacts:
    return IdentityFacts(primary_account_id=PRIMARY_ACCOUNT, caller_is_root=False, region="us-east-1")
