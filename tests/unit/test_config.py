"""Unit tests for configuration loading."""

from __future__ import annotations

import pytest

from audit_trail.config import CaptureMode, load_config, parse_config
from audit_trail.errors import ConfigError


class TestParseConfig:
    """Test validation of raw configuration mappings."""

    def test_defaults(self, make_config) -> None:
        """Test the default flags."""
        config = make_config()
        assert config.send_to_sns is False
        assert config.allow_cross_account_notification is False
        assert config.global_trail is True
        assert config.capture_mode is CaptureMode.NONE
        assert config.cross_account_ids == ()
        assert config.lifecycle.glacier_transition_days == 90
        assert config.lifecycle.expiration_days == 365
        assert config.key_deletion_window_days == 30

    @pytest.mark.parametrize("key", ["team", "name", "bucket_name", "logging_bucket"])
    def test_missing_required_key(self, raw_config, key) -> None:
        """Test that required keys are enforced."""
        del raw_config[key]
        with pytest.raises(ConfigError) as exc:
            parse_config(raw_config)
        assert exc.value.field == key

    def test_cross_account_ids_become_tuple(self, make_config) -> None:
        """Test that account ids are normalized to strings in a tuple."""
        config = make_config(cross_account_ids=[111111111111, "222222222222"])
        assert config.cross_account_ids == ("111111111111", "222222222222")

    def test_invalid_account_id(self, make_config) -> None:
        """Test that malformed account ids are rejected."""
        with pytest.raises(ConfigError) as exc:
            make_config(cross_account_ids=["12345"])
        assert exc.value.field == "cross_account_ids"

    def test_non_boolean_flag(self, make_config) -> None:
        """Test that flags must be booleans."""
        with pytest.raises(ConfigError) as exc:
            make_config(send_to_sns="yes")
        assert exc.value.field == "send_to_sns"

    def test_lifecycle_order(self, make_config) -> None:
        """Test that expiration must follow the archive transition."""
        with pytest.raises(ConfigError):
            make_config(lifecycle={"glacier_transition_days": 90, "expiration_days": 30})

    def test_deletion_window_bounds(self, make_config) -> None:
        """Test the key deletion window range."""
        with pytest.raises(ConfigError):
            make_config(key_deletion_window_days=3)

    def test_tags_sorted(self, make_config) -> None:
        """Test that tags are stored deterministically."""
        config = make_config(tags={"b": "2", "a": "1"})
        assert config.tags == (("a", "1"), ("b", "2"))
        assert config.tag_map == {"a": "1", "b": "2"}


class TestCaptureMode:
    """Test capture mode parsing."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, CaptureMode.NONE),
            ("none", CaptureMode.NONE),
            ("read-only", CaptureMode.READ_ONLY),
            ("ReadOnly", CaptureMode.READ_ONLY),
            ("write-only", CaptureMode.WRITE_ONLY),
            ("read-write", CaptureMode.READ_WRITE),
            ("All", CaptureMode.READ_WRITE),
            ("ReadWrite", CaptureMode.READ_WRITE),
        ],
    )
    def test_parse(self, value, expected) -> None:
        """Test accepted spellings."""
        assert CaptureMode.parse(value) is expected

    def test_unknown(self) -> None:
        """Test that unknown modes are rejected."""
        with pytest.raises(ConfigError) as exc:
            CaptureMode.parse("everything")
        assert exc.value.field == "capture_mode"


def test_load_config_from_yaml(tmp_path) -> None:
    """Test loading a YAML file."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "team: platform\n"
        "service: audit\n"
        "environment: prod\n"
        "region: eu-west-1\n"
        "name: org-audit\n"
        "bucket_name: my-trail\n"
        "logging_bucket: access-logs\n"
        "send_to_sns: true\n"
        "capture_mode: write-only\n"
        "cross_account_ids:\n"
        "  - '111111111111'\n"
    )
    config = load_config(str(path))
    assert config.region == "eu-west-1"
    assert config.send_to_sns is True
    assert config.capture_mode is CaptureMode.WRITE_ONLY
    assert config.cross_account_ids == ("111111111111",)
