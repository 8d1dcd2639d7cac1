"""
This module defines the data structures for our configuration and the
loader that turns a YAML document into them. Every value is validated on
load so the builders can trust what they receive.
"""

import re
import yaml
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigError

REQUIRED_KEYS = ["team", "service", "environment", "region", "name", "bucket_name", "logging_bucket"]

ACCOUNT_ID_PATTERN = re.compile(r"^\d{12}$")


class CaptureMode(Enum):
    """Which object-level data events the trail records."""

    NONE = "None"
    READ_ONLY = "ReadOnly"
    WRITE_ONLY = "WriteOnly"
    READ_WRITE = "All"

    @classmethod
    def parse(cls, value: Any) -> "CaptureMode":
        if isinstance(value, CaptureMode):
            return value
        if value is None or value is False:
            return cls.NONE
        text = str(value).strip()
        aliases = {
            "none": cls.NONE,
            "read-only": cls.READ_ONLY,
            "readonly": cls.READ_ONLY,
            "write-only": cls.WRITE_ONLY,
            "writeonly": cls.WRITE_ONLY,
            "readwrite": cls.READ_WRITE,
            "read-write": cls.READ_WRITE,
            "all": cls.READ_WRITE,
        }
        mode = aliases.get(text.lower())
        if mode is None:
            raise ConfigError(f"unknown capture mode '{value}'", field="capture_mode")
        return mode


@dataclass(frozen=True)
class LifecycleConfig:
    glacier_transition_days: int = 90
    expiration_days: int = 365


@dataclass(frozen=True)
class TrailConfig:
    team: str
    service: str
    environment: str
    region: str
    name: str
    bucket_name: str
    logging_bucket: str
    account_id: Optional[str] = None
    cross_account_ids: Tuple[str, ...] = ()
    send_to_sns: bool = False
    allow_cross_account_notification: bool = False
    global_trail: bool = True
    capture_mode: CaptureMode = CaptureMode.NONE
    log_group_arn: Optional[str] = None
    log_group_role_arn: Optional[str] = None
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    key_deletion_window_days: int = 30
    tags: Tuple[Tuple[str, str], ...] = ()

    @property
    def tag_map(self) -> Dict[str, str]:
        return dict(self.tags)


@dataclass(frozen=True)
class IdentityFacts:
    """Facts about the deploying identity, resolved by the caller."""

    primary_account_id: Optional[str]
    caller_is_root: bool = False
    region: str = "us-east-1"


def _require_bool(data: Dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"expected a boolean, got {value!r}", field=key)
    return value


def _require_positive_int(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"expected a positive integer, got {value!r}", field=key)
    return value


def _account_id(value: Any, key: str) -> str:
    text = str(value).strip()
    if not ACCOUNT_ID_PATTERN.match(text):
        raise ConfigError(f"'{value}' is not a 12-digit account id", field=key)
    return text


def parse_config(config_data: Dict[str, Any]) -> TrailConfig:
    """Validate a raw mapping and build the immutable TrailConfig."""
    if not isinstance(config_data, dict):
        raise ConfigError("configuration must be a mapping")

    for key in REQUIRED_KEYS:
        if key not in config_data or config_data[key] in (None, ""):
            raise ConfigError(f"Missing required configuration key: {key}", field=key)

    raw_ids = config_data.get("cross_account_ids") or []
    if not isinstance(raw_ids, list):
        raise ConfigError("expected a list of account ids", field="cross_account_ids")
    cross_account_ids = tuple(_account_id(v, "cross_account_ids") for v in raw_ids)

    account_id = config_data.get("account_id")
    if account_id is not None:
        account_id = _account_id(account_id, "account_id")

    lifecycle_data = config_data.get("lifecycle") or {}
    if not isinstance(lifecycle_data, dict):
        raise ConfigError("expected a mapping", field="lifecycle")
    lifecycle = LifecycleConfig(
        glacier_transition_days=_require_positive_int(lifecycle_data, "glacier_transition_days", 90),
        expiration_days=_require_positive_int(lifecycle_data, "expiration_days", 365),
    )
    if lifecycle.expiration_days <= lifecycle.glacier_transition_days:
        raise ConfigError(
            "expiration_days must be later than glacier_transition_days",
            field="lifecycle.expiration_days",
        )

    deletion_window = _require_positive_int(config_data, "key_deletion_window_days", 30)
    if not 7 <= deletion_window <= 30:
        raise ConfigError("must be between 7 and 30", field="key_deletion_window_days")

    tags = config_data.get("tags") or {}
    if not isinstance(tags, dict):
        raise ConfigError("expected a mapping", field="tags")

    return TrailConfig(
        team=str(config_data["team"]),
        service=str(config_data["service"]),
        environment=str(config_data["environment"]),
        region=str(config_data["region"]),
        name=str(config_data["name"]),
        bucket_name=str(config_data["bucket_name"]),
        logging_bucket=str(config_data["logging_bucket"]),
        account_id=account_id,
        cross_account_ids=cross_account_ids,
        send_to_sns=_require_bool(config_data, "send_to_sns", False),
        allow_cross_account_notification=_require_bool(config_data, "allow_cross_account_notification", False),
        global_trail=_require_bool(config_data, "global_trail", True),
        capture_mode=CaptureMode.parse(config_data.get("capture_mode")),
        log_group_arn=config_data.get("log_group_arn"),
        log_group_role_arn=config_data.get("log_group_role_arn"),
        lifecycle=lifecycle,
        key_deletion_window_days=deletion_window,
        tags=tuple(sorted((str(k), str(v)) for k, v in tags.items())),
    )


def load_config(file_path: str) -> TrailConfig:
    """Load and validate YAML configuration from the given file path."""
    with open(file_path, "r") as file:
        config_data = yaml.safe_load(file)
    return parse_config(config_data)
