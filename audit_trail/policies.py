"""
Access policy documents for the trail key, the log bucket and the
notification topic.

Documents are plain values: statements keep their declaration order and
render to IAM JSON deterministically, so building the same inputs twice
yields byte-identical policies. Resource entries may be ``Ref``s to other
graph nodes (the topic ARN is only known once the topic exists); the
provisioner resolves those before the JSON is handed to the provider.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import ConfigError, ConfigurationConflict, EmptyExpansionSet, MissingRequiredIdentity
from .graph import Ref

POLICY_VERSION = "2012-10-17"
CLOUDTRAIL_SERVICE = "cloudtrail.amazonaws.com"
ENCRYPTION_CONTEXT_KEY = "kms:EncryptionContext:aws:cloudtrail:arn"

ResourcePattern = Union[str, Ref]


class Effect(Enum):
    ALLOW = "Allow"
    DENY = "Deny"


class PrincipalKind(Enum):
    ACCOUNT = "AWS"
    SERVICE = "Service"


def _scalar_or_list(values: Sequence[Any]) -> Any:
    return values[0] if len(values) == 1 else list(values)


def _unique(values: Sequence[Any]) -> Tuple[Any, ...]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass(frozen=True)
class Principal:
    kind: PrincipalKind
    identifiers: Tuple[str, ...]

    @classmethod
    def service(cls, name: str) -> "Principal":
        return cls(PrincipalKind.SERVICE, (name,))

    @classmethod
    def account_root(cls, account_id: str) -> "Principal":
        return cls(PrincipalKind.ACCOUNT, (f"arn:aws:iam::{account_id}:root",))

    @classmethod
    def anyone(cls) -> "Principal":
        return cls(PrincipalKind.ACCOUNT, ("*",))

    def to_dict(self) -> Dict[str, Any]:
        return {self.kind.value: _scalar_or_list(self.identifiers)}


@dataclass(frozen=True)
class Condition:
    operator: str
    key: str
    values: Tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))
        if not self.values:
            raise EmptyExpansionSet(f"condition '{self.operator}' has no values", field=self.key)


@dataclass(frozen=True)
class PolicyStatement:
    """One statement. ``conditions`` of ``None`` means unconditional."""

    sid: str
    effect: Effect
    principal: Principal
    actions: Tuple[str, ...]
    resources: Tuple[ResourcePattern, ...]
    conditions: Optional[Tuple[Condition, ...]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "actions", tuple(self.actions))
        object.__setattr__(self, "resources", tuple(self.resources))
        if not self.resources:
            raise EmptyExpansionSet("statement matches no resources", field=self.sid)
        if self.conditions is not None:
            object.__setattr__(self, "conditions", tuple(self.conditions))
            if not self.conditions:
                raise EmptyExpansionSet("use None for an unconditional statement", field=self.sid)

    def condition_block(self) -> Dict[str, Dict[str, Any]]:
        block: Dict[str, Dict[str, Any]] = {}
        for condition in self.conditions or ():
            block.setdefault(condition.operator, {})[condition.key] = _scalar_or_list(condition.values)
        return block

    def to_dict(self) -> Dict[str, Any]:
        statement = {
            "Sid": self.sid,
            "Effect": self.effect.value,
            "Principal": self.principal.to_dict(),
            "Action": _scalar_or_list(self.actions),
            "Resource": _scalar_or_list(self.resources),
        }
        if self.conditions is not None:
            statement["Condition"] = self.condition_block()
        return statement


@dataclass(frozen=True)
class PolicyDocument:
    statements: Tuple[PolicyStatement, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "statements", tuple(self.statements))
        sids = [s.sid for s in self.statements]
        for sid in sids:
            if sids.count(sid) > 1:
                raise ValueError(f"duplicate statement id '{sid}' in policy document")

    def __iter__(self) -> Iterator[PolicyStatement]:
        return iter(self.statements)

    def __len__(self) -> int:
        return len(self.statements)

    def statement(self, sid: str) -> PolicyStatement:
        for statement in self.statements:
            if statement.sid == sid:
                return statement
        raise KeyError(sid)

    def references(self) -> List[Ref]:
        return [r for s in self.statements for r in s.resources if isinstance(r, Ref)]

    def to_dict(self) -> Dict[str, Any]:
        return {"Version": POLICY_VERSION, "Statement": [s.to_dict() for s in self.statements]}

    def to_json(self) -> str:
        if self.references():
            raise ValueError("policy still holds unresolved references")
        return json.dumps(self.to_dict())


def trail_arn_pattern(account_id: str) -> str:
    """Every trail in every region of the account."""
    return f"arn:aws:cloudtrail:*:{account_id}:trail/*"


def bucket_arn(bucket_name: str) -> str:
    return f"arn:aws:s3:::{bucket_name}"


class KeyPolicyBuilder:
    """Access policy of the key that encrypts delivered log files."""

    def build(self, primary_account_id: Optional[str], trail_resource_pattern: Optional[str] = None) -> PolicyDocument:
        if not primary_account_id:
            raise MissingRequiredIdentity("an account id is required for the key policy", field="primary_account_id")
        pattern = trail_resource_pattern or trail_arn_pattern(primary_account_id)
        cloudtrail = Principal.service(CLOUDTRAIL_SERVICE)
        encryption_context = Condition("StringLike", ENCRYPTION_CONTEXT_KEY, (pattern,))

        return PolicyDocument((
            PolicyStatement(
                sid="EnableAccountAdministration",
                effect=Effect.ALLOW,
                principal=Principal.account_root(primary_account_id),
                actions=("kms:*",),
                resources=("*",),
            ),
            PolicyStatement(
                sid="AllowCloudTrailEncryptLogs",
                effect=Effect.ALLOW,
                principal=cloudtrail,
                actions=("kms:GenerateDataKey*",),
                resources=("*",),
                conditions=(encryption_context,),
            ),
            PolicyStatement(
                sid="AllowCloudTrailDescribeKey",
                effect=Effect.ALLOW,
                principal=cloudtrail,
                actions=("kms:DescribeKey",),
                resources=("*",),
            ),
            # Any principal, held to the owning account AND the trail context.
            PolicyStatement(
                sid="AllowLogDecryption",
                effect=Effect.ALLOW,
                principal=Principal.anyone(),
                actions=("kms:Decrypt", "kms:ReEncryptFrom"),
                resources=("*",),
                conditions=(
                    Condition("StringEquals", "kms:CallerAccount", (primary_account_id,)),
                    encryption_context,
                ),
            ),
        ))


class StoragePolicyBuilder:
    """Bucket policy admitting trail deliveries and refusing plaintext transport."""

    def build(self, bucket_name: str, cross_account_ids: Sequence[str]) -> PolicyDocument:
        if not bucket_name:
            raise ConfigError("a bucket name is required for the bucket policy", field="bucket_name")
        if not cross_account_ids:
            raise EmptyExpansionSet("no account may deliver into the bucket", field="cross_account_ids")
        arn = bucket_arn(bucket_name)
        cloudtrail = Principal.service(CLOUDTRAIL_SERVICE)
        write_patterns = _unique([f"{arn}/AWSLogs/{account}/*" for account in cross_account_ids])

        return PolicyDocument((
            PolicyStatement(
                sid="AWSCloudTrailAclCheck",
                effect=Effect.ALLOW,
                principal=cloudtrail,
                actions=("s3:GetBucketAcl",),
                resources=(arn,),
            ),
            PolicyStatement(
                sid="AWSCloudTrailWrite",
                effect=Effect.ALLOW,
                principal=cloudtrail,
                actions=("s3:PutObject",),
                resources=write_patterns,
                conditions=(Condition("StringEquals", "s3:x-amz-acl", ("bucket-owner-full-control",)),),
            ),
            PolicyStatement(
                sid="DenyInsecureTransport",
                effect=Effect.DENY,
                principal=Principal.anyone(),
                actions=("s3:*",),
                resources=(arn, f"{arn}/*"),
                conditions=(Condition("Bool", "aws:SecureTransport", ("false",)),),
            ),
        ))


class NotificationPolicyBuilder:
    """Topic policy letting the trail publish delivery notifications."""

    def build(
        self,
        topic_arn: Optional[ResourcePattern],
        allow_cross_account: bool,
        cross_account_ids: Sequence[str] = (),
    ) -> Optional[PolicyDocument]:
        if topic_arn is None:
            if allow_cross_account:
                raise ConfigurationConflict(
                    "cross-account notification requested without a notification topic",
                    field="allow_cross_account_notification",
                )
            return None

        conditions = None
        if allow_cross_account:
            if not cross_account_ids:
                raise EmptyExpansionSet(
                    "cross-account notification requested without any account ids",
                    field="cross_account_ids",
                )
            conditions = (Condition("StringEquals", "AWS:SourceAccount", _unique(cross_account_ids)),)

        return PolicyDocument((
            PolicyStatement(
                sid="AWSCloudTrailSNSPolicy",
                effect=Effect.ALLOW,
                principal=Principal.service(CLOUDTRAIL_SERVICE),
                actions=("SNS:Publish",),
                resources=(topic_arn,),
                conditions=conditions,
            ),
        ))
