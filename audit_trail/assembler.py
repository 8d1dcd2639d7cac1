import pulumi
from typing import Any, Callable, Dict, Optional, Tuple

from .config import CaptureMode, IdentityFacts, TrailConfig
from .errors import ConfigurationConflict, EmptyExpansionSet, MissingRequiredIdentity
from .graph import Absent, Ref, ResourceGraph, ResourceNode, Slot
from .naming import sanitize
from .policies import KeyPolicyBuilder, NotificationPolicyBuilder, StoragePolicyBuilder, trail_arn_pattern

# Object-level capture covers every bucket in the account; narrow it per trail if needed.
ALL_BUCKETS_ARN = "arn:aws:s3:::"


def optional_resource(
    enabled: bool,
    name: str,
    kind: str,
    reason: str,
    factory: Callable[[], Dict[str, Any]],
    depends_on: Tuple[str, ...] = (),
) -> Slot:
    """Build the node when ``enabled``, otherwise a typed absence for it."""
    if not enabled:
        return Absent(name=name, kind=kind, reason=reason)
    return ResourceNode(name=name, kind=kind, attributes=factory(), depends_on=depends_on)


def delivery_accounts(primary_account_id: str, cross_account_ids: Tuple[str, ...]) -> Tuple[str, ...]:
    accounts = []
    for account in (primary_account_id,) + tuple(cross_account_ids):
        if account not in accounts:
            accounts.append(account)
    return tuple(accounts)


class PipelineAssembler:
    """Turns a TrailConfig into the resource graph of the audit pipeline."""

    def __init__(
        self,
        key_builder: Optional[KeyPolicyBuilder] = None,
        storage_builder: Optional[StoragePolicyBuilder] = None,
        notification_builder: Optional[NotificationPolicyBuilder] = None,
    ):
        self.key_builder = key_builder or KeyPolicyBuilder()
        self.storage_builder = storage_builder or StoragePolicyBuilder()
        self.notification_builder = notification_builder or NotificationPolicyBuilder()

    def check(self, config: TrailConfig, identity: IdentityFacts) -> str:
        """Reject conflicting settings before anything is built; returns the account id."""
        account_id = identity.primary_account_id
        if not account_id:
            raise MissingRequiredIdentity("the deploying account could not be resolved", field="primary_account_id")
        if config.account_id and config.account_id != account_id:
            raise ConfigurationConflict(
                f"configured for account {config.account_id} but deploying into {account_id}",
                field="account_id",
            )
        if identity.region != config.region:
            raise ConfigurationConflict(
                f"configured for {config.region} but the provider targets {identity.region}",
                field="region",
            )
        if config.allow_cross_account_notification and not config.send_to_sns:
            raise ConfigurationConflict(
                "cross-account notification requires send_to_sns",
                field="allow_cross_account_notification",
            )
        if config.allow_cross_account_notification and not config.cross_account_ids:
            raise EmptyExpansionSet(
                "cross-account notification requested but no cross-account ids are configured",
                field="cross_account_ids",
            )
        if bool(config.log_group_arn) != bool(config.log_group_role_arn):
            missing = "log_group_role_arn" if config.log_group_arn else "log_group_arn"
            raise ConfigurationConflict("log group delivery needs both the group and the role", field=missing)
        if identity.caller_is_root:
            pulumi.log.warn("Deploying the audit trail as the account root identity")
        return account_id

    def assemble(self, config: TrailConfig, identity: IdentityFacts) -> ResourceGraph:
        account_id = self.check(config, identity)
        accounts = delivery_accounts(account_id, config.cross_account_ids)
        tags = config.tag_map
        graph = ResourceGraph()

        # Key
        graph.add(ResourceNode("key", "kms.Key", {
            "description": f"Encrypts CloudTrail logs for {config.name}",
            "enable_key_rotation": True,
            "deletion_window_in_days": config.key_deletion_window_days,
            "policy": self.key_builder.build(account_id, trail_arn_pattern(account_id)),
            "tags": tags,
        }))
        graph.add(ResourceNode("key_alias", "kms.Alias", {
            "name": f"alias/{sanitize(config.name)}-cloudtrail",
            "target_key_id": Ref("key", "key_id"),
        }))

        # Bucket
        bucket = Ref("bucket", "id")
        graph.add(ResourceNode("bucket", "s3.BucketV2", {
            "bucket": config.bucket_name,
            "force_destroy": False,
            "tags": tags,
        }, depends_on=("key",)))
        graph.add(ResourceNode("bucket_versioning", "s3.BucketVersioningV2", {
            "bucket": bucket,
            "versioning_configuration": {"status": "Enabled"},
        }))
        graph.add(ResourceNode("bucket_encryption", "s3.BucketServerSideEncryptionConfigurationV2", {
            "bucket": bucket,
            "rules": [{
                "apply_server_side_encryption_by_default": {
                    "sse_algorithm": "aws:kms",
                    "kms_master_key_id": Ref("key", "arn"),
                },
                "bucket_key_enabled": True,
            }],
        }))
        graph.add(ResourceNode("bucket_logging", "s3.BucketLoggingV2", {
            "bucket": bucket,
            "target_bucket": config.logging_bucket,
            "target_prefix": f"{config.bucket_name}/",
        }))
        graph.add(ResourceNode("bucket_lifecycle", "s3.BucketLifecycleConfigurationV2", {
            "bucket": bucket,
            "rules": [{
                "id": "archive-then-expire",
                "status": "Enabled",
                "filter": {"prefix": ""},
                "transitions": [{
                    "days": config.lifecycle.glacier_transition_days,
                    "storage_class": "GLACIER",
                }],
                "expiration": {"days": config.lifecycle.expiration_days},
            }],
        }))
        graph.add(ResourceNode("bucket_public_access_block", "s3.BucketPublicAccessBlock", {
            "bucket": bucket,
            "block_public_acls": True,
            "block_public_policy": True,
            "ignore_public_acls": True,
            "restrict_public_buckets": True,
        }))
        graph.add(ResourceNode("bucket_policy", "s3.BucketPolicy", {
            "bucket": bucket,
            "policy": self.storage_builder.build(config.bucket_name, accounts),
        }, depends_on=("bucket_public_access_block",)))

        # Notifications: topic, topic policy and the trail wiring come and go together.
        topic_arn = Ref("topic", "arn") if config.send_to_sns else None
        topic_policy = self.notification_builder.build(
            topic_arn,
            config.allow_cross_account_notification,
            accounts,
        )
        disabled = "send_to_sns is off"
        graph.add(optional_resource(
            config.send_to_sns, "topic", "sns.Topic", disabled,
            lambda: {"name": sanitize(config.bucket_name), "tags": tags},
        ))
        graph.add(optional_resource(
            topic_policy is not None, "topic_policy", "sns.TopicPolicy", disabled,
            lambda: {"arn": topic_arn, "policy": topic_policy},
        ))
        pulumi.log.debug(f"Notification topic {'enabled' if config.send_to_sns else 'disabled'} for '{config.name}'")

        graph.add(ResourceNode("trail", "cloudtrail.Trail", self.trail_attributes(config),
                               depends_on=self.trail_prerequisites(graph)))

        graph.validate()
        pulumi.log.info(
            f"Assembled {len(graph)} resources for trail '{config.name}' "
            f"(capture={config.capture_mode.value}, sns={config.send_to_sns}, accounts={len(accounts)})"
        )
        return graph

    def trail_attributes(self, config: TrailConfig) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {
            "name": config.name,
            "s3_bucket_name": Ref("bucket", "id"),
            "kms_key_id": Ref("key", "arn"),
            "include_global_service_events": True,
            "is_multi_region_trail": config.global_trail,
            "enable_log_file_validation": True,
            "tags": config.tag_map,
        }
        if config.send_to_sns:
            attributes["sns_topic_name"] = Ref("topic", "name")
        if config.capture_mode is not CaptureMode.NONE:
            attributes["event_selectors"] = [{
                "read_write_type": config.capture_mode.value,
                "include_management_events": True,
                "data_resources": [{"type": "AWS::S3::Object", "values": [ALL_BUCKETS_ARN]}],
            }]
            pulumi.log.debug(f"Capturing {config.capture_mode.value} object events for '{config.name}'")
        if config.log_group_arn:
            attributes["cloud_watch_logs_group_arn"] = f"{config.log_group_arn.removesuffix(':*')}:*"
            attributes["cloud_watch_logs_role_arn"] = config.log_group_role_arn
        return attributes

    def trail_prerequisites(self, graph: ResourceGraph) -> Tuple[str, ...]:
        # the service validates both policies when the trail is created
        return tuple(name for name in ("bucket_policy", "topic_policy") if graph.is_present(name))
