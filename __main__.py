import pulumi
import pulumi_aws as aws

from audit_trail import IdentityFacts, PipelineAssembler, load_config
from audit_trail.provisioner import GraphProvisioner


def resolve_identity(region: str) -> IdentityFacts:
    caller = aws.get_caller_identity()
    return IdentityFacts(
        primary_account_id=caller.account_id,
        caller_is_root=caller.arn.endswith(":root"),
        region=region,
    )


def main():
    config_file = pulumi.Config().get("configFile") or "config.yaml"

    try:
        config = load_config(config_file)
    except Exception as e:
        pulumi.log.error(f"Failed to load configuration from '{config_file}': {e}")
        raise

    try:
        graph = PipelineAssembler().assemble(config, resolve_identity(aws.config.region or config.region))
    except Exception as e:
        pulumi.log.error(f"Failed to assemble the audit trail: {e}")
        raise

    provisioner = GraphProvisioner(config)
    try:
        provisioner.provision(graph)
    except Exception as e:
        pulumi.log.error(f"Failed during resource provisioning: {e}")
        raise

    # Export created resources
    for name, resource in provisioner.resources.items():
        try:
            pulumi.export(name, resource.id)
        except Exception as e:
            pulumi.log.warn(f"Failed to export resource '{name}': {e}")


if __name__ == "__main__":
    main()
