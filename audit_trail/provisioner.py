import inspect
import json
import pulumi
import pulumi_aws as aws
from typing import Any, Dict

from .config import TrailConfig
from .errors import ProvisioningError
from .graph import Ref, ResourceGraph, ResourceNode
from .naming import physical_name
from .policies import PolicyDocument


def resolve_value(value: Any, resources: Dict[str, Any]) -> Any:
    if isinstance(value, dict):
        return {k: resolve_value(v, resources) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [resolve_value(item, resources) for item in value]
    elif isinstance(value, Ref):
        if value.node not in resources:
            raise ProvisioningError(f"Referenced resource '{value.node}' not provisioned yet.", field=value.node)
        attr_val = getattr(resources[value.node], value.attribute, None)
        if attr_val is None:
            raise ProvisioningError(
                f"Attribute '{value.attribute}' not found on resource '{value.node}'", field=value.node
            )
        return attr_val
    elif isinstance(value, PolicyDocument):
        if not value.references():
            return value.to_json()
        document = resolve_value(value.to_dict(), resources)
        return pulumi.Output.from_input(document).apply(json.dumps)
    else:
        return value


class GraphProvisioner:
    """Declares one pulumi_aws resource per graph node, dependencies first."""

    def __init__(self, config: TrailConfig):
        self.config = config
        self.resources: Dict[str, pulumi.Resource] = {}

    def generate_resource_name(self, base_name: str) -> str:
        return physical_name(
            self.config.team,
            self.config.service,
            self.config.environment,
            self.config.region,
            base_name.replace("_", "-"),
        )

    def resource_class(self, kind: str):
        module_name, class_name = kind.rsplit(".", 1)
        module = getattr(aws, module_name, None)
        if not module:
            raise ProvisioningError(f"AWS module '{module_name}' not found.", field=kind)
        try:
            return module, getattr(module, class_name)
        except AttributeError:
            raise ProvisioningError(
                f"Resource class '{class_name}' not found in module '{module_name}'.", field=kind
            ) from None

    def _apply_common_parameters(self, resolved_args: dict, args_sig: inspect.Signature) -> dict:
        if "tags" in args_sig.parameters:
            if self.config.tags:
                resolved_args.setdefault("tags", self.config.tag_map)
        else:
            resolved_args.pop("tags", None)
        if not resolved_args.get("tags"):
            resolved_args.pop("tags", None)
        return resolved_args

    def declare(self, node: ResourceNode) -> pulumi.Resource:
        module, ResourceClass = self.resource_class(node.kind)
        # Resource constructors take **kwargs; their Args classes list the real inputs.
        ArgsClass = getattr(module, f"{ResourceClass.__name__}Args", None)
        resolved_args = resolve_value(node.attributes, self.resources)
        if ArgsClass is not None:
            resolved_args = self._apply_common_parameters(resolved_args, inspect.signature(ArgsClass.__init__))
        opts = None
        if node.depends_on:
            opts = pulumi.ResourceOptions(depends_on=[self.resources[name] for name in node.depends_on])
        pulumi_name = self.generate_resource_name(node.name)
        resource_instance = ResourceClass(pulumi_name, opts=opts, **resolved_args)
        pulumi.log.info(f"Declared resource: {pulumi_name} ({node.kind})")
        return resource_instance

    def provision(self, graph: ResourceGraph) -> Dict[str, pulumi.Resource]:
        graph.validate()
        for name in graph.topological_order():
            self.resources[name] = self.declare(graph[name])
        return self.resources
