"""Resource graph: named resource descriptions wired together by ``Ref``s."""

from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from typing import Any, Dict, Iterator, List, Set, Tuple, Union

from .errors import ConfigurationConflict


@dataclass(frozen=True)
class Ref:
    """Points at an output attribute of another node in the same graph."""

    node: str
    attribute: str = "id"

    def __str__(self) -> str:
        return f"ref:{self.node}.{self.attribute}"


def iter_refs(value: Any) -> Iterator[Ref]:
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_refs(item)
    elif isinstance(value, (list, tuple, set, frozenset)):
        for item in value:
            yield from iter_refs(item)
    elif hasattr(value, "references"):
        # policy documents know which of their resources are refs
        yield from value.references()


@dataclass(frozen=True)
class ResourceNode:
    name: str
    kind: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    depends_on: Tuple[str, ...] = ()

    @property
    def references(self) -> List[Ref]:
        return list(iter_refs(self.attributes))

    @property
    def dependencies(self) -> frozenset:
        return frozenset(ref.node for ref in self.references) | frozenset(self.depends_on)


@dataclass(frozen=True)
class Absent:
    """Typed absence of an optional resource, kept so references to it can be explained."""

    name: str
    kind: str
    reason: str


Slot = Union[ResourceNode, Absent]


class ResourceGraph:
    def __init__(self) -> None:
        self.nodes: Dict[str, ResourceNode] = {}
        self.absent: Dict[str, Absent] = {}

    def add(self, slot: Slot) -> Slot:
        if slot.name in self.nodes or slot.name in self.absent:
            raise ConfigurationConflict(f"resource '{slot.name}' declared twice", field=slot.name)
        if isinstance(slot, Absent):
            self.absent[slot.name] = slot
        else:
            self.nodes[slot.name] = slot
        return slot

    def __contains__(self, name: str) -> bool:
        return name in self.nodes

    def __getitem__(self, name: str) -> ResourceNode:
        return self.nodes[name]

    def __len__(self) -> int:
        return len(self.nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResourceGraph):
            return NotImplemented
        return self.normalized() == other.normalized()

    def is_present(self, name: str) -> bool:
        return name in self.nodes

    def dangling_references(self) -> Set[Tuple[str, str]]:
        """Return ``(source, target)`` pairs whose target is not a present node."""
        dangling = set()
        for node in self.nodes.values():
            for target in node.dependencies:
                if target not in self.nodes:
                    dangling.add((node.name, target))
        return dangling

    def validate(self) -> None:
        for source, target in sorted(self.dangling_references()):
            if target in self.absent:
                raise ConfigurationConflict(
                    f"references '{target}', which is disabled ({self.absent[target].reason})",
                    field=source,
                )
            raise ConfigurationConflict(f"references unknown resource '{target}'", field=source)
        self.topological_order()

    def topological_order(self) -> List[str]:
        """Dependencies first; ties broken by name so the order is reproducible."""
        sorter = TopologicalSorter()
        for name in sorted(self.nodes):
            sorter.add(name, *sorted(self.nodes[name].dependencies))
        try:
            sorter.prepare()
        except CycleError as e:
            raise ConfigurationConflict(f"dependency cycle between {e.args[1]}") from e
        order = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready())
            order.extend(ready)
            sorter.done(*ready)
        return order

    def normalized(self) -> Dict[str, Any]:
        return {
            name: {
                "kind": node.kind,
                "attributes": _normalize(node.attributes),
                "dependencies": sorted(node.dependencies),
            }
            for name, node in sorted(self.nodes.items())
        }


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in sorted(value.items())}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, Ref):
        return str(value)
    if hasattr(value, "to_dict"):
        return _normalize(value.to_dict())
    return value
