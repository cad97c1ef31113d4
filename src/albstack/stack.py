"""The resource graph handed to the deploy engine.

A ``Stack`` maps resource kind to resource id to spec. Spec attributes that
point at values AWS only assigns at creation time (ARNs, group ids) are
``Reference`` objects; the deploy engine resolves them in dependency order.
"""

from __future__ import annotations

import dataclasses
import enum
import json
import types
import typing

import yaml

import albstack
from albstack.errors import StackIntegrityError

if typing.TYPE_CHECKING:
    import collections.abc

_ACRONYMS = {
    "arn": "ARN",
    "id": "ID",
    "ip": "IP",
    "ipv6": "IPv6",
}


@dataclasses.dataclass(frozen=True)
class Reference:
    """A deferred reference to ``field`` in another resource's status."""

    kind: albstack.ResourceKind
    resource_id: str
    field: str

    @property
    def pointer(self) -> str:
        return f"#/resources/{self.kind}/{self.resource_id}/status/{self.field}"


@dataclasses.dataclass(frozen=True)
class Resource:
    kind: albstack.ResourceKind
    id: str
    spec: typing.Any

    def ref(self, field: str) -> Reference:
        return Reference(kind=self.kind, resource_id=self.id, field=field)


@dataclasses.dataclass(frozen=True)
class Stack:
    id: str
    resources: typing.Mapping[albstack.ResourceKind, typing.Mapping[str, Resource]]

    def list_resources(self, kind: albstack.ResourceKind) -> list[Resource]:
        return list(self.resources.get(kind, {}).values())

    def get(self, kind: albstack.ResourceKind, resource_id: str) -> Resource:
        return self.resources[kind][resource_id]


class StackBuilder:
    """Accumulates resources for a single build and freezes them into a Stack."""

    def __init__(self, stack_id: str):
        self.stack_id = stack_id
        self._resources: dict[albstack.ResourceKind, dict[str, Resource]] = {}

    def add(self, kind: albstack.ResourceKind, resource_id: str, spec: typing.Any) -> Resource:
        by_id = self._resources.setdefault(kind, {})
        if resource_id in by_id:
            msg = f"duplicate resource id {resource_id!r} for kind {kind}"
            raise StackIntegrityError(msg)

        resource = Resource(kind=kind, id=resource_id, spec=spec)
        by_id[resource_id] = resource
        return resource

    def has(self, kind: albstack.ResourceKind, resource_id: str) -> bool:
        return resource_id in self._resources.get(kind, {})

    def build(self) -> Stack:
        self._validate_references()

        return Stack(
            id=self.stack_id,
            resources=types.MappingProxyType(
                {kind: types.MappingProxyType(dict(by_id)) for kind, by_id in self._resources.items()}
            ),
        )

    def _validate_references(self) -> None:
        edges: dict[tuple[str, str], list[tuple[str, str]]] = {}
        for kind, by_id in self._resources.items():
            for resource_id, resource in by_id.items():
                targets = []
                for ref in iter_references(resource.spec):
                    if not self.has(ref.kind, ref.resource_id):
                        msg = f"{kind}/{resource_id} references missing resource {ref.pointer}"
                        raise StackIntegrityError(msg)
                    targets.append((str(ref.kind), ref.resource_id))
                edges[(str(kind), resource_id)] = targets

        visiting: set[tuple[str, str]] = set()
        done: set[tuple[str, str]] = set()

        def visit(node: tuple[str, str]) -> None:
            if node in done:
                return
            if node in visiting:
                msg = f"reference cycle detected at {node[0]}/{node[1]}"
                raise StackIntegrityError(msg)
            visiting.add(node)
            for target in edges.get(node, []):
                visit(target)
            visiting.discard(node)
            done.add(node)

        for node in edges:
            visit(node)


def iter_references(value: typing.Any) -> collections.abc.Iterator[Reference]:
    if isinstance(value, Reference):
        yield value
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            yield from iter_references(getattr(value, f.name))
    elif isinstance(value, dict):
        for v in value.values():
            yield from iter_references(v)
    elif isinstance(value, list | tuple):
        for v in value:
            yield from iter_references(v)


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(_ACRONYMS.get(part, part.capitalize()) for part in rest)


def to_document(value: typing.Any) -> typing.Any:
    """Convert specs into plain JSON-compatible data, dropping unset fields."""
    if isinstance(value, Reference):
        return {"$ref": value.pointer}
    if isinstance(value, enum.Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        doc = {}
        for f in dataclasses.fields(value):
            v = getattr(value, f.name)
            if v is None:
                continue
            doc[f.metadata.get("json", camel_case(f.name))] = to_document(v)
        return doc
    if isinstance(value, dict):
        return {str(k): to_document(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [to_document(v) for v in value]
    return value


def marshal_stack(stack: Stack) -> dict[str, typing.Any]:
    resources: dict[str, typing.Any] = {}
    for kind in sorted(stack.resources, key=str):
        resources[str(kind)] = {
            resource_id: {"spec": to_document(resource.spec)}
            for resource_id, resource in stack.resources[kind].items()
        }
    return {"id": stack.id, "resources": resources}


def dump_stack(stack: Stack, fmt: str = "json") -> str:
    doc = marshal_stack(stack)
    if fmt == "yaml":
        return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)
    return json.dumps(doc, indent=4)
