from __future__ import annotations

import dataclasses
import typing

from albstack.errors import ServiceReferenceError

if typing.TYPE_CHECKING:
    import collections.abc

PortSpec = int | str


def parse_port_spec(value: typing.Any) -> PortSpec:
    """Keep a service port reference exactly as declared: numbers stay ints, names stay strings."""
    if isinstance(value, bool):
        msg = f"invalid service port: {value!r}"
        raise ServiceReferenceError(msg)
    if isinstance(value, int):
        return value
    return str(value)


@dataclasses.dataclass(frozen=True, order=True)
class GroupID:
    namespace: str
    name: str

    @classmethod
    def explicit(cls, name: str) -> GroupID:
        return cls(namespace="", name=name)

    def is_explicit(self) -> bool:
        return self.namespace == ""

    def __str__(self) -> str:
        if self.is_explicit():
            return self.name
        return f"{self.namespace}/{self.name}"


@dataclasses.dataclass(frozen=True)
class BackendRef:
    service_name: str
    service_port: PortSpec

    @property
    def literal_port(self) -> str:
        return str(self.service_port)

    @classmethod
    def from_manifest(cls, backend: dict[str, typing.Any]) -> BackendRef:
        # networking.k8s.io/v1
        if "service" in backend:
            svc = backend["service"]
            port = svc.get("port", {})
            if "name" in port:
                return cls(service_name=svc["name"], service_port=str(port["name"]))
            if port.get("number") is None:
                msg = f"missing service port for backend service {svc['name']}"
                raise ServiceReferenceError(msg)
            return cls(service_name=svc["name"], service_port=parse_port_spec(port["number"]))

        # networking.k8s.io/v1beta1 and extensions/v1beta1
        return cls(
            service_name=backend["serviceName"],
            service_port=parse_port_spec(backend["servicePort"]),
        )


@dataclasses.dataclass(frozen=True)
class Rule:
    host: str
    path: str
    backend: BackendRef


@dataclasses.dataclass(frozen=True)
class Member:
    """One source Ingress of a group."""

    namespace: str
    name: str
    annotations: dict[str, str] = dataclasses.field(default_factory=dict)
    rules: tuple[Rule, ...] = ()
    default_backend: BackendRef | None = None
    tls_hosts: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def hosts(self) -> list[str]:
        hosts = [rule.host for rule in self.rules if rule.host]
        hosts.extend(self.tls_hosts)
        return hosts

    @classmethod
    def from_manifest(cls, ingress: dict[str, typing.Any]) -> Member:
        metadata = ingress.get("metadata", {})
        spec = ingress.get("spec", {}) or {}

        rules: list[Rule] = []
        for ing_rule in spec.get("rules", []) or []:
            http = ing_rule.get("http")
            if http is None:
                continue
            rules.extend(
                Rule(
                    host=ing_rule.get("host", "") or "",
                    path=path.get("path", "") or "",
                    backend=BackendRef.from_manifest(path["backend"]),
                )
                for path in http.get("paths", []) or []
            )

        raw_default = spec.get("defaultBackend") or spec.get("backend")
        tls_hosts = tuple(host for tls in spec.get("tls", []) or [] for host in tls.get("hosts", []) or [])

        return cls(
            namespace=metadata.get("namespace", "default"),
            name=metadata["name"],
            annotations=dict(metadata.get("annotations", {}) or {}),
            rules=tuple(rules),
            default_backend=BackendRef.from_manifest(raw_default) if raw_default else None,
            tls_hosts=tls_hosts,
        )


def _member_sort_key(member: Member) -> tuple[str, str]:
    return (member.namespace, member.name)


@dataclasses.dataclass(frozen=True)
class Group:
    id: GroupID
    members: tuple[Member, ...]

    def __post_init__(self):
        # members are always kept in canonical order so rule priorities are deterministic
        object.__setattr__(self, "members", tuple(sorted(self.members, key=_member_sort_key)))


@dataclasses.dataclass(frozen=True)
class ServicePort:
    port: int
    name: str = ""
    target_port: PortSpec | None = None
    node_port: int | None = None
    protocol: str = "TCP"

    @classmethod
    def from_manifest(cls, port: dict[str, typing.Any]) -> ServicePort:
        target_port = port.get("targetPort")
        return cls(
            port=int(port["port"]),
            name=port.get("name", "") or "",
            target_port=parse_port_spec(target_port) if target_port is not None else None,
            node_port=port.get("nodePort"),
            protocol=port.get("protocol", "TCP"),
        )

    @property
    def effective_target_port(self) -> PortSpec:
        # kubernetes defaults targetPort to port
        if self.target_port is None:
            return self.port
        return self.target_port


@dataclasses.dataclass(frozen=True)
class Service:
    namespace: str
    name: str
    ports: tuple[ServicePort, ...] = ()
    annotations: dict[str, str] = dataclasses.field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_manifest(cls, service: dict[str, typing.Any]) -> Service:
        metadata = service.get("metadata", {})
        spec = service.get("spec", {}) or {}
        return cls(
            namespace=metadata.get("namespace", "default"),
            name=metadata["name"],
            ports=tuple(ServicePort.from_manifest(p) for p in spec.get("ports", []) or []),
            annotations=dict(metadata.get("annotations", {}) or {}),
        )

    def lookup_port(self, port: PortSpec) -> ServicePort:
        for svc_port in self.ports:
            if isinstance(port, str) and svc_port.name == port:
                return svc_port
            if isinstance(port, int) and svc_port.port == port:
                return svc_port

        msg = f"unable to find port {port} on service {self.key}"
        raise ServiceReferenceError(msg)


class ServiceIndex:
    """Read-only view over the Services an Ingress group may reference."""

    def __init__(self, services: collections.abc.Iterable[Service] = ()):
        self._services: dict[tuple[str, str], Service] = {}
        for svc in services:
            self._services[(svc.namespace, svc.name)] = svc

    def __len__(self) -> int:
        return len(self._services)

    def get(self, namespace: str, name: str) -> Service:
        try:
            return self._services[(namespace, name)]
        except KeyError:
            msg = f"service not found: {namespace}/{name}"
            raise ServiceReferenceError(msg) from None
