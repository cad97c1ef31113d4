"""TargetGroupBinding, the in-cluster object that registers a Service's endpoints into a target group."""

from __future__ import annotations

import dataclasses

import albstack
from albstack.k8s import PortSpec
from albstack.stack import Reference

NETWORKING_PROTOCOL_TCP = "TCP"


@dataclasses.dataclass(frozen=True)
class ObjectMeta:
    name: str
    namespace: str


@dataclasses.dataclass(frozen=True)
class ServiceReference:
    name: str
    port: PortSpec


@dataclasses.dataclass(frozen=True)
class SecurityGroupPeer:
    group_id: Reference


@dataclasses.dataclass(frozen=True)
class NetworkingPeer:
    security_group: SecurityGroupPeer


@dataclasses.dataclass(frozen=True)
class NetworkingPort:
    protocol: str = NETWORKING_PROTOCOL_TCP
    # unset means every port
    port: PortSpec | None = None


@dataclasses.dataclass(frozen=True)
class NetworkingIngressRule:
    from_: list[NetworkingPeer] = dataclasses.field(metadata={"json": "from"})
    ports: list[NetworkingPort]


@dataclasses.dataclass(frozen=True)
class TargetGroupBindingNetworking:
    ingress: list[NetworkingIngressRule]


@dataclasses.dataclass(frozen=True)
class TargetGroupBindingSpec:
    target_group_arn: Reference
    target_type: albstack.TargetType
    service_ref: ServiceReference
    networking: TargetGroupBindingNetworking | None = None


@dataclasses.dataclass(frozen=True)
class TargetGroupBindingTemplate:
    metadata: ObjectMeta
    spec: TargetGroupBindingSpec


@dataclasses.dataclass(frozen=True)
class TargetGroupBindingResourceSpec:
    template: TargetGroupBindingTemplate


def allow_all_tcp_from(security_group_id: Reference) -> TargetGroupBindingNetworking:
    return TargetGroupBindingNetworking(
        ingress=[
            NetworkingIngressRule(
                from_=[NetworkingPeer(security_group=SecurityGroupPeer(group_id=security_group_id))],
                ports=[NetworkingPort()],
            ),
        ],
    )
