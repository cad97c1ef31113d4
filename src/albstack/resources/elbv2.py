from __future__ import annotations

import dataclasses

import albstack
from albstack.resources import StringToken
from albstack.stack import Reference


@dataclasses.dataclass(frozen=True)
class SubnetMapping:
    subnet_id: str


@dataclasses.dataclass(frozen=True)
class Attribute:
    key: str
    value: str


def attributes_from_map(attrs: dict[str, str] | None) -> list[Attribute] | None:
    if not attrs:
        return None
    return [Attribute(key=k, value=attrs[k]) for k in sorted(attrs)]


@dataclasses.dataclass(frozen=True)
class LoadBalancerSpec:
    name: str
    type: albstack.LoadBalancerType
    scheme: albstack.Scheme
    ip_address_type: albstack.IPAddressType
    subnet_mapping: list[SubnetMapping]
    security_groups: list[StringToken]
    load_balancer_attributes: list[Attribute] | None = None
    tags: dict[str, str] | None = None


@dataclasses.dataclass(frozen=True)
class Certificate:
    certificate_arn: str


@dataclasses.dataclass(frozen=True)
class FixedResponseActionConfig:
    status_code: str
    content_type: str | None = None
    message_body: str | None = None


@dataclasses.dataclass(frozen=True)
class RedirectActionConfig:
    status_code: str
    host: str | None = None
    path: str | None = None
    port: str | None = None
    protocol: str | None = None
    query: str | None = None


@dataclasses.dataclass(frozen=True)
class TargetGroupTuple:
    target_group_arn: StringToken
    weight: int | None = None


@dataclasses.dataclass(frozen=True)
class TargetGroupStickinessConfig:
    enabled: bool | None = None
    duration_seconds: int | None = None


@dataclasses.dataclass(frozen=True)
class ForwardActionConfig:
    target_groups: list[TargetGroupTuple]
    target_group_stickiness_config: TargetGroupStickinessConfig | None = None


@dataclasses.dataclass(frozen=True)
class Action:
    type: albstack.ActionType
    fixed_response_config: FixedResponseActionConfig | None = None
    redirect_config: RedirectActionConfig | None = None
    forward_config: ForwardActionConfig | None = None


@dataclasses.dataclass(frozen=True)
class HostHeaderConditionConfig:
    values: list[str]


@dataclasses.dataclass(frozen=True)
class PathPatternConditionConfig:
    values: list[str]


@dataclasses.dataclass(frozen=True)
class RuleCondition:
    field: albstack.ConditionField
    host_header_config: HostHeaderConditionConfig | None = None
    path_pattern_config: PathPatternConditionConfig | None = None


def host_header_condition(hosts: list[str]) -> RuleCondition:
    return RuleCondition(
        field=albstack.ConditionField.HOST_HEADER,
        host_header_config=HostHeaderConditionConfig(values=hosts),
    )


def path_pattern_condition(paths: list[str]) -> RuleCondition:
    return RuleCondition(
        field=albstack.ConditionField.PATH_PATTERN,
        path_pattern_config=PathPatternConditionConfig(values=paths),
    )


@dataclasses.dataclass(frozen=True)
class ListenerSpec:
    load_balancer_arn: Reference
    port: int
    protocol: albstack.Protocol
    default_actions: list[Action]
    certificates: list[Certificate] | None = None
    ssl_policy: str | None = None


@dataclasses.dataclass(frozen=True)
class ListenerRuleSpec:
    listener_arn: Reference
    priority: int
    actions: list[Action]
    conditions: list[RuleCondition]


@dataclasses.dataclass(frozen=True)
class HealthCheckMatcher:
    http_code: str | None = None
    grpc_code: str | None = None


@dataclasses.dataclass(frozen=True)
class TargetGroupHealthCheckConfig:
    port: int | str
    protocol: albstack.Protocol
    path: str
    matcher: HealthCheckMatcher
    interval_seconds: int
    timeout_seconds: int
    healthy_threshold_count: int
    unhealthy_threshold_count: int


@dataclasses.dataclass(frozen=True)
class TargetGroupSpec:
    name: str
    target_type: albstack.TargetType
    port: int
    protocol: albstack.Protocol
    protocol_version: albstack.ProtocolVersion
    health_check_config: TargetGroupHealthCheckConfig
    target_group_attributes: list[Attribute] | None = None
