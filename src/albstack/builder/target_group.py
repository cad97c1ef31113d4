"""Target groups and their TargetGroupBindings, one pair per declared backend.

Pairs are keyed by the declaring member, the service name and the port exactly
as written, so ``port: http`` and ``port: 80`` on the same Service give two
pairs even when they land on the same container port.
"""

from __future__ import annotations

import dataclasses
import typing

import pulumi

import albstack
from albstack import naming
from albstack.annotations import AnnotationParser, TargetGroupSettings
from albstack.errors import ServiceReferenceError
from albstack.resources import binding, elbv2

if typing.TYPE_CHECKING:
    from albstack.builder.backend import ServiceTarget
    from albstack.config import BuilderConfig
    from albstack.k8s import GroupID, Member, Service, ServiceIndex, ServicePort
    from albstack.stack import Reference, Resource, StackBuilder

# ip targets behind a named targetPort are registered per pod by the binding
UNRESOLVED_TARGET_PORT = 1

DEFAULT_HEALTHCHECK_PATH = "/"
DEFAULT_GRPC_HEALTHCHECK_PATH = "/AWS.ALB/healthcheck"
DEFAULT_SUCCESS_CODES = "200"
DEFAULT_GRPC_SUCCESS_CODES = "12"
DEFAULT_HEALTHCHECK_INTERVAL_SECONDS = 15
DEFAULT_HEALTHCHECK_TIMEOUT_SECONDS = 5
DEFAULT_HEALTHY_THRESHOLD_COUNT = 2
DEFAULT_UNHEALTHY_THRESHOLD_COUNT = 2


def health_check_config(
    settings: TargetGroupSettings,
    protocol: albstack.Protocol,
    protocol_version: albstack.ProtocolVersion,
) -> elbv2.TargetGroupHealthCheckConfig:
    grpc = protocol_version == albstack.ProtocolVersion.GRPC

    if grpc:
        matcher = elbv2.HealthCheckMatcher(grpc_code=settings.success_codes or DEFAULT_GRPC_SUCCESS_CODES)
    else:
        matcher = elbv2.HealthCheckMatcher(http_code=settings.success_codes or DEFAULT_SUCCESS_CODES)

    return elbv2.TargetGroupHealthCheckConfig(
        port=(
            albstack.HEALTH_CHECK_PORT_TRAFFIC_PORT if settings.healthcheck_port is None else settings.healthcheck_port
        ),
        protocol=settings.healthcheck_protocol or protocol,
        path=settings.healthcheck_path or (DEFAULT_GRPC_HEALTHCHECK_PATH if grpc else DEFAULT_HEALTHCHECK_PATH),
        matcher=matcher,
        interval_seconds=_or_default(settings.healthcheck_interval_seconds, DEFAULT_HEALTHCHECK_INTERVAL_SECONDS),
        timeout_seconds=_or_default(settings.healthcheck_timeout_seconds, DEFAULT_HEALTHCHECK_TIMEOUT_SECONDS),
        healthy_threshold_count=_or_default(settings.healthy_threshold_count, DEFAULT_HEALTHY_THRESHOLD_COUNT),
        unhealthy_threshold_count=_or_default(settings.unhealthy_threshold_count, DEFAULT_UNHEALTHY_THRESHOLD_COUNT),
    )


def _or_default(value: int | None, default: int) -> int:
    return default if value is None else value


def target_port(svc: Service, svc_port: ServicePort, target_type: albstack.TargetType) -> int:
    if target_type == albstack.TargetType.INSTANCE:
        if svc_port.node_port is None:
            msg = f"service {svc.key} port {svc_port.port} has no nodePort, required for instance targets"
            raise ServiceReferenceError(msg)
        return svc_port.node_port

    effective = svc_port.effective_target_port
    if isinstance(effective, int):
        return effective
    return UNRESOLVED_TARGET_PORT


@dataclasses.dataclass
class TargetGroupBuilder:
    """Builds target group and binding pairs on demand, once per key."""

    config: BuilderConfig
    parser: AnnotationParser
    services: ServiceIndex
    stack: StackBuilder
    group_id: GroupID
    # unset when the load balancer uses explicitly annotated security groups
    security_group_id: Reference | None = None

    _built: dict[str, Resource] = dataclasses.field(default_factory=dict, init=False, repr=False)

    def target_group_arn(self, member: Member, target: ServiceTarget) -> Reference:
        key = naming.target_group_key(member, target.name, target.literal_port)
        if key in self._built:
            pulumi.log.debug(f"reusing target group {key}")
        else:
            self._built[key] = self._build(key, member, target)
        return self._built[key].ref(albstack.StatusFields.TARGET_GROUP_ARN)

    def _build(self, key: str, member: Member, target: ServiceTarget) -> Resource:
        svc = self.services.get(member.namespace, target.name)
        svc_port = svc.lookup_port(target.port)
        settings = TargetGroupSettings.resolve(self.parser, svc.annotations, member.annotations)

        target_type = settings.target_type or self.config.default_target_type
        protocol = settings.backend_protocol or self.config.default_backend_protocol
        protocol_version = settings.backend_protocol_version or albstack.ProtocolVersion.HTTP1
        tg_port = target_port(svc, svc_port, target_type)

        tg = self.stack.add(
            albstack.ResourceKind.TARGET_GROUP,
            key,
            elbv2.TargetGroupSpec(
                name=naming.target_group_name(
                    self.config.cluster_name,
                    self.group_id,
                    svc,
                    target.literal_port,
                    tg_port,
                    target_type,
                    protocol,
                ),
                target_type=target_type,
                port=tg_port,
                protocol=protocol,
                protocol_version=protocol_version,
                health_check_config=health_check_config(settings, protocol, protocol_version),
                target_group_attributes=elbv2.attributes_from_map(settings.attributes),
            ),
        )

        networking = None
        if self.security_group_id is not None:
            networking = binding.allow_all_tcp_from(self.security_group_id)

        self.stack.add(
            albstack.ResourceKind.TARGET_GROUP_BINDING,
            key,
            binding.TargetGroupBindingResourceSpec(
                template=binding.TargetGroupBindingTemplate(
                    metadata=binding.ObjectMeta(
                        name=naming.target_group_binding_name(
                            self.config.cluster_name,
                            self.group_id,
                            svc,
                            target.literal_port,
                        ),
                        namespace=svc.namespace,
                    ),
                    spec=binding.TargetGroupBindingSpec(
                        target_group_arn=tg.ref(albstack.StatusFields.TARGET_GROUP_ARN),
                        target_type=target_type,
                        service_ref=binding.ServiceReference(name=svc.name, port=target.port),
                        networking=networking,
                    ),
                ),
            ),
        )
        return tg
