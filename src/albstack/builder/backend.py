"""Resolve an Ingress backend into one of a closed set of actions.

A plain ``service: {name, port}`` backend becomes a single-target forward. A
backend whose port is ``use-annotation`` is looked up in the Ingress's
``actions.<service name>`` annotation, which may describe a weighted forward,
a redirect or a fixed response.
"""

from __future__ import annotations

import dataclasses
import json
import typing

import albstack
from albstack.annotations import AnnotationParser, IngressSettings, Suffixes
from albstack.errors import AnnotationError
from albstack.k8s import PortSpec, parse_port_spec
from albstack.resources import elbv2

if typing.TYPE_CHECKING:
    import collections.abc

    from albstack.k8s import BackendRef
    from albstack.stack import Reference

_REDIRECT_STATUS_CODES = ("HTTP_301", "HTTP_302")


@dataclasses.dataclass(frozen=True)
class ServiceTarget:
    name: str
    port: PortSpec

    @property
    def literal_port(self) -> str:
        return str(self.port)


@dataclasses.dataclass(frozen=True)
class ArnTarget:
    arn: str


TargetRef = ServiceTarget | ArnTarget


@dataclasses.dataclass(frozen=True)
class WeightedTarget:
    target: TargetRef
    weight: int | None = None


@dataclasses.dataclass(frozen=True)
class Stickiness:
    enabled: bool | None = None
    duration_seconds: int | None = None


@dataclasses.dataclass(frozen=True)
class ForwardAction:
    target: TargetRef


@dataclasses.dataclass(frozen=True)
class WeightedForwardAction:
    targets: tuple[WeightedTarget, ...]
    stickiness: Stickiness | None = None


@dataclasses.dataclass(frozen=True)
class FixedResponseAction:
    status_code: str
    content_type: str | None = None
    message_body: str | None = None


@dataclasses.dataclass(frozen=True)
class RedirectAction:
    status_code: str
    host: str | None = None
    path: str | None = None
    port: str | None = None
    protocol: str | None = None
    query: str | None = None


BackendAction = ForwardAction | WeightedForwardAction | FixedResponseAction | RedirectAction


def service_targets(action: BackendAction) -> list[ServiceTarget]:
    if isinstance(action, ForwardAction):
        targets = [action.target]
    elif isinstance(action, WeightedForwardAction):
        targets = [t.target for t in action.targets]
    else:
        targets = []
    return [t for t in targets if isinstance(t, ServiceTarget)]


class BackendResolver:
    def __init__(self, parser: AnnotationParser):
        self.parser = parser

    def resolve(self, backend: BackendRef, settings: IngressSettings) -> BackendAction:
        if backend.service_port == albstack.USE_ANNOTATION:
            return self._resolve_via_annotation(backend.service_name, settings)
        return ForwardAction(target=ServiceTarget(name=backend.service_name, port=backend.service_port))

    def _resolve_via_annotation(self, service_name: str, settings: IngressSettings) -> BackendAction:
        if service_name not in settings.actions:
            msg = f"missing actions configuration: {service_name}"
            raise AnnotationError(self.parser.key(f"{Suffixes.ACTIONS_PREFIX}{service_name}"), "", msg)

        cfg = settings.actions[service_name]
        key = self.parser.key(f"{Suffixes.ACTIONS_PREFIX}{service_name}")

        def invalid(reason: str) -> AnnotationError:
            return AnnotationError(key, json.dumps(cfg, sort_keys=True), reason)

        if not isinstance(cfg, dict):
            raise invalid("action must be a JSON object")

        action_type = cfg.get("type")
        if action_type == albstack.ActionType.FORWARD:
            return _parse_forward(cfg, invalid)
        if action_type == albstack.ActionType.REDIRECT:
            return _parse_redirect(cfg.get("redirectConfig"), invalid)
        if action_type == albstack.ActionType.FIXED_RESPONSE:
            return _parse_fixed_response(cfg.get("fixedResponseConfig"), invalid)
        raise invalid(f"unknown action type: {action_type}")


def _parse_forward(
    cfg: dict[str, typing.Any],
    invalid: collections.abc.Callable[[str], AnnotationError],
) -> BackendAction:
    if cfg.get("targetGroupARN"):
        return ForwardAction(target=ArnTarget(arn=str(cfg["targetGroupARN"])))

    forward_cfg = cfg.get("forwardConfig")
    if not isinstance(forward_cfg, dict) or not forward_cfg.get("targetGroups"):
        raise invalid("forward action requires targetGroupARN or forwardConfig.targetGroups")

    targets: list[WeightedTarget] = []
    for tuple_cfg in forward_cfg["targetGroups"]:
        if not isinstance(tuple_cfg, dict):
            raise invalid("targetGroups entries must be objects")
        weight = tuple_cfg.get("weight")
        if weight is not None and (isinstance(weight, bool) or not isinstance(weight, int) or weight < 0):
            raise invalid(f"invalid weight: {weight}")

        if tuple_cfg.get("targetGroupARN"):
            target: TargetRef = ArnTarget(arn=str(tuple_cfg["targetGroupARN"]))
        elif tuple_cfg.get("serviceName") and tuple_cfg.get("servicePort") is not None:
            target = ServiceTarget(
                name=str(tuple_cfg["serviceName"]),
                port=_parse_action_service_port(tuple_cfg["servicePort"]),
            )
        else:
            raise invalid("targetGroups entries require targetGroupARN or serviceName and servicePort")
        targets.append(WeightedTarget(target=target, weight=weight))

    stickiness = None
    raw_stickiness = forward_cfg.get("targetGroupStickinessConfig")
    if raw_stickiness is not None:
        if not isinstance(raw_stickiness, dict):
            raise invalid("targetGroupStickinessConfig must be an object")
        stickiness = Stickiness(
            enabled=raw_stickiness.get("enabled"),
            duration_seconds=raw_stickiness.get("durationSeconds"),
        )

    if len(targets) == 1 and targets[0].weight is None and stickiness is None:
        return ForwardAction(target=targets[0].target)
    return WeightedForwardAction(targets=tuple(targets), stickiness=stickiness)


def _parse_action_service_port(raw: typing.Any) -> PortSpec:
    # "80" in an action annotation refers to the port number, like a numeric servicePort
    if isinstance(raw, str) and raw.isdigit():
        return int(raw)
    return parse_port_spec(raw)


def _parse_redirect(
    cfg: typing.Any,
    invalid: collections.abc.Callable[[str], AnnotationError],
) -> RedirectAction:
    if not isinstance(cfg, dict):
        raise invalid("redirect action requires redirectConfig")
    status_code = cfg.get("statusCode")
    if status_code not in _REDIRECT_STATUS_CODES:
        raise invalid(f"redirect statusCode must be within [HTTP_301, HTTP_302]: {status_code}")
    return RedirectAction(
        status_code=status_code,
        host=cfg.get("host"),
        path=cfg.get("path"),
        port=str(cfg["port"]) if cfg.get("port") is not None else None,
        protocol=cfg.get("protocol"),
        query=cfg.get("query"),
    )


def _parse_fixed_response(
    cfg: typing.Any,
    invalid: collections.abc.Callable[[str], AnnotationError],
) -> FixedResponseAction:
    if not isinstance(cfg, dict) or not cfg.get("statusCode"):
        raise invalid("fixed-response action requires fixedResponseConfig.statusCode")
    return FixedResponseAction(
        status_code=str(cfg["statusCode"]),
        content_type=cfg.get("contentType"),
        message_body=cfg.get("messageBody"),
    )


def to_elbv2_action(
    action: BackendAction,
    target_group_arn: collections.abc.Callable[[ServiceTarget], Reference],
) -> elbv2.Action:
    """Render a backend action, asking ``target_group_arn`` for each service target's group."""

    def arn_for(target: TargetRef) -> str | Reference:
        if isinstance(target, ArnTarget):
            return target.arn
        return target_group_arn(target)

    if isinstance(action, ForwardAction):
        return elbv2.Action(
            type=albstack.ActionType.FORWARD,
            forward_config=elbv2.ForwardActionConfig(
                target_groups=[elbv2.TargetGroupTuple(target_group_arn=arn_for(action.target))],
            ),
        )

    if isinstance(action, WeightedForwardAction):
        stickiness = None
        if action.stickiness is not None:
            stickiness = elbv2.TargetGroupStickinessConfig(
                enabled=action.stickiness.enabled,
                duration_seconds=action.stickiness.duration_seconds,
            )
        return elbv2.Action(
            type=albstack.ActionType.FORWARD,
            forward_config=elbv2.ForwardActionConfig(
                target_groups=[
                    elbv2.TargetGroupTuple(target_group_arn=arn_for(t.target), weight=t.weight)
                    for t in action.targets
                ],
                target_group_stickiness_config=stickiness,
            ),
        )

    if isinstance(action, RedirectAction):
        return elbv2.Action(
            type=albstack.ActionType.REDIRECT,
            redirect_config=elbv2.RedirectActionConfig(
                status_code=action.status_code,
                host=action.host,
                path=action.path,
                port=action.port,
                protocol=action.protocol,
                query=action.query,
            ),
        )

    return elbv2.Action(
        type=albstack.ActionType.FIXED_RESPONSE,
        fixed_response_config=elbv2.FixedResponseActionConfig(
            status_code=action.status_code,
            content_type=action.content_type,
            message_body=action.message_body,
        ),
    )
