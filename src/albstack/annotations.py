"""Typed access to ``alb.ingress.kubernetes.io/*`` annotations.

Raw annotation maps never leave this module: builders consume the frozen
``IngressSettings`` and ``TargetGroupSettings`` values resolved here.
"""

from __future__ import annotations

import dataclasses
import enum
import json
import re
import typing

import albstack
from albstack.errors import AnnotationError, ListenerConfigError

AnnotationMap = typing.Mapping[str, str]

_DURATION_RE = re.compile(r"^(?:(?P<h>\d+)h)?(?:(?P<m>\d+)m)?(?:(?P<s>\d+)s)?$")

_MIN_PORT = 1
_MAX_PORT = 65535


class Suffixes(enum.StrEnum):
    ACTIONS_PREFIX = "actions."
    BACKEND_PROTOCOL = "backend-protocol"
    BACKEND_PROTOCOL_VERSION = "backend-protocol-version"
    CERTIFICATE_ARN = "certificate-arn"
    GROUP_NAME = "group.name"
    HEALTHCHECK_INTERVAL_SECONDS = "healthcheck-interval-seconds"
    HEALTHCHECK_PATH = "healthcheck-path"
    HEALTHCHECK_PORT = "healthcheck-port"
    HEALTHCHECK_PROTOCOL = "healthcheck-protocol"
    HEALTHCHECK_TIMEOUT_SECONDS = "healthcheck-timeout-seconds"
    HEALTHY_THRESHOLD_COUNT = "healthy-threshold-count"
    INBOUND_CIDRS = "inbound-cidrs"
    IP_ADDRESS_TYPE = "ip-address-type"
    LISTEN_PORTS = "listen-ports"
    LOAD_BALANCER_ATTRIBUTES = "load-balancer-attributes"
    SCHEME = "scheme"
    SECURITY_GROUPS = "security-groups"
    SSL_POLICY = "ssl-policy"
    SSL_REDIRECT = "ssl-redirect"
    SUBNETS = "subnets"
    SUCCESS_CODES = "success-codes"
    TAGS = "tags"
    TARGET_GROUP_ATTRIBUTES = "target-group-attributes"
    TARGET_TYPE = "target-type"
    UNHEALTHY_THRESHOLD_COUNT = "unhealthy-threshold-count"


class AnnotationParser:
    def __init__(self, prefix: str = albstack.ANNOTATION_PREFIX):
        self.prefix = prefix

    def key(self, suffix: str) -> str:
        return f"{self.prefix}/{suffix}"

    def _lookup(self, suffix: str, annotation_maps: tuple[AnnotationMap, ...]) -> tuple[str, str] | None:
        key = self.key(suffix)
        for annotations in annotation_maps:
            if key in annotations:
                return key, annotations[key]
        return None

    def parse_string(self, suffix: str, *annotation_maps: AnnotationMap) -> str | None:
        found = self._lookup(suffix, annotation_maps)
        if found is None:
            return None
        return found[1]

    def parse_string_list(self, suffix: str, *annotation_maps: AnnotationMap) -> list[str] | None:
        found = self._lookup(suffix, annotation_maps)
        if found is None:
            return None
        return split_comma_separated(found[1])

    def parse_int(self, suffix: str, *annotation_maps: AnnotationMap) -> int | None:
        found = self._lookup(suffix, annotation_maps)
        if found is None:
            return None
        key, raw = found
        try:
            return int(raw.strip(), 10)
        except ValueError:
            raise AnnotationError(key, raw, "not an integer") from None

    def parse_duration(self, suffix: str, *annotation_maps: AnnotationMap) -> int | None:
        found = self._lookup(suffix, annotation_maps)
        if found is None:
            return None
        key, raw = found
        value = raw.strip()
        if value.isdigit():
            return int(value)
        m = _DURATION_RE.match(value)
        if not value or m is None:
            raise AnnotationError(key, raw, "not a duration in whole seconds (e.g. 15, 15s, 1m30s)")
        return int(m["h"] or 0) * 3600 + int(m["m"] or 0) * 60 + int(m["s"] or 0)

    def parse_bool(self, suffix: str, *annotation_maps: AnnotationMap) -> bool | None:
        found = self._lookup(suffix, annotation_maps)
        if found is None:
            return None
        key, raw = found
        lowered = raw.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        raise AnnotationError(key, raw, "not a boolean (true or false)")

    def parse_string_map(self, suffix: str, *annotation_maps: AnnotationMap) -> dict[str, str] | None:
        found = self._lookup(suffix, annotation_maps)
        if found is None:
            return None
        key, raw = found
        result: dict[str, str] = {}
        for segment in split_comma_separated(raw):
            name, sep, value = segment.partition("=")
            name = name.strip()
            if not sep or not name:
                raise AnnotationError(key, raw, f"malformed key=value pair: {segment!r}")
            result[name] = value.strip()
        return result

    def parse_json(self, suffix: str, *annotation_maps: AnnotationMap) -> typing.Any:
        found = self._lookup(suffix, annotation_maps)
        if found is None:
            return None
        key, raw = found
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise AnnotationError(key, raw, f"invalid JSON: {e.msg}") from None

    def suffixes_with_prefix(self, prefix: str, annotations: AnnotationMap) -> list[str]:
        full = self.key(prefix)
        return sorted(key[len(self.prefix) + 1 :] for key in annotations if key.startswith(full))


def split_comma_separated(raw: str) -> list[str]:
    """Split on commas, dropping empty segments and later duplicates."""
    seen: set[str] = set()
    values: list[str] = []
    for segment in raw.split(","):
        value = segment.strip()
        if not value or value in seen:
            continue
        seen.add(value)
        values.append(value)
    return values


EnumT = typing.TypeVar("EnumT", bound=enum.StrEnum)


def _parse_enum(
    parser: AnnotationParser,
    suffix: str,
    enum_cls: type[EnumT],
    *annotation_maps: AnnotationMap,
) -> EnumT | None:
    raw = parser.parse_string(suffix, *annotation_maps)
    if raw is None:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(str(v) for v in enum_cls)
        raise AnnotationError(parser.key(suffix), raw, f"must be one of [{allowed}]") from None


def parse_listen_ports(raw: str) -> dict[int, albstack.Protocol]:
    try:
        entries = json.loads(raw)
    except json.JSONDecodeError:
        msg = f"failed to parse listen-ports configuration: `{raw}`"
        raise ListenerConfigError(msg) from None

    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        msg = f"failed to parse listen-ports configuration: `{raw}`"
        raise ListenerConfigError(msg)
    if len(entries) == 0:
        msg = f"empty listen-ports configuration: `{raw}`"
        raise ListenerConfigError(msg)

    ports: dict[int, albstack.Protocol] = {}
    for entry in entries:
        for protocol, port in entry.items():
            if isinstance(port, bool) or not isinstance(port, int) or port < _MIN_PORT or port > _MAX_PORT:
                msg = f"listen port must be within [{_MIN_PORT}, {_MAX_PORT}]: {port}"
                raise ListenerConfigError(msg)
            try:
                ports[port] = albstack.Protocol(protocol)
            except ValueError:
                msg = f"listen port protocol must be within [HTTP, HTTPS]: {protocol}"
                raise ListenerConfigError(msg) from None
    return ports


@dataclasses.dataclass(frozen=True)
class IngressSettings:
    """Every load balancer level option a single Ingress may declare."""

    group_name: str | None = None
    scheme: str | None = None
    ip_address_type: str | None = None
    subnets: list[str] | None = None
    security_groups: list[str] | None = None
    certificate_arns: list[str] | None = None
    ssl_policy: str | None = None
    listen_ports: dict[int, albstack.Protocol] | None = None
    ssl_redirect: int | None = None
    inbound_cidrs: list[str] | None = None
    tags: dict[str, str] | None = None
    lb_attributes: dict[str, str] | None = None
    actions: dict[str, typing.Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def resolve(cls, parser: AnnotationParser, annotations: AnnotationMap) -> IngressSettings:
        raw_listen_ports = parser.parse_string(Suffixes.LISTEN_PORTS, annotations)

        actions: dict[str, typing.Any] = {}
        for suffix in parser.suffixes_with_prefix(Suffixes.ACTIONS_PREFIX, annotations):
            service_name = suffix[len(Suffixes.ACTIONS_PREFIX) :]
            actions[service_name] = parser.parse_json(suffix, annotations)

        return cls(
            group_name=parser.parse_string(Suffixes.GROUP_NAME, annotations),
            scheme=parser.parse_string(Suffixes.SCHEME, annotations),
            ip_address_type=parser.parse_string(Suffixes.IP_ADDRESS_TYPE, annotations),
            subnets=parser.parse_string_list(Suffixes.SUBNETS, annotations),
            security_groups=parser.parse_string_list(Suffixes.SECURITY_GROUPS, annotations),
            certificate_arns=parser.parse_string_list(Suffixes.CERTIFICATE_ARN, annotations),
            ssl_policy=parser.parse_string(Suffixes.SSL_POLICY, annotations),
            listen_ports=parse_listen_ports(raw_listen_ports) if raw_listen_ports is not None else None,
            ssl_redirect=parser.parse_int(Suffixes.SSL_REDIRECT, annotations),
            inbound_cidrs=parser.parse_string_list(Suffixes.INBOUND_CIDRS, annotations),
            tags=parser.parse_string_map(Suffixes.TAGS, annotations),
            lb_attributes=parser.parse_string_map(Suffixes.LOAD_BALANCER_ATTRIBUTES, annotations),
            actions=actions,
        )


@dataclasses.dataclass(frozen=True)
class TargetGroupSettings:
    """Target group options, read from the Service first and then the Ingress.

    Unset options stay ``None``; defaults are applied by the target group builder.
    """

    target_type: albstack.TargetType | None = None
    backend_protocol: albstack.Protocol | None = None
    backend_protocol_version: albstack.ProtocolVersion | None = None
    healthcheck_port: int | str | None = None
    healthcheck_protocol: albstack.Protocol | None = None
    healthcheck_path: str | None = None
    healthcheck_interval_seconds: int | None = None
    healthcheck_timeout_seconds: int | None = None
    healthy_threshold_count: int | None = None
    unhealthy_threshold_count: int | None = None
    success_codes: str | None = None
    attributes: dict[str, str] | None = None

    @classmethod
    def resolve(
        cls,
        parser: AnnotationParser,
        svc_annotations: AnnotationMap,
        ing_annotations: AnnotationMap,
    ) -> TargetGroupSettings:
        maps = (svc_annotations, ing_annotations)

        return cls(
            target_type=_parse_enum(parser, Suffixes.TARGET_TYPE, albstack.TargetType, *maps),
            backend_protocol=_parse_enum(parser, Suffixes.BACKEND_PROTOCOL, albstack.Protocol, *maps),
            backend_protocol_version=_parse_enum(
                parser, Suffixes.BACKEND_PROTOCOL_VERSION, albstack.ProtocolVersion, *maps
            ),
            healthcheck_port=_parse_healthcheck_port(parser, *maps),
            healthcheck_protocol=_parse_enum(parser, Suffixes.HEALTHCHECK_PROTOCOL, albstack.Protocol, *maps),
            healthcheck_path=parser.parse_string(Suffixes.HEALTHCHECK_PATH, *maps),
            healthcheck_interval_seconds=parser.parse_duration(Suffixes.HEALTHCHECK_INTERVAL_SECONDS, *maps),
            healthcheck_timeout_seconds=parser.parse_duration(Suffixes.HEALTHCHECK_TIMEOUT_SECONDS, *maps),
            healthy_threshold_count=parser.parse_int(Suffixes.HEALTHY_THRESHOLD_COUNT, *maps),
            unhealthy_threshold_count=parser.parse_int(Suffixes.UNHEALTHY_THRESHOLD_COUNT, *maps),
            success_codes=parser.parse_string(Suffixes.SUCCESS_CODES, *maps),
            attributes=parser.parse_string_map(Suffixes.TARGET_GROUP_ATTRIBUTES, *maps),
        )


def _parse_healthcheck_port(parser: AnnotationParser, *annotation_maps: AnnotationMap) -> int | str | None:
    raw = parser.parse_string(Suffixes.HEALTHCHECK_PORT, *annotation_maps)
    if raw is None:
        return None
    if raw == albstack.HEALTH_CHECK_PORT_TRAFFIC_PORT:
        return raw
    port = parser.parse_int(Suffixes.HEALTHCHECK_PORT, *annotation_maps)
    if port is None or port < _MIN_PORT or port > _MAX_PORT:
        raise AnnotationError(
            parser.key(Suffixes.HEALTHCHECK_PORT), raw, f"must be traffic-port or within [{_MIN_PORT}, {_MAX_PORT}]"
        )
    return port

