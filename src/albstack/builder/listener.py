"""Listener ports, certificates, SSL redirect and listener rule conditions."""

from __future__ import annotations

import dataclasses
import typing

import pulumi

import albstack
from albstack.errors import ListenerConfigError, SSLRedirectError
from albstack.resources import elbv2

if typing.TYPE_CHECKING:
    from albstack.builder.member import MemberContext
    from albstack.k8s import Rule
    from albstack.resolvers import CertificateResolver
    from albstack.stack import Reference

DEFAULT_PATH_PATTERN = "/*"


@dataclasses.dataclass(frozen=True)
class ListenPortConfig:
    port: int
    protocol: albstack.Protocol
    certificate_arns: tuple[str, ...] = ()
    ssl_policy: str | None = None


@dataclasses.dataclass(frozen=True)
class SSLRedirectConfig:
    port: int
    status_code: str = albstack.SSL_REDIRECT_STATUS_CODE


def _append_unique(values: list[str], new_values: typing.Iterable[str]) -> None:
    for value in new_values:
        if value not in values:
            values.append(value)


def discover_certificates(
    contexts: list[MemberContext],
    certificate_resolver: CertificateResolver,
) -> tuple[list[str], set[str]]:
    """Look up certificates for HTTPS members that don't list their own.

    Returns the discovered ARNs and the keys of the members they apply to. The
    resolver is called at most once, with the sorted hosts of all such members.
    """
    discovering = [
        ctx
        for ctx in contexts
        if not ctx.explicit_certificate_arns and albstack.Protocol.HTTPS in ctx.listen_ports.values()
    ]
    hosts = sorted({host for ctx in discovering for host in ctx.member.hosts})
    if not hosts:
        return [], set()

    pulumi.log.debug(f"resolving certificates for hosts {hosts}")
    arns = list(certificate_resolver.resolve_certificates(hosts))
    return arns, {ctx.key for ctx in discovering}


def merge_listen_port_configs(
    contexts: list[MemberContext],
    default_ssl_policy: str,
    certificate_resolver: CertificateResolver,
) -> dict[int, ListenPortConfig]:
    discovered_arns, discovering_keys = discover_certificates(contexts, certificate_resolver)

    protocols: dict[int, albstack.Protocol] = {}
    ssl_policies: dict[int, str] = {}
    certificates: dict[int, list[str]] = {}
    discovered_ports: set[int] = set()

    for ctx in contexts:
        for port, protocol in ctx.listen_ports.items():
            if port in protocols and protocols[port] != protocol:
                msg = f"conflicting protocol, port {port}: {protocols[port]} | {protocol}"
                raise ListenerConfigError(msg)
            protocols[port] = protocol

            if protocol != albstack.Protocol.HTTPS:
                continue

            ssl_policy = ctx.settings.ssl_policy
            if ssl_policy:
                if port in ssl_policies and ssl_policies[port] != ssl_policy:
                    msg = f"conflicting sslPolicy, port {port}: {ssl_policies[port]} | {ssl_policy}"
                    raise ListenerConfigError(msg)
                ssl_policies[port] = ssl_policy

            port_certs = certificates.setdefault(port, [])
            if ctx.explicit_certificate_arns:
                _append_unique(port_certs, ctx.explicit_certificate_arns)
            elif ctx.key in discovering_keys:
                _append_unique(port_certs, discovered_arns)
                discovered_ports.add(port)

    configs: dict[int, ListenPortConfig] = {}
    for port in sorted(protocols):
        protocol = protocols[port]
        if protocol != albstack.Protocol.HTTPS:
            configs[port] = ListenPortConfig(port=port, protocol=protocol)
            continue

        if not certificates.get(port):
            msg = f"no certificate found for HTTPS listener port: {port}"
            raise ListenerConfigError(msg)
        if port in discovered_ports:
            pulumi.log.warn(f"HTTPS listener {port} uses discovered certificates: {', '.join(certificates[port])}")

        configs[port] = ListenPortConfig(
            port=port,
            protocol=protocol,
            certificate_arns=tuple(certificates[port]),
            ssl_policy=ssl_policies.get(port, default_ssl_policy),
        )
    return configs


def build_ssl_redirect_config(
    contexts: list[MemberContext],
    listen_port_configs: dict[int, ListenPortConfig],
) -> SSLRedirectConfig | None:
    """Pick the single redirect port the group agrees on and check it against the merged listeners."""
    redirect_ports = {ctx.settings.ssl_redirect for ctx in contexts if ctx.settings.ssl_redirect is not None}
    if not redirect_ports:
        return None
    if len(redirect_ports) > 1:
        msg = f"conflicting sslRedirect port: [{' '.join(str(p) for p in sorted(redirect_ports))}]"
        raise SSLRedirectError(msg)

    port = redirect_ports.pop()
    if port not in listen_port_configs:
        msg = f"listener does not exist for SSLRedirect port: {port}"
        raise SSLRedirectError(msg)
    if listen_port_configs[port].protocol != albstack.Protocol.HTTPS:
        msg = f"listener protocol non-SSL for SSLRedirect port: {port}"
        raise SSLRedirectError(msg)
    return SSLRedirectConfig(port=port)


def fixed_404_action() -> elbv2.Action:
    return elbv2.Action(
        type=albstack.ActionType.FIXED_RESPONSE,
        fixed_response_config=elbv2.FixedResponseActionConfig(
            status_code="404",
            content_type="text/plain",
        ),
    )


def ssl_redirect_action(cfg: SSLRedirectConfig) -> elbv2.Action:
    return elbv2.Action(
        type=albstack.ActionType.REDIRECT,
        redirect_config=elbv2.RedirectActionConfig(
            status_code=cfg.status_code,
            port=str(cfg.port),
            protocol=albstack.Protocol.HTTPS,
        ),
    )


def rule_conditions(rule: Rule) -> list[elbv2.RuleCondition]:
    conditions = []
    if rule.host:
        conditions.append(elbv2.host_header_condition([rule.host]))
    if rule.path:
        conditions.append(elbv2.path_pattern_condition([rule.path]))
    if not conditions:
        conditions.append(elbv2.path_pattern_condition([DEFAULT_PATH_PATTERN]))
    return conditions


def listener_spec(
    cfg: ListenPortConfig,
    load_balancer_arn: Reference,
    default_actions: list[elbv2.Action],
) -> elbv2.ListenerSpec:
    certificates = None
    if cfg.protocol == albstack.Protocol.HTTPS:
        certificates = [elbv2.Certificate(certificate_arn=arn) for arn in cfg.certificate_arns]

    return elbv2.ListenerSpec(
        load_balancer_arn=load_balancer_arn,
        port=cfg.port,
        protocol=cfg.protocol,
        default_actions=default_actions,
        certificates=certificates,
        ssl_policy=cfg.ssl_policy,
    )
