"""Group level load balancer settings merged across member Ingresses."""

from __future__ import annotations

import typing

import pulumi

import albstack
from albstack import naming
from albstack.errors import GroupConfigError
from albstack.resources import elbv2
from albstack.resources.lib import validate_lb_tags

if typing.TYPE_CHECKING:
    from albstack.builder.member import MemberContext
    from albstack.k8s import GroupID
    from albstack.resolvers import SubnetResolver
    from albstack.resources import StringToken

EnumT = typing.TypeVar("EnumT", albstack.Scheme, albstack.IPAddressType)


def _go_list(values: typing.Iterable[str]) -> str:
    return f"[{' '.join(values)}]"


def _resolve_single(
    label: str,
    values: list[str | None],
    enum_cls: type[EnumT],
    default: EnumT,
) -> EnumT:
    explicit = sorted({v for v in values if v})
    if not explicit:
        return default
    if len(explicit) > 1:
        msg = f"conflicting {label}: {_go_list(explicit)}"
        raise GroupConfigError(msg)
    try:
        return enum_cls(explicit[0])
    except ValueError:
        msg = f"unknown {label}: {explicit[0]}"
        raise GroupConfigError(msg) from None


def resolve_scheme(contexts: list[MemberContext], default: albstack.Scheme) -> albstack.Scheme:
    return _resolve_single("scheme", [ctx.settings.scheme for ctx in contexts], albstack.Scheme, default)


def resolve_ip_address_type(
    contexts: list[MemberContext],
    default: albstack.IPAddressType,
) -> albstack.IPAddressType:
    return _resolve_single(
        "ipAddressType",
        [ctx.settings.ip_address_type for ctx in contexts],
        albstack.IPAddressType,
        default,
    )


def _resolve_agreeing_list(label: str, lists: list[list[str] | None]) -> list[str]:
    """Members that set the list must all set the same one; the first declaration's order is kept."""
    chosen: list[str] | None = None
    for values in lists:
        if not values:
            continue
        if chosen is None:
            chosen = values
        elif set(chosen) != set(values):
            msg = f"conflicting {label}: {_go_list(sorted(chosen))} | {_go_list(sorted(values))}"
            raise GroupConfigError(msg)
    return list(chosen or [])


def resolve_explicit_subnets(contexts: list[MemberContext]) -> list[str]:
    return _resolve_agreeing_list("subnets", [ctx.settings.subnets for ctx in contexts])


def resolve_explicit_security_groups(contexts: list[MemberContext]) -> list[str]:
    return _resolve_agreeing_list("securityGroups", [ctx.settings.security_groups for ctx in contexts])


def _merge_maps(label: str, maps: list[dict[str, str] | None]) -> dict[str, str]:
    merged: dict[str, str] = {}
    for m in maps:
        for key, value in (m or {}).items():
            if key in merged and merged[key] != value:
                msg = f"conflicting {label} {key}: {merged[key]} | {value}"
                raise GroupConfigError(msg)
            merged[key] = value
    return merged


def resolve_tags(contexts: list[MemberContext]) -> dict[str, str]:
    return validate_lb_tags(_merge_maps("tag", [ctx.settings.tags for ctx in contexts]))


def resolve_lb_attributes(contexts: list[MemberContext]) -> dict[str, str]:
    return _merge_maps("loadBalancerAttribute", [ctx.settings.lb_attributes for ctx in contexts])


def build_load_balancer_spec(
    cluster_name: str,
    group_id: GroupID,
    contexts: list[MemberContext],
    scheme: albstack.Scheme,
    ip_address_type: albstack.IPAddressType,
    security_groups: list[StringToken],
    subnet_resolver: SubnetResolver,
) -> elbv2.LoadBalancerSpec:
    explicit_subnets = resolve_explicit_subnets(contexts)
    pulumi.log.debug(f"resolving {scheme} subnets for {group_id} (explicit: {explicit_subnets})")
    subnet_ids = subnet_resolver.resolve_subnets(scheme, explicit_subnets)

    tags = resolve_tags(contexts)

    return elbv2.LoadBalancerSpec(
        name=naming.load_balancer_name(cluster_name, group_id, scheme),
        type=albstack.LoadBalancerType.APPLICATION,
        scheme=scheme,
        ip_address_type=ip_address_type,
        subnet_mapping=[elbv2.SubnetMapping(subnet_id=s) for s in subnet_ids],
        security_groups=security_groups,
        load_balancer_attributes=elbv2.attributes_from_map(resolve_lb_attributes(contexts)),
        tags=tags or None,
    )
