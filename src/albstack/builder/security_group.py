from __future__ import annotations

import typing

import albstack
from albstack import naming
from albstack.resources import ec2

if typing.TYPE_CHECKING:
    from albstack.builder.member import MemberContext
    from albstack.k8s import GroupID

TCP = "tcp"


def default_inbound_cidrs(ip_address_type: albstack.IPAddressType) -> list[str]:
    if ip_address_type == albstack.IPAddressType.DUALSTACK:
        return [albstack.IPV4_ANY, albstack.IPV6_ANY]
    return [albstack.IPV4_ANY]


def inbound_cidrs_by_port(
    contexts: list[MemberContext],
    ip_address_type: albstack.IPAddressType,
) -> dict[int, list[str]]:
    """Every member opens its own listen ports to its own inbound CIDRs."""
    cidrs_by_port: dict[int, list[str]] = {}
    for ctx in contexts:
        cidrs = ctx.settings.inbound_cidrs or default_inbound_cidrs(ip_address_type)
        for port in ctx.listen_ports:
            port_cidrs = cidrs_by_port.setdefault(port, [])
            port_cidrs.extend(c for c in cidrs if c not in port_cidrs)
    return cidrs_by_port


def _permission(port: int, cidr: str) -> ec2.IPPermission:
    if ":" in cidr:
        return ec2.IPPermission(
            ip_protocol=TCP,
            from_port=port,
            to_port=port,
            ipv6_ranges=[ec2.IPv6Range(cidr_ipv6=cidr)],
        )
    return ec2.IPPermission(
        ip_protocol=TCP,
        from_port=port,
        to_port=port,
        ip_ranges=[ec2.IPRange(cidr_ip=cidr)],
    )


def build_security_group_spec(
    cluster_name: str,
    group_id: GroupID,
    contexts: list[MemberContext],
    ip_address_type: albstack.IPAddressType,
) -> ec2.SecurityGroupSpec:
    cidrs_by_port = inbound_cidrs_by_port(contexts, ip_address_type)
    return ec2.SecurityGroupSpec(
        group_name=naming.security_group_name(cluster_name, group_id),
        description=albstack.MANAGED_SECURITY_GROUP_DESCRIPTION,
        ingress=[_permission(port, cidr) for port in sorted(cidrs_by_port) for cidr in cidrs_by_port[port]],
    )
