from __future__ import annotations

import dataclasses


@dataclasses.dataclass(frozen=True)
class IPRange:
    cidr_ip: str


@dataclasses.dataclass(frozen=True)
class IPv6Range:
    cidr_ipv6: str


@dataclasses.dataclass(frozen=True)
class IPPermission:
    ip_protocol: str
    from_port: int
    to_port: int
    ip_ranges: list[IPRange] | None = None
    ipv6_ranges: list[IPv6Range] | None = None


@dataclasses.dataclass(frozen=True)
class SecurityGroupSpec:
    group_name: str
    description: str
    ingress: list[IPPermission]
