"""Subnet and certificate lookups needed to build a stack.

The builder only depends on the two protocols below. The boto3-backed
implementations are what the CLI uses with ``--discover``; tests and offline
renders use the static ones.
"""

from __future__ import annotations

import typing

import boto3
import pulumi

import albstack

if typing.TYPE_CHECKING:
    import collections.abc

_MIN_SUBNET_AZ_COUNT = 2
_CLUSTER_TAG_VALUES = ("owned", "shared")


class SubnetResolver(typing.Protocol):
    def resolve_subnets(self, scheme: albstack.Scheme, explicit_ids: list[str]) -> list[str]: ...


class CertificateResolver(typing.Protocol):
    def resolve_certificates(self, hosts: list[str]) -> list[str]: ...


class StaticSubnetResolver:
    def __init__(self, subnet_ids: collections.abc.Iterable[str] = ()):
        self.subnet_ids = list(subnet_ids)

    def resolve_subnets(self, scheme: albstack.Scheme, explicit_ids: list[str]) -> list[str]:
        if explicit_ids:
            return list(explicit_ids)
        if not self.subnet_ids:
            msg = f"no subnets configured for {scheme} load balancer"
            raise ValueError(msg)
        return list(self.subnet_ids)


class StaticCertificateResolver:
    def __init__(self, certificate_arns: collections.abc.Iterable[str] = ()):
        self.certificate_arns = list(certificate_arns)

    def resolve_certificates(self, hosts: list[str]) -> list[str]:
        return list(self.certificate_arns)


def _session(region: str) -> boto3.Session:
    return boto3.Session(region_name=region)


def _tag_value(resource: dict[str, typing.Any], key: str) -> str | None:
    for tag in resource.get("Tags", []):
        if tag.get("Key") == key:
            return tag.get("Value")
    return None


class EC2SubnetResolver:
    def __init__(
        self,
        cluster_name: str,
        vpc_id: str,
        region: str = "us-east-2",
    ):
        self.cluster_name = cluster_name
        self.vpc_id = vpc_id
        self.region = region

    def resolve_subnets(self, scheme: albstack.Scheme, explicit_ids: list[str]) -> list[str]:
        ec2_client = _session(self.region).client("ec2")
        if explicit_ids:
            return self._resolve_explicit(ec2_client, explicit_ids)
        return self._discover(ec2_client, scheme)

    def _resolve_explicit(self, ec2_client: typing.Any, names_or_ids: list[str]) -> list[str]:
        subnet_ids = [v for v in names_or_ids if v.startswith("subnet-")]
        names = [v for v in names_or_ids if not v.startswith("subnet-")]

        subnets: list[dict[str, typing.Any]] = []
        if subnet_ids:
            subnets.extend(ec2_client.describe_subnets(SubnetIds=subnet_ids).get("Subnets", []))
        if names:
            response = ec2_client.describe_subnets(
                Filters=[
                    {"Name": "tag:Name", "Values": names},
                    {"Name": "vpc-id", "Values": [self.vpc_id]},
                ]
            )
            subnets.extend(response.get("Subnets", []))

        found = sorted({s["SubnetId"] for s in subnets if s.get("SubnetId") is not None})
        if len(found) != len(names_or_ids):
            msg = f"couldn't find all subnets, want: {names_or_ids}, found: {found}"
            raise ValueError(msg)
        return found

    def _discover(self, ec2_client: typing.Any, scheme: albstack.Scheme) -> list[str]:
        role_tag = albstack.subnet_role_tag(scheme)
        pulumi.log.debug(f"discovering subnets in {self.vpc_id} tagged {role_tag}")

        response = ec2_client.describe_subnets(
            Filters=[
                {"Name": "vpc-id", "Values": [self.vpc_id]},
                {"Name": f"tag:{role_tag}", "Values": ["", "1"]},
            ]
        )

        cluster_tag = albstack.cluster_tag_key(self.cluster_name)
        subnet_by_az: dict[str, str] = {}
        for subnet in response.get("Subnets", []):
            if _tag_value(subnet, cluster_tag) not in _CLUSTER_TAG_VALUES:
                continue
            az = subnet["AvailabilityZone"]
            subnet_id = subnet["SubnetId"]
            if az not in subnet_by_az or subnet_id < subnet_by_az[az]:
                subnet_by_az[az] = subnet_id

        if len(subnet_by_az) < _MIN_SUBNET_AZ_COUNT:
            msg = (
                f"subnets count less than minimal required count: {len(subnet_by_az)} < {_MIN_SUBNET_AZ_COUNT} "
                f"(scheme {scheme}, tag {role_tag}, cluster {self.cluster_name})"
            )
            raise ValueError(msg)

        return sorted(subnet_by_az.values())


def certificate_matches_host(cert: dict[str, typing.Any], host: str) -> bool:
    domains = [cert.get("DomainName", ""), *cert.get("SubjectAlternativeNameSummaries", [])]
    for domain in domains:
        if domain == host:
            return True
        if domain.startswith("*.") and "." in host and host.split(".", 1)[1] == domain[2:]:
            return True
    return False


class ACMCertificateResolver:
    def __init__(self, region: str = "us-east-2"):
        self.region = region

    def resolve_certificates(self, hosts: list[str]) -> list[str]:
        acm_client = _session(self.region).client("acm")

        certs: list[dict[str, typing.Any]] = []
        for page in acm_client.get_paginator("list_certificates").paginate(CertificateStatuses=["ISSUED"]):
            certs.extend(page.get("CertificateSummaryList", []))

        arns: list[str] = []
        for host in hosts:
            matched = [cert["CertificateArn"] for cert in certs if certificate_matches_host(cert, host)]
            if not matched:
                msg = f"no certificate found for host: {host}"
                raise ValueError(msg)
            for arn in matched:
                if arn not in arns:
                    arns.append(arn)

        pulumi.log.debug(f"discovered {len(arns)} certificate(s) for hosts {hosts}")
        return arns
