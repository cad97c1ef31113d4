"""Shared pytest fixtures for albstack tests.

This module provides common fixtures used across test files:
- builder_config: BuilderConfig for a cluster named "cluster-name"
- services: ServiceIndex with the ns-1/svc-1, svc-2 and svc-3 Services
- subnet_resolver / certificate_resolver: static resolvers wrapped in MagicMock
  so tests can assert on how often they were called
- model_builder: a ModelBuilder wired to all of the above
- make_member, make_rule, make_group: factories for member Ingresses, rules and groups
- standard_rules: three rules over two hosts, one per fixture Service
"""

import pathlib
import sys
import typing
from unittest.mock import MagicMock

import pytest

HERE = pathlib.Path(__file__).parent

sys.path.insert(0, str(HERE / "src"))

import albstack  # noqa: E402
from albstack.builder import ModelBuilder  # noqa: E402
from albstack.config import BuilderConfig  # noqa: E402
from albstack.k8s import BackendRef, Group, GroupID, Member, Rule, Service, ServiceIndex, ServicePort  # noqa: E402
from albstack.resolvers import StaticCertificateResolver, StaticSubnetResolver  # noqa: E402

CLUSTER_NAME = "cluster-name"
SUBNET_IDS = ["subnet-a", "subnet-b"]
CERTIFICATE_ARNS = ["arn:aws:acm:us-east-2:123456789012:certificate/discovered"]


def annotation(suffix: str) -> str:
    return f"{albstack.ANNOTATION_PREFIX}/{suffix}"


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def ns_1_svc_1() -> Service:
    return Service(
        namespace="ns-1",
        name="svc-1",
        ports=(ServicePort(name="http", port=80, target_port=8080, node_port=32768),),
    )


@pytest.fixture
def ns_1_svc_2() -> Service:
    """Same shape as svc-1, with every target group default spelled out as an annotation."""
    return Service(
        namespace="ns-1",
        name="svc-2",
        ports=(ServicePort(name="http", port=80, target_port=8080, node_port=32768),),
        annotations={
            annotation("target-type"): "instance",
            annotation("backend-protocol"): "HTTP",
            annotation("healthcheck-protocol"): "HTTP",
            annotation("healthcheck-port"): "traffic-port",
            annotation("healthcheck-path"): "/",
            annotation("healthcheck-interval-seconds"): "15",
            annotation("healthcheck-timeout-seconds"): "5",
            annotation("healthy-threshold-count"): "2",
            annotation("unhealthy-threshold-count"): "2",
            annotation("success-codes"): "200",
        },
    )


@pytest.fixture
def ns_1_svc_3() -> Service:
    return Service(
        namespace="ns-1",
        name="svc-3",
        ports=(ServicePort(name="https", port=443, target_port=8443, node_port=32768),),
        annotations={
            annotation("target-type"): "ip",
            annotation("backend-protocol"): "HTTPS",
            annotation("healthcheck-protocol"): "HTTPS",
            annotation("healthcheck-port"): "9090",
            annotation("healthcheck-path"): "/health-check",
            annotation("healthcheck-interval-seconds"): "20",
            annotation("healthcheck-timeout-seconds"): "10",
            annotation("healthy-threshold-count"): "7",
            annotation("unhealthy-threshold-count"): "5",
            annotation("success-codes"): "200-300",
        },
    )


@pytest.fixture
def services(ns_1_svc_1: Service, ns_1_svc_2: Service, ns_1_svc_3: Service) -> ServiceIndex:
    return ServiceIndex([ns_1_svc_1, ns_1_svc_2, ns_1_svc_3])


# ============================================================================
# Builder Fixtures
# ============================================================================


@pytest.fixture
def builder_config() -> BuilderConfig:
    return BuilderConfig(cluster_name=CLUSTER_NAME, vpc_id="vpc-dummy")


@pytest.fixture
def subnet_resolver() -> MagicMock:
    return MagicMock(wraps=StaticSubnetResolver(SUBNET_IDS))


@pytest.fixture
def certificate_resolver() -> MagicMock:
    return MagicMock(wraps=StaticCertificateResolver(CERTIFICATE_ARNS))


@pytest.fixture
def model_builder(
    builder_config: BuilderConfig,
    services: ServiceIndex,
    subnet_resolver: MagicMock,
    certificate_resolver: MagicMock,
) -> ModelBuilder:
    return ModelBuilder(
        config=builder_config,
        services=services,
        subnet_resolver=subnet_resolver,
        certificate_resolver=certificate_resolver,
    )


# ============================================================================
# Ingress Fixtures
# ============================================================================


@pytest.fixture
def make_member() -> typing.Callable[..., Member]:
    """Factory for member Ingresses in ns-1.

    Annotation keys are given as suffixes and prefixed automatically.

    Usage:
        def test_something(make_member):
            member = make_member("ing-1", annotations={"scheme": "internet-facing"})
    """

    def _make(
        name: str,
        namespace: str = "ns-1",
        annotations: dict[str, str] | None = None,
        rules: list[Rule] | None = None,
        default_backend: BackendRef | None = None,
        tls_hosts: tuple[str, ...] = (),
    ) -> Member:
        return Member(
            namespace=namespace,
            name=name,
            annotations={annotation(k): v for k, v in (annotations or {}).items()},
            rules=tuple(rules or []),
            default_backend=default_backend,
            tls_hosts=tls_hosts,
        )

    return _make


def http_rule(host: str, path: str, service_name: str, service_port: int | str) -> Rule:
    return Rule(host=host, path=path, backend=BackendRef(service_name=service_name, service_port=service_port))


@pytest.fixture
def make_rule() -> typing.Callable[..., Rule]:
    return http_rule


@pytest.fixture
def make_group() -> typing.Callable[..., Group]:
    """Factory for groups: implicit (named after its only member) unless ``explicit`` is given."""

    def _make(*members: Member, explicit: str | None = None) -> Group:
        if explicit is not None:
            return Group(id=GroupID.explicit(explicit), members=members)
        return Group(id=GroupID(namespace=members[0].namespace, name=members[0].name), members=members)

    return _make


@pytest.fixture
def standard_rules() -> list[Rule]:
    """Three rules spread over two hosts, one per fixture Service."""
    return [
        http_rule("app-1.example.com", "/svc-1", "svc-1", "http"),
        http_rule("app-1.example.com", "/svc-2", "svc-2", "http"),
        http_rule("app-2.example.com", "/svc-3", "svc-3", "https"),
    ]
