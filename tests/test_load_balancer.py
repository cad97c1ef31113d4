import re
from unittest.mock import MagicMock

import pytest

import albstack
from albstack.annotations import AnnotationParser
from albstack.builder.load_balancer import (
    build_load_balancer_spec,
    resolve_explicit_subnets,
    resolve_ip_address_type,
    resolve_lb_attributes,
    resolve_scheme,
    resolve_tags,
)
from albstack.builder.member import resolve_member
from albstack.errors import GroupConfigError
from albstack.k8s import GroupID
from albstack.resolvers import StaticSubnetResolver
from albstack.resources import elbv2
from albstack.stack import marshal_stack

LB = str(albstack.ResourceKind.LOAD_BALANCER)


@pytest.fixture
def resolve(make_member):
    parser = AnnotationParser()

    def _resolve(*annotation_sets: dict[str, str]):
        return [
            resolve_member(parser, make_member(f"ing-{i}", annotations=annotations))
            for i, annotations in enumerate(annotation_sets, start=1)
        ]

    return _resolve


class TestScheme:
    def test_default(self, resolve):
        assert resolve_scheme(resolve({}), albstack.Scheme.INTERNAL) == albstack.Scheme.INTERNAL

    def test_members_agree(self, resolve):
        contexts = resolve({"scheme": "internet-facing"}, {}, {"scheme": "internet-facing"})
        assert resolve_scheme(contexts, albstack.Scheme.INTERNAL) == albstack.Scheme.INTERNET_FACING

    def test_conflict(self, resolve):
        with pytest.raises(GroupConfigError, match=re.escape("conflicting scheme: [internal internet-facing]")):
            resolve_scheme(resolve({"scheme": "internet-facing"}, {"scheme": "internal"}), albstack.Scheme.INTERNAL)

    def test_unknown(self, resolve):
        with pytest.raises(GroupConfigError, match="unknown scheme: public"):
            resolve_scheme(resolve({"scheme": "public"}), albstack.Scheme.INTERNAL)


class TestIPAddressType:
    def test_dualstack(self, resolve):
        contexts = resolve({"ip-address-type": "dualstack"})
        assert resolve_ip_address_type(contexts, albstack.IPAddressType.IPV4) == albstack.IPAddressType.DUALSTACK

    def test_conflict(self, resolve):
        with pytest.raises(GroupConfigError, match="conflicting ipAddressType"):
            resolve_ip_address_type(
                resolve({"ip-address-type": "dualstack"}, {"ip-address-type": "ipv4"}),
                albstack.IPAddressType.IPV4,
            )


class TestSubnets:
    def test_members_agree_regardless_of_order(self, resolve):
        contexts = resolve({"subnets": "subnet-b,subnet-a"}, {}, {"subnets": "subnet-a,subnet-b"})
        assert resolve_explicit_subnets(contexts) == ["subnet-b", "subnet-a"]

    def test_conflict(self, resolve):
        with pytest.raises(GroupConfigError, match=re.escape("conflicting subnets: [subnet-a] | [subnet-b]")):
            resolve_explicit_subnets(resolve({"subnets": "subnet-a"}, {"subnets": "subnet-b"}))

    def test_resolver_called_once_with_explicit_subnets(self, resolve):
        subnet_resolver = MagicMock(wraps=StaticSubnetResolver())
        spec = build_load_balancer_spec(
            "cluster-name",
            GroupID.explicit("g"),
            resolve({"subnets": "subnet-1,subnet-2", "scheme": "internet-facing"}, {"subnets": "subnet-2,subnet-1"}),
            albstack.Scheme.INTERNET_FACING,
            albstack.IPAddressType.IPV4,
            ["sg-1"],
            subnet_resolver,
        )

        subnet_resolver.resolve_subnets.assert_called_once_with(
            albstack.Scheme.INTERNET_FACING,
            ["subnet-1", "subnet-2"],
        )
        assert spec.subnet_mapping == [elbv2.SubnetMapping("subnet-1"), elbv2.SubnetMapping("subnet-2")]


class TestTagsAndAttributes:
    def test_tags_merged(self, resolve):
        contexts = resolve({"tags": "team=web,env=prod"}, {"tags": "env=prod,owner=alice"})
        assert resolve_tags(contexts) == {"team": "web", "env": "prod", "owner": "alice"}

    def test_conflicting_tag(self, resolve):
        with pytest.raises(GroupConfigError, match=re.escape("conflicting tag env: prod | dev")):
            resolve_tags(resolve({"tags": "env=prod"}, {"tags": "env=dev"}))

    def test_reserved_tag_prefix(self, resolve):
        with pytest.raises(GroupConfigError, match="reserved 'aws:' prefix"):
            resolve_tags(resolve({"tags": "aws:cloudformation=x"}))

    def test_conflicting_attribute(self, resolve):
        with pytest.raises(GroupConfigError, match="conflicting loadBalancerAttribute idle_timeout.timeout_seconds"):
            resolve_lb_attributes(
                resolve(
                    {"load-balancer-attributes": "idle_timeout.timeout_seconds=60"},
                    {"load-balancer-attributes": "idle_timeout.timeout_seconds=120"},
                ),
            )

    def test_in_stack(self, model_builder, make_member, make_group):
        member = make_member(
            "ing-1",
            annotations={
                "tags": "team=web",
                "load-balancer-attributes": "idle_timeout.timeout_seconds=120,deletion_protection.enabled=true",
            },
        )
        spec = marshal_stack(model_builder.build(make_group(member)))["resources"][LB]["LoadBalancer"]["spec"]

        assert spec["tags"] == {"team": "web"}
        assert spec["loadBalancerAttributes"] == [
            {"key": "deletion_protection.enabled", "value": "true"},
            {"key": "idle_timeout.timeout_seconds", "value": "120"},
        ]
