from __future__ import annotations

import enum

ANNOTATION_PREFIX = "alb.ingress.kubernetes.io"
DEFAULT_SSL_POLICY = "ELBSecurityPolicy-2016-08"
HEALTH_CHECK_PORT_TRAFFIC_PORT = "traffic-port"
MANAGED_SECURITY_GROUP_DESCRIPTION = "[k8s] Managed SecurityGroup for LoadBalancer"
MANAGED_SECURITY_GROUP_ID = "ManagedLBSecurityGroup"
LOAD_BALANCER_ID = "LoadBalancer"
NAME_PREFIX = "k8s"
SSL_REDIRECT_STATUS_CODE = "HTTP_301"
USE_ANNOTATION = "use-annotation"

IPV4_ANY = "0.0.0.0/0"
IPV6_ANY = "::/0"

MAX_RESOURCE_NAME_LENGTH = 32
NAME_HASH_LENGTH = 10


class ResourceKind(enum.StrEnum):
    SECURITY_GROUP = "AWS::EC2::SecurityGroup"
    LOAD_BALANCER = "AWS::ElasticLoadBalancingV2::LoadBalancer"
    LISTENER = "AWS::ElasticLoadBalancingV2::Listener"
    LISTENER_RULE = "AWS::ElasticLoadBalancingV2::ListenerRule"
    TARGET_GROUP = "AWS::ElasticLoadBalancingV2::TargetGroup"
    TARGET_GROUP_BINDING = "K8S::ElasticLoadBalancingV2::TargetGroupBinding"


class StatusFields(enum.StrEnum):
    GROUP_ID = "groupID"
    LOAD_BALANCER_ARN = "loadBalancerARN"
    LISTENER_ARN = "listenerARN"
    TARGET_GROUP_ARN = "targetGroupARN"


class Protocol(enum.StrEnum):
    HTTP = "HTTP"
    HTTPS = "HTTPS"


class ProtocolVersion(enum.StrEnum):
    HTTP1 = "HTTP1"
    HTTP2 = "HTTP2"
    GRPC = "GRPC"


class TargetType(enum.StrEnum):
    INSTANCE = "instance"
    IP = "ip"


class Scheme(enum.StrEnum):
    INTERNAL = "internal"
    INTERNET_FACING = "internet-facing"


class IPAddressType(enum.StrEnum):
    IPV4 = "ipv4"
    DUALSTACK = "dualstack"


class LoadBalancerType(enum.StrEnum):
    APPLICATION = "application"


class ActionType(enum.StrEnum):
    FORWARD = "forward"
    REDIRECT = "redirect"
    FIXED_RESPONSE = "fixed-response"


class ConditionField(enum.StrEnum):
    HOST_HEADER = "host-header"
    PATH_PATTERN = "path-pattern"


class SubnetRoleTags(enum.StrEnum):
    INTERNAL_ELB = "kubernetes.io/role/internal-elb"
    ELB = "kubernetes.io/role/elb"


def subnet_role_tag(scheme: Scheme) -> str:
    if scheme == Scheme.INTERNAL:
        return SubnetRoleTags.INTERNAL_ELB
    return SubnetRoleTags.ELB


def cluster_tag_key(cluster_name: str) -> str:
    return f"kubernetes.io/cluster/{cluster_name}"
