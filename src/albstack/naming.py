"""Cloud-facing names and internal graph keys.

Two naming policies exist. Stable names hash only identity (group, service,
port reference) so changes to the resource are applied in place. Settings-hash
names also hash every attribute AWS treats as immutable for that kind, so a
change produces a new name and therefore a replacement resource.
"""

from __future__ import annotations

import hashlib
import json
import re
import typing

import albstack

if typing.TYPE_CHECKING:
    from albstack.k8s import GroupID, Member, Service

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9]")

# k8s-<8>-<8>-<10> and k8s-<17>-<10> both land exactly on the 32 character limit
_SEGMENT_LENGTH = 8
_EXPLICIT_SEGMENT_LENGTH = 17


def json_signature(obj: typing.Any) -> str:
    return hashlib.sha256(
        json.dumps(obj, sort_keys=True).encode(),
        usedforsecurity=False,
    ).hexdigest()


def sanitize(s: str) -> str:
    return _INVALID_NAME_CHARS.sub("", s)


def _compose(segments: list[tuple[str, int]], signature: str) -> str:
    parts = [albstack.NAME_PREFIX]
    parts.extend(sanitize(value)[:limit] for value, limit in segments)
    parts.append(signature[: albstack.NAME_HASH_LENGTH])
    return "-".join(parts)


def _group_segments(group_id: GroupID) -> list[tuple[str, int]]:
    if group_id.is_explicit():
        return [(group_id.name, _EXPLICIT_SEGMENT_LENGTH)]
    return [(group_id.namespace, _SEGMENT_LENGTH), (group_id.name, _SEGMENT_LENGTH)]


def _service_segments(svc: Service) -> list[tuple[str, int]]:
    return [(svc.namespace, _SEGMENT_LENGTH), (svc.name, _SEGMENT_LENGTH)]


def security_group_name(cluster_name: str, group_id: GroupID) -> str:
    return _compose(_group_segments(group_id), json_signature([cluster_name, str(group_id)]))


def load_balancer_name(cluster_name: str, group_id: GroupID, scheme: albstack.Scheme) -> str:
    return _compose(_group_segments(group_id), json_signature([cluster_name, str(group_id), str(scheme)]))


def target_group_name(
    cluster_name: str,
    group_id: GroupID,
    svc: Service,
    port: str,
    tg_port: int,
    target_type: albstack.TargetType,
    protocol: albstack.Protocol,
) -> str:
    signature = json_signature(
        [cluster_name, str(group_id), svc.key, port, tg_port, str(target_type), str(protocol)],
    )
    return _compose(_service_segments(svc), signature)


def target_group_binding_name(cluster_name: str, group_id: GroupID, svc: Service, port: str) -> str:
    return _compose(_service_segments(svc), json_signature([cluster_name, str(group_id), svc.key, port]))


def target_group_key(member: Member, service_name: str, port: str) -> str:
    return f"{member.namespace}/{member.name}-{service_name}:{port}"


def listener_key(port: int) -> str:
    return str(port)


def listener_rule_key(port: int, priority: int) -> str:
    return f"{port}:{priority}"
