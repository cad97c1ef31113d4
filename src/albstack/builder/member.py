from __future__ import annotations

import dataclasses

import albstack
from albstack.annotations import AnnotationParser, IngressSettings
from albstack.errors import ModelBuildError
from albstack.k8s import Member

HTTP_PORT = 80
HTTPS_PORT = 443


@dataclasses.dataclass(frozen=True)
class MemberContext:
    """A member Ingress together with everything resolved from its annotations."""

    member: Member
    settings: IngressSettings
    listen_ports: dict[int, albstack.Protocol]

    @property
    def key(self) -> str:
        return self.member.key

    @property
    def explicit_certificate_arns(self) -> list[str]:
        return list(self.settings.certificate_arns or [])


def default_listen_ports(member: Member, settings: IngressSettings) -> dict[int, albstack.Protocol]:
    if settings.listen_ports is not None:
        return dict(settings.listen_ports)
    if settings.certificate_arns or member.tls_hosts:
        return {HTTPS_PORT: albstack.Protocol.HTTPS}
    return {HTTP_PORT: albstack.Protocol.HTTP}


def resolve_member(parser: AnnotationParser, member: Member) -> MemberContext:
    try:
        settings = IngressSettings.resolve(parser, member.annotations)
        return MemberContext(
            member=member,
            settings=settings,
            listen_ports=default_listen_ports(member, settings),
        )
    except ModelBuildError as e:
        raise e.with_member(member.key)
