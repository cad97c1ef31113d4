from __future__ import annotations

import functools
import typing

import pulumi

import albstack
from albstack import naming
from albstack.annotations import AnnotationParser
from albstack.builder.backend import BackendResolver, to_elbv2_action
from albstack.builder.listener import (
    ListenPortConfig,
    SSLRedirectConfig,
    build_ssl_redirect_config,
    fixed_404_action,
    listener_spec,
    merge_listen_port_configs,
    rule_conditions,
    ssl_redirect_action,
)
from albstack.builder.load_balancer import (
    build_load_balancer_spec,
    resolve_explicit_security_groups,
    resolve_ip_address_type,
    resolve_scheme,
)
from albstack.builder.member import MemberContext, resolve_member
from albstack.builder.rule_optimizer import PendingRule, RuleOptimizer, StableRuleOptimizer, optimize_rules
from albstack.builder.security_group import build_security_group_spec
from albstack.builder.target_group import TargetGroupBuilder
from albstack.errors import GroupConfigError, ModelBuildError
from albstack.resources import elbv2
from albstack.stack import StackBuilder

if typing.TYPE_CHECKING:
    from albstack.config import BuilderConfig
    from albstack.k8s import Group, ServiceIndex
    from albstack.resolvers import CertificateResolver, SubnetResolver
    from albstack.resources import StringToken
    from albstack.stack import Resource, Stack


class ModelBuilder:
    """Compiles one Ingress group into a Stack.

    A build has no side effects beyond at most one call to each resolver. Any
    error aborts the whole build; a partial stack is never returned.
    """

    def __init__(
        self,
        config: BuilderConfig,
        services: ServiceIndex,
        subnet_resolver: SubnetResolver,
        certificate_resolver: CertificateResolver,
        rule_optimizer: RuleOptimizer | None = None,
    ):
        self.config = config
        self.services = services
        self.subnet_resolver = subnet_resolver
        self.certificate_resolver = certificate_resolver
        self.rule_optimizer = rule_optimizer or StableRuleOptimizer()

        self.parser = AnnotationParser(config.annotation_prefix)
        self.backend_resolver = BackendResolver(self.parser)

    def build(self, group: Group) -> Stack:
        if not group.members:
            msg = f"ingress group {group.id} has no members"
            raise GroupConfigError(msg)

        stack = StackBuilder(str(group.id))
        contexts = [resolve_member(self.parser, member) for member in group.members]

        scheme = resolve_scheme(contexts, self.config.default_scheme)
        ip_address_type = resolve_ip_address_type(contexts, self.config.default_ip_address_type)
        listen_ports = merge_listen_port_configs(
            contexts,
            self.config.default_ssl_policy,
            self.certificate_resolver,
        )
        ssl_redirect = build_ssl_redirect_config(contexts, listen_ports)

        security_group_id = None
        security_groups: list[StringToken] = list(resolve_explicit_security_groups(contexts))
        if not security_groups:
            sg = stack.add(
                albstack.ResourceKind.SECURITY_GROUP,
                albstack.MANAGED_SECURITY_GROUP_ID,
                build_security_group_spec(self.config.cluster_name, group.id, contexts, ip_address_type),
            )
            security_group_id = sg.ref(albstack.StatusFields.GROUP_ID)
            security_groups = [security_group_id]

        lb = stack.add(
            albstack.ResourceKind.LOAD_BALANCER,
            albstack.LOAD_BALANCER_ID,
            build_load_balancer_spec(
                self.config.cluster_name,
                group.id,
                contexts,
                scheme,
                ip_address_type,
                security_groups,
                self.subnet_resolver,
            ),
        )

        target_groups = TargetGroupBuilder(
            config=self.config,
            parser=self.parser,
            services=self.services,
            stack=stack,
            group_id=group.id,
            security_group_id=security_group_id,
        )
        default_action = self._default_action(contexts, target_groups)

        for cfg in listen_ports.values():
            self._define_listener(stack, lb, cfg, contexts, ssl_redirect, default_action, target_groups)

        result = stack.build()
        pulumi.log.info(
            f"built stack {result.id}: "
            + ", ".join(f"{len(result.list_resources(kind))} {kind}" for kind in albstack.ResourceKind),
        )
        return result

    def _default_action(self, contexts: list[MemberContext], target_groups: TargetGroupBuilder) -> elbv2.Action:
        declaring = [ctx for ctx in contexts if ctx.member.default_backend is not None]
        if not declaring:
            return fixed_404_action()
        if len(declaring) > 1:
            msg = f"multiple ingress defined default backend: [{' '.join(ctx.key for ctx in declaring)}]"
            raise GroupConfigError(msg)

        ctx = declaring[0]
        try:
            action = self.backend_resolver.resolve(ctx.member.default_backend, ctx.settings)
            return to_elbv2_action(action, functools.partial(target_groups.target_group_arn, ctx.member))
        except ModelBuildError as e:
            raise e.with_member(ctx.key)

    def _define_listener(
        self,
        stack: StackBuilder,
        lb: Resource,
        cfg: ListenPortConfig,
        contexts: list[MemberContext],
        ssl_redirect: SSLRedirectConfig | None,
        default_action: elbv2.Action,
        target_groups: TargetGroupBuilder,
    ) -> None:
        redirecting = ssl_redirect is not None and cfg.port != ssl_redirect.port
        default_actions = [ssl_redirect_action(ssl_redirect)] if redirecting else [default_action]

        listener = stack.add(
            albstack.ResourceKind.LISTENER,
            naming.listener_key(cfg.port),
            listener_spec(cfg, lb.ref(albstack.StatusFields.LOAD_BALANCER_ARN), default_actions),
        )
        if redirecting:
            return

        rules: list[PendingRule] = []
        for ctx in contexts:
            if cfg.port not in ctx.listen_ports:
                continue
            try:
                for rule in ctx.member.rules:
                    action = self.backend_resolver.resolve(rule.backend, ctx.settings)
                    rules.append(
                        PendingRule(
                            member_key=ctx.key,
                            conditions=rule_conditions(rule),
                            actions=[
                                to_elbv2_action(
                                    action,
                                    functools.partial(target_groups.target_group_arn, ctx.member),
                                ),
                            ],
                        ),
                    )
            except ModelBuildError as e:
                raise e.with_member(ctx.key)

        for priority, pending in enumerate(
            optimize_rules(self.rule_optimizer, cfg.port, cfg.protocol, rules),
            start=1,
        ):
            stack.add(
                albstack.ResourceKind.LISTENER_RULE,
                naming.listener_rule_key(cfg.port, priority),
                elbv2.ListenerRuleSpec(
                    listener_arn=listener.ref(albstack.StatusFields.LISTENER_ARN),
                    priority=priority,
                    actions=pending.actions,
                    conditions=pending.conditions,
                ),
            )
