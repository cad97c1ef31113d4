from __future__ import annotations

import dataclasses
import typing

from albstack.errors import StackIntegrityError

if typing.TYPE_CHECKING:
    import albstack
    from albstack.resources import elbv2


@dataclasses.dataclass(frozen=True)
class PendingRule:
    """A listener rule before it has a priority."""

    member_key: str
    conditions: list[elbv2.RuleCondition]
    actions: list[elbv2.Action]


class RuleOptimizer(typing.Protocol):
    def optimize(self, port: int, protocol: albstack.Protocol, rules: list[PendingRule]) -> list[PendingRule]:
        """Return ``rules`` in evaluation order.

        Implementations may only reorder rules in ways that never change which
        rule first matches a request.
        """
        ...


class StableRuleOptimizer:
    """Keeps rules in canonical declaration order."""

    def optimize(self, port: int, protocol: albstack.Protocol, rules: list[PendingRule]) -> list[PendingRule]:
        return list(rules)


def optimize_rules(
    optimizer: RuleOptimizer,
    port: int,
    protocol: albstack.Protocol,
    rules: list[PendingRule],
) -> list[PendingRule]:
    optimized = optimizer.optimize(port, protocol, list(rules))
    if sorted(map(id, optimized)) != sorted(map(id, rules)):
        msg = f"rule optimizer for listener {port} must return a permutation of its input rules"
        raise StackIntegrityError(msg)
    return optimized
