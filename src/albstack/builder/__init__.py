from albstack.builder.model_builder import ModelBuilder
from albstack.builder.rule_optimizer import PendingRule, RuleOptimizer, StableRuleOptimizer

__all__ = ["ModelBuilder", "PendingRule", "RuleOptimizer", "StableRuleOptimizer"]
