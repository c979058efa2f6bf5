"""Registry of named transmission rules."""

from __future__ import annotations

from typing import Dict, Type

from culture import AttractionRule, BinaryTraitRule, MigrationRule, MultipleTraitsRule, NetworkRule, OpennessRule
from demography import SkillImitationRule
from interdependence import CompatibilityRule
from learning import LearningStrategyRule
from model import ConfigError, TransmissionRule

RULES: Dict[str, Type[TransmissionRule]] = {
    rule.name: rule
    for rule in (
        BinaryTraitRule,
        MultipleTraitsRule,
        OpennessRule,
        AttractionRule,
        NetworkRule,
        MigrationRule,
        SkillImitationRule,
        LearningStrategyRule,
        CompatibilityRule,
    )
}


def make_rule(name: str, **params) -> TransmissionRule:
    """Build a rule by name from keyword parameters."""
    if name not in RULES:
        raise ConfigError("rule", f"unknown rule {name!r}, expected one of {', '.join(RULES)}")
    rule_class = RULES[name]
    try:
        settings = rule_class.params_class(**params)
    except TypeError as exc:
        raise ConfigError("rule", f"bad parameters for {name}: {exc}") from exc
    return rule_class(settings)
