"""Registry of owner groups and their invalidation rules."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from cachesweeper.core.entities.rule import Rule
from cachesweeper.core.entities.settings import GroupSettings
from cachesweeper.log import log_event

logger = logging.getLogger(__name__)


@dataclass
class _Group:
    name: str
    model: Any = None
    settings: GroupSettings = field(default_factory=GroupSettings)
    rules: list[Rule] = field(default_factory=list)


class RuleRegistry:
    """Holds, per owner group, an ordered list of rules.

    Groups are keyed by name. Declaring a group again (for example when
    the host reloads the module that defines it) replaces its model,
    settings and rules instead of accumulating duplicates.
    """

    def __init__(self) -> None:
        self._groups: dict[str, _Group] = {}

    def declare(
        self,
        owner_group: str,
        model: Any = None,
        settings: GroupSettings | Mapping[str, Any] | None = None,
    ) -> None:
        """Declare (or re-declare) an owner group.

        Args:
            owner_group: Group name.
            model: The entity kind the group watches.
            settings: Group-level settings or their declaration mapping.
        """
        if not isinstance(settings, GroupSettings):
            settings = GroupSettings.from_options(settings)
        replaced = owner_group in self._groups
        self._groups[owner_group] = _Group(name=owner_group, model=model, settings=settings)
        log_event(
            logger,
            "debug",
            f"Group {'re-declared' if replaced else 'declared'}: {owner_group}",
            owner_group=owner_group,
            model=getattr(model, "__name__", model),
        )

    def register(self, owner_group: str, rule_spec: Rule | Mapping[str, Any]) -> Rule:
        """Append a rule to a group, declaring the group if needed.

        Args:
            owner_group: Group name.
            rule_spec: A Rule, or keyword arguments for :meth:`Rule.build`.

        Returns:
            The registered rule.

        Raises:
            ValueError: If the rule belongs to another group.
        """
        if isinstance(rule_spec, Rule):
            rule = rule_spec
        else:
            rule = Rule.build(owner_group=owner_group, **rule_spec)
        if rule.owner_group != owner_group:
            raise ValueError(
                f"Rule belongs to group {rule.owner_group!r}, not {owner_group!r}"
            )

        if owner_group not in self._groups:
            self.declare(owner_group)
        self._groups[owner_group].rules.append(rule)
        return rule

    def rules_for(self, owner_group: str) -> tuple[Rule, ...]:
        """Return the group's rules in registration order."""
        group = self._groups.get(owner_group)
        return tuple(group.rules) if group else ()

    def settings_for(self, owner_group: str) -> GroupSettings:
        group = self._groups.get(owner_group)
        return group.settings if group else GroupSettings()

    def model_for(self, owner_group: str) -> Any:
        group = self._groups.get(owner_group)
        return group.model if group else None

    def groups(self) -> list[str]:
        return list(self._groups)

    def is_registered(self, rule: Rule) -> bool:
        """Check that ``rule`` is still live, i.e. not dropped by a re-declaration."""
        group = self._groups.get(rule.owner_group)
        return group is not None and any(existing is rule for existing in group.rules)

    def remove(self, owner_group: str) -> None:
        self._groups.pop(owner_group, None)

    def clear(self) -> None:
        self._groups.clear()

    def __contains__(self, owner_group: object) -> bool:
        return owner_group in self._groups

    def __len__(self) -> int:
        return sum(len(group.rules) for group in self._groups.values())


# Registry used by declarative sweepers unless another one is given.
default_registry = RuleRegistry()
