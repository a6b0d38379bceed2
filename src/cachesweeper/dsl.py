"""Declarative sweepers.

A sweeper class groups the invalidation rules of one model. Defining the
class registers the group; there is no discovery step.

Example:
    from cachesweeper import Sweeper, watch

    class ProductSweeper(Sweeper):
        model = Product
        options = {"trigger": "deferred", "mode": "async"}
        rules = [
            watch(attributes=["price", "name"], keys=lambda p: [f"product:{p.id}"]),
            watch(condition="is_published", keys=["products:featured"]),
            watch("variants", keys=lambda p: [f"product:{p.id}:variants"], mode="inline"),
        ]
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from cachesweeper.core.entities.rule import CallbackPoint, ChangeEvent, Mode, Rule, Trigger
from cachesweeper.core.services.rule_registry import RuleRegistry, default_registry


@dataclass(frozen=True)
class RuleDeclaration:
    """A rule declared in a sweeper body, not yet bound to its group."""

    association: str | None
    arguments: dict[str, Any] = field(default_factory=dict)

    def build(self, owner_group: str) -> Rule:
        return Rule.build(owner_group=owner_group, association=self.association, **self.arguments)


def watch(
    association: str | None = None,
    *,
    keys: Callable[[Any], Sequence[str]] | Sequence[str] | str,
    attributes: Iterable[str] | None = None,
    condition: Callable[[Any], Any] | str | None = None,
    trigger: Trigger | str | None = None,
    mode: Mode | str | None = None,
    queue: str | None = None,
    job_options: dict[str, Any] | None = None,
    callback: CallbackPoint | str = CallbackPoint.POST_COMMIT,
    on: Iterable[ChangeEvent | str] | ChangeEvent | str | None = None,
) -> RuleDeclaration:
    """Declare an invalidation rule.

    Args:
        association: Relation on the sweeper's model to watch instead of
            the model itself. Keys are generated from the changed
            related entity and dispatched when it has related owners.
        keys: Key generator ``entity -> keys``, or static key(s).
        attributes: Attribute names to watch. None watches any change.
        condition: Predicate over the changed entity, or the name of a
            method on it.
        trigger: ``instant`` or ``deferred``; inherits when None.
        mode: ``inline`` or ``async``; inherits when None.
        queue: Job queue name; inherits when None.
        job_options: Job options merged over the inherited ones.
        callback: ``pre_commit`` or ``post_commit``.
        on: Event name(s) among ``create``, ``update``, ``destroy``.

    Returns:
        A declaration to list in the sweeper's ``rules``.
    """
    return RuleDeclaration(
        association=association,
        arguments={
            "keys": keys,
            "attributes": attributes,
            "condition": condition,
            "trigger": trigger,
            "mode": mode,
            "queue": queue,
            "job_options": job_options,
            "callback": callback,
            "on": on,
        },
    )


class Sweeper:
    """Base class for declarative sweepers.

    Subclasses set ``model``, optionally ``options`` (group settings),
    and ``rules``. Pass ``registry=`` as a class keyword to register into
    a registry other than the default one.
    """

    model: ClassVar[Any] = None
    options: ClassVar[Mapping[str, Any] | None] = None
    rules: ClassVar[Sequence[RuleDeclaration]] = ()
    registry: ClassVar[RuleRegistry] = default_registry

    def __init_subclass__(cls, registry: RuleRegistry | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if registry is not None:
            cls.registry = registry

        # Only rules declared in this class body belong to this group.
        own_rules = cls.__dict__.get("rules", ())
        if cls.model is None and not own_rules:
            return

        group = cls.group_name()
        cls.registry.declare(group, model=cls.model, settings=cls.options)
        for declaration in own_rules:
            cls.registry.register(group, declaration.build(group))

    @classmethod
    def group_name(cls) -> str:
        """Registry key of this sweeper: its qualified class name."""
        return f"{cls.__module__}.{cls.__qualname__}"

    @classmethod
    def registered_rules(cls) -> tuple[Rule, ...]:
        return cls.registry.rules_for(cls.group_name())
