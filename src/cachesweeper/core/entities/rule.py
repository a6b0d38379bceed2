"""Invalidation rule entity and its enums."""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Trigger(Enum):
    """When an invalidation runs.

    INSTANT: Act as soon as the rule matches.
    DEFERRED: Buffer the keys until the end of the current request.
    """

    INSTANT = "instant"
    DEFERRED = "deferred"

    @classmethod
    def _missing_(cls, value: object) -> "Trigger | None":
        if isinstance(value, str):
            normalized = value.lower()
            if normalized == "request":
                return cls.DEFERRED
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class Mode(Enum):
    """How an invalidation runs.

    ASYNC: Hand the keys to the background job queue.
    INLINE: Delete the keys now, in the calling thread.
    """

    ASYNC = "async"
    INLINE = "inline"

    @classmethod
    def _missing_(cls, value: object) -> "Mode | None":
        if isinstance(value, str):
            for member in cls:
                if member.value == value.lower():
                    return member
        return None


class CallbackPoint(Enum):
    """Point of the persistence transaction at which a rule fires."""

    PRE_COMMIT = "pre_commit"
    POST_COMMIT = "post_commit"


class ChangeEvent(Enum):
    """Lifecycle transition of an entity."""

    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


ALL_EVENTS: frozenset[ChangeEvent] = frozenset(ChangeEvent)

KeyGenerator = Callable[[Any], Sequence[str]]
Condition = Callable[[Any], Any]


@dataclass(frozen=True, eq=False)
class Rule:
    """A single invalidation rule declared by an owner group.

    Rules are immutable once registered. ``condition`` and
    ``key_generator`` are always plain callables here; use
    :meth:`Rule.build` to normalize symbolic conditions, static key
    lists and string-valued options.

    Attributes:
        owner_group: Name of the declaring group.
        key_generator: ``entity -> sequence of cache keys``.
        association: Relation on the owner model whose related entities
            are watched. None means the owner entity itself is watched.
        watched_attributes: Attribute names; empty matches any change.
        condition: Optional predicate over the changed entity.
        callback_point: When the rule fires relative to the commit.
        events: Lifecycle transitions that trigger evaluation.
        trigger_override: Rule-level trigger, None to inherit.
        mode_override: Rule-level mode, None to inherit.
        queue_override: Rule-level queue, None to inherit.
        job_options_override: Rule-level job options, None to inherit.
    """

    owner_group: str
    key_generator: KeyGenerator
    association: str | None = None
    watched_attributes: frozenset[str] = field(default_factory=frozenset)
    condition: Condition | None = None
    callback_point: CallbackPoint = CallbackPoint.POST_COMMIT
    events: frozenset[ChangeEvent] = ALL_EVENTS
    trigger_override: Trigger | None = None
    mode_override: Mode | None = None
    queue_override: str | None = None
    job_options_override: dict[str, Any] | None = None

    @property
    def label(self) -> str:
        """Human-readable identity used in log context."""
        if self.association:
            return f"{self.owner_group}#{self.association}"
        return self.owner_group

    def watches(self, changed_attributes: Iterable[str]) -> bool:
        """Check whether any changed attribute is watched by this rule."""
        if not self.watched_attributes:
            return True
        return not self.watched_attributes.isdisjoint(changed_attributes)

    def generate_keys(self, entity: Any) -> list[str]:
        """Run the key generator and normalize its result to a list."""
        generated = self.key_generator(entity)
        if generated is None:
            return []
        if isinstance(generated, str):
            return [generated]
        return [str(key) for key in generated]

    @classmethod
    def build(
        cls,
        owner_group: str,
        keys: KeyGenerator | Sequence[str] | str,
        association: str | None = None,
        attributes: Iterable[str] | None = None,
        condition: Condition | str | None = None,
        callback: CallbackPoint | str = CallbackPoint.POST_COMMIT,
        on: Iterable[ChangeEvent | str] | ChangeEvent | str | None = None,
        trigger: Trigger | str | None = None,
        mode: Mode | str | None = None,
        queue: str | None = None,
        job_options: dict[str, Any] | None = None,
    ) -> "Rule":
        """Create a rule from declaration-style arguments.

        Symbolic references are resolved here, once, so evaluation never
        has to inspect their type again.

        Args:
            owner_group: Name of the declaring group.
            keys: Key generator callable, or a static key / list of keys.
            association: Optional relation name on the owner model.
            attributes: Watched attribute names.
            condition: Callable predicate, or the name of a method looked
                up on the changed entity.
            callback: Callback point, as enum or its value.
            on: Event(s) to react to. None means all events.
            trigger: Optional trigger override.
            mode: Optional mode override.
            queue: Optional queue override.
            job_options: Optional job options override.

        Returns:
            A new immutable Rule.

        Raises:
            ValueError: If an enum value is unknown.
            TypeError: If ``keys`` or ``condition`` has an unsupported type.
        """
        if on is None:
            events = ALL_EVENTS
        elif isinstance(on, (str, ChangeEvent)):
            events = frozenset({ChangeEvent(on)})
        else:
            events = frozenset(ChangeEvent(event) for event in on)

        return cls(
            owner_group=owner_group,
            key_generator=_as_key_generator(keys),
            association=association,
            watched_attributes=frozenset(attributes or ()),
            condition=_as_condition(condition),
            callback_point=CallbackPoint(callback),
            events=events,
            trigger_override=Trigger(trigger) if trigger is not None else None,
            mode_override=Mode(mode) if mode is not None else None,
            queue_override=queue,
            job_options_override=dict(job_options) if job_options else None,
        )


def _as_key_generator(keys: KeyGenerator | Sequence[str] | str) -> KeyGenerator:
    if callable(keys):
        return keys
    if isinstance(keys, str):
        static = (keys,)
    elif isinstance(keys, (list, tuple)):
        static = tuple(keys)
    else:
        raise TypeError(f"keys must be a callable or a list of strings, got {type(keys).__name__}")

    def generate(_entity: Any) -> Sequence[str]:
        return list(static)

    return generate


def _as_condition(condition: Condition | str | None) -> Condition | None:
    if condition is None or callable(condition):
        return condition
    if isinstance(condition, str):
        method_name = condition

        def call_method(entity: Any) -> Any:
            return getattr(entity, method_name)()

        call_method.__name__ = method_name
        return call_method
    raise TypeError(f"condition must be a callable or a method name, got {type(condition).__name__}")
