"""Change notifications delivered by a change source."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from cachesweeper.core.entities.rule import ChangeEvent


@dataclass(frozen=True)
class ChangeNotification:
    """One entity change, as seen by the host ORM.

    Attributes:
        entity: The changed entity.
        changed_attributes: Names of the attributes that changed.
        event: The lifecycle transition.
        parents: For association rules, the owner entities related to
            ``entity`` at the time of the change. None for direct rules.
    """

    entity: Any
    changed_attributes: frozenset[str]
    event: ChangeEvent
    parents: Sequence[Any] | None = None

    @property
    def entity_label(self) -> str:
        entity_id = getattr(self.entity, "id", "unknown")
        return f"{type(self.entity).__name__}#{entity_id}"
