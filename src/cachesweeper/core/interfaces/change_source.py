"""Change source interface."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from cachesweeper.core.entities.change import ChangeNotification
from cachesweeper.core.entities.rule import CallbackPoint, ChangeEvent

ChangeHandler = Callable[[ChangeNotification], None]


@dataclass(frozen=True)
class AssociationBinding:
    """A relation resolved on an owner model.

    Attributes:
        owner_model: The model that declares the relation.
        name: The relation name.
        related_model: The model on the other side of the relation,
            whose changes are watched.
        resolve_parents: Reverse lookup returning the owner entities
            currently related to a given related entity.
    """

    owner_model: Any
    name: str
    related_model: Any
    resolve_parents: Callable[[Any], Sequence[Any]]


class IChangeSource(Protocol):
    """Contract for the host ORM's change tracking."""

    def attach(
        self,
        model: Any,
        handler: ChangeHandler,
        callback_point: CallbackPoint,
        events: frozenset[ChangeEvent],
        association: AssociationBinding | None = None,
    ) -> None:
        """Call ``handler`` for each qualifying change of ``model``.

        When ``association`` is given, ``model`` is its related model and
        each notification carries the resolved parents.
        """
        ...

    def resolve_association(self, owner_model: Any, name: str) -> AssociationBinding:
        """Resolve a relation declared on ``owner_model``.

        Raises:
            LookupError: If the model has no such relation.
        """
        ...
