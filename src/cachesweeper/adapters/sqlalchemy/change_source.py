"""SQLAlchemy change source built on session events.

Changes are captured in ``after_flush``, while the session still holds
the pre-flush state and attribute history. Pre-commit hooks are called
right there; post-commit hooks are queued on ``session.info`` and
called from ``after_commit``, or dropped on rollback.

Example:
    from sqlalchemy.orm import Session

    sweeper = SweeperService(backend=RedisCacheBackend(REDIS_URL))
    sweeper.attach(SQLAlchemyChangeSource(Session))
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import event, inspect, select
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Session, object_session

from cachesweeper.core.entities.change import ChangeNotification
from cachesweeper.core.entities.rule import CallbackPoint, ChangeEvent
from cachesweeper.core.interfaces.change_source import AssociationBinding, ChangeHandler
from cachesweeper.log import log_error, log_event

logger = logging.getLogger(__name__)

POST_COMMIT_KEY = "cachesweeper.post_commit"
DELETED_PARENTS_KEY = "cachesweeper.deleted_parents"


@dataclass(eq=False)
class _Hook:
    model: type
    handler: ChangeHandler
    callback_point: CallbackPoint
    events: frozenset[ChangeEvent]
    association: AssociationBinding | None = None


class SQLAlchemyChangeSource:
    """Delivers ORM entity changes to cachesweeper handlers."""

    def __init__(self, session_target: Any = Session) -> None:
        """Initialize the change source.

        Args:
            session_target: What to listen on: the ``Session`` class (all
                sessions), a ``sessionmaker``, a Session subclass or a
                single session instance.
        """
        self._target = session_target
        self._hooks: list[_Hook] = []
        self._installed = False

    @property
    def hooks_count(self) -> int:
        return len(self._hooks)

    def attach(
        self,
        model: Any,
        handler: ChangeHandler,
        callback_point: CallbackPoint,
        events: frozenset[ChangeEvent],
        association: AssociationBinding | None = None,
    ) -> None:
        try:
            inspect(model)
        except NoInspectionAvailable as e:
            raise LookupError(f"{model!r} is not a mapped class") from e

        self._install()
        self._hooks.append(
            _Hook(
                model=model,
                handler=handler,
                callback_point=callback_point,
                events=frozenset(events),
                association=association,
            )
        )

    def resolve_association(self, owner_model: Any, name: str) -> AssociationBinding:
        try:
            mapper = inspect(owner_model)
        except NoInspectionAvailable as e:
            raise LookupError(f"{owner_model!r} is not a mapped class") from e

        relationship = mapper.relationships.get(name)
        if relationship is None:
            raise LookupError(f"{mapper.class_.__name__} has no relationship {name!r}")

        owner_attr = getattr(owner_model, name)
        uselist = relationship.uselist

        def resolve_parents(entity: Any) -> Sequence[Any]:
            session = object_session(entity)
            if session is None:
                return []
            criterion = owner_attr.contains(entity) if uselist else owner_attr == entity
            with session.no_autoflush:
                return list(session.scalars(select(owner_model).where(criterion)))

        return AssociationBinding(
            owner_model=owner_model,
            name=name,
            related_model=relationship.mapper.class_,
            resolve_parents=resolve_parents,
        )

    def detach(self) -> None:
        """Remove the session listeners and forget all hooks."""
        if self._installed:
            event.remove(self._target, "before_flush", self._before_flush)
            event.remove(self._target, "after_flush", self._after_flush)
            event.remove(self._target, "after_commit", self._after_commit)
            event.remove(self._target, "after_rollback", self._after_rollback)
            self._installed = False
        self._hooks.clear()

    def _install(self) -> None:
        if self._installed:
            return
        event.listen(self._target, "before_flush", self._before_flush)
        event.listen(self._target, "after_flush", self._after_flush)
        event.listen(self._target, "after_commit", self._after_commit)
        event.listen(self._target, "after_rollback", self._after_rollback)
        self._installed = True

    def _before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        # Parents of rows about to be deleted can only be found before the delete.
        hooks = [
            hook
            for hook in self._hooks
            if hook.association is not None and ChangeEvent.DESTROY in hook.events
        ]
        if not hooks or not session.deleted:
            return
        resolved = session.info.setdefault(DELETED_PARENTS_KEY, {})
        for obj in list(session.deleted):
            for hook in hooks:
                if isinstance(obj, hook.model):
                    resolved[(id(hook), id(obj))] = self._resolve_parents(hook, obj)

    def _after_flush(self, session: Session, flush_context: Any) -> None:
        changes = _collect_changes(session)
        if not changes:
            return
        deleted_parents = session.info.pop(DELETED_PARENTS_KEY, {})
        post_commit = session.info.setdefault(POST_COMMIT_KEY, [])

        for obj, change_event, changed in changes:
            for hook in self._hooks:
                if change_event not in hook.events or not isinstance(obj, hook.model):
                    continue
                parents = None
                if hook.association is not None:
                    if change_event is ChangeEvent.DESTROY:
                        parents = deleted_parents.get((id(hook), id(obj)), [])
                    else:
                        parents = self._resolve_parents(hook, obj)
                notification = ChangeNotification(
                    entity=obj,
                    changed_attributes=changed,
                    event=change_event,
                    parents=parents,
                )
                if hook.callback_point is CallbackPoint.PRE_COMMIT:
                    _deliver(hook, notification)
                else:
                    post_commit.append((hook, notification))

    def _after_commit(self, session: Session) -> None:
        session.info.pop(DELETED_PARENTS_KEY, None)
        pending = session.info.pop(POST_COMMIT_KEY, [])
        for hook, notification in pending:
            _deliver(hook, notification)

    def _after_rollback(self, session: Session) -> None:
        session.info.pop(DELETED_PARENTS_KEY, None)
        dropped = session.info.pop(POST_COMMIT_KEY, [])
        if dropped:
            log_event(
                logger,
                "debug",
                "Transaction rolled back; dropping post-commit changes",
                dropped=len(dropped),
            )

    def _resolve_parents(self, hook: _Hook, obj: Any) -> list[Any]:
        assert hook.association is not None
        try:
            return list(hook.association.resolve_parents(obj))
        except Exception as e:
            log_error(
                logger,
                e,
                model=type(obj).__name__,
                association=hook.association.name,
                error_type="association_resolution_error",
            )
            return []


def _changed_attributes(obj: Any) -> frozenset[str]:
    state = inspect(obj)
    return frozenset(attr.key for attr in state.attrs if attr.history.has_changes())


def _collect_changes(session: Session) -> list[tuple[Any, ChangeEvent, frozenset[str]]]:
    changes: list[tuple[Any, ChangeEvent, frozenset[str]]] = []
    for obj in session.new:
        changes.append((obj, ChangeEvent.CREATE, _changed_attributes(obj)))
    for obj in session.dirty:
        changed = _changed_attributes(obj)
        if changed:
            changes.append((obj, ChangeEvent.UPDATE, changed))
    for obj in session.deleted:
        changes.append((obj, ChangeEvent.DESTROY, frozenset()))
    return changes


def _deliver(hook: _Hook, notification: ChangeNotification) -> None:
    try:
        hook.handler(notification)
    except Exception as e:
        log_error(
            logger,
            e,
            model=hook.model.__name__,
            entity=notification.entity_label,
            error_type="change_handler_error",
        )
