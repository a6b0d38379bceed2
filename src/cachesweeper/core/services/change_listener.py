"""Evaluates invalidation rules against entity change notifications."""

import functools
import logging
from dataclasses import dataclass
from typing import Any

from cachesweeper.core.entities.change import ChangeNotification
from cachesweeper.core.entities.rule import ChangeEvent, Rule
from cachesweeper.core.interfaces.change_source import AssociationBinding, IChangeSource
from cachesweeper.core.services.config_resolver import ConfigResolver
from cachesweeper.core.services.dispatcher import InvalidationDispatcher
from cachesweeper.core.services.rule_registry import RuleRegistry
from cachesweeper.log import log_error, log_event, timed

logger = logging.getLogger(__name__)


@dataclass
class AttachReport:
    """Counts from one :meth:`ChangeListener.attach` pass."""

    group_count: int = 0
    rule_count: int = 0
    attached: int = 0
    skipped: int = 0
    error_count: int = 0


class ChangeListener:
    """Hooks registered rules into a change source and evaluates them.

    For each notification a rule is evaluated in order: event filter,
    watched-attribute filter (skipped for destroy events), condition,
    related-owner check for association rules, key generation from the
    changed entity, then dispatch. A failing rule
    is logged and never affects sibling rules or the host transaction.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        dispatcher: InvalidationDispatcher,
        resolver: ConfigResolver | None = None,
        change_source: IChangeSource | None = None,
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._resolver = resolver
        self._change_source = change_source
        # id(rule) of rules already attached or permanently skipped
        self._handled: dict[int, Rule] = {}

    @property
    def change_source(self) -> IChangeSource | None:
        return self._change_source

    def attach(self, change_source: IChangeSource | None = None) -> AttachReport:
        """Attach every registered rule not attached yet.

        Safe to call repeatedly, e.g. after the host reloads code: rules
        already attached are not attached twice, and rules whose
        association cannot be resolved are skipped for good.

        Raises:
            RuntimeError: If no change source is available.
        """
        source = change_source or self._change_source
        if source is None:
            raise RuntimeError("No change source configured")
        self._change_source = source

        report = AttachReport()
        log_event(logger, "info", "Initialization: Starting model attachment process")
        with timed(logger, "attach_rules") as perf:
            for owner_group in self._registry.groups():
                report.group_count += 1
                self._validate_group_modes(owner_group)
                model = self._registry.model_for(owner_group)
                rules = self._registry.rules_for(owner_group)
                log_event(
                    logger,
                    "info",
                    f"Initialization: Processing group: {owner_group}",
                    owner_group=owner_group,
                    rule_count=len(rules),
                )
                for rule in rules:
                    report.rule_count += 1
                    if id(rule) in self._handled:
                        continue
                    self._attach_rule(source, model, rule, report)
            perf.update(
                group_count=report.group_count,
                rule_count=report.rule_count,
                error_count=report.error_count,
            )

        log_event(
            logger,
            "info",
            "Initialization: Model attachment completed",
            group_count=report.group_count,
            rule_count=report.rule_count,
            attached=report.attached,
            skipped=report.skipped,
            error_count=report.error_count,
        )
        return report

    def _attach_rule(self, source: IChangeSource, model: Any, rule: Rule, report: AttachReport) -> None:
        if model is None:
            log_event(
                logger,
                "warn",
                f"Group has no model: {rule.owner_group}",
                owner_group=rule.owner_group,
            )
            report.skipped += 1
            self._handled[id(rule)] = rule
            return

        binding: AssociationBinding | None = None
        target_model = model
        try:
            if rule.association:
                try:
                    binding = source.resolve_association(model, rule.association)
                except LookupError:
                    log_event(
                        logger,
                        "warn",
                        f"Association not found: {_model_name(model)}#{rule.association}",
                        owner_group=rule.owner_group,
                        parent_model=_model_name(model),
                        association=rule.association,
                    )
                    report.skipped += 1
                    self._handled[id(rule)] = rule
                    return
                target_model = binding.related_model

            source.attach(
                target_model,
                functools.partial(self.handle, rule),
                rule.callback_point,
                rule.events,
                binding,
            )
        except LookupError as e:
            log_event(
                logger,
                "warn",
                f"Model cannot be watched: {_model_name(target_model)} ({e})",
                owner_group=rule.owner_group,
                model=_model_name(target_model),
            )
            report.skipped += 1
            self._handled[id(rule)] = rule
            return
        except Exception as e:
            report.error_count += 1
            self._handled[id(rule)] = rule
            log_error(
                logger,
                e,
                owner_group=rule.owner_group,
                association=rule.association,
                error_type="attachment_error",
            )
            return

        self._handled[id(rule)] = rule
        report.attached += 1
        log_event(
            logger,
            "info",
            f"Initialization: Attaching {'association' if binding else 'direct model'} callback: "
            f"{rule.label} -> {_model_name(target_model)}",
            owner_group=rule.owner_group,
            model=_model_name(target_model),
            association=rule.association,
            attributes=sorted(rule.watched_attributes),
            callback=rule.callback_point.value,
            events=sorted(event.value for event in rule.events),
        )

    def _validate_group_modes(self, owner_group: str) -> None:
        if self._resolver is None:
            return
        self._resolver.validate_mode(
            self._registry.settings_for(owner_group).mode, f"group {owner_group}"
        )
        for rule in self._registry.rules_for(owner_group):
            self._resolver.validate_mode(rule.mode_override, f"rule {rule.label}")

    def handle(self, rule: Rule, change: ChangeNotification) -> list[str] | None:
        """Evaluate ``rule`` against one change and dispatch its keys.

        Returns:
            The dispatched keys, or None if the rule did not fire.
        """
        try:
            with timed(logger, "rule_execution", rule=rule.label, entity=change.entity_label):
                return self._evaluate(rule, change)
        except Exception as e:
            log_error(
                logger,
                e,
                rule=rule.label,
                entity=change.entity_label,
                event=change.event.value,
                error_type="rule_execution_error",
            )
            return None

    def _evaluate(self, rule: Rule, change: ChangeNotification) -> list[str] | None:
        if not self._registry.is_registered(rule):
            # Dropped by a re-declaration of its group; its hook is stale.
            return None
        if change.event not in rule.events:
            return None

        _log_rule(rule, change, "started", changed_attributes=sorted(change.changed_attributes))

        if rule.watched_attributes and change.event is not ChangeEvent.DESTROY:
            matched = rule.watches(change.changed_attributes)
            _log_rule(
                rule,
                change,
                f"attribute_check: {matched}",
                watched_attributes=sorted(rule.watched_attributes),
                relevant_changes=sorted(rule.watched_attributes & change.changed_attributes),
            )
            if not matched:
                return None

        if rule.condition is not None:
            result = bool(rule.condition(change.entity))
            _log_rule(rule, change, f"condition_check: {result}", condition_result=result)
            if not result:
                return None

        if rule.association and not self._has_parents(rule, change):
            return None

        keys = self._generate_keys(rule, change.entity, change)
        if keys is None:
            return None

        self._dispatcher.invalidate(keys, rule)
        _log_rule(rule, change, "completed", cache_keys_processed=len(keys))
        return keys

    def _has_parents(self, rule: Rule, change: ChangeNotification) -> bool:
        parent_count = len(change.parents or ())
        _log_rule(
            rule,
            change,
            "association_processing",
            parent_count=parent_count,
            association=rule.association,
        )
        return parent_count > 0

    def _generate_keys(self, rule: Rule, entity: Any, change: ChangeNotification) -> list[str] | None:
        try:
            keys = rule.generate_keys(entity)
        except Exception as e:
            log_error(
                logger,
                e,
                rule=rule.label,
                entity=f"{type(entity).__name__}#{getattr(entity, 'id', 'unknown')}",
                error_type="key_generation_error",
            )
            return None
        _log_rule(rule, change, "keys_generated", keys_count=len(keys), keys=keys)
        return keys


def _model_name(model: Any) -> str:
    return getattr(model, "__name__", str(model))


def _log_rule(rule: Rule, change: ChangeNotification, result: str, **context: Any) -> None:
    log_event(
        logger,
        "debug",
        f"Rule execution: {rule.owner_group} -> {change.entity_label}: {result}",
        **{
            **context,
            "owner_group": rule.owner_group,
            "entity": change.entity_label,
            "event": change.event.value,
            "association": rule.association,
        },
    )
