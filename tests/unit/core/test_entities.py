"""Tests for rule and settings entities."""

import pytest

from cachesweeper.core.entities import (
    ALL_EVENTS,
    CallbackPoint,
    ChangeEvent,
    GlobalSettings,
    GroupSettings,
    Mode,
    Rule,
    Trigger,
)


class Product:
    def __init__(self, id: int, published: bool = True) -> None:
        self.id = id
        self.published = published

    def is_published(self) -> bool:
        return self.published


class TestEnums:
    """Tests for trigger and mode parsing."""

    def test_trigger_accepts_values_case_insensitively(self):
        assert Trigger("instant") is Trigger.INSTANT
        assert Trigger("DEFERRED") is Trigger.DEFERRED

    def test_request_is_alias_for_deferred(self):
        assert Trigger("request") is Trigger.DEFERRED

    def test_mode_accepts_values(self):
        assert Mode("async") is Mode.ASYNC
        assert Mode("Inline") is Mode.INLINE

    def test_unknown_values_raise(self):
        with pytest.raises(ValueError):
            Trigger("later")
        with pytest.raises(ValueError):
            Mode("parallel")


class TestRuleBuild:
    """Tests for Rule.build normalization."""

    def test_defaults(self):
        rule = Rule.build("ProductSweeper", keys=lambda p: [f"product:{p.id}"])

        assert rule.association is None
        assert rule.watched_attributes == frozenset()
        assert rule.condition is None
        assert rule.callback_point is CallbackPoint.POST_COMMIT
        assert rule.events == ALL_EVENTS
        assert rule.trigger_override is None
        assert rule.mode_override is None
        assert rule.queue_override is None
        assert rule.job_options_override is None

    def test_string_options_are_coerced(self):
        rule = Rule.build(
            "ProductSweeper",
            keys=["products"],
            attributes=["price"],
            callback="pre_commit",
            on=["create", "update"],
            trigger="deferred",
            mode="async",
            queue="low",
            job_options={"retry": 3},
        )

        assert rule.watched_attributes == frozenset({"price"})
        assert rule.callback_point is CallbackPoint.PRE_COMMIT
        assert rule.events == frozenset({ChangeEvent.CREATE, ChangeEvent.UPDATE})
        assert rule.trigger_override is Trigger.DEFERRED
        assert rule.mode_override is Mode.ASYNC
        assert rule.queue_override == "low"
        assert rule.job_options_override == {"retry": 3}

    def test_single_event(self):
        rule = Rule.build("ProductSweeper", keys=["products"], on="destroy")
        assert rule.events == frozenset({ChangeEvent.DESTROY})

    def test_static_keys(self):
        rule = Rule.build("ProductSweeper", keys=["products", "catalog"])
        assert rule.generate_keys(Product(1)) == ["products", "catalog"]

    def test_single_static_key(self):
        rule = Rule.build("ProductSweeper", keys="products")
        assert rule.generate_keys(Product(1)) == ["products"]

    def test_generator_returning_string(self):
        rule = Rule.build("ProductSweeper", keys=lambda p: f"product:{p.id}")
        assert rule.generate_keys(Product(7)) == ["product:7"]

    def test_generator_returning_none(self):
        rule = Rule.build("ProductSweeper", keys=lambda p: None)
        assert rule.generate_keys(Product(7)) == []

    def test_named_method_condition(self):
        rule = Rule.build("ProductSweeper", keys=["products"], condition="is_published")

        assert rule.condition(Product(1, published=True)) is True
        assert rule.condition(Product(1, published=False)) is False

    def test_callable_condition_is_kept(self):
        def condition(product):
            return product.id > 10

        rule = Rule.build("ProductSweeper", keys=["products"], condition=condition)
        assert rule.condition is condition

    def test_invalid_keys_type(self):
        with pytest.raises(TypeError):
            Rule.build("ProductSweeper", keys=42)

    def test_invalid_condition_type(self):
        with pytest.raises(TypeError):
            Rule.build("ProductSweeper", keys=["products"], condition=42)

    def test_invalid_event(self):
        with pytest.raises(ValueError):
            Rule.build("ProductSweeper", keys=["products"], on=["touch"])

    def test_watches(self):
        rule = Rule.build("ProductSweeper", keys=["products"], attributes=["price", "name"])

        assert rule.watches({"price"}) is True
        assert rule.watches({"stock"}) is False

    def test_empty_attributes_watch_everything(self):
        rule = Rule.build("ProductSweeper", keys=["products"])
        assert rule.watches({"anything"}) is True

    def test_label(self):
        assert Rule.build("ProductSweeper", keys=["k"]).label == "ProductSweeper"
        assert Rule.build("ProductSweeper", keys=["k"], association="variants").label == (
            "ProductSweeper#variants"
        )

    def test_rules_are_immutable(self):
        rule = Rule.build("ProductSweeper", keys=["products"])
        with pytest.raises(AttributeError):
            rule.owner_group = "Other"  # type: ignore[misc]


class TestGlobalSettings:
    """Tests for GlobalSettings."""

    def test_defaults(self):
        settings = GlobalSettings()

        assert settings.log_level == "info"
        assert settings.trigger is Trigger.INSTANT
        assert settings.mode is Mode.INLINE
        assert settings.queue == "default"
        assert settings.job_options == {}
        assert settings.batch_size == 100

    def test_configure(self):
        settings = GlobalSettings()
        settings.configure(trigger="deferred", mode="async", queue="low", batch_size=10)

        assert settings.trigger is Trigger.DEFERRED
        assert settings.mode is Mode.ASYNC
        assert settings.queue == "low"
        assert settings.batch_size == 10

    @pytest.mark.parametrize(
        "changes",
        [
            {"log_level": "verbose"},
            {"trigger": "sometime"},
            {"mode": "parallel"},
            {"batch_size": 0},
            {"batch_size": -5},
            {"batch_size": "10"},
            {"job_options": ["retry"]},
            {"colour": "blue"},
            {"queue": None},
            {"queue": ""},
            {"queue": 5},
        ],
    )
    def test_configure_rejects_invalid_values(self, changes):
        settings = GlobalSettings()
        with pytest.raises(ValueError):
            settings.configure(**changes)

    def test_invalid_configure_changes_nothing(self):
        settings = GlobalSettings()
        with pytest.raises(ValueError):
            settings.configure(trigger="deferred", batch_size=0)
        assert settings.trigger is Trigger.INSTANT

    def test_invalid_log_level_at_construction(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            GlobalSettings(log_level="loud")

    def test_warning_is_accepted_as_warn(self):
        settings = GlobalSettings()
        settings.configure(log_level="warning")
        assert settings.log_level == "warn"

    def test_reset(self):
        settings = GlobalSettings()
        settings.configure(trigger="deferred", job_options={"a": 1}, batch_size=5)
        settings.reset()

        assert settings.trigger is Trigger.INSTANT
        assert settings.job_options == {}
        assert settings.batch_size == 100

    def test_snapshot(self):
        snapshot = GlobalSettings(queue="low").snapshot()
        assert snapshot["queue"] == "low"
        assert snapshot["trigger"] == "instant"
        assert snapshot["mode"] == "inline"


class TestGlobalSettingsFromEnv:
    """Tests for environment-derived settings."""

    def test_empty_environment_uses_defaults(self):
        settings = GlobalSettings.from_env({})
        assert settings.snapshot() == GlobalSettings().snapshot()

    def test_reads_overrides(self):
        settings = GlobalSettings.from_env(
            {
                "CACHESWEEPER_LOG_LEVEL": "ERROR",
                "CACHESWEEPER_TRIGGER": "deferred",
                "CACHESWEEPER_MODE": "async",
                "CACHESWEEPER_QUEUE": "cache",
                "CACHESWEEPER_BATCH_SIZE": "25",
            }
        )

        assert settings.log_level == "error"
        assert settings.trigger is Trigger.DEFERRED
        assert settings.mode is Mode.ASYNC
        assert settings.queue == "cache"
        assert settings.batch_size == 25

    @pytest.mark.parametrize(
        ("app_env", "expected"),
        [("development", "debug"), ("production", "warn"), ("staging", "info")],
    )
    def test_log_level_follows_app_env(self, app_env, expected):
        assert GlobalSettings.from_env({"APP_ENV": app_env}).log_level == expected

    def test_explicit_level_wins_over_app_env(self):
        settings = GlobalSettings.from_env(
            {"APP_ENV": "production", "CACHESWEEPER_LOG_LEVEL": "debug"}
        )
        assert settings.log_level == "debug"

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError, match="BATCH_SIZE"):
            GlobalSettings.from_env({"CACHESWEEPER_BATCH_SIZE": "many"})


class TestGroupSettings:
    """Tests for GroupSettings.from_options."""

    def test_empty(self):
        assert GroupSettings.from_options(None) == GroupSettings()

    def test_coerces_values(self):
        group = GroupSettings.from_options(
            {"trigger": "deferred", "mode": "async", "queue": "low", "job_options": {"retry": 1}}
        )

        assert group.trigger is Trigger.DEFERRED
        assert group.mode is Mode.ASYNC
        assert group.queue == "low"
        assert group.job_options == {"retry": 1}

    def test_unknown_option(self):
        with pytest.raises(ValueError, match="Unknown group option"):
            GroupSettings.from_options({"batch_size": 5})

    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="Invalid mode"):
            GroupSettings.from_options({"mode": "later"})

    def test_empty_queue(self):
        with pytest.raises(ValueError, match="queue must be a non-empty string"):
            GroupSettings.from_options({"queue": " "})
