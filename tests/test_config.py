from __future__ import annotations

import asyncio
import gc

import pytest

from treelog import (
    ConfigError,
    LogLevel,
    adispose,
    areset,
    configure,
    dispose,
    get_config,
    get_logger,
    get_meta_logger,
    reset,
)


class ClosableSink:
    def __init__(self) -> None:
        self.records: list = []
        self.closed = False

    def __call__(self, record) -> None:
        self.records.append(record)

    def close(self) -> None:
        self.closed = True


class AsyncClosableSink(ClosableSink):
    async def aclose(self) -> None:
        await asyncio.sleep(0)
        self.closed = True


def test_configure_attaches_sinks_and_filters(records) -> None:
    configure(
        {
            "sinks": {"memory": records.append},
            "filters": {"has_user": lambda record: "user" in record.properties},
            "loggers": [
                {"category": "my-app", "sinks": ["memory"], "level": "info"},
                {"category": ["my-app", "auth"], "filters": ["has_user"], "level": "debug"},
                {"category": ["treelog", "meta"], "level": None},
            ],
        }
    )
    app = get_logger("my-app")
    auth = get_logger(["my-app", "auth"])

    app.debug("dropped")
    app.info("kept")
    auth.debug("anonymous")
    auth.debug("login by {user}", user="alice")

    assert [r.message for r in records] == [("kept",), ("login by ", "alice", "")]
    assert get_config() is not None


def test_configured_loggers_survive_without_outside_references(records) -> None:
    configure(
        {
            "sinks": {"memory": records.append},
            "loggers": [
                {"category": ["my-app", "worker"], "sinks": ["memory"]},
                {"category": ["treelog", "meta"], "level": None},
            ],
        }
    )
    gc.collect()

    get_logger(["my-app", "worker"]).info("still configured")

    assert len(records) == 1


def test_configure_sets_parent_sinks_and_default_properties(records) -> None:
    seen: list = []
    configure(
        {
            "sinks": {"memory": records.append, "other": seen.append},
            "loggers": [
                {"category": [], "sinks": ["other"]},
                {
                    "category": "my-app",
                    "sinks": ["memory"],
                    "parent_sinks": "override",
                    "properties": {"service": "api", "region": "eu"},
                },
            ],
        }
    )

    get_logger("my-app").info("hello", region="us")

    assert [r.properties for r in records] == [{"service": "api", "region": "us"}]
    # Only the configuration notice from the meta logger reached the root sink.
    assert [r.category for r in seen] == [("treelog", "meta")]


def test_configure_installs_named_property_transformers(records) -> None:
    configure(
        {
            "sinks": {"memory": records.append},
            "property_transformers": {
                "redact": lambda raw: {k: "***" if k == "password" else v for k, v in raw.properties.items()}
            },
            "loggers": [
                {"category": "my-app", "sinks": ["memory"], "property_transformers": ["redact"]},
                {"category": ["treelog", "meta"], "level": None},
            ],
        }
    )

    get_logger("my-app").info("login", user="alice", password="hunter2")

    assert records[0].properties == {"user": "alice", "password": "***"}


def test_configure_twice_requires_reset_flag(records) -> None:
    config = {
        "sinks": {"memory": records.append},
        "loggers": [{"category": ["treelog", "meta"], "level": None}],
    }
    configure(config)

    with pytest.raises(ConfigError, match="Already configured"):
        configure(config)

    configure({**config, "reset": True})


@pytest.mark.parametrize(
    ("logger_config", "message"),
    [
        ({"category": "my-app", "sinks": ["missing"]}, "Sink not found: missing."),
        ({"category": "my-app", "filters": ["missing"]}, "Filter not found: missing."),
        (
            {"category": "my-app", "property_transformers": ["missing"]},
            "Property transformer not found: missing.",
        ),
        ({"category": "my-app", "level": "loud"}, "Invalid log level"),
        ({"category": "my-app", "parent_sinks": "replace"}, "Invalid parent_sinks"),
    ],
)
def test_invalid_configuration_resets_and_raises(records, logger_config, message) -> None:
    with pytest.raises(ConfigError, match=message):
        configure(
            {
                "sinks": {"memory": records.append},
                "loggers": [{"category": "ok", "sinks": ["memory"]}, logger_config],
            }
        )

    assert get_config() is None
    assert get_logger("ok").sinks == []


def test_meta_logger_gets_console_sink_unless_configured(records) -> None:
    configure({"loggers": [{"category": "my-app"}]})
    assert len(get_meta_logger().sinks) == 1

    configure(
        {
            "reset": True,
            "sinks": {"memory": records.append},
            "loggers": [{"category": "treelog", "sinks": ["memory"]}],
        }
    )
    assert get_meta_logger().sinks == []
    assert len(records) == 1
    notice = records[0]
    assert notice.level is LogLevel.INFO
    assert notice.category == ("treelog", "meta")
    assert notice.properties["meta_logger_category"] == ("treelog", "meta")


def test_dispose_closes_sinks() -> None:
    sink = ClosableSink()
    configure(
        {
            "sinks": {"closable": sink},
            "loggers": [{"category": ["treelog", "meta"], "sinks": ["closable"], "level": "error"}],
        }
    )

    dispose()

    assert sink.closed


def test_reconfiguring_closes_only_dropped_sinks() -> None:
    kept = ClosableSink()
    dropped = ClosableSink()
    meta = {"category": ["treelog", "meta"], "level": None}
    configure({"sinks": {"kept": kept, "dropped": dropped}, "loggers": [meta]})

    configure({"reset": True, "sinks": {"kept": kept}, "loggers": [meta]})

    assert dropped.closed
    assert not kept.closed


def test_reset_disposes_and_clears_tree() -> None:
    sink = ClosableSink()
    configure(
        {
            "sinks": {"closable": sink},
            "loggers": [
                {"category": "my-app", "sinks": ["closable"]},
                {"category": ["treelog", "meta"], "level": None},
            ],
        }
    )

    reset()

    assert sink.closed
    assert get_config() is None
    assert get_logger("my-app").sinks == []
    configure({"loggers": [{"category": ["treelog", "meta"], "level": None}]})


def test_async_disposal_awaits_aclose() -> None:
    async_sink = AsyncClosableSink()
    sync_sink = ClosableSink()
    configure(
        {
            "sinks": {"async": async_sink, "sync": sync_sink},
            "loggers": [{"category": ["treelog", "meta"], "level": None}],
        }
    )

    asyncio.run(adispose())

    assert async_sink.closed
    assert sync_sink.closed


def test_areset_clears_configuration() -> None:
    sink = AsyncClosableSink()
    configure(
        {
            "sinks": {"async": sink},
            "loggers": [{"category": "my-app", "sinks": ["async"]}, {"category": ["treelog", "meta"], "level": None}],
        }
    )

    asyncio.run(areset())

    assert sink.closed
    assert get_config() is None
    assert get_logger("my-app").sinks == []


def test_failed_reconfigure_still_disposes_reused_sinks() -> None:
    sink = ClosableSink()
    meta = {"category": ["treelog", "meta"], "level": None}
    configure({"sinks": {"shared": sink}, "loggers": [meta]})

    with pytest.raises(ConfigError, match="Sink not found"):
        configure(
            {
                "reset": True,
                "sinks": {"shared": sink},
                "loggers": [{"category": "my-app", "sinks": ["missing"]}, meta],
            }
        )
    assert not sink.closed

    reset()

    assert sink.closed


def test_failed_first_configure_still_disposes_sinks() -> None:
    sink = ClosableSink()

    with pytest.raises(ConfigError, match="Invalid log level"):
        configure({"sinks": {"closable": sink}, "loggers": [{"category": "my-app", "level": "loud"}]})

    dispose()

    assert sink.closed
