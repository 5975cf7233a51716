from __future__ import annotations

import threading

import pytest

from scriptplug.runtime.dispatch import SingleThreadDispatcher, run_immediately
from scriptplug.types import InterpreterResult, RunnerState
from tests.stubs import (
    CriticalSectionMonitor,
    FlakyFactory,
    RecordingDispatcher,
    SlowInterpreter,
    StubRunner,
)


def _runner(error_reporter, plugins_root, factory=None, environment=None):
    return StubRunner(
        error_reporter,
        environment if environment is not None else {},
        plugins_root=plugins_root,
        interpreter_factory=factory,
    )


def _messages(records):
    return [record.message for record in records]


@pytest.mark.parametrize(
    "files, expected",
    [
        ({"plugin.stub": "// out hi\n"}, True),
        ({"nested/plugin.stub": "// out hi\n"}, False),
        ({"plugin.py": "print('hi')\n"}, False),
        ({}, False),
    ],
)
def test_can_run_plugin_requires_entry_script_at_root(
    error_reporter, plugins_root, make_plugin, files, expected
):
    plugin = make_plugin("candidate", files)
    runner = _runner(error_reporter, plugins_root)

    assert runner.can_run_plugin(plugin) is expected
    assert runner.can_run_plugin(str(plugin)) is expected


def test_successful_run_reports_nothing(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("ok", {"plugin.stub": "// out fine\n"})
    factory = FlakyFactory(failures=0)
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(plugin, "ok", {"answer": 42}, run_immediately)

    assert not error_reporter.has_errors()
    interpreter = factory.created[0]
    assert interpreter.bindings == {"answer": 42}
    assert interpreter.output == "fine"
    assert runner.state is RunnerState.READY


def test_failed_construction_reports_once_and_retries(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("retry", {"plugin.stub": "// out second try\n"})
    factory = FlakyFactory(failures=1)
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(plugin, "retry", {}, run_immediately)

    records = error_reporter.loading_errors("retry")
    assert _messages(records) == ["Failed to init stub interpreter"]
    assert isinstance(records[0].exception, RuntimeError)
    assert error_reporter.running_errors("retry") == []
    assert runner.state is RunnerState.UNINITIALIZED

    error_reporter.clear()
    runner.run_plugin(plugin, "retry", {}, run_immediately)

    assert factory.calls == 2
    assert not error_reporter.has_errors()
    assert runner.state is RunnerState.READY


def test_interpreter_is_created_once_and_reused(
    error_reporter, plugins_root, make_plugin
):
    first = make_plugin("first", {"plugin.stub": "// out 1\n"})
    second = make_plugin("second", {"plugin.stub": "// out 2\n"})
    factory = FlakyFactory(failures=0)
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(first, "first", {}, run_immediately)
    runner.run_plugin(second, "second", {}, run_immediately)

    assert factory.calls == 1
    assert factory.created[0].sources == ["// out 1\n", "// out 2\n"]


def test_output_is_cleared_between_runs(
    error_reporter, plugins_root, make_plugin
):
    foo = make_plugin("foo", {"plugin.stub": "// out foo\n// fail\n"})
    bar = make_plugin("bar", {"plugin.stub": "// out bar\n// fail\n"})
    runner = _runner(error_reporter, plugins_root, FlakyFactory(failures=0))

    runner.run_plugin(foo, "foo", {}, run_immediately)
    runner.run_plugin(bar, "bar", {}, run_immediately)

    assert _messages(error_reporter.running_errors("foo")) == ["foo"]
    assert _messages(error_reporter.running_errors("bar")) == ["bar"]
    assert error_reporter.loading_errors("foo") == []


def test_state_is_evaluating_while_script_runs(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("stateful", {"plugin.stub": "// out x\n"})
    observed = []
    runner = None

    def behaviour(interpreter, source):
        observed.append(runner.state)
        return InterpreterResult.SUCCESS

    runner = _runner(
        error_reporter, plugins_root, FlakyFactory(0, behaviour=behaviour)
    )
    runner.run_plugin(plugin, "stateful", {}, run_immediately)

    assert observed == [RunnerState.EVALUATING]
    assert runner.state is RunnerState.READY


def test_plugin_path_is_exported_to_environment(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("env", {"plugin.stub": "// out x\n"})
    environment = {"HOME": "/home/someone"}
    runner = _runner(
        error_reporter, plugins_root, FlakyFactory(0), environment
    )

    runner.run_plugin(plugin, "env", {}, run_immediately)

    assert environment["PLUGIN_PATH"] == str(plugin)
    assert environment["HOME"] == "/home/someone"


def test_binding_failure_is_a_loading_error_and_skips_dispatch(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("badbind", {"plugin.stub": "// out x\n"})
    dispatcher = RecordingDispatcher()
    runner = _runner(error_reporter, plugins_root, FlakyFactory(0))

    runner.run_plugin(plugin, "badbind", {"not valid": 1}, dispatcher)

    assert dispatcher.units == []
    records = error_reporter.loading_errors("badbind")
    assert _messages(records) == ["Failed to init stub interpreter"]
    assert isinstance(records[0].exception, ValueError)
    assert error_reporter.running_errors("badbind") == []


def test_evaluation_waits_for_dispatcher(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("later", {"plugin.stub": "// out later\n"})
    factory = FlakyFactory(failures=0)
    dispatcher = RecordingDispatcher()
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(plugin, "later", {"value": 1}, dispatcher)

    assert len(dispatcher.units) == 1
    assert factory.created[0].sources == []
    assert runner.state is RunnerState.READY

    dispatcher.run_pending()

    assert factory.created[0].sources == ["// out later\n"]
    assert not error_reporter.has_errors()


def test_bindings_are_restored_for_each_deferred_evaluation(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("twice", {"plugin.stub": "// out x\n"})
    factory = FlakyFactory(failures=0)
    seen = []

    def behaviour(interpreter, source):
        seen.append(interpreter.bindings["run"])
        return InterpreterResult.SUCCESS

    factory.behaviour = behaviour
    dispatcher = RecordingDispatcher()
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(plugin, "twice", {"run": "first"}, dispatcher)
    runner.run_plugin(plugin, "twice", {"run": "second"}, dispatcher)
    dispatcher.run_pending()

    assert seen == ["first", "second"]


def test_unreadable_script_is_a_loading_error(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("vanishing", {"plugin.stub": "// out x\n"})
    dispatcher = RecordingDispatcher()
    runner = _runner(error_reporter, plugins_root, FlakyFactory(0))

    runner.run_plugin(plugin, "vanishing", {}, dispatcher)
    (plugin / "plugin.stub").unlink()
    dispatcher.run_pending()

    assert _messages(error_reporter.loading_errors("vanishing")) == [
        f"Error reading script file: {plugin / 'plugin.stub'}"
    ]
    assert error_reporter.running_errors("vanishing") == []
    assert runner.state is RunnerState.READY


def test_import_error_is_a_linking_error(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("linking", {"plugin.stub": "// out x\n"})

    def behaviour(interpreter, source):
        raise ImportError("no module named nowhere")

    runner = _runner(
        error_reporter, plugins_root, FlakyFactory(0, behaviour=behaviour)
    )
    runner.run_plugin(plugin, "linking", {}, run_immediately)

    records = error_reporter.loading_errors("linking")
    assert _messages(records) == [
        f"Error linking script file: {plugin / 'plugin.stub'}"
    ]
    assert isinstance(records[0].exception, ImportError)
    assert error_reporter.running_errors("linking") == []


def test_unexpected_exception_is_a_running_error(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("boom", {"plugin.stub": "// out partial\n"})

    def behaviour(interpreter, source):
        interpreter.write("partial")
        raise RuntimeError("exploded")

    runner = _runner(
        error_reporter, plugins_root, FlakyFactory(0, behaviour=behaviour)
    )
    runner.run_plugin(plugin, "boom", {}, run_immediately)

    (record,) = error_reporter.running_errors("boom")
    assert record.message.startswith("partial")
    assert "RuntimeError: exploded" in record.message
    assert error_reporter.loading_errors("boom") == []


def test_missing_classpath_entry_is_reported_but_run_continues(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin(
        "partial",
        {
            "plugin.stub": """\
                // add-to-classpath $PLUGIN_PATH/missing
                // add-to-classpath $PLUGIN_PATH/src
                // out ran
                """,
            "src/helper.txt": "x",
        },
    )
    factory = FlakyFactory(failures=0)
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(plugin, "partial", {}, run_immediately)

    assert _messages(error_reporter.loading_errors("partial")) == [
        "Couldn't find dependency '$PLUGIN_PATH/missing'"
    ]
    assert error_reporter.running_errors("partial") == []
    interpreter = factory.created[0]
    assert interpreter.output == "ran"
    assert interpreter.classpath.entries[-1] == str(plugin / "src")


def test_unknown_plugin_dependency_is_reported_but_run_continues(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin(
        "needy", {"plugin.stub": "// depends-on ghost\n// out ran\n"}
    )
    factory = FlakyFactory(failures=0)
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(plugin, "needy", {}, run_immediately)

    assert _messages(error_reporter.loading_errors("needy")) == [
        "Couldn't find plugin dependency 'ghost'"
    ]
    assert factory.created[0].output == "ran"


def test_missing_entry_script_is_a_loading_error(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("empty", {})
    factory = FlakyFactory(failures=0)
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(plugin, "empty", {}, run_immediately)

    assert _messages(error_reporter.loading_errors("empty")) == [
        f"Couldn't find plugin.stub in {plugin}"
    ]
    assert factory.calls == 0


def test_classpath_excludes_own_libraries_and_includes_others(
    error_reporter, plugins_root, make_plugin, make_zip_library
):
    plugin = make_plugin("self", {"plugin.stub": "// out x\n"})
    make_zip_library(plugin / "lib" / "own.zip", {"own.py": "X = 1"})
    make_plugin("neighbour", {})
    neighbour_lib = make_zip_library(
        plugins_root / "neighbour" / "lib" / "n.zip", {"n.py": "N = 1"}
    )
    factory = FlakyFactory(failures=0)
    runner = _runner(error_reporter, plugins_root, factory)

    runner.run_plugin(plugin, "self", {}, run_immediately)

    entries = factory.created[0].classpath.entries
    assert entries[0] == str(runner.resource_root())
    assert str(neighbour_lib.absolute()) in entries
    assert not any(entry.endswith("own.zip") for entry in entries)


def test_concurrent_runs_never_overlap(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("busy", {"plugin.stub": "// out x\n"})
    monitor = CriticalSectionMonitor(delay=0.02)
    runner = _runner(
        error_reporter,
        plugins_root,
        lambda classpath, loader: SlowInterpreter(
            classpath, loader, monitor=monitor
        ),
    )

    threads = [
        threading.Thread(
            target=runner.run_plugin,
            args=(plugin, "busy", {"value": index}, run_immediately),
        )
        for index in range(4)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert monitor.max_active == 1
    # Each run binds once while preparing, once before evaluating, then
    # interprets once.
    assert len(monitor.intervals) == 12
    assert not error_reporter.has_errors()


def test_runs_prepared_on_callers_and_evaluated_on_dispatcher_never_overlap(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("busy", {"plugin.stub": "// out x\n"})
    monitor = CriticalSectionMonitor(delay=0.02)
    runner = _runner(
        error_reporter,
        plugins_root,
        lambda classpath, loader: SlowInterpreter(
            classpath, loader, monitor=monitor
        ),
    )
    dispatcher = SingleThreadDispatcher()

    try:
        threads = [
            threading.Thread(
                target=runner.run_plugin,
                args=(plugin, "busy", {"value": index}, dispatcher),
            )
            for index in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        dispatcher.join()
    finally:
        dispatcher.shutdown()

    assert monitor.max_active == 1
    assert len(monitor.intervals) == 12
    assert not error_reporter.has_errors()
    assert runner.state is RunnerState.READY


def test_rejected_dispatch_is_a_loading_error(
    error_reporter, plugins_root, make_plugin
):
    plugin = make_plugin("late", {"plugin.stub": "// out x\n"})
    factory = FlakyFactory(failures=0)
    runner = _runner(error_reporter, plugins_root, factory)
    dispatcher = SingleThreadDispatcher()
    dispatcher.shutdown()

    runner.run_plugin(plugin, "late", {}, dispatcher)

    (record,) = error_reporter.loading_errors("late")
    assert record.message == "Failed to dispatch stub plugin"
    assert isinstance(record.exception, RuntimeError)
    assert error_reporter.running_errors("late") == []
    assert factory.created[0].sources == []
