"""Tests for RunController - spawn, pending re-run and busy policies."""

import asyncio
import sys

import pytest

from conftest import FakeSpawner, settle
from runonsave_core.models import RunState
from runonsave_core.runner import RunController


@pytest.mark.asyncio
async def test_trigger_spawns_when_idle(notifier):
    """An idle controller starts the command immediately."""
    spawner = FakeSpawner()
    controller = RunController(["echo", "hi"], notifier=notifier, spawn=spawner)

    handle = await controller.trigger()

    assert handle is not None
    assert spawner.calls == [["echo", "hi"]]
    assert controller.is_running
    assert handle.state is RunState.RUNNING
    assert controller.run_count == 1


@pytest.mark.asyncio
async def test_triggers_while_running_collapse_into_one_rerun(notifier):
    """Any number of triggers during a run cause exactly one re-run."""
    spawner = FakeSpawner()
    controller = RunController(["make"], notifier=notifier, spawn=spawner)

    await controller.trigger()
    for _ in range(5):
        assert await controller.trigger() is None
    assert controller.pending is True
    assert len(spawner.calls) == 1

    spawner.current.finish(0)
    await settle()

    assert len(spawner.calls) == 2
    assert controller.pending is False
    assert controller.is_running

    spawner.current.finish(0)
    await controller.wait_idle()

    assert len(spawner.calls) == 2
    assert not controller.is_running
    assert [h.returncode for h in controller.history] == [0, 0]


@pytest.mark.asyncio
async def test_no_rerun_without_pending_trigger(notifier):
    spawner = FakeSpawner()
    controller = RunController(["make"], notifier=notifier, spawn=spawner)

    await controller.trigger()
    spawner.current.finish(0)
    await controller.wait_idle()

    assert len(spawner.calls) == 1
    assert controller.last_run.state is RunState.EXITED


@pytest.mark.asyncio
async def test_queue_policy_does_not_terminate_running_command(notifier):
    spawner = FakeSpawner()
    controller = RunController(["make"], notifier=notifier, on_busy="queue", spawn=spawner)

    await controller.trigger()
    await controller.trigger()

    assert spawner.current.terminated is False


@pytest.mark.asyncio
async def test_restart_policy_terminates_then_reruns(notifier):
    """With on_busy=restart the running command is terminated and started again."""
    spawner = FakeSpawner()
    controller = RunController(["./serve"], notifier=notifier, on_busy="restart", spawn=spawner)

    await controller.trigger()
    first = spawner.current
    await controller.trigger()
    await settle()

    assert first.terminated is True
    assert len(spawner.calls) == 2
    assert controller.history[0].state is RunState.SIGNALED
    assert controller.history[0].signal_name == "SIGTERM"


@pytest.mark.asyncio
async def test_nonzero_exit_is_reported_not_raised(notifier):
    spawner = FakeSpawner(auto_finish=2)
    controller = RunController(["false"], notifier=notifier, spawn=spawner)

    await controller.trigger()
    await controller.wait_idle()

    assert notifier.warnings == ["Command exited with code 2"]
    assert notifier.errors == []


@pytest.mark.asyncio
async def test_spawn_failure_is_recoverable(notifier):
    """A missing executable is reported and the next trigger tries again."""
    spawner = FakeSpawner(fail_with=FileNotFoundError(2, "No such file or directory"))
    controller = RunController(["nope"], notifier=notifier, spawn=spawner)

    assert await controller.trigger() is None
    assert not controller.is_running
    assert controller.spawn_failures == 1
    assert len(notifier.errors) == 1
    assert "failed to launch" in notifier.errors[0]
    assert "No such file or directory" in notifier.errors[0]

    await controller.wait_idle()
    spawner.fail_with = None
    assert await controller.trigger() is not None
    assert len(spawner.calls) == 2


@pytest.mark.asyncio
async def test_spawn_failure_during_rerun_leaves_controller_idle(notifier):
    spawner = FakeSpawner()
    controller = RunController(["make"], notifier=notifier, spawn=spawner)

    await controller.trigger()
    await controller.trigger()
    spawner.fail_with = PermissionError(13, "Permission denied")
    spawner.current.finish(0)
    await controller.wait_idle()

    assert not controller.is_running
    assert controller.pending is False
    assert len(notifier.errors) == 1


@pytest.mark.asyncio
async def test_rejected_argv_is_reported_as_spawn_failure(notifier):
    """A ValueError from the process factory (null byte in argv) is reported, not raised."""
    spawner = FakeSpawner(fail_with=ValueError("embedded null byte"))
    controller = RunController(["echo", "a\x00b"], notifier=notifier, spawn=spawner)

    assert await controller.trigger() is None
    assert controller.spawn_failures == 1
    assert notifier.errors == ["Command failed to launch: echo: embedded null byte"]


@pytest.mark.asyncio
async def test_rejected_argv_during_rerun_leaves_controller_idle(notifier):
    spawner = FakeSpawner()
    controller = RunController(["make"], notifier=notifier, spawn=spawner)

    await controller.trigger()
    await controller.trigger()
    spawner.fail_with = ValueError("embedded null byte")
    spawner.current.finish(0)
    await asyncio.wait_for(controller.wait_idle(), timeout=2)

    assert not controller.is_running
    assert controller.spawn_failures == 1
    assert notifier.errors == ["Command failed to launch: make: embedded null byte"]

    spawner.fail_with = None
    assert await controller.trigger() is not None


@pytest.mark.asyncio
async def test_signal_death_is_reported_with_signal_name(notifier):
    spawner = FakeSpawner()
    controller = RunController(["./serve"], notifier=notifier, spawn=spawner)

    await controller.trigger()
    controller.terminate()
    await controller.wait_idle()

    assert notifier.warnings == ["Command terminated by signal SIGTERM"]


@pytest.mark.asyncio
async def test_shutdown_waits_for_running_command(notifier):
    """Default shutdown lets the command finish and drops the pending re-run."""
    spawner = FakeSpawner()
    controller = RunController(["make"], notifier=notifier, spawn=spawner)

    await controller.trigger()
    await controller.trigger()
    process = spawner.current

    shutdown = asyncio.create_task(controller.shutdown())
    await settle()
    assert not shutdown.done()
    assert any("Waiting for running command" in msg for msg in notifier.infos)

    process.finish(0)
    await shutdown

    assert process.terminated is False
    assert len(spawner.calls) == 1
    assert await controller.trigger() is None


@pytest.mark.asyncio
async def test_shutdown_with_terminate(notifier):
    spawner = FakeSpawner()
    controller = RunController(["make"], notifier=notifier, spawn=spawner)

    await controller.trigger()
    await controller.shutdown(terminate=True)

    assert spawner.current.terminated is True
    assert not controller.is_running


@pytest.mark.asyncio
async def test_shutdown_when_idle_returns_immediately(notifier):
    controller = RunController(["make"], notifier=notifier, spawn=FakeSpawner())
    await controller.shutdown()
    assert notifier.infos == []


def test_terminate_without_process_is_noop():
    controller = RunController(["make"], spawn=FakeSpawner())
    assert controller.terminate() is False


def test_empty_argv_rejected():
    with pytest.raises(ValueError):
        RunController([])


@pytest.mark.asyncio
async def test_real_process_exit_code_is_surfaced(notifier):
    """A real child process runs with inherited streams and its exit code is reported."""
    controller = RunController([sys.executable, "-c", "import sys; sys.exit(3)"], notifier=notifier)

    handle = await controller.trigger()
    assert handle is not None
    await controller.wait_idle()

    assert controller.last_run.returncode == 3
    assert notifier.warnings == ["Command exited with code 3"]


@pytest.mark.asyncio
async def test_real_missing_executable_reports_spawn_error(notifier):
    controller = RunController(["runonsave-definitely-not-a-command"], notifier=notifier)

    assert await controller.trigger() is None
    assert len(notifier.errors) == 1
    assert "runonsave-definitely-not-a-command" in notifier.errors[0]


@pytest.mark.asyncio
async def test_real_null_byte_argument_reports_spawn_error(notifier):
    controller = RunController(["echo", "a\x00b"], notifier=notifier)

    assert await controller.trigger() is None
    assert len(notifier.errors) == 1
    assert "null byte" in notifier.errors[0]
