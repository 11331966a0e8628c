"""Resume, retry and restart behaviour of the wizard."""

import asyncio

import pytest

from setupflow import SetupWizard
from setupflow.contracts import CallResult, PhaseMode, RunStatus, StepStatus
from setupflow.persistence import InMemorySnapshotStore, SnapshotManager
from setupflow.state import RunState


def _wizard(plan, collaborator, manager, settings, **kwargs):
    return SetupWizard(plan, collaborator, manager, site_id="site-1", settings=settings, **kwargs)


async def _wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


def _called(collaborator):
    return [name for name, method, _ in collaborator.calls if name.startswith("ep-")]


@pytest.fixture
def two_step_plan(plan_factory):
    return plan_factory([("main", PhaseMode.SEQUENTIAL, ["a", "b"], 0, 100)])


@pytest.mark.asyncio
async def test_mount_and_resume_skips_completed_steps(
    two_step_plan, collaborator, manager, fast_settings
):
    saved = RunState()
    saved.mark_started()
    saved.set_status("a", StepStatus.COMPLETED)
    saved.set_current(1)
    saved.advance_progress(50)
    await manager.save("signal-wizard-global-site-1", saved)

    wizard = _wizard(two_step_plan, collaborator, manager, fast_settings)
    assert await wizard.mount()
    assert wizard.resume()
    assert wizard.state.logs[-1].message == "Resuming setup (1/2 steps complete)"

    outcome = await wizard.start()
    await wizard.close()

    assert outcome.status is RunStatus.COMPLETED
    assert _called(collaborator) == ["ep-b"]


@pytest.mark.asyncio
async def test_mount_without_snapshot(two_step_plan, collaborator, manager, fast_settings):
    wizard = _wizard(two_step_plan, collaborator, manager, fast_settings)
    assert not await wizard.mount()
    assert not wizard.resume()
    await wizard.close()


@pytest.mark.asyncio
async def test_restart_from_later_step_keeps_earlier_ones(
    two_step_plan, collaborator, manager, fast_settings
):
    wizard = _wizard(two_step_plan, collaborator, manager, fast_settings)
    await wizard.start()
    collaborator.calls.clear()

    outcome = await wizard.restart_from_step(1)

    assert outcome.status is RunStatus.COMPLETED
    assert _called(collaborator) == ["ep-b"]
    assert wizard.state.status_of("a") is StepStatus.COMPLETED
    await wizard.close()


@pytest.mark.asyncio
async def test_restart_from_first_step_reruns_everything(
    two_step_plan, collaborator, manager, fast_settings
):
    wizard = _wizard(two_step_plan, collaborator, manager, fast_settings)
    await wizard.start()
    collaborator.calls.clear()

    outcome = await wizard.restart_from_step(0)

    assert outcome.status is RunStatus.COMPLETED
    assert _called(collaborator) == ["ep-a", "ep-b"]
    await wizard.close()


@pytest.mark.asyncio
async def test_restart_from_invalid_index(two_step_plan, collaborator, manager, fast_settings):
    wizard = _wizard(two_step_plan, collaborator, manager, fast_settings)
    with pytest.raises(IndexError):
        await wizard.restart_from_step(5)
    await wizard.close()


@pytest.mark.asyncio
async def test_retry_from_failed_step(three_phase_plan, collaborator, manager, fast_settings):
    collaborator.respond("ep-d3", CallResult(ok=False, error="timeout upstream"), {"ok": 1})
    wizard = _wizard(three_phase_plan, collaborator, manager, fast_settings)

    halted = await wizard.start()
    assert halted.status is RunStatus.HALTED
    assert halted.failed_step.index == 2

    outcome = await wizard.retry_from_failed_step()

    assert outcome.status is RunStatus.COMPLETED
    assert wizard.state.failed_step is None
    assert len(collaborator.calls_to("ep-d1")) == 1
    assert len(collaborator.calls_to("ep-d3")) == 2
    assert "Retrying from D3..." in [e.message for e in wizard.state.logs]
    await wizard.close()


@pytest.mark.asyncio
async def test_retry_without_failure_does_nothing(
    two_step_plan, collaborator, manager, fast_settings
):
    wizard = _wizard(two_step_plan, collaborator, manager, fast_settings)
    assert await wizard.retry_from_failed_step() is None
    await wizard.close()


@pytest.mark.asyncio
async def test_second_start_is_rejected_while_running(
    two_step_plan, collaborator, manager, fast_settings
):
    gate = asyncio.Event()

    async def blocked(ctx):
        await gate.wait()

    wizard = _wizard(two_step_plan, collaborator, manager, fast_settings, handlers={"a": blocked})
    first = asyncio.create_task(wizard.start())
    await _wait_until(lambda: wizard.is_running)

    assert await wizard.start() is None
    assert "Setup is already running" in [e.message for e in wizard.state.logs]

    gate.set()
    outcome = await first
    assert outcome.status is RunStatus.COMPLETED
    await wizard.close()


@pytest.mark.asyncio
async def test_stop_and_restart_current_step(two_step_plan, collaborator, manager, fast_settings):
    attempts = []

    async def slow_once(ctx):
        attempts.append(ctx.previous_status)
        if len(attempts) == 1:
            await ctx.token.sleep(10)
            ctx.token.raise_if_cancelled()

    wizard = _wizard(
        two_step_plan, collaborator, manager, fast_settings, handlers={"b": slow_once}
    )
    first = asyncio.create_task(wizard.start())
    await _wait_until(lambda: len(attempts) == 1)

    outcome = await wizard.stop_and_restart_current_step()
    aborted = await first

    assert outcome.status is RunStatus.COMPLETED
    assert aborted.status is RunStatus.ABORTED
    assert attempts == [StepStatus.PENDING, StepStatus.ERROR]
    assert wizard.state.status_of("b") is StepStatus.COMPLETED
    assert _called(collaborator) == ["ep-a"]
    await wizard.close()


@pytest.mark.asyncio
async def test_stop_and_restart_when_idle(two_step_plan, collaborator, manager, fast_settings):
    wizard = _wizard(two_step_plan, collaborator, manager, fast_settings)
    assert await wizard.stop_and_restart_current_step() is None
    await wizard.close()


@pytest.mark.asyncio
async def test_restart_from_beginning_clears_saved_progress(
    three_phase_plan, collaborator, manager, store, fast_settings
):
    collaborator.respond("ep-f1", CallResult(ok=False, error="broken"), {"ok": 1})
    wizard = _wizard(three_phase_plan, collaborator, manager, fast_settings)
    await wizard.start()
    wizard.state.set_stat("issues_found", 9)
    collaborator.calls.clear()

    outcome = await wizard.restart_from_beginning()

    assert outcome.status is RunStatus.COMPLETED
    assert outcome.stats["issues_found"] == 0
    assert _called(collaborator)[0] == "ep-d1"
    assert len(_called(collaborator)) == len(three_phase_plan)
    await wizard.close()


@pytest.mark.asyncio
async def test_skip_keeps_snapshot(two_step_plan, collaborator, manager, store, fast_settings):
    collaborator.respond("ep-b", CallResult(ok=False, error="down"))
    skipped = []
    wizard = _wizard(
        two_step_plan, collaborator, manager, fast_settings, on_skip=lambda: skipped.append(True)
    )
    await wizard.start()

    await wizard.skip()

    assert skipped == [True]
    assert store.keys() == [wizard.key]
    await wizard.close()


class SlowRemoveStore(InMemorySnapshotStore):
    def __init__(self):
        super().__init__()
        self.removing = asyncio.Event()

    async def remove(self, key):
        self.removing.set()
        await asyncio.sleep(0.2)
        await super().remove(key)


@pytest.mark.asyncio
async def test_restart_during_completion_cleanup_keeps_new_snapshot(
    three_phase_plan, collaborator, fast_settings
):
    store = SlowRemoveStore()
    manager = SnapshotManager(store)
    completions = []
    release = asyncio.Event()
    f2_calls = []

    async def final_step(ctx):
        f2_calls.append(ctx.step.id)
        if len(f2_calls) == 2:
            await release.wait()

    wizard = _wizard(
        three_phase_plan,
        collaborator,
        manager,
        fast_settings,
        handlers={"f2": final_step},
        on_complete=completions.append,
    )
    first = asyncio.create_task(wizard.start())
    await store.removing.wait()

    second = asyncio.create_task(wizard.restart_from_step(9))
    first_outcome = await first
    await _wait_until(lambda: len(f2_calls) == 2)
    await manager.flush()

    assert first_outcome.status is RunStatus.ABORTED
    assert completions == []
    assert wizard.is_running
    assert store.keys() == [wizard.key]

    release.set()
    second_outcome = await second
    assert second_outcome.status is RunStatus.COMPLETED
    assert completions == [second_outcome]
    await wizard.close()


@pytest.mark.asyncio
async def test_skip_does_not_wait_for_in_flight_call(
    two_step_plan, collaborator, manager, store, fast_settings
):
    gate = asyncio.Event()
    started = asyncio.Event()

    async def slow_remote(ctx):
        started.set()
        await gate.wait()
        ctx.add_stat("issues_found", 5)

    skipped = []
    wizard = _wizard(
        two_step_plan,
        collaborator,
        manager,
        fast_settings,
        handlers={"b": slow_remote},
        on_skip=lambda: skipped.append(True),
    )
    first = asyncio.create_task(wizard.start())
    await started.wait()

    loop = asyncio.get_running_loop()
    began = loop.time()
    await wizard.skip()
    elapsed = loop.time() - began

    assert elapsed < fast_settings.stop_timeout + 0.5
    assert skipped == [True]
    assert not wizard.is_running
    assert store.keys() == [wizard.key]

    gate.set()
    outcome = await first
    assert outcome.status is RunStatus.ABORTED
    assert wizard.state.stats["issues_found"] == 0
    assert wizard.state.status_of("b") is StepStatus.RUNNING
    await wizard.close()


@pytest.mark.asyncio
async def test_start_fresh_while_old_call_is_in_flight(
    two_step_plan, collaborator, manager, fast_settings
):
    gate = asyncio.Event()
    attempts = []

    async def slow_first_time(ctx):
        attempts.append(ctx.step.id)
        if len(attempts) == 1:
            await gate.wait()

    wizard = _wizard(
        two_step_plan, collaborator, manager, fast_settings, handlers={"a": slow_first_time}
    )
    first = asyncio.create_task(wizard.start())
    await _wait_until(lambda: len(attempts) == 1)

    await wizard.start_fresh()
    outcome = await wizard.start()

    assert outcome.status is RunStatus.COMPLETED
    gate.set()
    assert (await first).status is RunStatus.ABORTED
    assert wizard.state.status_of("a") is StepStatus.COMPLETED
    assert wizard.state.global_progress == 100
    await wizard.close()


@pytest.mark.asyncio
async def test_stop_and_restart_during_parallel_phase(
    plan_factory, collaborator, manager, fast_settings
):
    plan = plan_factory(
        [
            ("seq", PhaseMode.SEQUENTIAL, ["s1", "s2"], 0, 50),
            ("par", PhaseMode.PARALLEL, ["p1", "p2"], 50, 100),
        ]
    )
    attempts = []

    async def slow_once(ctx):
        attempts.append(ctx.previous_status)
        if len(attempts) == 1:
            await ctx.token.sleep(10)
            ctx.token.raise_if_cancelled()

    wizard = _wizard(plan, collaborator, manager, fast_settings, handlers={"p1": slow_once})
    first = asyncio.create_task(wizard.start())
    await _wait_until(
        lambda: len(attempts) == 1 and wizard.state.status_of("p2") is StepStatus.COMPLETED
    )
    assert wizard.state.current_step_index == 2

    outcome = await wizard.stop_and_restart_current_step()
    aborted = await first

    assert outcome.status is RunStatus.COMPLETED
    assert aborted.status is RunStatus.ABORTED
    assert attempts == [StepStatus.PENDING, StepStatus.ERROR]
    assert len(collaborator.calls_to("ep-s2")) == 1
    assert len(collaborator.calls_to("ep-p2")) == 1
    assert wizard.state.status_of("s2") is StepStatus.COMPLETED
    await wizard.close()
