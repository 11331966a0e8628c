"""End-to-end wizard runs against scripted collaborators."""

import pytest

from setupflow import SetupWizard, build_default_plan
from setupflow.collaborators import InMemoryCollaborator
from setupflow.config import WizardSettings
from setupflow.contracts import CallResult, RunStatus, Severity, StepStatus


def _wizard(plan, collaborator, manager, settings, **kwargs):
    return SetupWizard(plan, collaborator, manager, site_id="site-1", settings=settings, **kwargs)


@pytest.mark.asyncio
async def test_three_phase_plan_runs_to_completion(
    three_phase_plan, collaborator, manager, store, fast_settings
):
    completed = []
    wizard = _wizard(
        three_phase_plan, collaborator, manager, fast_settings, on_complete=completed.append
    )
    progress = []
    wizard.state.subscribe(lambda s: progress.append(s.global_progress))

    outcome = await wizard.start()
    await wizard.close()

    assert outcome.status is RunStatus.COMPLETED
    assert outcome.progress == 100
    assert outcome.failed_step is None
    assert all(
        wizard.state.status_of(step.id) is StepStatus.COMPLETED for step in three_phase_plan.steps
    )
    assert progress == sorted(progress)
    assert completed == [outcome]
    assert store.keys() == []
    assert collaborator.calls[-1][0] == "seo-sites-update"
    assert collaborator.calls[-1][1] == "PUT"
    messages = [e.message for e in wizard.state.logs]
    assert messages[0] == "Starting Signal Learning..."
    assert "Running parallel" in messages


@pytest.mark.asyncio
async def test_parallel_failures_become_warnings(
    three_phase_plan, collaborator, manager, fast_settings
):
    collaborator.respond("ep-p2", CallResult(ok=False, error="rate limited"))
    collaborator.respond("ep-p5", CallResult(ok=False, error="no data"))
    wizard = _wizard(three_phase_plan, collaborator, manager, fast_settings)

    outcome = await wizard.start()
    await wizard.close()

    assert outcome.status is RunStatus.COMPLETED
    assert outcome.warnings == 2
    assert wizard.state.status_of("p2") is StepStatus.ERROR
    assert wizard.state.status_of("f2") is StepStatus.COMPLETED
    assert any(
        e.message == "Finished with 2 warnings" and e.severity is Severity.WARNING
        for e in wizard.state.logs
    )


@pytest.mark.asyncio
async def test_critical_failure_halts_and_persists(
    three_phase_plan, collaborator, manager, store, fast_settings
):
    collaborator.respond("ep-d2", CallResult(ok=False, error="sitemap missing"))
    wizard = _wizard(three_phase_plan, collaborator, manager, fast_settings)

    outcome = await wizard.start()
    await manager.flush()

    assert outcome.status is RunStatus.HALTED
    assert outcome.failed_step.step_id == "d2"
    assert collaborator.calls_to("ep-d3") == []
    snapshot = await manager.load(wizard.key)
    assert snapshot.failed_step.step_id == "d2"
    assert snapshot.step_statuses["d1"] is StepStatus.COMPLETED
    assert snapshot.step_statuses["d2"] is StepStatus.ERROR
    await wizard.close()


@pytest.mark.asyncio
async def test_completion_call_failure_is_only_logged(
    three_phase_plan, collaborator, manager, fast_settings, caplog
):
    collaborator.respond("seo-sites-update", CallResult(ok=False, error="db locked"))
    wizard = _wizard(three_phase_plan, collaborator, manager, fast_settings)

    outcome = await wizard.start()
    await wizard.close()

    assert outcome.status is RunStatus.COMPLETED
    assert "db locked" in caplog.text


@pytest.mark.asyncio
async def test_default_plan_dry_run(manager, store):
    settings = WizardSettings(
        min_step_duration=0, inter_step_delay=0, poll_interval=0, training_poll_interval=0
    )
    plan = build_default_plan()
    collaborator = InMemoryCollaborator.dry_run("site-1", "acme.com")
    wizard = _wizard(plan, collaborator, manager, settings)

    outcome = await wizard.start()
    await wizard.close()

    assert outcome.status is RunStatus.COMPLETED
    assert outcome.warnings == 0
    assert all(wizard.state.status_of(s.id) is StepStatus.COMPLETED for s in plan.steps)
    assert wizard.site.domain == "acme.com"
    assert len(collaborator.calls_to("seo-gsc-sync")) == 1
    assert collaborator.calls_to("seo-cwv")[0]["url"] == "https://acme.com"
    assert store.keys() == []
