"""Tests for background job polling."""

import asyncio

import pytest

from setupflow.cancellation import AbortSignal, CancellationToken
from setupflow.collaborators import InMemoryCollaborator
from setupflow.contracts import BackgroundJobHandle, JobState, PollStatus
from setupflow.errors import RemoteError
from setupflow.poller import JobPoller, PollOptions

FAST = PollOptions(interval=0.01, max_attempts=5, ticks=2)


@pytest.mark.asyncio
async def test_poll_returns_result_on_completion():
    collaborator = InMemoryCollaborator()
    done = BackgroundJobHandle(job_id="j1", status=JobState.COMPLETED, result={"pages": 3})
    collaborator.add_job("j1", ["queued", "running", done])

    outcome = await JobPoller(collaborator).poll("j1", FAST, CancellationToken.detached())

    assert outcome.status is PollStatus.COMPLETED
    assert outcome.attempts == 3
    assert outcome.result == {"pages": 3}


@pytest.mark.asyncio
async def test_poll_stops_immediately_on_failure():
    collaborator = InMemoryCollaborator()
    failed = BackgroundJobHandle(job_id="j1", status=JobState.FAILED, error="quota exceeded")
    collaborator.add_job("j1", [failed, "completed"])

    outcome = await JobPoller(collaborator).poll("j1", FAST, CancellationToken.detached())

    assert outcome.status is PollStatus.FAILED
    assert outcome.error == "quota exceeded"
    assert collaborator.status_requests == ["j1"]


@pytest.mark.asyncio
async def test_poll_times_out_after_budget():
    collaborator = InMemoryCollaborator()
    collaborator.add_job("j1", ["running"])

    outcome = await JobPoller(collaborator).poll("j1", FAST, CancellationToken.detached())

    assert outcome.status is PollStatus.TIMED_OUT
    assert outcome.attempts == FAST.max_attempts
    assert len(collaborator.status_requests) == FAST.max_attempts


@pytest.mark.asyncio
async def test_fetch_errors_are_transient():
    collaborator = InMemoryCollaborator()
    collaborator.add_job("j1", [RemoteError("502"), RemoteError("502"), "completed"])

    outcome = await JobPoller(collaborator).poll("j1", FAST, CancellationToken.detached())

    assert outcome.status is PollStatus.COMPLETED
    assert outcome.attempts == 3


@pytest.mark.asyncio
async def test_abort_mid_poll_returns_within_one_tick():
    collaborator = InMemoryCollaborator()
    collaborator.add_job("j1", ["running"])
    signal = AbortSignal()
    options = PollOptions(interval=1.0, max_attempts=1000, ticks=10)
    loop = asyncio.get_running_loop()

    async def abort_later():
        await asyncio.sleep(0.25)
        signal.abort()

    aborter = asyncio.create_task(abort_later())
    started = loop.time()
    outcome = await JobPoller(collaborator).poll("j1", options, signal.token())
    elapsed = loop.time() - started
    await aborter

    assert outcome.status is PollStatus.ABORTED
    assert elapsed < 0.25 + options.tick + 0.1
    assert collaborator.status_requests == []


@pytest.mark.asyncio
async def test_progress_callback_is_throttled():
    collaborator = InMemoryCollaborator()
    collaborator.add_job("j1", ["running"] * 7 + ["completed"])
    seen = []
    options = PollOptions(interval=0.01, max_attempts=20, ticks=1, log_every=3)

    await JobPoller(collaborator).poll(
        "j1", options, CancellationToken.detached(), on_progress=lambda n, job: seen.append(n)
    )

    assert seen == [3, 6]


@pytest.mark.asyncio
async def test_custom_status_fetch():
    calls = []

    async def fetch(job_id):
        calls.append(job_id)
        return BackgroundJobHandle(job_id=job_id, status=JobState.COMPLETED)

    outcome = await JobPoller(InMemoryCollaborator()).poll(
        "training", FAST, CancellationToken.detached(), fetch=fetch
    )

    assert outcome.status is PollStatus.COMPLETED
    assert calls == ["training"]
