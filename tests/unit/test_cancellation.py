"""Tests for the abort epoch and cancellation tokens."""

import asyncio

import pytest

from setupflow.cancellation import AbortSignal, CancellationToken
from setupflow.errors import StepAborted


def test_token_is_cancelled_when_epoch_advances():
    signal = AbortSignal()
    token = signal.token()

    assert not token.cancelled
    assert signal.abort() == 1
    assert token.cancelled
    assert not signal.token().cancelled


def test_raise_if_cancelled():
    token = CancellationToken.detached()
    token.raise_if_cancelled()

    token.cancel()
    with pytest.raises(StepAborted):
        token.raise_if_cancelled()


def test_detached_tokens_are_independent():
    first = CancellationToken.detached()
    second = CancellationToken.detached()

    first.cancel()
    assert first.cancelled
    assert not second.cancelled


@pytest.mark.asyncio
async def test_sleep_completes_when_not_cancelled():
    token = CancellationToken.detached()
    assert await token.sleep(0.05, tick=0.01) is True


@pytest.mark.asyncio
async def test_sleep_returns_early_on_abort():
    signal = AbortSignal()
    token = signal.token()
    loop = asyncio.get_running_loop()

    async def abort_soon():
        await asyncio.sleep(0.05)
        signal.abort()

    started = loop.time()
    aborter = asyncio.create_task(abort_soon())
    finished = await token.sleep(10, tick=0.01)
    await aborter

    assert finished is False
    assert loop.time() - started < 1
