from __future__ import annotations

import asyncio

from captivate_bridge.router import Debouncer, debounce


def test_burst_collapses_into_one_call():
    calls = []

    async def run():
        debouncer = Debouncer(lambda: calls.append('refresh'), 0.02)
        for _ in range(5):
            debouncer()
            await asyncio.sleep(0.001)
        assert debouncer.pending
        await asyncio.sleep(0.1)
        return debouncer.pending

    assert asyncio.run(run()) is False
    assert calls == ['refresh']


def test_latest_arguments_win_for_coroutines():
    seen = []

    async def action(value):
        seen.append(value)

    async def run():
        debouncer = debounce(action, 0.01)
        debouncer(1)
        debouncer(2)
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert seen == [2]


def test_cancel_drops_pending_call():
    calls = []

    async def run():
        debouncer = Debouncer(lambda: calls.append(1), 0.01)
        debouncer()
        debouncer.cancel()
        await asyncio.sleep(0.03)

    asyncio.run(run())
    assert calls == []


def test_failing_action_is_contained():
    calls = []

    async def boom():
        calls.append('boom')
        raise RuntimeError('refresh failed')

    async def run():
        debouncer = Debouncer(boom, 0.0)
        debouncer()
        await asyncio.sleep(0.02)
        debouncer()
        await asyncio.sleep(0.02)

    asyncio.run(run())
    assert calls == ['boom', 'boom']
