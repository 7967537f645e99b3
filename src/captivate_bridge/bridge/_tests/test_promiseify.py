from __future__ import annotations

import asyncio

import pytest

from captivate_bridge.bridge import promiseify, wrap_members
from captivate_bridge.protocol.qwebchannel import QSignal


def test_promiseify_resolves_with_first_callback_value():
    def remote(a, b, callback):
        callback(a + b)
        callback(99)

    async def run():
        return await promiseify(remote)(1, 2)

    assert asyncio.run(run()) == 3


def test_promiseify_resolves_later_callbacks():
    captured = []

    def remote(name, callback):
        captured.append(callback)

    async def run():
        future = promiseify(remote)('query')
        assert not future.done()
        captured[0]({'ok': True})
        return await future

    assert asyncio.run(run()) == {'ok': True}


def test_promiseify_rejects_on_synchronous_failure():
    def remote(callback):
        raise RuntimeError('channel closed')

    async def run():
        await promiseify(remote)()

    with pytest.raises(RuntimeError, match='channel closed'):
        asyncio.run(run())


def test_wrap_members_only_wraps_methods():
    def remote(callback):
        callback('pong')

    signal = QSignal.__new__(QSignal)
    wrapped = wrap_members([('ping', remote), ('onNotify', signal), ('version', '3.0')])

    assert wrapped['onNotify'] is signal
    assert wrapped['version'] == '3.0'
    assert wrapped['ping'].__wrapped__ is remote

    async def run():
        return await wrapped['ping']()

    assert asyncio.run(run()) == 'pong'
