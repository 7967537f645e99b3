from __future__ import annotations

import asyncio
import json

from captivate_bridge.feedback import FeedbackCache, FeedbackResolver, RebuildScheduler
from captivate_bridge.imaging import ImageStore

FB = 'newblue.automation.scoreboard.feedback.bool.f{}'


class FakeBridge:
    def __init__(self, query):
        self.query = query
        self.calls = []

    async def call(self, method, *args):
        self.calls.append((method, args))
        if method != '_cmp_v1_queryFeedbackState':
            raise AssertionError(f'unexpected call {method}')
        return self.query(*args)


def _scheduler(query, settled):
    bridge = FakeBridge(query)
    cache = FeedbackCache()
    resolver = FeedbackResolver(bridge, ImageStore())
    scheduler = RebuildScheduler(bridge, cache, resolver, lambda: settled.append(True), interval_s=0.01)
    return scheduler, bridge, cache


def test_rebuild_refills_every_miss_then_stops():
    settled = []

    async def run():
        scheduler, bridge, cache = _scheduler(lambda actor, fb, opts: json.dumps({'value': opts['i'] % 2 == 0}), settled)
        for i in range(3):
            scheduler.queue('actor1~' + FB.format(i), {'i': i})
        scheduler.start_checker()
        assert len(scheduler.misses) == 0
        assert scheduler.checker_active
        await scheduler.wait_idle()
        await asyncio.sleep(0.05)
        return scheduler, bridge, cache

    scheduler, bridge, cache = asyncio.run(run())

    assert len(bridge.calls) == 3
    assert settled == [True]
    assert not scheduler.checker_active
    assert cache.get('actor1', FB.format(0), {'i': 0}) == {'value': True}
    assert cache.get('actor1', FB.format(1), {'i': 1}) == {'value': False}


def test_failed_refills_are_skipped_and_settle_once():
    settled = []

    def query(actor, fb, opts):
        if opts['i'] == 1:
            raise RuntimeError('engine error')
        if opts['i'] == 2:
            return 'not json'
        return json.dumps({'value': True})

    async def run():
        scheduler, _, cache = _scheduler(query, settled)
        for i in range(3):
            scheduler.queue('actor1~' + FB.format(i), {'i': i})
        scheduler.start_checker()
        await scheduler.wait_idle()
        scheduler.stop_checker()
        return cache

    cache = asyncio.run(run())

    assert settled == [True]
    assert len(cache) == 1


def test_refill_clears_stale_mark():
    settled = []

    async def run():
        scheduler, _, cache = _scheduler(lambda *a: {'value': True}, settled)
        cache.mark_stale('actor1~' + FB.format(0))
        scheduler.queue('actor1~' + FB.format(0), {})
        scheduler.start_checker()
        await scheduler.wait_idle()
        scheduler.stop_checker()
        return cache

    cache = asyncio.run(run())
    assert not cache.is_stale('actor1~' + FB.format(0))


def test_non_feedback_ids_are_dropped():
    settled = []

    async def run():
        scheduler, bridge, _ = _scheduler(lambda *a: {}, settled)
        scheduler.queue('actor1~newblue.automation.action.play', {})
        scheduler.queue('no-actor', {})
        task = scheduler.rebuild()
        return task, bridge

    task, bridge = asyncio.run(run())
    assert task is None
    assert bridge.calls == []
    assert settled == []


def test_record_miss_skips_cached_entries():
    async def run():
        scheduler, _, cache = _scheduler(lambda *a: {}, [])
        cache.store('actor1', FB.format(0), {}, {'value': True})
        hit = scheduler.record_miss('actor1~' + FB.format(0), {})
        miss = scheduler.record_miss('actor1~' + FB.format(1), {})
        return hit, miss, len(scheduler.misses)

    assert asyncio.run(run()) == (False, True, 1)


def test_start_checker_with_empty_queue_does_nothing():
    async def run():
        scheduler, bridge, _ = _scheduler(lambda *a: {}, [])
        scheduler.start_checker()
        return scheduler.checker_active, bridge.calls

    assert asyncio.run(run()) == (False, [])


def test_start_checker_is_idempotent_while_tick_is_armed():
    settled = []

    async def run():
        bridge = FakeBridge(lambda actor, fb, opts: {'value': True})
        cache = FeedbackCache()
        resolver = FeedbackResolver(bridge, ImageStore())
        scheduler = RebuildScheduler(bridge, cache, resolver, lambda: settled.append(True), interval_s=0.2)
        scheduler.queue('actor1~' + FB.format(0), {})
        scheduler.start_checker()
        await scheduler.wait_idle()
        assert scheduler.checker_active
        scheduler.queue('actor1~' + FB.format(1), {})
        scheduler.start_checker()
        scheduler.start_checker()
        snapshot = [miss.feedback_id for miss in scheduler.misses.snapshot()]
        calls_before_tick = len(bridge.calls)
        await asyncio.sleep(0.3)
        await scheduler.wait_idle()
        scheduler.stop_checker()
        return snapshot, calls_before_tick, len(bridge.calls)

    snapshot, calls_before_tick, calls_after_tick = asyncio.run(run())

    assert snapshot == ['actor1~' + FB.format(1)]
    assert calls_before_tick == 1
    assert calls_after_tick == 2
    assert settled == [True, True]


def test_batch_with_no_successful_refill_does_not_request_a_check():
    settled = []

    def query(actor, fb, opts):
        raise RuntimeError('not connected')

    async def run():
        scheduler, bridge, _ = _scheduler(query, settled)
        for i in range(2):
            scheduler.queue('actor1~' + FB.format(i), {})
        scheduler.start_checker()
        await scheduler.wait_idle()
        await asyncio.sleep(0.03)
        return scheduler, bridge

    scheduler, bridge = asyncio.run(run())

    assert settled == []
    assert len(bridge.calls) == 2
    assert not scheduler.checker_active
