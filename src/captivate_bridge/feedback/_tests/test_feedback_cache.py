from __future__ import annotations

from captivate_bridge.feedback import (
    FeedbackCache,
    is_feedback_id,
    make_cache_key,
    make_feedback_id,
    split_feedback_id,
)

FB = 'newblue.automation.scoreboard.feedback.bool.running'


def test_cache_key_ignores_option_order():
    a = make_cache_key('actor1~' + FB, {'layer': 1, 'mode': 'live'})
    b = make_cache_key('actor1~' + FB, {'mode': 'live', 'layer': 1})
    assert a == b
    assert a.startswith('actor1~' + FB + '+')


def test_cache_key_distinguishes_option_values():
    a = make_cache_key('actor1~' + FB, {'layer': 1})
    b = make_cache_key('actor1~' + FB, {'layer': 2})
    assert a != b


def test_cache_key_without_options_is_the_feedback_id():
    assert make_cache_key('actor1~' + FB, {}) == 'actor1~' + FB
    assert make_cache_key('actor1~' + FB, None) == 'actor1~' + FB


def test_split_feedback_id():
    assert split_feedback_id(make_feedback_id('actor1', FB)) == ('actor1', FB)
    assert split_feedback_id('no-separator') == ('no-separator', '')
    assert is_feedback_id(FB)
    assert not is_feedback_id('newblue.automation.action.play')


def test_store_and_get_round_trip_by_full_id():
    cache = FeedbackCache()
    key = cache.store('actor1', FB, {'layer': 1}, {'value': True})

    assert key in cache
    assert cache.get_from_full_id('actor1~' + FB, {'layer': 1}) == {'value': True}
    assert cache.get_from_full_id('actor1~' + FB, {'layer': 2}) is None
    assert len(cache) == 1


def test_invalidate_prefix_only_drops_that_actor():
    cache = FeedbackCache()
    cache.store('actor1', FB, {'layer': 1}, {'value': True})
    cache.store('actor1', FB, {'layer': 2}, {'value': False})
    cache.store('actor10', FB, {}, {'value': True})

    removed = cache.invalidate_prefix('actor1~')

    assert removed == 2
    assert list(cache.keys()) == ['actor10~' + FB]


def test_stale_marks_cover_every_option_variant():
    cache = FeedbackCache()
    cache.mark_stale('actor1~' + FB)
    assert cache.is_stale('actor1~' + FB)
    cache.clear_stale('actor1~' + FB)
    assert not cache.is_stale('actor1~' + FB)


def test_integral_float_options_share_a_key():
    assert make_cache_key('actor1~' + FB, {'level': 1}) == make_cache_key('actor1~' + FB, {'level': 1.0})
    assert make_cache_key('actor1~' + FB, {'level': [2.0]}) == make_cache_key('actor1~' + FB, {'level': [2]})
    assert make_cache_key('actor1~' + FB, {'level': 1}) != make_cache_key('actor1~' + FB, {'level': 1.5})


def test_store_from_full_id_matches_split_lookup():
    cache = FeedbackCache()
    key = cache.store_from_full_id('actor1~' + FB, {'layer': 3}, {'value': 'on'})
    assert key == make_cache_key('actor1~' + FB, {'layer': 3})
    assert cache.get('actor1', FB, {'layer': 3}) == {'value': 'on'}
