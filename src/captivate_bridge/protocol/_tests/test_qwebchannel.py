from __future__ import annotations

import json

import pytest

from captivate_bridge.protocol import (
    MalformedReplyError,
    QSignal,
    QWebChannel,
    QWebChannelMessageType,
    parse_json_object,
    parse_json_reply,
)


def _scheduler_data():
    return {
        'methods': [['notifyClientConnected', 5], ['_cmp_v1_query', 6]],
        'signals': [['onNotify', 7]],
        'properties': [[0, 'version', [1, 8], '3.0']],
        'enums': {'Mode': {'Live': 0}},
    }


def _ready_channel():
    sent = []
    ready = []
    channel = QWebChannel(lambda text: sent.append(json.loads(text)), ready.append)
    channel.handle_message(json.dumps({'type': 10, 'id': 0, 'data': {'scheduler': _scheduler_data()}}))
    return channel, sent, ready


def test_channel_sends_init_on_construction():
    sent = []
    channel = QWebChannel(lambda text: sent.append(json.loads(text)))
    assert sent == [{'type': 3, 'id': 0}]
    assert not channel.initialized
    assert channel.pending_responses == 1


def test_init_response_builds_objects_and_goes_idle():
    channel, sent, ready = _ready_channel()

    assert ready == [channel]
    assert channel.initialized
    assert 'scheduler' in channel.objects
    assert sent[-1] == {'type': QWebChannelMessageType.IDLE}
    assert channel.pending_responses == 0


def test_method_invoke_routes_response_to_trailing_callback():
    channel, sent, _ = _ready_channel()
    scheduler = channel.objects['scheduler']
    results = []

    scheduler._cmp_v1_query('actions', results.append)

    assert sent[-1] == {'type': 6, 'method': 6, 'args': ['actions'], 'object': 'scheduler', 'id': 1}
    channel.handle_message(json.dumps({'type': 10, 'id': 1, 'data': {'companion_actions': {}}}))
    assert results == [{'companion_actions': {}}]


def test_signal_connect_is_sent_once_and_args_are_delivered():
    channel, sent, _ = _ready_channel()
    scheduler = channel.objects['scheduler']
    first, second = [], []

    scheduler.onNotify.connect(first.append)
    scheduler.onNotify.connect(second.append)

    connects = [m for m in sent if m['type'] == QWebChannelMessageType.CONNECT_TO_SIGNAL]
    assert connects == [{'type': 7, 'object': 'scheduler', 'signal': 7}]

    channel.handle_message(json.dumps({'type': 1, 'object': 'scheduler', 'signal': 7, 'args': ['{"event":"data"}']}))
    assert first == ['{"event":"data"}']
    assert second == ['{"event":"data"}']

    scheduler.onNotify.disconnect(first.append)
    scheduler.onNotify.disconnect(second.append)
    assert sent[-1] == {'type': 8, 'object': 'scheduler', 'signal': 7}


def test_failing_listener_does_not_block_others():
    channel, _, _ = _ready_channel()
    scheduler = channel.objects['scheduler']
    received = []

    def boom(*_args):
        raise RuntimeError('listener bug')

    scheduler.onNotify.connect(boom)
    scheduler.onNotify.connect(received.append)
    channel.handle_message(json.dumps({'type': 1, 'object': 'scheduler', 'signal': 7, 'args': ['x']}))

    assert received == ['x']


def test_property_update_refreshes_value_and_notifies():
    channel, sent, _ = _ready_channel()
    scheduler = channel.objects['scheduler']
    changes = []
    scheduler.versionChanged.connect(changes.append)
    before = len(sent)

    channel.handle_message(
        json.dumps(
            {
                'type': 2,
                'data': [{'object': 'scheduler', 'signals': {'8': ['4.0']}, 'properties': {'0': '4.0'}}],
            }
        )
    )

    assert scheduler.version == '4.0'
    assert changes == ['4.0']
    # property notify signals are local only; the update is followed by idle
    assert sent[before:] == [{'type': QWebChannelMessageType.IDLE}]


def test_members_expose_methods_signals_properties_and_enums():
    channel, _, _ = _ready_channel()
    members = dict(channel.objects['scheduler'].members())

    assert callable(members['notifyClientConnected'])
    assert isinstance(members['onNotify'], QSignal)
    assert members['version'] == '3.0'
    assert members['Mode'] == {'Live': 0}


def test_unknown_message_types_are_ignored():
    channel, sent, _ = _ready_channel()
    before = list(sent)
    channel.handle_message(json.dumps({'type': 42}))
    channel.handle_message(json.dumps([1, 2, 3]))
    channel.handle_message(json.dumps({'type': 10, 'id': 99, 'data': None}))
    assert sent == before


def test_parse_json_reply_accepts_text_bytes_and_structures():
    assert parse_json_reply('{"a": 1}') == {'a': 1}
    assert parse_json_reply(b'[1, 2]') == [1, 2]
    payload = {'already': 'decoded'}
    assert parse_json_reply(payload) is payload


def test_parse_json_object_rejects_non_objects():
    with pytest.raises(MalformedReplyError):
        parse_json_object('[1, 2]')
    with pytest.raises(MalformedReplyError):
        parse_json_object('{not json')
    with pytest.raises(MalformedReplyError):
        parse_json_object(42)


def test_set_property_updates_locally_and_sends_frame():
    channel, sent, _ = _ready_channel()
    scheduler = channel.objects['scheduler']

    scheduler.set_property('version', '5.0')

    assert scheduler.version == '5.0'
    assert sent[-1] == {'type': 9, 'property': 0, 'value': '5.0', 'object': 'scheduler'}
    with pytest.raises(AttributeError):
        scheduler.set_property('missing', 1)


def test_listener_count_tracks_connections():
    channel, _, _ = _ready_channel()
    signal = channel.objects['scheduler'].onNotify
    listener = [].append

    assert signal.listener_count == 0
    signal.connect(listener)
    assert signal.listener_count == 1
    signal.disconnect(listener)
    signal.disconnect(listener)
    assert signal.listener_count == 0
