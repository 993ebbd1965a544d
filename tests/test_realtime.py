import json
from unittest.mock import MagicMock

from utils import realtime


def payload(message_id, created_at, content='hi'):
    return {'id': message_id, 'match_id': 'm1', 'sender_id': 'alice',
            'content': content, 'created_at': created_at}


class Disconnected(Exception):
    pass


class FakePubSub:
    """Replays queued frames, then raises to end the stream"""

    def __init__(self, frames):
        self.frames = list(frames)
        self.closed = False

    def get_message(self, timeout=None):
        if not self.frames:
            raise Disconnected
        return self.frames.pop(0)

    def close(self):
        self.closed = True


def published(message):
    return {'type': 'message', 'channel': 'chat:match:m1', 'data': json.dumps(message)}


def test_channel_name():
    assert realtime.channel_for('abc') == 'chat:match:abc'


def test_merge_messages_dedups_and_orders():
    first = payload('b', '2024-01-01T10:00:01')
    second = payload('a', '2024-01-01T10:00:00')
    duplicate = payload('b', '2024-01-01T10:00:01', content='changed')

    merged = realtime.merge_messages([first], [second, duplicate])

    assert [m['id'] for m in merged] == ['a', 'b']
    assert merged[1]['content'] == 'hi'


def test_format_sse():
    frame = realtime.format_sse({'x': 1}, event_id='42')
    assert frame == 'id: 42\nevent: message\ndata: {"x": 1}\n\n'


def test_stream_replays_history_then_live_without_duplicates():
    history = [payload('a', '2024-01-01T10:00:00'), payload('b', '2024-01-01T10:00:01')]
    pubsub = FakePubSub([
        published(payload('b', '2024-01-01T10:00:01')),
        None,
        {'type': 'subscribe', 'data': 1},
        {'type': 'message', 'data': 'not json'},
        published(payload('c', '2024-01-01T10:00:02')),
    ])

    stream = realtime.stream_messages(pubsub, history, heartbeat=0)
    frames = []
    try:
        for frame in stream:
            frames.append(frame)
    except Disconnected:
        pass

    data_frames = [f for f in frames if f.startswith('id:')]
    assert [f.split('\n')[0] for f in data_frames] == ['id: a', 'id: b', 'id: c']
    assert ': heartbeat\n\n' in frames
    assert pubsub.closed is True


def test_stream_closes_pubsub_when_client_disconnects():
    pubsub = FakePubSub([None, None])
    stream = realtime.stream_messages(pubsub, [payload('a', '2024-01-01T10:00:00')])

    assert next(stream).startswith('id: a')
    stream.close()

    assert pubsub.closed is True


def test_publish_without_redis_is_a_no_op(app):
    assert realtime.publish_message(payload('a', '2024-01-01T10:00:00')) is False
    assert realtime.subscribe('m1') is None


def test_publish_uses_match_channel(app, monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(realtime, 'get_redis', lambda: client)

    assert realtime.publish_message(payload('a', '2024-01-01T10:00:00')) is True

    channel, body = client.publish.call_args[0]
    assert channel == 'chat:match:m1'
    assert json.loads(body)['id'] == 'a'
