"""
Live chat feed over Redis pub/sub, delivered to browsers as Server-Sent Events.

A subscriber joins the channel before loading history, so nothing inserted in
between is lost; anything seen twice is dropped by message id.
"""
import json
import logging
from typing import Iterable, List

import redis

from utils.cache import get_redis

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15


def channel_for(match_id) -> str:
    return f"chat:match:{match_id}"


def publish_message(payload: dict) -> bool:
    """Announce a committed message to live subscribers"""
    client = get_redis()
    if client is None:
        return False
    try:
        client.publish(channel_for(payload['match_id']), json.dumps(payload))
        return True
    except redis.RedisError as e:
        logger.error(f"Failed to publish message {payload.get('id')}: {e}")
        return False


def subscribe(match_id):
    """Open a pub/sub subscription, or None when Redis is unavailable"""
    client = get_redis()
    if client is None:
        return None
    pubsub = client.pubsub(ignore_subscribe_messages=True)
    pubsub.subscribe(channel_for(match_id))
    return pubsub


def merge_messages(*batches: Iterable[dict]) -> List[dict]:
    """Union of message payloads keyed by id, in chronological order"""
    merged = {}
    for batch in batches:
        for payload in batch:
            merged.setdefault(payload['id'], payload)
    return sorted(merged.values(), key=lambda p: (p.get('created_at') or '', p['id']))


def format_sse(data: dict, event: str = 'message', event_id: str = None) -> str:
    lines = []
    if event_id:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data)}")
    return '\n'.join(lines) + '\n\n'


def stream_messages(pubsub, history: List[dict], heartbeat: int = HEARTBEAT_SECONDS):
    """
    Yield SSE frames: history first, then live inserts, each id at most once.
    Idle periods produce a comment line so proxies keep the connection open.
    """
    seen = set()
    try:
        for payload in merge_messages(history):
            seen.add(payload['id'])
            yield format_sse(payload, event_id=payload['id'])

        while True:
            raw = pubsub.get_message(timeout=heartbeat)
            if raw is None:
                yield ": heartbeat\n\n"
                continue
            if raw.get('type') != 'message':
                continue
            try:
                payload = json.loads(raw['data'])
            except (TypeError, ValueError):
                logger.warning("Dropping malformed realtime payload")
                continue
            if payload.get('id') in seen:
                continue
            seen.add(payload['id'])
            yield format_sse(payload, event_id=payload['id'])
    finally:
        pubsub.close()
