import json
from typing import Optional
from . import core

async def publish(topic: str, data: dict, key: Optional[str] = None):
    """Send one JSON event; events sharing a key land on the same partition"""
    if not core.KAFKA_PRODUCER:
        raise RuntimeError('Kafka producer not started')
    await core.KAFKA_PRODUCER.send_and_wait(
        topic,
        json.dumps(data, default=str).encode('utf-8'),
        key=key.encode('utf-8') if key else None,
    )
