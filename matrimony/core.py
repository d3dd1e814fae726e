"""
Process-wide connections (Kafka producer, Redis) and Prometheus counters.

Both connections are optional at runtime: when a broker is unreachable the
global stays ``None`` and callers skip the side effect.
"""
import os
import asyncio
import logging
from aiokafka import AIOKafkaProducer
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from prometheus_client import Counter, start_http_server
from redis import asyncio as aioredis

logger = logging.getLogger(__name__)

KAFKA_PRODUCER = None
REDIS = None

KAFKA_BOOTSTRAP_SERVERS = os.getenv('KAFKA_BOOTSTRAP_SERVERS', 'kafka:9092')
REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
NOTIFICATIONS_TOPIC = os.getenv('NOTIFICATIONS_TOPIC', 'notifications-queue')
NOTIFICATIONS_RETENTION_MS = 7 * 24 * 60 * 60 * 1000

CONTACT_INFO_BLOCKED = Counter(
    'matrimony_contact_info_blocked_total',
    'Contact details redacted from user text',
    ['channel'],
)
CONNECTION_TRANSITIONS = Counter(
    'matrimony_connection_transitions_total',
    'Applied connection request transitions',
    ['field', 'value'],
)
CONNECTION_CONFLICTS = Counter(
    'matrimony_connection_conflicts_total',
    'Connection request operations rejected because state changed underneath them',
    ['operation'],
)


def init_metrics(port: int = None):
    """Expose the counters above on a separate HTTP port"""
    port = port or int(os.getenv('METRICS_PORT', '8001'))
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics server started on port {port}")
    except OSError as e:
        logger.warning(f'Prometheus start failed: {e}')


async def _connect_with_retries(name: str, connect, close, attempts: int, delay: float):
    """
    Call ``connect`` until it returns a live client or ``attempts`` run out.
    A half-open client from a failed attempt is handed to ``close``.
    """
    for attempt in range(1, attempts + 1):
        client = None
        try:
            logger.info(f"Connecting to {name} (attempt {attempt}/{attempts})")
            client = await connect()
            logger.info(f"{name} connected")
            return client
        except Exception as e:
            logger.warning(f'{name} connection attempt {attempt} failed: {e}')
            if client is not None:
                await close(client)
            if attempt < attempts:
                await asyncio.sleep(delay)
    logger.error(f"Giving up on {name} after {attempts} attempts")
    return None


async def _stop_producer(producer):
    try:
        await producer.stop()
    except Exception as e:
        logger.debug(f'Ignoring error while stopping Kafka producer: {e}')


async def _close_redis(client):
    try:
        await client.aclose()
    except Exception as e:
        logger.debug(f'Ignoring error while closing Redis: {e}')


async def kafka_startup(attempts: int = 3, delay: float = 5):
    global KAFKA_PRODUCER

    async def connect():
        producer = AIOKafkaProducer(
            bootstrap_servers=KAFKA_BOOTSTRAP_SERVERS,
            retry_backoff_ms=500,
            request_timeout_ms=30000,
            linger_ms=100,
            compression_type='gzip',
            acks='all',
        )
        try:
            await producer.start()
        except Exception:
            await _stop_producer(producer)
            raise
        return producer

    KAFKA_PRODUCER = await _connect_with_retries(
        f'Kafka at {KAFKA_BOOTSTRAP_SERVERS}', connect, _stop_producer, attempts, delay
    )


async def redis_startup(attempts: int = 3, delay: float = 3):
    """Redis is only used for rate-limit counters"""
    global REDIS

    async def connect():
        client = aioredis.from_url(
            REDIS_URL,
            max_connections=20,
            health_check_interval=30,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        try:
            await client.ping()
        except Exception:
            await _close_redis(client)
            raise
        return client

    REDIS = await _connect_with_retries('Redis', connect, _close_redis, attempts, delay)


async def create_kafka_topics():
    if not KAFKA_PRODUCER:
        logger.warning("Kafka producer not available, skipping topic creation")
        return

    admin = AIOKafkaAdminClient(bootstrap_servers=KAFKA_BOOTSTRAP_SERVERS)
    try:
        await admin.start()
        await admin.create_topics([
            NewTopic(
                name=NOTIFICATIONS_TOPIC,
                num_partitions=8,
                replication_factor=1,
                topic_configs={'retention.ms': str(NOTIFICATIONS_RETENTION_MS)},
            )
        ])
        logger.info(f"Created Kafka topic: {NOTIFICATIONS_TOPIC}")
    except Exception as e:
        # usually TopicAlreadyExistsError on every restart after the first
        logger.info(f"Kafka topic {NOTIFICATIONS_TOPIC} not created: {e}")
    finally:
        await admin.close()


async def shutdown_connections():
    global KAFKA_PRODUCER, REDIS
    if KAFKA_PRODUCER:
        await _stop_producer(KAFKA_PRODUCER)
        KAFKA_PRODUCER = None
        logger.info("Kafka producer stopped")
    if REDIS:
        await _close_redis(REDIS)
        REDIS = None
        logger.info("Redis connection closed")
