# clinicnotes/kafka.py
import json
import logging
from aiokafka import AIOKafkaProducer

from clinicnotes.config import KAFKA_BOOTSTRAP

logger = logging.getLogger(__name__)

producer: AIOKafkaProducer | None = None

async def start_kafka():
    global producer
    if not KAFKA_BOOTSTRAP:
        logger.info("KAFKA_BOOTSTRAP not set, kafka producer disabled")
        return
    producer = AIOKafkaProducer(
        bootstrap_servers=KAFKA_BOOTSTRAP,
        value_serializer=lambda v: json.dumps(v, default=str).encode(),
        key_serializer=lambda v: str(v).encode(),
        linger_ms=5,
        acks="all",
        enable_idempotence=True,
    )
    await producer.start()

async def stop_kafka():
    global producer
    if producer:
        await producer.stop()
        producer = None

async def publish(topic: str, value: dict, key=None) -> bool:
    """프로듀서가 없거나 전송 실패 시 False (best-effort)"""
    if producer is None:
        return False
    try:
        await producer.send_and_wait(topic, value=value, key=key)
    except Exception:
        logger.exception("kafka publish failed: topic=%s", topic)
        return False
    return True
