# clinicnotes/workers/transcription_worker.py
import asyncio
import json
import logging

from aiokafka import AIOKafkaConsumer  # type: ignore
from sqlalchemy import select, update

from clinicnotes.config import KAFKA_BOOTSTRAP, KAFKA_TOPIC_TRANSCRIPTION, KAFKA_GROUP_TRANSCRIPTION, LOG_LEVEL
from clinicnotes.db import SessionLocal
from clinicnotes.models import VoiceRecording
from clinicnotes.services.security import encrypt
from clinicnotes.services.transcription import transcribe_audio, TranscriptionError

logger = logging.getLogger(__name__)


async def _mark_failed(db, recording_id: str, err: str):
    logger.warning("transcription failed id=%s: %s", recording_id, err)
    await db.execute(
        update(VoiceRecording)
        .where(VoiceRecording.id == recording_id)
        .values(transcription_status="failed", error=err)
    )
    await db.commit()


async def handle_message(payload: dict):
    """전사 요청 한 건 처리: pending -> processing -> completed | failed"""
    recording_id = payload.get("recording_id")
    if recording_id is None:
        logger.warning("payload에 recording_id가 없습니다: %s", payload)
        return
    language = payload.get("language") or "he"

    async with SessionLocal() as db:
        result = await db.execute(select(VoiceRecording).where(VoiceRecording.id == recording_id))
        recording = result.scalar_one_or_none()
        if not recording:
            logger.warning("VoiceRecording(id=%s)을 찾을 수 없습니다.", recording_id)
            return

        # 이미 완료된 녹음은 스킵
        if recording.transcription_status == "completed":
            logger.info("이미 전사된 녹음 id=%s", recording_id)
            return

        await db.execute(
            update(VoiceRecording)
            .where(VoiceRecording.id == recording_id)
            .values(transcription_status="processing", error=None)
        )
        await db.commit()

        if not recording.encrypted_audio:
            await _mark_failed(db, recording_id, "empty audio")
            return

        try:
            diarized = await transcribe_audio(recording.encrypted_audio, language)
        except TranscriptionError as e:
            await _mark_failed(db, recording_id, str(e))
            return
        except Exception as e:
            await _mark_failed(db, recording_id, f"exception: {e}")
            return

        await db.execute(
            update(VoiceRecording)
            .where(VoiceRecording.id == recording_id)
            .values(
                transcription_status="completed",
                diarized_transcript=diarized,
                encrypted_transcript=encrypt(diarized["raw_transcript"]),
                error=None,
            )
        )
        await db.commit()
        logger.info("transcription completed id=%s speakers=%s", recording_id, diarized["speaker_count"])


async def main():
    logger.info(
        "transcription worker 시작 - bootstrap=%s, topic=%s, group_id=%s",
        KAFKA_BOOTSTRAP, KAFKA_TOPIC_TRANSCRIPTION, KAFKA_GROUP_TRANSCRIPTION,
    )
    consumer = AIOKafkaConsumer(
        KAFKA_TOPIC_TRANSCRIPTION,
        bootstrap_servers=KAFKA_BOOTSTRAP or "localhost:9092",
        group_id=KAFKA_GROUP_TRANSCRIPTION,
        value_deserializer=lambda v: json.loads(v),
        key_deserializer=lambda v: v.decode() if v is not None else None,
        enable_auto_commit=False,
        auto_offset_reset="earliest",
    )
    await consumer.start()
    try:
        while True:
            batch = await consumer.getmany(timeout_ms=1000)
            for tp, messages in batch.items():
                for msg in messages:
                    logger.debug("새 메시지 수신 - offset=%s, key=%s", msg.offset, msg.key)
                    await handle_message(msg.value)
                    await consumer.commit()
    finally:
        await consumer.stop()


if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
