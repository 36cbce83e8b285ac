from fastapi import APIRouter, Depends, HTTPException

from clinicnotes.models import User
from clinicnotes.schemas import DataResp, DiarizedTranscript, TranscribeReq
from clinicnotes.services.auth_service import get_current_user
from clinicnotes.services.transcription import transcribe_audio, deepgram_api_key, TranscriptionError

router = APIRouter(prefix="/transcribe", tags=["transcribe"])

@router.post("", response_model=DataResp[DiarizedTranscript])
async def transcribe(req: TranscribeReq, current_user: User = Depends(get_current_user)):
    """base64 / data URL 오디오를 Deepgram으로 전사 (화자 분리)"""
    if not deepgram_api_key():
        raise HTTPException(
            500,
            "Deepgram API key not configured. Please add DEEPGRAM_API_KEY to your environment variables.",
        )
    try:
        result = await transcribe_audio(req.audio_data, req.language)
    except TranscriptionError as e:
        raise HTTPException(500, f"Failed to transcribe audio: {e}")
    return {"data": result}
