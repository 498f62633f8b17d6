"""
STT: envía el WAV grabado al endpoint de transcripción.
Respuesta {text}; texto vacío cuenta como fallo (EmptyTranscript).
"""
import httpx

from ..config import CAPTURE_FILENAME, CAPTURE_MIME_TYPE
from ..errors import EmptyTranscript, TranscriptionFailed
from ..utils.logging import log_stt


async def transcribe(client: httpx.AsyncClient, audio: bytes, path: str) -> str:
    files = {"audio": (CAPTURE_FILENAME, audio, CAPTURE_MIME_TYPE)}
    log_stt("STT-Start", f"Enviando {len(audio)} bytes")
    try:
        resp = await client.post(path, files=files)
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise TranscriptionFailed(str(e), status_code=e.response.status_code) from e
    except (httpx.HTTPError, ValueError) as e:
        raise TranscriptionFailed(str(e)) from e

    text = data.get("text") if isinstance(data, dict) else None
    if not isinstance(text, str) or not text.strip():
        raise EmptyTranscript("Transcripción vacía")
    text = text.strip()
    log_stt("STT-Final", text)
    return text
