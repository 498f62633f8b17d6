"""
TTS: pide al backend el audio de la respuesta.
Respuesta {audioContent} en base64 (MP3); se devuelve ya decodificado.
"""
import base64
import binascii

import httpx

from ..errors import SynthesisFailed
from ..utils.logging import log_tts


async def synthesize(client: httpx.AsyncClient, text: str, path: str) -> bytes:
    log_tts("TTS-Start", f"Texto: {text}")
    try:
        resp = await client.post(path, json={"text": text})
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise SynthesisFailed(str(e), status_code=e.response.status_code) from e
    except (httpx.HTTPError, ValueError) as e:
        raise SynthesisFailed(str(e)) from e

    content = data.get("audioContent") if isinstance(data, dict) else None
    if not isinstance(content, str) or not content:
        raise SynthesisFailed("Respuesta sin 'audioContent'")
    try:
        audio = base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SynthesisFailed(f"audioContent no es base64: {e}") from e
    log_tts("TTS-Audio", f"{len(audio)} bytes")
    return audio
