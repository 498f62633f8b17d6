"""
Configuración central del asistente de voz.
Sample rates, tamaños de chunk, waveform, textos de usuario y variables de entorno.
"""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


# -----------------------------------------------------------------------------
# Audio / Mic
# -----------------------------------------------------------------------------
MIC_SAMPLE_RATE = 16000
CHANNELS = 1
SAMPLE_WIDTH_BYTES = 2  # int16
MIC_CHUNK_FRAMES = 1024

# Único formato de captura: WAV LINEAR16 mono
CAPTURE_FILENAME = "recording.wav"
CAPTURE_MIME_TYPE = "audio/wav"

# -----------------------------------------------------------------------------
# Waveform
# -----------------------------------------------------------------------------
ANALYSER_FFT_SIZE = 512
WAVEFORM_WIDTH = 60
WAVEFORM_HEIGHT = 9
WAVEFORM_FPS = 30

# -----------------------------------------------------------------------------
# Playback (ffplay)
# -----------------------------------------------------------------------------
FFPLAY_BINARY = "ffplay"

# -----------------------------------------------------------------------------
# Textos para el usuario
# -----------------------------------------------------------------------------
TRANSCRIPTION_ERROR_TEXT = "Perdón, no pude entender lo que dijiste."
CONVERSATION_ERROR_TEXT = "Perdón, tuve un error. Inténtalo de nuevo."
SYNTHESIS_ERROR_TEXT = "Perdón, no pude leer la respuesta en voz alta."
PERMISSION_DENIED_TEXT = "No hay acceso al micrófono."
PLAYBACK_ERROR_TEXT = "No se pudo reproducir el audio (¿ffplay instalado?)."


# -----------------------------------------------------------------------------
# Backend (validación bajo demanda)
# -----------------------------------------------------------------------------
DEFAULT_API_URL = "http://localhost:5000/api"


def get_api_url() -> str:
    return os.environ.get("VOICE_ASSISTANT_API_URL", DEFAULT_API_URL).rstrip("/")


def get_request_timeout() -> float | None:
    """Timeout en segundos; vacío o no definido = sin timeout."""
    raw = os.environ.get("VOICE_ASSISTANT_TIMEOUT", "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"VOICE_ASSISTANT_TIMEOUT inválido: {raw!r}")
    return value if value > 0 else None


def get_log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class BackendConfig:
    base_url: str = DEFAULT_API_URL
    transcribe_path: str = "/speech-to-text"
    converse_path: str = "/chat"
    synthesize_path: str = "/text-to-speech"
    health_path: str = "/healthcheck"
    timeout: float | None = None

    @classmethod
    def from_env(cls, base_url: str | None = None) -> "BackendConfig":
        return cls(
            base_url=(base_url or get_api_url()).rstrip("/"),
            timeout=get_request_timeout(),
        )
