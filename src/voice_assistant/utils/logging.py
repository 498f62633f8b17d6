"""
Utilidades de logging para el asistente de voz.
Un logger por paquete y helpers con el prefijo [ETAPA][TAG] de cada componente.
"""
import logging
import sys

PIPELINE_LOGGER = logging.getLogger("voice_assistant")

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configura el logger raíz una sola vez al arrancar la app."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )


def _log(stage: str, tag: str, msg: str, level: int) -> None:
    PIPELINE_LOGGER.log(level, f"[{stage}][{tag}] {msg}")


def log_mic(tag: str, msg: str, level: int = logging.INFO) -> None:
    """Log de eventos de captura de micrófono."""
    _log("MIC", tag, msg, level)


def log_viz(tag: str, msg: str, level: int = logging.DEBUG) -> None:
    """Log del renderer de waveform."""
    _log("VIZ", tag, msg, level)


def log_stt(tag: str, msg: str, level: int = logging.INFO) -> None:
    """Log de eventos STT."""
    _log("STT", tag, msg, level)


def log_llm(tag: str, msg: str, level: int = logging.INFO) -> None:
    """Log de eventos LLM."""
    _log("LLM", tag, msg, level)


def log_tts(tag: str, msg: str, level: int = logging.INFO) -> None:
    """Log de eventos TTS y reproducción."""
    _log("TTS", tag, msg, level)


def log_ctrl(tag: str, msg: str, level: int = logging.INFO) -> None:
    """Log del controlador del pipeline."""
    _log("CTRL", tag, msg, level)
