"""
Errores tipados del asistente.
Cada error de etapa lleva el mensaje que ve el usuario cuando el controlador lo captura.
"""
from .config import (
    CONVERSATION_ERROR_TEXT,
    PERMISSION_DENIED_TEXT,
    PLAYBACK_ERROR_TEXT,
    SYNTHESIS_ERROR_TEXT,
    TRANSCRIPTION_ERROR_TEXT,
)


class VoiceAssistantError(Exception):
    """Raíz de todos los errores del asistente."""

    user_message = "Perdón, algo salió mal."


class PermissionDenied(VoiceAssistantError):
    """El usuario o la plataforma negó el acceso al micrófono."""

    user_message = PERMISSION_DENIED_TEXT


class RemoteStageError(VoiceAssistantError):
    """Fallo de una de las tres llamadas al backend."""

    stage = "remote"

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        super().__init__(detail or self.stage)
        self.detail = detail
        self.status_code = status_code


class TranscriptionFailed(RemoteStageError):
    stage = "transcribe"
    user_message = TRANSCRIPTION_ERROR_TEXT


class EmptyTranscript(TranscriptionFailed):
    """Respuesta técnicamente correcta pero sin texto utilizable."""


class ConversationFailed(RemoteStageError):
    stage = "converse"
    user_message = CONVERSATION_ERROR_TEXT


class SynthesisFailed(RemoteStageError):
    stage = "synthesize"
    user_message = SYNTHESIS_ERROR_TEXT


class PlaybackError(VoiceAssistantError):
    """No se pudo arrancar el reproductor local."""

    user_message = PLAYBACK_ERROR_TEXT


class InvalidTransition(VoiceAssistantError):
    """Evento no válido para la fase actual."""

    def __init__(self, phase, event) -> None:
        super().__init__(f"{event.name} no es válido en {phase.name}")
        self.phase = phase
        self.event = event
