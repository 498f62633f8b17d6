"""
Controlador del pipeline de voz:
  captura → transcribe → converse → synthesize → reproducción

Único dueño de la fase, del transcript, de la sesión de captura activa y del
slot de reproducción. Todos los cambios de fase pasan por next_phase().
"""
import logging
from typing import Callable, Optional, Protocol, Sequence

from .audio.mic import CaptureSession
from .audio.playback import PlaybackSlot
from .audio.waveform import WaveformRenderer
from .errors import (
    ConversationFailed,
    PermissionDenied,
    PlaybackError,
    SynthesisFailed,
    TranscriptionFailed,
)
from .state import ACCEPTS_INPUT, Event, Message, Phase, Sender, Transcript, next_phase
from .utils.logging import PIPELINE_LOGGER, log_ctrl


class Backend(Protocol):
    async def transcribe(self, audio: bytes) -> str: ...

    async def converse(self, history: Sequence[Message], prompt: str) -> str: ...

    async def synthesize(self, text: str) -> bytes: ...


class PipelineController:
    def __init__(
        self,
        backend: Backend,
        *,
        playback: Optional[PlaybackSlot] = None,
        renderer: Optional[WaveformRenderer] = None,
        capture_factory: Callable[[], CaptureSession] = CaptureSession,
        on_message: Optional[Callable[[Message], None]] = None,
        on_phase: Optional[Callable[[Phase], None]] = None,
        on_alert: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.backend = backend
        self.playback = playback or PlaybackSlot()
        self.renderer = renderer
        self._capture_factory = capture_factory
        self._on_message = on_message
        self._on_phase = on_phase
        self._on_alert = on_alert
        self._phase = Phase.IDLE
        self._transcript = Transcript()
        self._capture: Optional[CaptureSession] = None

    # ------------------------------------------------------------------
    # Estado observable
    # ------------------------------------------------------------------
    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def capture(self) -> Optional[CaptureSession]:
        return self._capture

    @property
    def accepts_input(self) -> bool:
        return self._phase in ACCEPTS_INPUT

    def _transition(self, event: Event) -> None:
        previous = self._phase
        self._phase = next_phase(previous, event)
        log_ctrl("Phase", f"{previous.name} --{event.name}--> {self._phase.name}", logging.DEBUG)
        self._sync_renderer()
        if self._on_phase is not None:
            self._on_phase(self._phase)

    def _sync_renderer(self) -> None:
        if self.renderer is None:
            return
        capture = self._capture
        try:
            self.renderer.update(
                self._phase is Phase.CAPTURING and capture is not None,
                capture.stream if capture is not None else None,
            )
        except Exception:
            # El waveform nunca debe afectar a la captura
            PIPELINE_LOGGER.exception("[CTRL][Viz] Fallo sincronizando el waveform")

    def _append(self, sender: Sender, text: str) -> None:
        message = Message(sender, text)
        self._transcript.append(message)
        if self._on_message is not None:
            self._on_message(message)

    def _alert(self, text: str) -> None:
        log_ctrl("Alert", text, logging.WARNING)
        if self._on_alert is not None:
            self._on_alert(text)

    # ------------------------------------------------------------------
    # Acciones del usuario
    # ------------------------------------------------------------------
    async def submit_text(self, text: str) -> bool:
        """Texto escrito. Solo se acepta en IDLE o PLAYING (corta el audio)."""
        prompt = text.strip()
        if not prompt:
            return False
        if not self.accepts_input:
            log_ctrl("Reject", f"submit_text ignorado en {self._phase.name}")
            return False
        self.playback.interrupt()
        await self._run_conversation(prompt, Event.SUBMIT_TEXT)
        return True

    async def start_recording(self) -> bool:
        """Pulsar grabar. Corta la reproducción antes de abrir el micrófono."""
        if not self.accepts_input:
            log_ctrl("Reject", f"start_recording ignorado en {self._phase.name}")
            return False
        self.playback.interrupt()
        session = self._capture_factory()
        self._capture = session
        self._transition(Event.START_RECORDING)
        try:
            await session.start()
        except PermissionDenied as e:
            log_ctrl("Mic", f"Permiso denegado: {e}", logging.WARNING)
            self._capture = None
            self._transition(Event.CAPTURE_FAILED)
            self._alert(e.user_message)
            return False
        except BaseException:
            self._capture = None
            self._transition(Event.CAPTURE_FAILED)
            raise
        if self._capture is not session:
            # aclose() llegó mientras se esperaba el permiso
            await session.stop()
            return False
        # El stream ya existe: ahora el waveform puede engancharse
        self._sync_renderer()
        return True

    async def stop_recording(self) -> bool:
        """Soltar grabar: cierra la captura, transcribe y sigue el pipeline."""
        capture = self._capture
        if self._phase is not Phase.CAPTURING or capture is None or not capture.capturing:
            log_ctrl("Reject", f"stop_recording ignorado en {self._phase.name}")
            return False
        self._capture = None
        self._transition(Event.STOP_RECORDING)

        try:
            audio = await capture.stop()
        except Exception:
            PIPELINE_LOGGER.exception("[CTRL][Mic] Error cerrando la captura")
            self._append(Sender.ASSISTANT, TranscriptionFailed.user_message)
            self._transition(Event.TRANSCRIPTION_FAILED)
            return True

        try:
            text = await self.backend.transcribe(audio or b"")
        except TranscriptionFailed as e:
            log_ctrl("STT", f"Transcripción fallida: {e}", logging.WARNING)
            self._append(Sender.ASSISTANT, e.user_message)
            self._transition(Event.TRANSCRIPTION_FAILED)
            return True

        await self._run_conversation(text, Event.TRANSCRIBED)
        return True

    async def aclose(self) -> None:
        """Suelta todos los recursos: audio, micrófono y waveform."""
        self.playback.interrupt()
        session, self._capture = self._capture, None
        if session is not None:
            await session.stop()
        if self._phase is Phase.CAPTURING:
            self._transition(Event.CAPTURE_FAILED)
        elif self._phase is Phase.PLAYING:
            self._transition(Event.PLAYBACK_ENDED)
        if self.renderer is not None:
            self.renderer.deactivate()

    # ------------------------------------------------------------------
    # Pipeline remoto
    # ------------------------------------------------------------------
    async def _run_conversation(self, prompt: str, event: Event) -> None:
        # El historial es el transcript justo antes de añadir el mensaje nuevo
        history = self._transcript.snapshot()
        self._append(Sender.USER, prompt)
        self._transition(event)

        try:
            reply = await self.backend.converse(history, prompt)
        except ConversationFailed as e:
            log_ctrl("LLM", f"Conversación fallida: {e}", logging.WARNING)
            self._append(Sender.ASSISTANT, e.user_message)
            self._transition(Event.CONVERSATION_FAILED)
            return

        self._append(Sender.ASSISTANT, reply)
        self._transition(Event.REPLIED)

        try:
            audio = await self.backend.synthesize(reply)
        except SynthesisFailed as e:
            log_ctrl("TTS", f"Síntesis fallida: {e}", logging.WARNING)
            self._append(Sender.ASSISTANT, e.user_message)
            self._transition(Event.SYNTHESIS_FAILED)
            return

        # Seguimos en SYNTHESIZING (sin aceptar input) hasta que el handle existe
        try:
            await self.playback.play(audio, on_end=self._on_playback_end)
        except PlaybackError as e:
            log_ctrl("TTS", f"Reproducción fallida: {e}", logging.WARNING)
            if self._phase is Phase.SYNTHESIZING:
                self._transition(Event.PLAYBACK_FAILED)
            self._alert(e.user_message)
            return
        self._transition(Event.SYNTHESIZED)

    def _on_playback_end(self) -> None:
        if self._phase is Phase.PLAYING:
            self._transition(Event.PLAYBACK_ENDED)
