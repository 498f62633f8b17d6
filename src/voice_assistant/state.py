"""
Estado del asistente: fases del pipeline, eventos, tabla de transiciones,
mensajes y transcript append-only.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from .errors import InvalidTransition


class Phase(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    TRANSCRIBING = "transcribing"
    CONVERSING = "conversing"
    SYNTHESIZING = "synthesizing"
    PLAYING = "playing"

    @property
    def is_thinking(self) -> bool:
        """Fases remotas: se muestra el indicador de "pensando"."""
        return self in (Phase.TRANSCRIBING, Phase.CONVERSING, Phase.SYNTHESIZING)


class Event(Enum):
    SUBMIT_TEXT = "submit_text"
    START_RECORDING = "start_recording"
    CAPTURE_FAILED = "capture_failed"
    STOP_RECORDING = "stop_recording"
    TRANSCRIBED = "transcribed"
    TRANSCRIPTION_FAILED = "transcription_failed"
    REPLIED = "replied"
    CONVERSATION_FAILED = "conversation_failed"
    SYNTHESIZED = "synthesized"
    SYNTHESIS_FAILED = "synthesis_failed"
    PLAYBACK_ENDED = "playback_ended"
    PLAYBACK_FAILED = "playback_failed"


TRANSITIONS: dict[tuple[Phase, Event], Phase] = {
    (Phase.IDLE, Event.SUBMIT_TEXT): Phase.CONVERSING,
    (Phase.IDLE, Event.START_RECORDING): Phase.CAPTURING,
    (Phase.CAPTURING, Event.CAPTURE_FAILED): Phase.IDLE,
    (Phase.CAPTURING, Event.STOP_RECORDING): Phase.TRANSCRIBING,
    (Phase.TRANSCRIBING, Event.TRANSCRIBED): Phase.CONVERSING,
    (Phase.TRANSCRIBING, Event.TRANSCRIPTION_FAILED): Phase.IDLE,
    (Phase.CONVERSING, Event.REPLIED): Phase.SYNTHESIZING,
    (Phase.CONVERSING, Event.CONVERSATION_FAILED): Phase.IDLE,
    (Phase.SYNTHESIZING, Event.SYNTHESIZED): Phase.PLAYING,
    (Phase.SYNTHESIZING, Event.SYNTHESIS_FAILED): Phase.IDLE,
    (Phase.SYNTHESIZING, Event.PLAYBACK_FAILED): Phase.IDLE,
    (Phase.PLAYING, Event.PLAYBACK_ENDED): Phase.IDLE,
    # Interrupción: una acción nueva corta la reproducción en curso
    (Phase.PLAYING, Event.SUBMIT_TEXT): Phase.CONVERSING,
    (Phase.PLAYING, Event.START_RECORDING): Phase.CAPTURING,
}

# Fases desde las que el usuario puede arrancar un pipeline nuevo
ACCEPTS_INPUT = frozenset({Phase.IDLE, Phase.PLAYING})


def next_phase(phase: Phase, event: Event) -> Phase:
    """Única función de transición; lanza InvalidTransition si el evento no aplica."""
    try:
        return TRANSITIONS[(phase, event)]
    except KeyError:
        raise InvalidTransition(phase, event) from None


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    sender: Sender
    text: str


class Transcript:
    """Historial ordenado de mensajes; solo admite append."""

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __getitem__(self, index):
        return tuple(self._messages)[index]

    def __repr__(self) -> str:
        return f"Transcript({self._messages!r})"
