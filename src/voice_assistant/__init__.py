"""
Asistente conversacional por voz.
  voz o texto → STT → LLM → TTS → reproducción, con waveform en vivo al grabar
"""
from .backend import BackendClient
from .config import BackendConfig
from .controller import PipelineController
from .state import Event, Message, Phase, Sender, Transcript, next_phase

__all__ = [
    "BackendClient",
    "BackendConfig",
    "PipelineController",
    "Event",
    "Message",
    "Phase",
    "Sender",
    "Transcript",
    "next_phase",
]
