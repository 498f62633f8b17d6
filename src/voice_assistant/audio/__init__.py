from .mic import CaptureSession, MicStream, encode_wav, list_audio_devices
from .playback import PlaybackHandle, PlaybackSlot
from .waveform import AnalyserTap, TextCanvas, WaveformRenderer, waveform_points

__all__ = [
    "CaptureSession",
    "MicStream",
    "encode_wav",
    "list_audio_devices",
    "PlaybackHandle",
    "PlaybackSlot",
    "AnalyserTap",
    "TextCanvas",
    "WaveformRenderer",
    "waveform_points",
]
