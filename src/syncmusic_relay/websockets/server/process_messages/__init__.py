"""
Message processing modules for WebSocket relay server.

This package contains handlers for the text (control) and binary (audio)
frames a client can send.
"""

from .control_message import ControlMessageHandler, parse_control_frame
from .audio_message import AudioMessageHandler

__all__ = [
    "ControlMessageHandler",
    "AudioMessageHandler",
    "parse_control_frame",
]
