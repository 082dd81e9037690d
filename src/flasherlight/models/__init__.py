"""Data models for flasher light controllers."""

from .config import FlasherLightConfig, config_from_json, config_to_json, load_config
from .enums import ProblemKind, SessionState, WriteTag
from .frame import CommandFrame
from .session import Session

__all__ = [
    "CommandFrame",
    "FlasherLightConfig",
    "ProblemKind",
    "Session",
    "SessionState",
    "WriteTag",
    "config_from_json",
    "config_to_json",
    "load_config",
]
