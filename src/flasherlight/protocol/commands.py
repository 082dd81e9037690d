"""Light command codes and controller datagram builders."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Final

from ..models.frame import CommandFrame

_LOGGER = logging.getLogger(__name__)


class LightCommand(IntEnum):
    """Logical light commands (API platform numbering)."""

    NONE = 0
    OFF = 1
    STANDBY = 2
    BLUE_DIM = 3
    BLUE_MED = 4
    BLUE_BRI = 5
    GREEN_DIM = 6
    GREEN_MED = 7
    GREEN_BRI = 8
    ORANGE_DIM = 9
    ORANGE_MED = 10
    ORANGE_BRI = 11
    PINK_DIM = 12
    PINK_MED = 13
    PINK_BRI = 14
    PURPLE_DIM = 15
    PURPLE_MED = 16
    PURPLE_BRI = 17
    RED_DIM = 18
    RED_MED = 19
    RED_BRI = 20
    WHITECOOL_DIM = 21
    WHITECOOL_MED = 22
    WHITECOOL_BRI = 23
    WHITEPURE_DIM = 24
    WHITEPURE_MED = 25
    WHITEPURE_BRI = 26
    WHITEWARM_DIM = 27
    WHITEWARM_MED = 28
    WHITEWARM_BRI = 29
    YELLOW_DIM = 30
    YELLOW_MED = 31
    YELLOW_BRI = 32
    FADING_BLUE = 33
    FADING_GREEN = 34
    FADING_ORANGE = 35
    FADING_PINK = 36
    FADING_PURPLE = 37
    FADING_RED = 38
    FADING_WHITECOOL = 39
    FADING_WHITEPURE = 40
    FADING_WHITEWARM = 41
    FADING_YELLOW = 42
    FLASHING_BLUE = 43
    FLASHING_GREEN = 44
    FLASHING_ORANGE = 45
    FLASHING_PINK = 46
    FLASHING_PURPLE = 47
    FLASHING_RED = 48
    FLASHING_WHITECOOL = 49
    FLASHING_WHITEPURE = 50
    FLASHING_WHITEWARM = 51
    FLASHING_YELLOW = 52


# MessageNet platform sends one ASCII character per command
MESSAGENET_CODES: Final[dict[str, LightCommand]] = {
    " ": LightCommand.NONE,
    "!": LightCommand.OFF,
    "#": LightCommand.STANDBY,
    "(": LightCommand.BLUE_DIM,
    ")": LightCommand.BLUE_MED,
    "*": LightCommand.BLUE_BRI,
    "+": LightCommand.GREEN_DIM,
    ",": LightCommand.GREEN_MED,
    "-": LightCommand.GREEN_BRI,
    ".": LightCommand.ORANGE_DIM,
    "/": LightCommand.ORANGE_MED,
    "0": LightCommand.ORANGE_BRI,
    "1": LightCommand.PINK_DIM,
    "2": LightCommand.PINK_MED,
    "3": LightCommand.PINK_BRI,
    "4": LightCommand.PURPLE_DIM,
    "5": LightCommand.PURPLE_MED,
    "6": LightCommand.PURPLE_BRI,
    "7": LightCommand.RED_DIM,
    "8": LightCommand.RED_MED,
    "9": LightCommand.RED_BRI,
    ":": LightCommand.WHITECOOL_DIM,
    ";": LightCommand.WHITECOOL_MED,
    "?": LightCommand.WHITECOOL_BRI,
    "@": LightCommand.WHITEPURE_DIM,
    "A": LightCommand.WHITEPURE_MED,
    "B": LightCommand.WHITEPURE_BRI,
    "C": LightCommand.WHITEWARM_DIM,
    "D": LightCommand.WHITEWARM_MED,
    "E": LightCommand.WHITEWARM_BRI,
    "F": LightCommand.YELLOW_DIM,
    "G": LightCommand.YELLOW_MED,
    "H": LightCommand.YELLOW_BRI,
    "U": LightCommand.FADING_BLUE,
    "V": LightCommand.FADING_GREEN,
    "W": LightCommand.FADING_ORANGE,
    "X": LightCommand.FADING_PINK,
    "Y": LightCommand.FADING_PURPLE,
    "Z": LightCommand.FADING_RED,
    "[": LightCommand.FADING_WHITECOOL,
    "\\": LightCommand.FADING_WHITEPURE,
    "]": LightCommand.FADING_WHITEWARM,
    "^": LightCommand.FADING_YELLOW,
    "d": LightCommand.FLASHING_BLUE,
    "e": LightCommand.FLASHING_GREEN,
    "f": LightCommand.FLASHING_ORANGE,
    "g": LightCommand.FLASHING_PINK,
    "h": LightCommand.FLASHING_PURPLE,
    "i": LightCommand.FLASHING_RED,
    "j": LightCommand.FLASHING_WHITECOOL,
    "k": LightCommand.FLASHING_WHITEPURE,
    "l": LightCommand.FLASHING_WHITEWARM,
    "m": LightCommand.FLASHING_YELLOW,
}


class DatagramCommand(IntEnum):
    """Second byte of every controller datagram."""

    COLOR = 0x01
    SCENE = 0x02
    POWER = 0x03
    FLASH = 0x04
    SENSE = 0x05
    WHITE = 0x06


DATAGRAM_HEADER: Final = 0xB8
DATA_OFF: Final = 0x00
DATA_ON: Final = 0x01
POWER_OFF_KEEP_STATE: Final = 0x02  # keeps last state across a power cycle
SPEED_DESIRED: Final = 0x08         # color transition speed, 0x00-0x0a
WHITE_TONE_COOL: Final = 0x00

# Brightness power steps (0-15) per diode: (min, med, steady max)
RED_BRIGHTNESS: Final = (0x00, 0x01, 0x03)
GREEN_BRIGHTNESS: Final = (0x00, 0x02, 0x05)
BLUE_BRIGHTNESS: Final = (0x00, 0x02, 0x05)
WHITE_BRIGHTNESS: Final = (0x00, 0x02, 0x05)

# RGB saturation at minimum brightness that still renders as white
RGB_WHITE_MIN: Final = (0x36, 0x45, 0x43)

# Channel values (r, g, b) per color: (dim/medium saturation, full saturation)
COLOR_DATA: Final[dict[str, tuple[tuple[int, int, int], tuple[int, int, int]]]] = {
    "RED": ((0x36, 0x00, 0x00), (0xFF, 0x00, 0x00)),
    "GREEN": ((0x00, 0x45, 0x00), (0x00, 0xFF, 0x00)),
    "BLUE": ((0x00, 0x00, 0x43), (0x00, 0x00, 0xFF)),
    "YELLOW": ((0xAA, 0xFF, 0x00), (0xAA, 0xFF, 0x00)),
    "ORANGE": ((0xFF, 0x88, 0x00), (0xFF, 0x88, 0x00)),
    "PURPLE": ((0x66, 0x00, 0xFF), (0x66, 0x00, 0xFF)),
    "PINK": ((0xFF, 0x00, 0xCC), (0xFF, 0x00, 0xCC)),
}

_MIN, _MED, _MAX = 0, 1, 2


def _channel_brightness(rgb: tuple[int, int, int], level: int) -> int:
    """Pick the brightness power step that is safe for the lit channels.

    Minimum and medium use the lowest value among lit channels, steady
    maximum the highest. With no lit channel, white's value is used.
    """
    lit = [
        table[level]
        for value, table in zip(rgb, (RED_BRIGHTNESS, GREEN_BRIGHTNESS, BLUE_BRIGHTNESS))
        if value > 0
    ]
    if not lit:
        return WHITE_BRIGHTNESS[level]
    if level == _MAX:
        return max(lit)
    return min(lit)


def build_power_off() -> bytes:
    """Build the power-off datagram.

    Format:
        [header][0x03][0x00][0x02]
        - trailing 0x02 keeps the controller from resuming full white after
          input power returns
    """
    return bytes([DATAGRAM_HEADER, DatagramCommand.POWER, DATA_OFF, POWER_OFF_KEEP_STATE])


def build_power_on() -> bytes:
    """Build the power-on datagram: [header][0x03][0x01]."""
    return bytes([DATAGRAM_HEADER, DatagramCommand.POWER, DATA_ON])


def build_flashing(enabled: bool) -> bytes:
    """Build the controller-driven flashing datagram: [header][0x04][on/off]."""
    return bytes([DATAGRAM_HEADER, DatagramCommand.FLASH, DATA_ON if enabled else DATA_OFF])


def build_color(rgb: tuple[int, int, int], brightness: int, speed: int = SPEED_DESIRED) -> bytes:
    """Build a color datagram.

    Args:
        rgb: Red, green and blue saturation (0-255 each)
        brightness: Shared brightness power step (0-15)
        speed: Transition speed (0-10)

    Returns:
        Command bytes: [header][0x01][r][g][b][brightness][speed]

    Raises:
        ValueError: If any value is out of range
    """
    for name, value in zip(("red", "green", "blue"), rgb):
        if not 0 <= value <= 0xFF:
            raise ValueError(f"{name} out of range: {value} (must be 0-255)")
    if not 0 <= brightness <= 0x0F:
        raise ValueError(f"brightness out of range: {brightness} (must be 0-15)")
    if not 0 <= speed <= 0x0A:
        raise ValueError(f"speed out of range: {speed} (must be 0-10)")
    return bytes([DATAGRAM_HEADER, DatagramCommand.COLOR, *rgb, brightness, speed])


def build_white(brightness: int, tone: int = WHITE_TONE_COOL) -> bytes:
    """Build a white-diode datagram: [header][0x06][0x01][brightness][tone]."""
    if not 0 <= brightness <= 0x0F:
        raise ValueError(f"brightness out of range: {brightness} (must be 0-15)")
    return bytes([DATAGRAM_HEADER, DatagramCommand.WHITE, DATA_ON, brightness, tone])


def build_rgb_white_min() -> bytes:
    """Build the dim RGB-white datagram used as the standby appearance."""
    return build_color(RGB_WHITE_MIN, 0x00)


def _color_frame(color: str, level: int) -> bytes:
    dim_rgb, full_rgb = COLOR_DATA[color]
    rgb = full_rgb if level == _MAX else dim_rgb
    return build_color(rgb, _channel_brightness(rgb, level))


def _white_frame(level: int) -> bytes:
    return build_white(WHITE_BRIGHTNESS[level])


_LEVELS: Final = {"DIM": _MIN, "MED": _MED, "BRI": _MAX}


def resolve_command(code: int | str | LightCommand) -> LightCommand | int:
    """Normalize an incoming command code.

    Accepts a LightCommand, its integer value, or a one-character
    MessageNet platform code. Unknown codes are returned unchanged so the
    caller can still log them; they translate to the standby appearance.
    """
    if isinstance(code, LightCommand):
        return code
    if isinstance(code, str):
        if len(code) != 1:
            raise ValueError(f"platform code must be a single character, got {code!r}")
        if code in MESSAGENET_CODES:
            return MESSAGENET_CODES[code]
        return ord(code)
    try:
        return LightCommand(code)
    except ValueError:
        return code


def translate_command(code: int | str | LightCommand) -> list[CommandFrame]:
    """Translate a logical light command into controller frames.

    Returns:
        Frames to write in order; flashing and fading commands produce a
        color frame followed by a flash-on frame.
    """
    command = resolve_command(code)
    payloads = _payloads_for(command)
    frames = [CommandFrame(command=int(command), payload=p) for p in payloads]
    _LOGGER.debug(
        "Translated command %s into %s",
        command.name if isinstance(command, LightCommand) else command,
        [f.hex() for f in frames],
    )
    return frames


def _payloads_for(command: LightCommand | int) -> list[bytes]:
    if not isinstance(command, LightCommand):
        _LOGGER.warning("Unknown light command code %r, using standby appearance", command)
        return [build_rgb_white_min()]

    if command is LightCommand.OFF:
        return [build_power_off()]
    if command in (LightCommand.NONE, LightCommand.STANDBY):
        return [build_rgb_white_min()]

    name = command.name
    for prefix in ("FLASHING_", "FADING_"):
        if name.startswith(prefix):
            # Fading is not supported by the controller; it flashes instead
            color = name[len(prefix):]
            if color.startswith("WHITE"):
                base = _white_frame(_MAX)
            else:
                base = _color_frame(color, _MAX)
            return [base, build_flashing(True)]

    color, _, level = name.rpartition("_")
    if color.startswith("WHITE"):
        return [_white_frame(_LEVELS[level])]
    return [_color_frame(color, _LEVELS[level])]
