"""OBD-II mode 01 PID table and response decoding.

Each supported telemetry field maps to a 4-character request code
(``"01"`` mode prefix + 2-character PID) and a linear transform from the
response data bytes to a physical value::

    rpm                     010C  ((A * 256) + B) / 4        rpm
    speed                   010D  A                          km/h
    coolant_temp            0105  A - 40                     °C
    fuel_level              012F  A * 100 / 255              %
    engine_load             0104  A * 100 / 255              %
    throttle_position       0111  A * 100 / 255              %
    control_module_voltage  0142  ((A * 256) + B) / 1000     V

No rounding or clamping is applied here.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from dashpilot.exceptions import InvalidResponseFormatError, UnknownPidError
from dashpilot.models.telemetry import TelemetryField

Decoder = Callable[[bytes], float]


def _rpm(data: bytes) -> float:
    return ((data[0] * 256) + data[1]) / 4


def _identity(data: bytes) -> float:
    return float(data[0])


def _temperature(data: bytes) -> float:
    return float(data[0] - 40)


def _percent(data: bytes) -> float:
    return data[0] * 100 / 255


def _millivolts(data: bytes) -> float:
    return int.from_bytes(data, "big") / 1000


@dataclass(frozen=True, slots=True)
class PidCommand:
    """A mode 01 request and how to decode its answer."""

    field: TelemetryField
    code: str
    data_bytes: int
    unit: str
    decoder: Decoder

    @property
    def pid(self) -> str:
        """The 2-character PID the adapter echoes back (``"0C"`` for ``"010C"``)."""
        return self.code[2:]

    def decode(self, data: bytes) -> float:
        return self.decoder(data[: self.data_bytes])


_COMMANDS: tuple[PidCommand, ...] = (
    PidCommand(TelemetryField.RPM, "010C", 2, "rpm", _rpm),
    PidCommand(TelemetryField.SPEED, "010D", 1, "km/h", _identity),
    PidCommand(TelemetryField.COOLANT_TEMP, "0105", 1, "°C", _temperature),
    PidCommand(TelemetryField.FUEL_LEVEL, "012F", 1, "%", _percent),
    PidCommand(TelemetryField.ENGINE_LOAD, "0104", 1, "%", _percent),
    PidCommand(TelemetryField.THROTTLE_POSITION, "0111", 1, "%", _percent),
    PidCommand(TelemetryField.CONTROL_MODULE_VOLTAGE, "0142", 2, "V", _millivolts),
)

#: Telemetry field -> command.  Immutable for the process lifetime.
PID_TABLE: Mapping[TelemetryField, PidCommand] = MappingProxyType({cmd.field: cmd for cmd in _COMMANDS})

_BY_CODE: Mapping[str, PidCommand] = MappingProxyType({cmd.code: cmd for cmd in _COMMANDS})


def pid_for(field: TelemetryField) -> PidCommand:
    return PID_TABLE[field]


def command_for_code(code: str) -> PidCommand:
    """Look up a command by its request code (case-insensitive)."""
    try:
        return _BY_CODE[code.strip().upper()]
    except KeyError:
        raise UnknownPidError(code) from None


def parse_hex_payload(hex_payload: str, *, command: str = "") -> bytes:
    """Turn a concatenated hex string (``"1AF8"``) into bytes."""
    compact = "".join(hex_payload.split())
    if not compact or len(compact) % 2:
        raise InvalidResponseFormatError(
            f"Malformed hex payload {hex_payload!r}",
            command=command,
            response=hex_payload,
        )
    try:
        return bytes.fromhex(compact)
    except ValueError as exc:
        raise InvalidResponseFormatError(
            f"Payload is not hexadecimal: {hex_payload!r}",
            command=command,
            response=hex_payload,
        ) from exc


def decode(pid: str, hex_payload: str) -> float:
    """Decode a mode 01 payload into its physical value.

    Parameters
    ----------
    pid : str
        4-character request code, e.g. ``"010C"``.
    hex_payload : str
        Data bytes as concatenated hex, e.g. ``"1AF8"``.

    Raises
    ------
    UnknownPidError
        *pid* has no decoder.
    InvalidResponseFormatError
        The payload is not hex or is shorter than the PID requires.
    """
    command = command_for_code(pid)
    data = parse_hex_payload(hex_payload, command=command.code)
    if len(data) < command.data_bytes:
        raise InvalidResponseFormatError(
            f"PID {command.code} needs {command.data_bytes} data byte(s), got {len(data)}",
            command=command.code,
            response=hex_payload,
        )
    return command.decode(data)
