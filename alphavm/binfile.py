"""Reading and writing compiled programs in the binary bytecode format."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path

from alphavm.instructions import Instruction, UserFunc

MAGIC = 0x12345678

_U32 = struct.Struct("<I")
_F64 = struct.Struct("<d")


class BinaryFormatError(ValueError):
    """The bytes are not a valid compiled program."""


@dataclass
class Program:
    """Instructions and constant tables of a compiled program."""

    instructions: list[Instruction] = field(default_factory=list)
    num_consts: list[float] = field(default_factory=list)
    string_consts: list[str] = field(default_factory=list)
    lib_funcs: list[str] = field(default_factory=list)
    user_funcs: list[UserFunc] = field(default_factory=list)


def _encode_strings(strings: list[str]) -> bytes:
    parts = [_U32.pack(len(strings))]
    for text in strings:
        raw = text.encode("utf-8") + b"\0"
        parts.append(_U32.pack(len(raw)))
        parts.append(raw)
    return b"".join(parts)


def encode_program(program: Program) -> bytes:
    """The program in binary form."""
    parts = [_U32.pack(MAGIC), _U32.pack(len(program.instructions))]
    parts.extend(instr.pack() for instr in program.instructions)
    parts.append(_U32.pack(len(program.num_consts)))
    parts.extend(_F64.pack(value) for value in program.num_consts)
    parts.append(_encode_strings(program.string_consts))
    parts.append(_encode_strings(program.lib_funcs))
    parts.append(_U32.pack(len(program.user_funcs)))
    parts.extend(func.pack() for func in program.user_funcs)
    return b"".join(parts)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def take(self, size: int, message: str) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise BinaryFormatError(message)
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def u32(self, message: str) -> int:
        return _U32.unpack(self.take(_U32.size, message))[0]

    def strings(self, what: str) -> list[str]:
        count = self.u32(f"Could not read {what}s count")
        result = []
        for _ in range(count):
            length = self.u32(f"Could not read {what} length")
            raw = self.take(length, f"Could not read {what}")
            result.append(raw.split(b"\0", 1)[0].decode("utf-8", errors="replace"))
        return result


def decode_program(data: bytes) -> Program:
    """Parse a program from its binary form."""
    reader = _Reader(data)
    if reader.u32("Invalid binary file format") != MAGIC:
        raise BinaryFormatError("Invalid binary file format")

    count = reader.u32("Could not read instruction count")
    instructions = []
    for _ in range(count):
        record = reader.take(Instruction.SIZE, "Could not read instructions")
        try:
            instructions.append(Instruction.from_bytes(record))
        except ValueError as exc:
            raise BinaryFormatError(f"Could not read instructions: {exc}") from exc

    count = reader.u32("Could not read number constants count")
    num_consts = [
        _F64.unpack(reader.take(_F64.size, "Could not read number constants"))[0]
        for _ in range(count)
    ]

    count = reader.u32("Could not read string constants count")
    string_consts = []
    for _ in range(count):
        length = reader.u32("Could not read string length")
        raw = reader.take(length, "Could not read string constant")
        string_consts.append(raw.split(b"\0", 1)[0].decode("utf-8", errors="replace"))

    lib_funcs = reader.strings("library function name")

    count = reader.u32("Could not read user functions count")
    user_funcs = [
        UserFunc.from_bytes(reader.take(UserFunc.SIZE, "Could not read user functions"))
        for _ in range(count)
    ]
    return Program(instructions, num_consts, string_consts, lib_funcs, user_funcs)


def write_program(program: Program, path: str | Path) -> None:
    """Write a program to a binary file."""
    Path(path).write_bytes(encode_program(program))


def read_program(path: str | Path) -> Program:
    """Load a program from a binary file."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise BinaryFormatError(f"Could not open binary file {path}") from exc
    return decode_program(data)