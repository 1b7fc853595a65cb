"""Virtual machine instructions and their fixed-size binary records."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

_INSTRUCTION = struct.Struct("<8I")
_USERFUNC = struct.Struct("<IIQ")


class VMOpcode(IntEnum):
    """Operation of a machine instruction."""

    ASSIGN = 0
    ADD = 1
    SUB = 2
    MUL = 3
    DIV = 4
    MOD = 5
    UMINUS = 6
    AND = 7
    OR = 8
    NOT = 9
    JEQ = 10
    JNE = 11
    JLE = 12
    JGE = 13
    JLT = 14
    JGT = 15
    CALL = 16
    PUSHARG = 17
    FUNCENTER = 18
    FUNCEXIT = 19
    NEWTABLE = 20
    TABLEGETELEM = 21
    TABLESETELEM = 22
    NOP = 23
    JUMP = 24


class VMArgType(IntEnum):
    """Kind of an instruction operand."""

    LABEL = 0
    GLOBAL = 1
    FORMAL = 2
    LOCAL = 3
    NUMBER = 4
    STRING = 5
    BOOL = 6
    NIL = 7
    USERFUNC = 8
    LIBFUNC = 9
    RETVAL = 10
    UNDEF = 11


@dataclass
class VMArg:
    """An operand: its kind and an index or immediate value."""

    type: VMArgType = VMArgType.LABEL
    val: int = 0


@dataclass
class Instruction:
    """One machine instruction."""

    opcode: VMOpcode
    result: VMArg = field(default_factory=VMArg)
    arg1: VMArg = field(default_factory=VMArg)
    arg2: VMArg = field(default_factory=VMArg)
    src_line: int = 0

    SIZE: ClassVar[int] = _INSTRUCTION.size

    def pack(self) -> bytes:
        """The instruction as a binary record."""
        return _INSTRUCTION.pack(
            self.opcode,
            self.result.type,
            self.result.val,
            self.arg1.type,
            self.arg1.val,
            self.arg2.type,
            self.arg2.val,
            self.src_line,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Instruction:
        """Read an instruction from a binary record."""
        if len(data) != _INSTRUCTION.size:
            raise ValueError(
                f"instruction record must be {_INSTRUCTION.size} bytes, got {len(data)}"
            )
        op, rt, rv, a1t, a1v, a2t, a2v, line = _INSTRUCTION.unpack(data)
        return cls(
            VMOpcode(op),
            VMArg(VMArgType(rt), rv),
            VMArg(VMArgType(a1t), a1v),
            VMArg(VMArgType(a2t), a2v),
            line,
        )


@dataclass
class UserFunc:
    """A user function: entry address, number of locals and name."""

    address: int = 0
    local_size: int = 0
    id: str = ""

    SIZE: ClassVar[int] = _USERFUNC.size

    def pack(self) -> bytes:
        """The function as a binary record; the name is not stored."""
        return _USERFUNC.pack(self.address, self.local_size, 0)

    @classmethod
    def from_bytes(cls, data: bytes) -> UserFunc:
        """Read a function from a binary record; its name comes back empty."""
        if len(data) != _USERFUNC.size:
            raise ValueError(
                f"user function record must be {_USERFUNC.size} bytes, got {len(data)}"
            )
        address, local_size, _ = _USERFUNC.unpack(data)
        return cls(address, local_size)