"""Memory cells of the virtual machine and operations on plain values."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

STACK_SIZE = 4096
TABLE_HASHSIZE = 211
STACKENV_SIZE = 4
NUMACTUALS_OFFSET = 4
SAVEDPC_OFFSET = 3
SAVEDTOP_OFFSET = 2
SAVEDTOPSP_OFFSET = 1

_U32_MASK = 0xFFFFFFFF


class AVMError(Exception):
    """A run-time error of the virtual machine."""


class MemCellType(IntEnum):
    """Type of the value held in a memory cell."""

    NUMBER = 0
    STRING = 1
    BOOL = 2
    TABLE = 3
    USERFUNC = 4
    LIBFUNC = 5
    NIL = 6
    UNDEF = 7

    @property
    def type_name(self) -> str:
        return self.name.lower()


@dataclass
class MemCell:
    """A typed value slot: stack entry, register or table element."""

    type: MemCellType = MemCellType.UNDEF
    value: Any = None

    @classmethod
    def number(cls, value: float) -> MemCell:
        return cls(MemCellType.NUMBER, float(value))

    @classmethod
    def string(cls, text: str) -> MemCell:
        return cls(MemCellType.STRING, text)

    @classmethod
    def boolean(cls, flag: object) -> MemCell:
        return cls(MemCellType.BOOL, bool(flag))

    @classmethod
    def table(cls, table: Any) -> MemCell:
        return cls(MemCellType.TABLE, table)

    @classmethod
    def userfunc(cls, address: int) -> MemCell:
        return cls(MemCellType.USERFUNC, int(address))

    @classmethod
    def libfunc(cls, name: str) -> MemCell:
        return cls(MemCellType.LIBFUNC, name)

    @classmethod
    def nil(cls) -> MemCell:
        return cls(MemCellType.NIL)

    @classmethod
    def undef(cls) -> MemCell:
        return cls(MemCellType.UNDEF)

    @property
    def type_name(self) -> str:
        """Name of the type as reported by typeof."""
        return self.type.type_name

    def copy(self) -> MemCell:
        """A new cell with the same contents; tables are shared."""
        return MemCell(self.type, self.value)

    def clear(self) -> None:
        """Make the cell undefined."""
        self.type = MemCellType.UNDEF
        self.value = None

    def load(self, other: MemCell) -> None:
        """Overwrite this cell in place with another cell's contents."""
        self.type = other.type
        self.value = other.value


def hash_string(text: str) -> int:
    """Bucket of a string key in a table."""
    h = 0
    for byte in text.encode("utf-8"):
        char = byte - 256 if byte > 127 else byte
        h = (h * 65599 + char) & _U32_MASK
    return h % TABLE_HASHSIZE


def hash_number(value: float) -> int:
    """Bucket of a numeric key in a table."""
    if not math.isfinite(value) or abs(value) >= 2**63:
        return 0
    return (int(value) & _U32_MASK) % TABLE_HASHSIZE


_TRUTH = {
    MemCellType.NUMBER: lambda v: v != 0,
    MemCellType.STRING: lambda v: bool(v),
    MemCellType.BOOL: lambda v: bool(v),
    MemCellType.TABLE: lambda v: True,
    MemCellType.USERFUNC: lambda v: True,
    MemCellType.LIBFUNC: lambda v: True,
    MemCellType.NIL: lambda v: False,
}


def tobool(cell: MemCell) -> bool:
    """Truth value of a cell; an undefined cell has none."""
    try:
        convert = _TRUTH[cell.type]
    except KeyError:
        raise AVMError("undef value has no truth value") from None
    return convert(cell.value)


def mod_impl(x: float, y: float) -> float:
    """Integer remainder truncated towards zero; non-integral dividends give 0."""
    if y == 0.0:
        raise AVMError("modulo by zero!")
    if not (math.isfinite(x) and math.isfinite(y)):
        return 0.0
    ix = int(x)
    iy = int(y)
    if x != float(ix):
        return 0.0
    if iy == 0:
        raise AVMError("modulo by zero!")
    remainder = abs(ix) % abs(iy)
    return float(-remainder if ix < 0 else remainder)


def numeric_value(cell: MemCell) -> float:
    """Value of a cell in ordered comparisons: bools count as 0 or 1, others 0."""
    if cell.type is MemCellType.NUMBER:
        return cell.value
    if cell.type is MemCellType.BOOL:
        return 1.0 if cell.value else 0.0
    return 0.0