"""Machine state: stack, operands, call frames and library function calls."""

from __future__ import annotations

import sys
from collections.abc import Callable
from typing import TextIO

from alphavm.binfile import Program
from alphavm.instructions import VMArg, VMArgType
from alphavm.libfuncs import (
    libfunc_argument,
    libfunc_print,
    libfunc_totalarguments,
    libfunc_typeof,
)
from alphavm.values import (
    NUMACTUALS_OFFSET,
    SAVEDPC_OFFSET,
    SAVEDTOP_OFFSET,
    SAVEDTOPSP_OFFSET,
    STACK_SIZE,
    STACKENV_SIZE,
    AVMError,
    MemCell,
    MemCellType,
)

LibFunc = Callable[["Machine"], None]

LOCAL_BASE = 200
_STORAGE = frozenset(
    {VMArgType.GLOBAL, VMArgType.LOCAL, VMArgType.FORMAL, VMArgType.RETVAL}
)


class Machine:
    """State of the virtual machine and the operations instructions build on."""

    def __init__(self, program: Program | None = None, out: TextIO | None = None) -> None:
        self.program = program if program is not None else Program()
        self.out = out if out is not None else sys.stdout
        self.stack = [MemCell.nil() for _ in range(STACK_SIZE)]
        self.retval = MemCell.undef()
        self.top = STACK_SIZE - 101
        self.topsp = 0
        self.execution_finished = False
        self.pc = 0
        self.curr_line = 0
        self.total_actuals = 0
        self._libfuncs: dict[str, LibFunc] = {}
        self.register_libfunc("print", libfunc_print)
        self.register_libfunc("typeof", libfunc_typeof)
        self.register_libfunc("totalarguments", libfunc_totalarguments)
        self.register_libfunc("argument", libfunc_argument)

    def register_libfunc(self, name: str, func: LibFunc) -> None:
        """Make a library function callable by name."""
        self._libfuncs[name] = func

    def get_libfunc(self, name: str) -> LibFunc | None:
        """The library function with this name, or None."""
        return self._libfuncs.get(name)

    def warning(self, message: str) -> None:
        """Report a warning on the output."""
        self.out.write(f"Warning: {message}\n")

    def error(self, message: str) -> None:
        """Report a run-time error, stop execution and raise AVMError."""
        self.out.write(f"Error: {message}\n")
        self.execution_finished = True
        raise AVMError(message)

    def assign(self, target: MemCell, source: MemCell) -> None:
        """Copy a value into a cell; an undefined source leaves nil behind."""
        if target is source:
            return
        if (
            target.type is MemCellType.TABLE
            and source.type is MemCellType.TABLE
            and target.value is source.value
        ):
            return
        if source.type is MemCellType.UNDEF:
            self.warning("assigning from 'undef' content!")
            target.load(MemCell.nil())
            return
        target.load(source)

    def _location(self, arg: VMArg) -> MemCell:
        kind = arg.type
        if kind is VMArgType.GLOBAL:
            if arg.val >= STACK_SIZE:
                self.error(f"Global variable index {arg.val} out of bounds")
            return self.stack[arg.val]
        if kind is VMArgType.LOCAL:
            if self.topsp == 0:
                if LOCAL_BASE + arg.val >= STACK_SIZE:
                    self.error(f"Local variable index {arg.val} out of bounds")
                return self.stack[LOCAL_BASE + arg.val]
            if self.topsp < arg.val or self.topsp - arg.val >= STACK_SIZE:
                self.error(
                    "Local variable access out of bounds: "
                    f"topsp={self.topsp}, offset={arg.val}"
                )
            return self.stack[self.topsp - arg.val]
        if kind is VMArgType.FORMAL:
            if self.topsp == 0:
                self.error("Formal argument accessed outside function")
            position = self.topsp + STACKENV_SIZE + arg.val
            if position >= STACK_SIZE:
                self.error("Formal argument access out of bounds")
            return self.stack[position]
        if kind is VMArgType.RETVAL:
            return self.retval
        self.error(f"operand of type {kind.name.lower()} is not a storage location")
        raise AssertionError("unreachable")

    def _constant(self, table: list, arg: VMArg, what: str):
        if arg.val >= len(table):
            self.error(f"{what} index {arg.val} out of bounds")
        return table[arg.val]

    def read_operand(self, arg: VMArg) -> MemCell:
        """The cell an operand denotes: a storage cell itself, or a new constant cell."""
        kind = arg.type
        if kind in _STORAGE:
            return self._location(arg)
        program = self.program
        if kind is VMArgType.NUMBER:
            return MemCell.number(self._constant(program.num_consts, arg, "Number constant"))
        if kind is VMArgType.STRING:
            return MemCell.string(
                self._constant(program.string_consts, arg, "String constant")
            )
        if kind is VMArgType.BOOL:
            return MemCell.boolean(arg.val != 0)
        if kind is VMArgType.USERFUNC:
            func = self._constant(program.user_funcs, arg, "User function")
            return MemCell.userfunc(func.address)
        if kind is VMArgType.LIBFUNC:
            return MemCell.libfunc(
                self._constant(program.lib_funcs, arg, "Library function")
            )
        return MemCell.nil()

    def write_operand(self, arg: VMArg, cell: MemCell) -> MemCell:
        """Overwrite the storage location an operand names and return it."""
        target = self._location(arg)
        if target is not cell:
            target.load(cell)
        return target

    def dec_top(self) -> None:
        """Move the stack top down by one cell."""
        if not self.top:
            self.error("Stack overflow")
        self.top -= 1

    def push_envvalue(self, value: int) -> None:
        """Push a saved-environment number onto the stack."""
        self.stack[self.top].load(MemCell.number(value))
        self.dec_top()

    def callsaveenvironment(self) -> None:
        """Save the caller's actual count, return address, top and frame pointer."""
        self.push_envvalue(self.total_actuals)
        self.push_envvalue(self.pc + 1)
        self.push_envvalue(self.top + self.total_actuals + 2)
        self.push_envvalue(self.topsp)

    def get_envvalue(self, index: int) -> int:
        """A saved-environment number stored at a stack index."""
        if not 0 <= index < STACK_SIZE:
            self.error(f"environment index {index} out of bounds")
        cell = self.stack[index]
        if cell.type is not MemCellType.NUMBER or cell.value != int(cell.value) or cell.value < 0:
            self.error(f"stack cell {index} holds no environment value")
        return int(cell.value)

    def totalactuals(self) -> int:
        """Number of arguments passed to the current function."""
        return self.get_envvalue(self.topsp + NUMACTUALS_OFFSET)

    def getactual(self, index: int) -> MemCell:
        """The current function's argument at an index."""
        if not 0 <= index < self.totalactuals():
            self.error(f"actual argument {index} out of range")
        return self.stack[self.topsp + STACKENV_SIZE + 1 + index]

    def funcexit(self) -> None:
        """Return from the current function, restoring the caller's frame."""
        old_top = self.top
        saved_top = self.get_envvalue(self.topsp + SAVEDTOP_OFFSET)
        saved_pc = self.get_envvalue(self.topsp + SAVEDPC_OFFSET)
        saved_topsp = self.get_envvalue(self.topsp + SAVEDTOPSP_OFFSET)
        self.top, self.pc, self.topsp = saved_top, saved_pc, saved_topsp
        for cell in self.stack[old_top + 1:self.top + 1]:
            cell.clear()

    def calllibfunc(self, name: str) -> None:
        """Call a library function with the arguments pushed so far."""
        func = self.get_libfunc(name)
        if func is None:
            self.error(f"unsupported lib func '{name}' called!")
        self.callsaveenvironment()
        self.topsp = self.top
        self.total_actuals = 0
        func(self)
        if not self.execution_finished:
            self.funcexit()