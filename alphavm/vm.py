"""Instruction execution loop of the virtual machine."""

from __future__ import annotations

import operator
from collections.abc import Callable
from typing import TextIO

from alphavm.binfile import Program
from alphavm.instructions import Instruction, VMArgType, VMOpcode
from alphavm.machine import Machine
from alphavm.tables import Table, tostring
from alphavm.values import AVMError, MemCell, MemCellType, mod_impl, numeric_value, tobool

_STACK_ARGS = frozenset({VMArgType.GLOBAL, VMArgType.LOCAL, VMArgType.FORMAL})
_RESULT_ARGS = _STACK_ARGS | {VMArgType.RETVAL}

_ARITHMETIC: dict[VMOpcode, Callable[[float, float], float]] = {
    VMOpcode.ADD: operator.add,
    VMOpcode.SUB: operator.sub,
    VMOpcode.MUL: operator.mul,
    VMOpcode.DIV: operator.truediv,
    VMOpcode.MOD: mod_impl,
}

_ORDERED: dict[VMOpcode, Callable[[float, float], bool]] = {
    VMOpcode.JLE: operator.le,
    VMOpcode.JGE: operator.ge,
    VMOpcode.JLT: operator.lt,
    VMOpcode.JGT: operator.gt,
}

_NUMERIC_LIKE = frozenset({MemCellType.NUMBER, MemCellType.BOOL, MemCellType.NIL})


class AVM(Machine):
    """The virtual machine: fetches, decodes and executes instructions."""

    def __init__(self, program: Program | None = None, out: TextIO | None = None) -> None:
        super().__init__(program, out)
        self._handlers: dict[VMOpcode, Callable[[Instruction], None]] = {
            VMOpcode.ASSIGN: self._execute_assign,
            VMOpcode.UMINUS: self._execute_uminus,
            VMOpcode.AND: self._execute_and,
            VMOpcode.OR: self._execute_or,
            VMOpcode.NOT: self._execute_not,
            VMOpcode.JEQ: self._execute_jeq,
            VMOpcode.JNE: self._execute_jne,
            VMOpcode.JUMP: self._execute_jump,
            VMOpcode.CALL: self._execute_call,
            VMOpcode.PUSHARG: self._execute_pusharg,
            VMOpcode.FUNCENTER: self._execute_funcenter,
            VMOpcode.FUNCEXIT: lambda instr: self.funcexit(),
            VMOpcode.NEWTABLE: self._execute_newtable,
            VMOpcode.TABLEGETELEM: self._execute_tablegetelem,
            VMOpcode.TABLESETELEM: self._execute_tablesetelem,
            VMOpcode.NOP: lambda instr: None,
        }
        for opcode in _ARITHMETIC:
            self._handlers[opcode] = self._execute_arithmetic
        for opcode in _ORDERED:
            self._handlers[opcode] = self._execute_ordered

    def setup_main_call(self) -> None:
        """Push a frame as if the program body had been called as a function."""
        self.total_actuals = 0
        for value in (0, 999, None, 0):
            number = self.top + 2 if value is None else value
            self.stack[self.top].load(MemCell.number(number))
            self.top -= 1
        self.topsp = self.top + 4

    def execute(self, instr: Instruction) -> None:
        """Execute one instruction."""
        self._handlers[VMOpcode(instr.opcode)](instr)

    def execute_cycle(self) -> None:
        """Execute the instruction at pc and advance unless it jumped."""
        if self.execution_finished:
            return
        instructions = self.program.instructions
        if self.pc >= len(instructions):
            self.execution_finished = True
            return
        instr = instructions[self.pc]
        if instr.src_line:
            self.curr_line = instr.src_line
        old_pc = self.pc
        self.execute(instr)
        if self.pc == old_pc:
            self.pc += 1

    def run(self) -> None:
        """Execute until the program ends; run-time errors raise AVMError."""
        while not self.execution_finished:
            self.execute_cycle()

    def _fatal(self, message: str) -> None:
        self.out.write(message + "\n")
        self.execution_finished = True
        raise AVMError(message)

    def _truth(self, cell: MemCell) -> bool:
        try:
            return tobool(cell)
        except AVMError as exc:
            self.error(str(exc))
            raise

    def _execute_assign(self, instr: Instruction) -> None:
        value = self.read_operand(instr.arg1)
        if value.type is MemCellType.UNDEF:
            value = MemCell.nil()
        self.write_operand(instr.result, value)

    def _execute_arithmetic(self, instr: Instruction) -> None:
        left = self.read_operand(instr.arg1)
        right = self.read_operand(instr.arg2)
        if left.type is not MemCellType.NUMBER or right.type is not MemCellType.NUMBER:
            self.error(
                "not a number in arithmetic! "
                f"(left: {left.type_name}, right: {right.type_name})"
            )
        op = VMOpcode(instr.opcode)
        if op in (VMOpcode.DIV, VMOpcode.MOD) and right.value == 0.0:
            self.error(f"{'division' if op is VMOpcode.DIV else 'modulo'} by zero!")
        try:
            result = _ARITHMETIC[op](left.value, right.value)
        except AVMError as exc:
            self.error(str(exc))
        self.write_operand(instr.result, MemCell.number(result))

    def _execute_uminus(self, instr: Instruction) -> None:
        value = self.read_operand(instr.arg1)
        if value.type is not MemCellType.NUMBER:
            self.error("not a number in unary minus!")
        self.write_operand(instr.result, MemCell.number(-value.value))

    def _execute_and(self, instr: Instruction) -> None:
        left = self.read_operand(instr.arg1)
        right = self.read_operand(instr.arg2)
        flag = self._truth(left) and self._truth(right)
        self.write_operand(instr.result, MemCell.boolean(flag))

    def _execute_or(self, instr: Instruction) -> None:
        left = self.read_operand(instr.arg1)
        right = self.read_operand(instr.arg2)
        flag = self._truth(left) or self._truth(right)
        self.write_operand(instr.result, MemCell.boolean(flag))

    def _execute_not(self, instr: Instruction) -> None:
        value = self.read_operand(instr.arg1)
        self.write_operand(instr.result, MemCell.boolean(not self._truth(value)))

    def _equal(self, a: MemCell, b: MemCell) -> bool:
        if a.type is MemCellType.UNDEF or b.type is MemCellType.UNDEF:
            return a.type is b.type
        if a.type is MemCellType.NIL or b.type is MemCellType.NIL:
            return a.type is b.type
        if a.type is MemCellType.BOOL or b.type is MemCellType.BOOL:
            return self._truth(a) == self._truth(b)
        if a.type is not b.type:
            return False
        if a.type is MemCellType.TABLE:
            return a.value is b.value
        return a.value == b.value

    def _bounded_jump(self, instr: Instruction, taken: bool) -> None:
        if self.execution_finished or not taken:
            return
        target = instr.result.val
        if target >= len(self.program.instructions):
            self.execution_finished = True
        else:
            self.pc = target

    def _execute_jeq(self, instr: Instruction) -> None:
        left = self.read_operand(instr.arg1)
        right = self.read_operand(instr.arg2)
        self._bounded_jump(instr, self._equal(left, right))

    def _execute_jne(self, instr: Instruction) -> None:
        left = self.read_operand(instr.arg1)
        right = self.read_operand(instr.arg2)
        self._bounded_jump(instr, not self._equal(left, right))

    def _execute_ordered(self, instr: Instruction) -> None:
        left = self.read_operand(instr.arg1)
        right = self.read_operand(instr.arg2)
        if left.type not in _NUMERIC_LIKE or right.type not in _NUMERIC_LIKE:
            self.error("not numbers in comparison!")
        taken = _ORDERED[VMOpcode(instr.opcode)](numeric_value(left), numeric_value(right))
        if not self.execution_finished and taken:
            self.pc = instr.result.val

    def _execute_jump(self, instr: Instruction) -> None:
        target = instr.result.val
        total = len(self.program.instructions)
        if target >= total:
            self.pc = total
            self.execution_finished = True
        else:
            self.pc = target

    def _execute_call(self, instr: Instruction) -> None:
        func = self.read_operand(instr.arg1)
        if func.type is MemCellType.USERFUNC:
            self.callsaveenvironment()
            self.pc = func.value
            instructions = self.program.instructions
            if self.pc >= len(instructions) or instructions[self.pc].opcode is not VMOpcode.FUNCENTER:
                self.error(f"user function address {self.pc} is not a function entry")
        elif func.type in (MemCellType.STRING, MemCellType.LIBFUNC):
            self.calllibfunc(func.value)
        else:
            self._fatal(f"run time error in line {instr.src_line}")

    def _execute_pusharg(self, instr: Instruction) -> None:
        arg = self.read_operand(instr.arg1)
        self.assign(self.stack[self.top], arg)
        self.total_actuals += 1
        self.dec_top()

    def _execute_funcenter(self, instr: Instruction) -> None:
        func = self.read_operand(instr.arg1)
        if func.type is not MemCellType.USERFUNC or func.value != self.pc:
            self.error(f"function entry at {self.pc} does not match its operand")
        info = next(
            (f for f in self.program.user_funcs if f.address == self.pc), None
        )
        if info is None:
            self.error(f"Cannot find user function info for address {self.pc}")
        self.total_actuals = 0
        self.topsp = self.top
        self.top = self.top - info.local_size

    def _execute_newtable(self, instr: Instruction) -> None:
        self.write_operand(instr.result, MemCell.table(Table()))

    def _execute_tablegetelem(self, instr: Instruction) -> None:
        if instr.result.type not in _RESULT_ARGS:
            self._fatal("ERROR: Invalid result location")
        if instr.arg1.type not in _STACK_ARGS:
            self._fatal("ERROR: Table operand is outside stack bounds")
        table = self.read_operand(instr.arg1)
        index = self.read_operand(instr.arg2)
        target = self.write_operand(instr.result, MemCell.nil())
        if table.type is not MemCellType.TABLE:
            self.error(f"illegal use of type {table.type_name} as table!")
        content = table.value.get(index)
        if content is not None:
            self.assign(target, content)
        else:
            self.warning(f"{tostring(table)}[{tostring(index)}] not found!")

    def _execute_tablesetelem(self, instr: Instruction) -> None:
        if instr.result.type not in _STACK_ARGS:
            self._fatal("ERROR: Table operand is outside stack bounds")
        table = self.read_operand(instr.result)
        index = self.read_operand(instr.arg1)
        content = self.read_operand(instr.arg2)
        if table.type is not MemCellType.TABLE:
            self.error(f"illegal use of type {table.type_name} as table!")
        if content.type is MemCellType.UNDEF:
            self.warning("assigning from 'undef' content!")
        table.value.set(index, content)