"""Library functions built into the virtual machine."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from alphavm.tables import tostring
from alphavm.values import (
    NUMACTUALS_OFFSET,
    SAVEDTOPSP_OFFSET,
    STACKENV_SIZE,
    MemCell,
    MemCellType,
)

if TYPE_CHECKING:
    from alphavm.machine import Machine

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"'}
_ESCAPE_RE = re.compile(r'\\([ntr\\"])')


def expand_escapes(text: str) -> str:
    """Replace the escape sequences print understands; others stay as written."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], text)


def libfunc_print(vm: Machine) -> None:
    """Write every argument to the machine's output, strings with escapes expanded."""
    for i in range(vm.totalactuals()):
        arg = vm.getactual(i)
        if arg.type is MemCellType.STRING:
            vm.out.write(expand_escapes(arg.value))
        else:
            vm.out.write(tostring(arg))


def libfunc_typeof(vm: Machine) -> None:
    """Return the type name of the single argument."""
    n = vm.totalactuals()
    if n != 1:
        vm.error(f"one argument (not {n}) expected in 'typeof'!")
    vm.retval.load(MemCell.string(vm.getactual(0).type_name))


def _caller_topsp(vm: Machine) -> int:
    return vm.get_envvalue(vm.topsp + SAVEDTOPSP_OFFSET)


def libfunc_totalarguments(vm: Machine) -> None:
    """Return the number of arguments the calling function received."""
    p_topsp = _caller_topsp(vm)
    vm.retval.clear()
    if not p_topsp:
        vm.retval.load(MemCell.nil())
        vm.error("'totalarguments' called outside a function!")
    total = vm.get_envvalue(p_topsp + NUMACTUALS_OFFSET)
    vm.retval.load(MemCell.number(total))


def libfunc_argument(vm: Machine) -> None:
    """Return the calling function's argument at the given index."""
    if vm.totalactuals() != 1:
        vm.error("one argument expected in 'argument'!")
    arg = vm.getactual(0)
    if arg.type is not MemCellType.NUMBER:
        vm.error("number argument expected in 'argument'!")
    index = int(arg.value)
    p_topsp = _caller_topsp(vm)
    if not p_topsp:
        vm.retval.load(MemCell.nil())
        vm.error("'argument' called outside a function!")
    total = vm.get_envvalue(p_topsp + NUMACTUALS_OFFSET)
    if index < 0 or index >= total:
        vm.retval.load(MemCell.nil())
        vm.error("argument index out of range!")
    vm.assign(vm.retval, vm.stack[p_topsp + STACKENV_SIZE + 1 + index])