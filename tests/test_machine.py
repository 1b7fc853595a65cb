import io

import pytest

from alphavm.binfile import Program
from alphavm.instructions import UserFunc, VMArg, VMArgType
from alphavm.machine import LOCAL_BASE, Machine
from alphavm.tables import Table
from alphavm.values import (
    NUMACTUALS_OFFSET,
    SAVEDPC_OFFSET,
    STACK_SIZE,
    AVMError,
    MemCell,
    MemCellType,
)


def make_vm(program=None):
    out = io.StringIO()
    return Machine(program, out), out


def push_arg(vm, cell):
    vm.assign(vm.stack[vm.top], cell)
    vm.total_actuals += 1
    vm.dec_top()


def sample_program():
    return Program(
        num_consts=[1.5, 42.0],
        string_consts=["hello"],
        lib_funcs=["print"],
        user_funcs=[UserFunc(7, 2, "f")],
    )


def test_initial_state():
    vm, _ = make_vm()
    assert vm.top == STACK_SIZE - 101
    assert vm.topsp == 0
    assert vm.pc == 0
    assert not vm.execution_finished
    assert len(vm.stack) == STACK_SIZE
    assert all(cell.type is MemCellType.NIL for cell in vm.stack)


def test_libfunc_registry():
    vm, _ = make_vm()
    assert vm.get_libfunc("nosuch") is None

    def custom(machine):
        machine.retval.load(MemCell.number(5))

    vm.register_libfunc("custom", custom)
    assert vm.get_libfunc("custom") is custom
    vm.calllibfunc("custom")
    assert vm.retval.value == 5


def test_warning_output():
    vm, out = make_vm()
    vm.warning("careful")
    assert out.getvalue() == "Warning: careful\n"
    assert not vm.execution_finished


def test_error_raises_and_stops():
    vm, out = make_vm()
    with pytest.raises(AVMError, match="boom"):
        vm.error("boom")
    assert vm.execution_finished
    assert out.getvalue() == "Error: boom\n"


def test_assign_from_undef_gives_nil():
    vm, out = make_vm()
    target = MemCell.number(3)
    vm.assign(target, MemCell.undef())
    assert target.type is MemCellType.NIL
    assert out.getvalue() == "Warning: assigning from 'undef' content!\n"


def test_assign_copies_value():
    vm, _ = make_vm()
    target = MemCell.nil()
    source = MemCell.string("abc")
    vm.assign(target, source)
    assert target == source
    assert target is not source


def test_assign_shares_tables():
    vm, _ = make_vm()
    table = Table()
    target = MemCell.nil()
    vm.assign(target, MemCell.table(table))
    assert target.type is MemCellType.TABLE
    assert target.value is table


def test_read_constants():
    vm, _ = make_vm(sample_program())
    assert vm.read_operand(VMArg(VMArgType.NUMBER, 1)) == MemCell.number(42.0)
    assert vm.read_operand(VMArg(VMArgType.STRING, 0)) == MemCell.string("hello")
    assert vm.read_operand(VMArg(VMArgType.BOOL, 1)) == MemCell.boolean(True)
    assert vm.read_operand(VMArg(VMArgType.NIL, 0)).type is MemCellType.NIL
    assert vm.read_operand(VMArg(VMArgType.USERFUNC, 0)) == MemCell.userfunc(7)
    assert vm.read_operand(VMArg(VMArgType.LIBFUNC, 0)) == MemCell.libfunc("print")
    assert vm.read_operand(VMArg(VMArgType.UNDEF, 0)).type is MemCellType.NIL


def test_read_constant_out_of_range():
    vm, _ = make_vm(sample_program())
    with pytest.raises(AVMError):
        vm.read_operand(VMArg(VMArgType.NUMBER, 2))
    assert vm.execution_finished


def test_global_round_trip():
    vm, _ = make_vm()
    arg = VMArg(VMArgType.GLOBAL, 3)
    stored = vm.write_operand(arg, MemCell.number(9))
    assert stored is vm.stack[3]
    assert vm.read_operand(arg) is vm.stack[3]
    assert vm.read_operand(arg) == MemCell.number(9)


def test_global_out_of_bounds():
    vm, _ = make_vm()
    with pytest.raises(AVMError, match="out of bounds"):
        vm.read_operand(VMArg(VMArgType.GLOBAL, STACK_SIZE))


def test_local_at_top_level_uses_fixed_base():
    vm, _ = make_vm()
    cell = vm.read_operand(VMArg(VMArgType.LOCAL, 2))
    assert cell is vm.stack[LOCAL_BASE + 2]


def test_local_inside_frame_counts_down_from_topsp():
    vm, _ = make_vm()
    vm.topsp = 1000
    assert vm.read_operand(VMArg(VMArgType.LOCAL, 3)) is vm.stack[997]
    with pytest.raises(AVMError):
        vm.read_operand(VMArg(VMArgType.LOCAL, 1001))


def test_formal_outside_function():
    vm, _ = make_vm()
    with pytest.raises(AVMError, match="Formal argument accessed outside function"):
        vm.read_operand(VMArg(VMArgType.FORMAL, 0))


def test_retval_operand():
    vm, _ = make_vm()
    vm.write_operand(VMArg(VMArgType.RETVAL, 0), MemCell.string("r"))
    assert vm.retval == MemCell.string("r")
    assert vm.read_operand(VMArg(VMArgType.RETVAL, 0)) is vm.retval


def test_write_to_constant_is_error():
    vm, _ = make_vm(sample_program())
    with pytest.raises(AVMError):
        vm.write_operand(VMArg(VMArgType.NUMBER, 0), MemCell.number(1))


def test_dec_top_overflow():
    vm, _ = make_vm()
    vm.top = 0
    with pytest.raises(AVMError, match="Stack overflow"):
        vm.dec_top()


def test_push_envvalue():
    vm, _ = make_vm()
    start = vm.top
    vm.push_envvalue(17)
    assert vm.top == start - 1
    assert vm.get_envvalue(start) == 17


def test_get_envvalue_rejects_non_number():
    vm, _ = make_vm()
    vm.stack[10].load(MemCell.string("x"))
    with pytest.raises(AVMError):
        vm.get_envvalue(10)


def test_save_environment_and_funcexit_round_trip():
    vm, _ = make_vm()
    vm.pc = 5
    vm.topsp = 0
    start_top = vm.top
    push_arg(vm, MemCell.number(1))
    push_arg(vm, MemCell.number(2))
    vm.callsaveenvironment()
    vm.topsp = vm.top
    vm.total_actuals = 0
    assert vm.totalactuals() == 2
    assert vm.get_envvalue(vm.topsp + SAVEDPC_OFFSET) == 6
    assert vm.get_envvalue(vm.topsp + NUMACTUALS_OFFSET) == 2
    assert {vm.getactual(0).value, vm.getactual(1).value} == {1.0, 2.0}
    vm.funcexit()
    assert vm.top == start_top
    assert vm.pc == 6
    assert vm.topsp == 0
    assert vm.stack[start_top].type is MemCellType.UNDEF


def test_getactual_out_of_range():
    vm, _ = make_vm()
    push_arg(vm, MemCell.number(1))
    vm.callsaveenvironment()
    vm.topsp = vm.top
    with pytest.raises(AVMError):
        vm.getactual(1)


def test_calllibfunc_restores_frame():
    vm, _ = make_vm()
    vm.pc = 3
    start_top = vm.top
    push_arg(vm, MemCell.number(1))
    vm.calllibfunc("typeof")
    assert vm.retval == MemCell.string("number")
    assert vm.top == start_top
    assert vm.pc == 4
    assert vm.topsp == 0
    assert vm.total_actuals == 0


def test_calllibfunc_unknown():
    vm, out = make_vm()
    with pytest.raises(AVMError, match="unsupported lib func 'nope' called!"):
        vm.calllibfunc("nope")
    assert vm.execution_finished
    assert "nope" in out.getvalue()