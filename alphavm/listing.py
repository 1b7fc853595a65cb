"""Human-readable listing of generated instructions and constant tables."""

from __future__ import annotations

from pathlib import Path

from alphavm.binfile import Program
from alphavm.instructions import VMArg, VMArgType

_HEADER = "instruction# opcode       result          arg1           arg2\n"
_RULE = "----------------------------------------------------------------\n"
_EMPTY_COLUMN = " " * 14

# Text of each operand kind and the padding that follows it in non-final columns.
_FORMS: dict[VMArgType, tuple[str, int]] = {
    VMArgType.LABEL: ("label:{val}", 6),
    VMArgType.GLOBAL: ("global[{val}]", 4),
    VMArgType.LOCAL: ("local[{val}]", 5),
    VMArgType.FORMAL: ("formal[{val}]", 4),
    VMArgType.NUMBER: ("num[{val}]", 7),
    VMArgType.STRING: ("str[{val}]", 7),
    VMArgType.BOOL: ("bool:{val}", 7),
    VMArgType.NIL: ("nil", 11),
    VMArgType.USERFUNC: ("ufunc[{val}]", 5),
    VMArgType.LIBFUNC: ("lfunc[{val}]", 5),
    VMArgType.RETVAL: ("retval", 8),
}


def format_arg(arg: VMArg, last: bool) -> str:
    """Text of one operand column; the last column carries no padding."""
    if arg.type is VMArgType.UNDEF:
        return "" if last else _EMPTY_COLUMN
    form = _FORMS.get(arg.type)
    if form is None:
        text, pad = f"{arg.type.name.lower()}[{arg.val}]", 7
    else:
        text, pad = form[0].format(val=arg.val), form[1]
    return text if last else text + " " * pad


def format_listing(program: Program) -> str:
    """Render instructions followed by the constant tables."""
    parts = [_HEADER, _RULE]
    for number, instr in enumerate(program.instructions):
        parts.append(f"{number:<12d} {instr.opcode.name.lower():<12s}")
        parts.append(format_arg(instr.result, False))
        parts.append(format_arg(instr.arg1, False))
        parts.append(format_arg(instr.arg2, True))
        parts.append("\n")

    parts.append("\n\nConstants Tables:\n")
    parts.append(f"Numbers: {len(program.num_consts)} entries\n")
    parts.extend(f"{i}: {value:g}\n" for i, value in enumerate(program.num_consts))

    parts.append(f"\nStrings: {len(program.string_consts)} entries\n")
    parts.extend(f'{i}: "{text}"\n' for i, text in enumerate(program.string_consts))

    parts.append(f"\nLibrary Functions: {len(program.lib_funcs)} entries\n")
    parts.extend(f"{i}: {name}\n" for i, name in enumerate(program.lib_funcs))

    parts.append(f"\nUser Functions: {len(program.user_funcs)} entries\n")
    parts.extend(
        f"{i}: {func.id} (addr: {func.address}, locals: {func.local_size})\n"
        for i, func in enumerate(program.user_funcs)
    )
    return "".join(parts)


def write_listing(program: Program, path: str | Path) -> None:
    """Write the listing of a program to a text file."""
    Path(path).write_text(format_listing(program))