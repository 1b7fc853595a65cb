# alphavm

A stack-based virtual machine for the Alpha scripting language. It reads
programs in the binary `.abc` format and runs them with dynamic values,
associative tables, user functions and a small set of library functions. It
also has a symbol table for compiler front ends and a readable listing of
programs.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running a program

```
alpha-vm program.abc
```

The command prints a banner, loads the file and runs it until execution
finishes. Output from `print`, together with `Warning: ...` and `Error: ...`
lines, goes to standard output. A run-time error stops the program; the
command still prints `=== Execution Completed ===` and exits with status 0.
A file that cannot be opened or is not a valid program gives an `Error:` line,
`Failed to load binary file` and exit status 1, as does a wrong number of
arguments (after a usage message).

## Library functions

Programs can call:

- `print(...)` writes each argument; in strings, `\n`, `\t`, `\r`, `\\` and
  `\"` are expanded, other backslashes are kept as written.
- `typeof(x)` returns the type name: `number`, `string`, `bool`, `table`,
  `userfunc`, `libfunc`, `nil` or `undef`.
- `totalarguments()` returns the number of arguments the calling function
  received.
- `argument(i)` returns the calling function's argument at index `i`.

Further library functions can be added with `Machine.register_libfunc(name,
func)`, where `func` takes the machine as its only argument.

## Using it from Python

`alphavm.binfile` holds the program format: `Program` (instructions, number
and string constants, library function names, user functions),
`read_program` / `write_program` for files, and `encode_program` /
`decode_program` for bytes. Malformed data raises `BinaryFormatError`. User
function names are not stored in the file, so they come back empty.

`alphavm.vm.AVM` runs a program. Run-time errors write an `Error:` line to the
machine's output and raise `alphavm.values.AVMError`.

```python
import io

from alphavm.binfile import Program
from alphavm.instructions import Instruction, VMArg, VMArgType, VMOpcode
from alphavm.vm import AVM

program = Program(
    instructions=[
        Instruction(VMOpcode.PUSHARG, arg1=VMArg(VMArgType.STRING, 0)),
        Instruction(VMOpcode.CALL, arg1=VMArg(VMArgType.LIBFUNC, 0)),
    ],
    string_consts=["hello\\n"],
    lib_funcs=["print"],
)
out = io.StringIO()
AVM(program, out).run()
assert out.getvalue() == "hello\n"
```

`AVM.setup_main_call()` pushes a frame as if the program body had been called
as a function; `AVM.execute_cycle()` runs a single instruction.

Other modules:

- `alphavm.instructions`: opcodes, operand kinds, `Instruction` and
  `UserFunc` with their fixed-size binary records.
- `alphavm.values`: `MemCell`, `MemCellType` and value helpers such as
  `tobool` and `mod_impl`.
- `alphavm.tables`: the machine's `Table` and `tostring`, which renders
  values the way `print` does (array-like tables as `[ ... ]`, others as
  `{ key: value, ... }`).
- `alphavm.listing`: `format_listing` and `write_listing` give a readable
  listing of a program's instructions and constant tables.
- `alphavm.symtable`: `SymbolTable` with the built-in library function
  names, scoped lookups and a printable table of symbols.

## What it does not do

There is no compiler here: the package does not read Alpha source text and
cannot turn it into an `.abc` file. Programs have to come as existing `.abc`
files or be built as `Program` objects in Python. The symbol table is
provided on its own; nothing in the package generates instructions from it.