"""Symbol table entries and scoped lookup for the compiler front end."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TextIO

MAX_SCOPE = 1000
_MAX_ENTRIES_PER_SCOPE = 1024

LIBRARY_FUNCTIONS = (
    "print",
    "input",
    "objectmemberkeys",
    "objecttotalmembers",
    "objectcopy",
    "totalarguments",
    "argument",
    "typeof",
    "strtonum",
    "sqrt",
    "cos",
    "sin",
)


class SymbolType(IntEnum):
    """Kind of symbol stored in the table."""

    GLOBAL_VAR = 0
    LOCAL_VAR = 1
    FORMAL = 2
    USERFUNC = 3
    LIBFUNC = 4
    FORMAL_ARG = 5


class Space(Enum):
    """Storage space a variable lives in at run time."""

    PROGRAMVAR = 0
    FUNCTIONLOCAL = 1
    FORMALARG = 2


@dataclass
class Variable:
    """A variable or formal argument."""

    name: str
    scope: int
    line: int


@dataclass
class Function:
    """A user or library function."""

    name: str
    scope: int
    line: int
    arguments: list[Variable] = field(default_factory=list)
    total_locals: int = 0


_KIND_NAMES = {
    SymbolType.GLOBAL_VAR: "global variable",
    SymbolType.LOCAL_VAR: "local variable",
    SymbolType.FORMAL: "formal argument",
    SymbolType.FORMAL_ARG: "formal argument",
    SymbolType.USERFUNC: "user function",
    SymbolType.LIBFUNC: "library function",
}


@dataclass
class SymbolTableEntry:
    """One symbol: a variable or a function with its placement."""

    type: SymbolType
    value: Variable | Function
    shown: bool = True
    space: Space = Space.PROGRAMVAR
    offset: int = 0

    @property
    def is_function(self) -> bool:
        return self.type in (SymbolType.USERFUNC, SymbolType.LIBFUNC)

    @property
    def name(self) -> str:
        return self.value.name

    @property
    def scope(self) -> int:
        return self.value.scope

    @property
    def line(self) -> int:
        return self.value.line

    @property
    def kind(self) -> str:
        return _KIND_NAMES.get(self.type, "unknown")


def new_variable(name: str, line: int, scope: int, type: SymbolType) -> SymbolTableEntry:
    """Create an entry that holds a variable."""
    return SymbolTableEntry(type=SymbolType(type), value=Variable(name, scope, line))


def new_function(name: str, line: int, scope: int, type: SymbolType) -> SymbolTableEntry:
    """Create an entry that holds a function."""
    return SymbolTableEntry(type=SymbolType(type), value=Function(name, scope, line))


class SymbolTable:
    """Symbols, newest first, looked up by name and scope."""

    def __init__(self) -> None:
        self.entries: list[SymbolTableEntry] = []

    def add(self, entry: SymbolTableEntry) -> SymbolTableEntry:
        """Put an entry at the head of the table."""
        self.entries.insert(0, entry)
        return entry

    def insert_argument(self, name: str, line: int, scope: int) -> SymbolTableEntry:
        """Create a formal argument entry; reject names of library functions."""
        if self.lookup_library(name) is not None:
            raise ValueError(
                f"Argument '{name}' collides with library function (line {line})"
            )
        return new_variable(name, line, scope, SymbolType.FORMAL_ARG)

    def init_library_functions(self) -> None:
        """Register the built-in library functions in scope 0."""
        for name in LIBRARY_FUNCTIONS:
            self.add(new_function(name, 0, 0, SymbolType.LIBFUNC))

    def lookup_in_scope(self, name: str, scope: int) -> SymbolTableEntry | None:
        """Find the newest entry with this name in exactly this scope."""
        return next(
            (e for e in self.entries if e.scope == scope and e.name == name), None
        )

    def lookup_visible(self, name: str, scope: int) -> SymbolTableEntry | None:
        """Find the newest shown entry with this name in this scope or an outer one."""
        return next(
            (
                e
                for e in self.entries
                if e.name == name and e.shown and e.scope <= scope
            ),
            None,
        )

    def lookup_library(self, name: str) -> SymbolTableEntry | None:
        """Find a library function by name."""
        return next(
            (
                e
                for e in self.entries
                if e.type == SymbolType.LIBFUNC and e.name == name
            ),
            None,
        )

    def format_table(self) -> str:
        """Render the shown symbols grouped by scope and ordered by line."""
        parts: list[str] = []
        for scope in range(MAX_SCOPE + 1):
            in_scope: list[SymbolTableEntry] = []
            for entry in self.entries:
                if entry.scope != scope or not entry.shown:
                    continue
                if len(in_scope) >= _MAX_ENTRIES_PER_SCOPE:
                    print(
                        f"Too many entries in scope {scope} — some symbols skipped",
                        file=sys.stderr,
                    )
                    break
                in_scope.append(entry)
            if not in_scope:
                continue
            parts.append(f"\n-----------  Scope #{scope}  -----------\n")
            for entry in sorted(in_scope, key=lambda e: e.line):
                parts.append(
                    f'"{entry.name}" [{entry.kind}] (1line {entry.line}) (scope {scope})\n'
                )
        return "".join(parts)

    def print_table(self, file: TextIO | None = None) -> None:
        """Write the formatted table to a stream, standard output by default."""
        (file or sys.stdout).write(self.format_table())