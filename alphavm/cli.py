"""Command that loads a compiled program and runs it."""

from __future__ import annotations

import sys

from alphavm.binfile import BinaryFormatError, read_program
from alphavm.values import AVMError
from alphavm.vm import AVM

_PROG = "alpha_vm"


def main(argv: list[str] | None = None) -> int:
    """Run the program in the binary file named on the command line."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print(f"Usage: {_PROG} <binary_file.abc>")
        print("Alpha Virtual Machine - Executes compiled Alpha programs")
        return 1

    path = args[0]
    print("\n=== Alpha Virtual Machine ===")
    print(f"Loading: {path}\n")

    try:
        program = read_program(path)
    except BinaryFormatError as exc:
        print(f"Error: {exc}")
        print("Failed to load binary file")
        return 1

    print("=== Execution ===\n")
    vm = AVM(program, sys.stdout)
    try:
        vm.run()
    except AVMError:
        pass
    print("\n=== Execution Completed ===")
    return 0


if __name__ == "__main__":
    sys.exit(main())