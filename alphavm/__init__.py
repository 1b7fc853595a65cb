"""Virtual machine, binary program format and symbol table for the Alpha scripting language."""

__version__ = "0.1.0"