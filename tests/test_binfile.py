import pytest

from alphavm.binfile import (
    MAGIC,
    BinaryFormatError,
    Program,
    decode_program,
    encode_program,
    read_program,
    write_program,
)
from alphavm.instructions import Instruction, UserFunc, VMArg, VMArgType, VMOpcode


def sample_program():
    return Program(
        instructions=[
            Instruction(VMOpcode.FUNCENTER, VMArg(VMArgType.USERFUNC, 0), src_line=1),
            Instruction(
                VMOpcode.ASSIGN,
                VMArg(VMArgType.GLOBAL, 0),
                VMArg(VMArgType.NUMBER, 0),
                VMArg(VMArgType.UNDEF, 0),
                2,
            ),
            Instruction(VMOpcode.CALL, arg1=VMArg(VMArgType.LIBFUNC, 0), src_line=3),
        ],
        num_consts=[1.5, -2.0],
        string_consts=["hello", ""],
        lib_funcs=["print", "typeof"],
        user_funcs=[UserFunc(0, 2)],
    )


def test_round_trip():
    program = sample_program()
    assert decode_program(encode_program(program)) == program


def test_empty_program_round_trip():
    assert decode_program(encode_program(Program())) == Program()


def test_starts_with_magic():
    data = encode_program(Program())
    assert data[:4] == MAGIC.to_bytes(4, "little")


def test_strings_stored_with_terminator():
    data = encode_program(Program(string_consts=["ab"]))
    assert (3).to_bytes(4, "little") + b"ab\x00" in data


def test_bad_magic_raises():
    data = bytearray(encode_program(sample_program()))
    data[0] ^= 0xFF
    with pytest.raises(BinaryFormatError):
        decode_program(bytes(data))


def test_every_truncation_is_rejected():
    data = encode_program(sample_program())
    for cut in range(len(data)):
        with pytest.raises(BinaryFormatError):
            decode_program(data[:cut])


def test_bad_opcode_is_format_error():
    data = bytearray(encode_program(Program(instructions=[Instruction(VMOpcode.NOP)])))
    data[8] = 200
    with pytest.raises(BinaryFormatError):
        decode_program(bytes(data))


def test_user_function_names_are_not_stored():
    program = Program(user_funcs=[UserFunc(7, 1, "f")])
    back = decode_program(encode_program(program))
    assert back.user_funcs[0].address == 7
    assert back.user_funcs[0].local_size == 1
    assert back.user_funcs[0].id == ""


def test_write_and_read(tmp_path):
    program = sample_program()
    target = tmp_path / "prog.abc"
    write_program(program, target)
    assert read_program(target) == program


def test_read_missing_file_raises(tmp_path):
    with pytest.raises(BinaryFormatError):
        read_program(tmp_path / "missing.abc")