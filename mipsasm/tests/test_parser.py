# mipsasm/tests/test_parser.py
import pytest

from mipsasm.mips_errors import MalformedOperand, NumberFormat
from mipsasm.mips_parser import (
    RegisterArg, ImmediateArg, LabelArg, parse_number, parse_register, tokenize, split_operands,
    to_signed32,
)


# --- Numeric literals ---

@pytest.mark.parametrize("text, expected", [
    ("0", 0),
    ("7", 7),
    ("42", 42),
    ("-7", -7),
    ("+15", 15),
    ("0x000000FF", 255),
    ("0XfF", 255),
    ("0xF", 15),               # odd digit count is left-padded
    ("0xFFFFFFFF", -1),        # read as signed 32-bit
    ("0x80000000", -2147483648),
    ("0x1234567890", 0x12345678),  # only the leading 4 bytes are kept
    ("0b101", 5),
    ("0B11111111", 255),
    ("2147483647", 2147483647),
    ("-2147483648", -2147483648),
])
def test_parse_number(text, expected):
    assert parse_number(text) == expected


@pytest.mark.parametrize("text", ["", "x", "0x", "0xZZ", "0b", "0b102", "12a", "1.5", "2147483648", "99999999999"])
def test_parse_number_rejects(text):
    with pytest.raises(NumberFormat) as excinfo:
        parse_number(text)
    assert excinfo.value.literal == text
    assert "Invalid number literal" in excinfo.value.message


def test_number_format_is_a_value_error():
    with pytest.raises(ValueError):
        parse_number("oops")


def test_to_signed32():
    assert to_signed32(0x7FFFFFFF) == 2147483647
    assert to_signed32(0xFFFFFFFE) == -2
    assert to_signed32(0x100000001) == 1


# --- Registers and tokens ---

def test_parse_register():
    assert parse_register("$zero") == 0
    assert parse_register("$ra") == 31
    assert parse_register("$T0") == 8
    assert parse_register("t0") is None
    assert parse_register("$") is None
    assert parse_register("$t10") is None


@pytest.mark.parametrize("text, expected", [
    ("$t0", RegisterArg(8)),
    ("  $sp ", RegisterArg(29)),
    ("0x10", ImmediateArg(16)),
    ("-4", ImmediateArg(-4)),
    ("loop", LabelArg("loop")),
    ("$t10", LabelArg("$t10")),
])
def test_tokenize(text, expected):
    assert tokenize(text) == expected


def test_tokenize_empty():
    with pytest.raises(MalformedOperand):
        tokenize("   ")


# --- Operand splitting ---

def test_split_no_operands():
    assert split_operands("") == ()
    assert split_operands("   ") == ()


def test_split_plain_operands():
    assert split_operands("$t0, $t1, $t2") == (RegisterArg(8), RegisterArg(9), RegisterArg(10))
    assert split_operands("$t0,$zero,100") == (RegisterArg(8), RegisterArg(0), ImmediateArg(100))
    assert split_operands("end") == (LabelArg("end"),)


def test_split_indexed_operand():
    assert split_operands("$t0, -4($sp)") == (RegisterArg(8), ImmediateArg(-4), RegisterArg(29))
    assert split_operands("$t0,data($gp)") == (RegisterArg(8), LabelArg("data"), RegisterArg(28))


def test_split_indexed_operand_without_offset():
    assert split_operands("$t0, ($sp)") == (RegisterArg(8), ImmediateArg(0), RegisterArg(29))


@pytest.mark.parametrize("text", [
    "($t0)",              # no leading register
    "$t0, 4($sp",         # missing ')'
    "$t0, 4($sp) x",      # trailing text
    "$t0, 4)",            # stray ')'
    "$a, $b, $c, $d",     # too many operands
    "$t0, $t1, 4($sp)",   # indexed form with too many leading operands
    "$t0,,$t1",           # empty operand
])
def test_split_malformed(text):
    with pytest.raises(MalformedOperand):
        split_operands(text)
