# mipsasm/tests/test_consts.py
import pytest

from mipsasm.mips_consts import (
    INSTRUCTIONS, REGISTER_MAP, REGISTER_NAMES, UNKNOWN_INSTRUCTION, PSEUDO, ARITH_LOG, SYNTAX_ARITY,
    lookup_instruction,
)
from mipsasm.mips_errors import DanglingIndent, UnresolvedLabel


def test_register_table():
    assert len(REGISTER_NAMES) == 32
    assert REGISTER_MAP["zero"] == 0
    assert REGISTER_MAP["sp"] == 29
    assert REGISTER_MAP["ra"] == 31


def test_lookup_is_case_insensitive():
    assert lookup_instruction("ADD") is INSTRUCTIONS["add"]
    assert lookup_instruction("add").syntax == ARITH_LOG
    assert lookup_instruction("add").code == 32


def test_lookup_unknown_returns_sentinel():
    spec = lookup_instruction("frobnicate")
    assert spec is UNKNOWN_INSTRUCTION
    assert not spec.found
    assert spec.code == -1


def test_lookup_pseudo_op():
    spec = lookup_instruction("nop", {"nop": object()})
    assert spec.syntax == PSEUDO
    assert spec.found


def test_every_syntax_class_has_an_arity():
    assert all(spec.syntax in SYNTAX_ARITY for spec in INSTRUCTIONS.values())


def test_catalog_is_immutable():
    with pytest.raises(TypeError):
        INSTRUCTIONS["add"] = INSTRUCTIONS["sub"]


def test_error_rendering():
    error = UnresolvedLabel("Undefined label: 'x'").at(3, "j x")
    assert str(error) == "Line 3: Undefined label: 'x'"
    assert error.to_dict() == {
        "line": 3, "message": "Undefined label: 'x'", "text": "j x",
        "kind": "UnresolvedLabel", "severity": "error",
    }
    assert DanglingIndent("indented").severity == "warning"
