# mipsasm/mips_parser.py
import re
import logging
from dataclasses import dataclass

from mipsasm.mips_consts import REGISTER_MAP
from mipsasm.mips_errors import MalformedOperand, NumberFormat

logger = logging.getLogger(__name__)

DEC_RE = re.compile(r'^[+-]?[0-9]+$')
HEX_RE = re.compile(r'^[0-9a-fA-F]+$')
BIN_RE = re.compile(r'^[+-]?[01]+$')

INT32_MIN, INT32_MAX = -(1 << 31), (1 << 31) - 1
MAX_OPERANDS = 3


# --- Operand values ---

@dataclass(frozen=True)
class RegisterArg:
    index: int


@dataclass(frozen=True)
class ImmediateArg:
    value: int


@dataclass(frozen=True)
class LabelArg:
    name: str


def to_signed32(value):
    """Reinterprets the low 32 bits of value as a two's complement integer."""
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _parse_decimal(literal):
    if not DEC_RE.match(literal):
        raise NumberFormat(literal)
    value = int(literal)
    if not (INT32_MIN <= value <= INT32_MAX):
        raise NumberFormat(literal)
    return value


def _parse_hex(literal):
    digits = literal[2:]
    if not digits or not HEX_RE.match(digits):
        raise NumberFormat(literal)
    if len(digits) % 2:
        digits = "0" + digits
    # Accumulate big-endian, keeping only the leading 4 bytes
    raw = bytes.fromhex(digits)[:4]
    return to_signed32(int.from_bytes(raw, byteorder="big"))


def _parse_binary(literal):
    digits = literal[2:]
    if not BIN_RE.match(digits):
        raise NumberFormat(literal)
    value = int(digits, 2)
    if not (INT32_MIN <= value <= INT32_MAX):
        raise NumberFormat(literal)
    return value


def parse_number(text):
    """Parses a decimal, 0x-prefixed hex or 0b-prefixed binary literal.

    Raises NumberFormat carrying the offending text on failure.
    """
    literal = text.strip()
    if len(literal) < 2:
        return _parse_decimal(literal)
    prefix = literal[:2].lower()
    if prefix == "0x":
        return _parse_hex(literal)
    if prefix == "0b":
        return _parse_binary(literal)
    return _parse_decimal(literal)


def parse_register(text):
    """Returns the register index for '$name', or None if it is not a register."""
    token = text.strip()
    if len(token) < 2 or not token.startswith('$'):
        return None
    return REGISTER_MAP.get(token[1:].lower())


def tokenize(text):
    """Classifies one operand as a register, an immediate or a label."""
    token = text.strip()
    if not token:
        raise MalformedOperand("Empty operand.")
    reg_num = parse_register(token)
    if reg_num is not None:
        return RegisterArg(reg_num)
    try:
        return ImmediateArg(parse_number(token))
    except NumberFormat:
        return LabelArg(token)


def _split_plain(text):
    parts = text.split(',')
    if len(parts) > MAX_OPERANDS:
        raise MalformedOperand(f"Too many operands: '{text}'")
    return [tokenize(part) for part in parts]


def split_operands(operand_text):
    """ Splits operand text into a tuple of 0-3 Args.

    Indexed addressing 'rt, offset(base)' yields (rt, offset, base); an empty
    offset means 0.
    """
    text = operand_text.strip()
    if not text:
        return ()

    open_pos = text.find('(')
    if open_pos == -1:
        if ')' in text:
            raise MalformedOperand(f"Unbalanced ')' in operands: '{text}'")
        return tuple(_split_plain(text))

    close_pos = text.find(')', open_pos)
    if close_pos == -1:
        raise MalformedOperand(f"Missing ')' in indexed operand: '{text}'")
    if text[close_pos + 1:].strip():
        raise MalformedOperand(f"Unexpected text after ')': '{text}'")

    head = text[:open_pos]
    comma = head.rfind(',')
    if comma == -1:
        raise MalformedOperand(f"Indexed operand '{text}' needs a leading register operand.")

    leading = _split_plain(head[:comma])
    displacement_text = head[comma + 1:].strip()
    displacement = tokenize(displacement_text) if displacement_text else ImmediateArg(0)
    base = tokenize(text[open_pos + 1:close_pos])

    args = (*leading, displacement, base)
    if len(args) > MAX_OPERANDS:
        raise MalformedOperand(f"Too many operands: '{text}'")
    logger.debug(f"Split indexed operands '{text}' into {args}")
    return args
