# mipsasm/mips_packer.py
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

REGISTER_LAYOUT = "register"
IMMEDIATE_LAYOUT = "immediate"
JUMP_LAYOUT = "jump"

WORD_SIZE = 4


# --- Encodings (one per instruction, consumed once by the packer) ---

@dataclass(frozen=True)
class RegisterEncoding:
    """Register layout, 6/5/5/5/5/6 bits."""
    override: int
    src: int
    tgt: int
    dst: int
    shamt: int
    func: int

    layout = REGISTER_LAYOUT


@dataclass(frozen=True)
class ImmediateEncoding:
    """Immediate layout, 6/5/5/16 bits."""
    opcode: int
    src: int
    tgt: int
    imm: int

    layout = IMMEDIATE_LAYOUT


@dataclass(frozen=True)
class JumpEncoding:
    """Jump layout, 6/26 bits."""
    opcode: int
    target: int

    layout = JUMP_LAYOUT


def _sign_extend(value, bits):
    """ Sign extend a 'bits'-bit value represented as an integer. """
    sign_bit = 1 << (bits - 1)
    if value & sign_bit:
        return value - (1 << bits)
    return value


def to_signed16(value):
    """Truncates value to its low 16 bits, read as two's complement."""
    return _sign_extend(value & 0xFFFF, 16)


def pack_encoding(encoding):
    """Serializes an Encoding into exactly 4 bytes, most significant first."""
    if isinstance(encoding, RegisterEncoding):
        o, s, t = encoding.override, encoding.src, encoding.tgt
        d, a, f = encoding.dst, encoding.shamt, encoding.func
        return bytes((
            ((o & 0x3F) << 2) | ((s >> 3) & 0x03),
            ((s & 0x07) << 5) | (t & 0x1F),
            ((d & 0x1F) << 3) | ((a >> 2) & 0x07),
            ((a & 0x03) << 6) | (f & 0x3F),
        ))
    if isinstance(encoding, ImmediateEncoding):
        o, s, t, i = encoding.opcode, encoding.src, encoding.tgt, encoding.imm
        return bytes((
            ((o & 0x3F) << 2) | ((s >> 3) & 0x03),
            ((s & 0x07) << 5) | (t & 0x1F),
            (i >> 8) & 0xFF,
            i & 0xFF,
        ))
    if isinstance(encoding, JumpEncoding):
        o, i = encoding.opcode, encoding.target
        return bytes((
            ((o & 0x3F) << 2) | ((i >> 24) & 0x03),
            (i >> 16) & 0xFF,
            (i >> 8) & 0xFF,
            i & 0xFF,
        ))
    raise TypeError(f"Cannot pack {type(encoding).__name__}")


def pack_word(encoding):
    """Returns the packed encoding as an unsigned 32-bit integer."""
    return int.from_bytes(pack_encoding(encoding), byteorder="big")


def unpack_word(data, layout):
    """ Splits 4 packed bytes back into the Encoding of the given layout.

    Immediates come back sign-extended to 16 bits; the jump field is unsigned.
    """
    if len(data) != WORD_SIZE:
        raise ValueError(f"Expected {WORD_SIZE} bytes, got {len(data)}")
    word = int.from_bytes(data, byteorder="big")

    opcode = (word >> 26) & 0x3F
    src = (word >> 21) & 0x1F
    tgt = (word >> 16) & 0x1F

    if layout == REGISTER_LAYOUT:
        dst = (word >> 11) & 0x1F
        shamt = (word >> 6) & 0x1F
        func = word & 0x3F
        return RegisterEncoding(opcode, src, tgt, dst, shamt, func)
    if layout == IMMEDIATE_LAYOUT:
        return ImmediateEncoding(opcode, src, tgt, _sign_extend(word & 0xFFFF, 16))
    if layout == JUMP_LAYOUT:
        return JumpEncoding(opcode, word & 0x03FFFFFF)
    raise ValueError(f"Unknown layout: '{layout}'")
