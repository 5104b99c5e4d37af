# mipsasm/mips_pseudo.py
from mipsasm.mips_consts import INSTRUCTIONS
from mipsasm.mips_packer import RegisterEncoding
from mipsasm.mips_parser import RegisterArg

# --- Pseudo Instructions and Handlers ---
# A handler takes (args, symbol_table, current_address) and returns a single
# Encoding, or None when the operands do not fit (the caller reports it).

ADDU = INSTRUCTIONS["addu"].code


def _expand_nop(args, symbol_table, current_address):
    # nop -> sll $zero, $zero, 0
    if args:
        return None
    return RegisterEncoding(0, 0, 0, 0, 0, 0)


def _expand_move(args, symbol_table, current_address):
    # move $dst, $src -> addu $dst, $src, $zero
    if len(args) != 2 or not all(isinstance(a, RegisterArg) for a in args):
        return None
    dst, src = args
    return RegisterEncoding(0, src.index, 0, dst.index, 0, ADDU)


def _expand_clear(args, symbol_table, current_address):
    # clear $dst -> addu $dst, $zero, $zero
    if len(args) != 1 or not isinstance(args[0], RegisterArg):
        return None
    return RegisterEncoding(0, 0, 0, args[0].index, 0, ADDU)


PSEUDO_HANDLERS = {
    "nop": _expand_nop,
    "move": _expand_move,
    "clear": _expand_clear,
}


def default_pseudo_ops():
    """Returns a fresh, caller-owned copy of the built-in pseudo-op registry."""
    return dict(PSEUDO_HANDLERS)
