# mipsasm/mips_consts.py
from dataclasses import dataclass
from types import MappingProxyType

# Load address of the Text section when no origin is given
DEFAULT_ORIGIN = 0x00400000

# MIPS Register Table (index -> name, without the '$' sigil)
REGISTER_NAMES = (
    "zero", "at", "v0", "v1", "a0", "a1", "a2", "a3",
    "t0", "t1", "t2", "t3", "t4", "t5", "t6", "t7",
    "s0", "s1", "s2", "s3", "s4", "s5", "s6", "s7",
    "t8", "t9", "k0", "k1", "gp", "sp", "fp", "ra",
)

REGISTER_MAP = MappingProxyType({name: num for num, name in enumerate(REGISTER_NAMES)})

# --- Syntax classes ---
# Each class fixes the operand shape and the Encoding family of an instruction.
ARITH_LOG = "arith_log"            # rd, rs, rt
DIV_MULT = "div_mult"              # rs, rt
SHIFT = "shift"                    # rd, rt, shamt
SHIFT_V = "shift_v"                # rd, rt, rs
JUMP_R = "jump_r"                  # rs
MOVE_FROM = "move_from"            # rd
MOVE_TO = "move_to"                # rs
ARITH_LOG_I = "arith_log_i"        # rt, rs, imm
LOAD_I = "load_i"                  # rt, imm
BRANCH = "branch"                  # rs, rt, label
BRANCH_Z = "branch_z"              # rs, label
LOAD_STORE = "load_store"          # rt, offset(rs)
JUMP = "jump"                      # label
TRAP = "trap"                      # literal
SYSCALL = "syscall"                # no operands
S2_ARITH_LOG = "s2_arith_log"      # rd, rs, rt (extended opcode space)
COP1_MOVE = "cop1_move"            # rt, fs
ATOMIC = "atomic"                  # rt, offset(rs)
BREAK = "break"                    # no operands
PSEUDO = "pseudo"                  # resolved through the pseudo-op registry

# Number of operands each syntax class expects
SYNTAX_ARITY = MappingProxyType({
    ARITH_LOG: 3, DIV_MULT: 2, SHIFT: 3, SHIFT_V: 3, JUMP_R: 1,
    MOVE_FROM: 1, MOVE_TO: 1, ARITH_LOG_I: 3, LOAD_I: 2, BRANCH: 3,
    BRANCH_Z: 2, LOAD_STORE: 3, JUMP: 1, TRAP: 1, SYSCALL: 0,
    S2_ARITH_LOG: 3, COP1_MOVE: 2, ATOMIC: 3, BREAK: 0,
})

# Override field values selecting extended instruction families
OVERRIDE_SPECIAL2 = 28
OVERRIDE_COP1 = 17
OVERRIDE_SPECIAL3 = 31


@dataclass(frozen=True)
class InstructionSpec:
    mnemonic: str
    syntax: str
    code: int

    @property
    def found(self):
        return self.code != -1


# Sentinel returned for mnemonics missing from the catalog
UNKNOWN_INSTRUCTION = InstructionSpec("null", SYSCALL, -1)


def _catalog(*entries):
    return MappingProxyType({name: InstructionSpec(name, syntax, code) for name, syntax, code in entries})


INSTRUCTIONS = _catalog(
    ("add", ARITH_LOG, 32), ("addu", ARITH_LOG, 33),
    ("and", ARITH_LOG, 36), ("nor", ARITH_LOG, 39), ("or", ARITH_LOG, 37),
    ("sub", ARITH_LOG, 34), ("subu", ARITH_LOG, 35), ("xor", ARITH_LOG, 38),
    ("slt", ARITH_LOG, 42), ("sltu", ARITH_LOG, 41),
    ("addi", ARITH_LOG_I, 8), ("addiu", ARITH_LOG_I, 9), ("andi", ARITH_LOG_I, 12),
    ("ori", ARITH_LOG_I, 13), ("xori", ARITH_LOG_I, 14),
    ("slti", ARITH_LOG_I, 10), ("sltiu", ARITH_LOG_I, 9),
    ("div", DIV_MULT, 26), ("divu", DIV_MULT, 27), ("mult", DIV_MULT, 24), ("multu", DIV_MULT, 25),
    ("sll", SHIFT, 0), ("sra", SHIFT, 3), ("srl", SHIFT, 2),
    ("sllv", SHIFT_V, 4), ("srav", SHIFT_V, 7), ("srlv", SHIFT_V, 6),
    ("lhi", LOAD_I, 25), ("llo", LOAD_I, 24),
    ("beq", BRANCH, 4), ("bne", BRANCH, 5),
    ("blez", BRANCH_Z, 6), ("bgtz", BRANCH_Z, 7),
    ("j", JUMP, 2), ("jal", JUMP, 3),
    ("jr", JUMP_R, 8), ("jalr", JUMP_R, 9),
    ("lb", LOAD_STORE, 32), ("lbu", LOAD_STORE, 36), ("lh", LOAD_STORE, 33),
    ("lhu", LOAD_STORE, 37), ("lw", LOAD_STORE, 35),
    ("sb", LOAD_STORE, 40), ("sh", LOAD_STORE, 41), ("sw", LOAD_STORE, 43),
    ("mfhi", MOVE_FROM, 16), ("mflo", MOVE_FROM, 18),
    ("mthi", MOVE_TO, 17), ("mtlo", MOVE_TO, 19),
    ("trap", TRAP, 26),
    ("syscall", SYSCALL, 12),
    ("break", BREAK, 13),
    ("mul", S2_ARITH_LOG, 2),
    # coprocessor-1 moves carry their sub-op in the code
    ("mfc1", COP1_MOVE, 0), ("mtc1", COP1_MOVE, 4),
    ("ll", ATOMIC, 54), ("sc", ATOMIC, 38),
)


def lookup_instruction(mnemonic, pseudo_ops=()):
    """Returns the InstructionSpec for a mnemonic, or the UNKNOWN_INSTRUCTION sentinel.

    Mnemonics found in ``pseudo_ops`` resolve to an InstructionSpec of syntax PSEUDO.
    """
    name = mnemonic.lower()
    spec = INSTRUCTIONS.get(name)
    if spec is not None:
        return spec
    if name in pseudo_ops:
        return InstructionSpec(name, PSEUDO, 0)
    return UNKNOWN_INSTRUCTION


# --- Directives Set ---
DIRECTIVES = frozenset({
    ".data", ".text", ".globl", ".extern",
    ".word", ".byte", ".half", ".space", ".asciiz", ".ascii", ".align",
})

# Element width in bytes of the numeric data directives
DATA_WIDTHS = MappingProxyType({".word": 4, ".half": 2, ".byte": 1})
