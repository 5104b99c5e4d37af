# mipsasm/mips_assembler.py
import re
import logging
from dataclasses import dataclass, replace

from mipsasm.mips_consts import (
    DEFAULT_ORIGIN, INSTRUCTIONS, REGISTER_NAMES, SYNTAX_ARITY, DIRECTIVES, DATA_WIDTHS,
    OVERRIDE_SPECIAL2, OVERRIDE_COP1, OVERRIDE_SPECIAL3, lookup_instruction,
    ARITH_LOG, DIV_MULT, SHIFT, SHIFT_V, JUMP_R, MOVE_FROM, MOVE_TO, ARITH_LOG_I,
    LOAD_I, BRANCH, BRANCH_Z, LOAD_STORE, JUMP, TRAP, SYSCALL, S2_ARITH_LOG,
    COP1_MOVE, ATOMIC, BREAK, PSEUDO,
)
from mipsasm.mips_errors import (
    AssemblerError, UnknownInstruction, InvalidLabelName, DuplicateLabel, DanglingIndent,
    MalformedDirective, MalformedOperand, UnresolvedLabel, UnknownRegister,
    MalformedOperandCount,
)
from mipsasm.mips_packer import (
    RegisterEncoding, ImmediateEncoding, JumpEncoding, WORD_SIZE, pack_encoding, to_signed16,
)
from mipsasm.mips_parser import (
    RegisterArg, ImmediateArg, LabelArg, parse_number, split_operands,
)
from mipsasm.mips_pseudo import default_pseudo_ops

logger = logging.getLogger(__name__)

TEXT_SECTION = "text"
DATA_SECTION = "data"

ENTRY_LABEL = "START"
MAX_ALIGN_POWER = 14


# --- Line records produced by Pass 1 ---

@dataclass(frozen=True)
class InstructionRecord:
    spec: object
    args: tuple           # None when the operand text could not be split
    line_num: int
    text: str
    section: str

    size = WORD_SIZE


@dataclass(frozen=True)
class LabelRecord:
    name: str
    line_num: int
    text: str
    section: str

    size = 0


@dataclass(frozen=True)
class RawDataRecord:
    data: bytes
    line_num: int
    text: str
    section: str
    align: int = None     # .align power; padding depends on the final address

    @property
    def size(self):
        return len(self.data)


def _find_label_terminator(statement):
    """Index of the first ':' outside a quoted string, or -1."""
    in_string = False
    for pos, ch in enumerate(statement):
        if ch == '"':
            in_string = not in_string
        elif ch == ':' and not in_string:
            return pos
    return -1


def _trunc_div(value, divisor):
    """Integer division rounding toward zero."""
    quotient = abs(value) // divisor
    return -quotient if value < 0 else quotient


class MipsAssembler:
    def __init__(self, origin=None, pseudo_ops=None):
        self.origin = DEFAULT_ORIGIN if origin is None else origin
        self.pseudo_ops = default_pseudo_ops() if pseudo_ops is None else dict(pseudo_ops)
        self._encoders = {
            ARITH_LOG: self._encode_arith_log,
            DIV_MULT: self._encode_div_mult,
            SHIFT: self._encode_shift,
            SHIFT_V: self._encode_shift_v,
            JUMP_R: self._encode_move_to,
            MOVE_TO: self._encode_move_to,
            MOVE_FROM: self._encode_move_from,
            ARITH_LOG_I: self._encode_arith_log_i,
            LOAD_I: self._encode_load_i,
            BRANCH: self._encode_branch,
            BRANCH_Z: self._encode_branch_z,
            LOAD_STORE: self._encode_load_store,
            JUMP: self._encode_jump,
            TRAP: self._encode_trap,
            SYSCALL: self._encode_syscall,
            S2_ARITH_LOG: self._encode_s2_arith_log,
            COP1_MOVE: self._encode_cop1_move,
            ATOMIC: self._encode_atomic,
            BREAK: self._encode_break,
        }
        self._reset()

    def _reset(self):
        self.records = []
        self.section_tables = {TEXT_SECTION: {}, DATA_SECTION: {}}
        self.symbol_table = {}
        self.text_size = 0
        self.encodings = []
        self.image = b""
        self.errors = []
        self.warnings = []

    def register_pseudo_op(self, mnemonic, handler):
        """Registers handler(args, symbol_table, current_address) -> Encoding for a mnemonic."""
        name = mnemonic.lower()
        if name in INSTRUCTIONS:
            raise ValueError(f"'{name}' is a base instruction and cannot be redefined")
        if not callable(handler):
            raise TypeError(f"Handler for '{name}' is not callable")
        self.pseudo_ops[name] = handler
        logger.debug(f"Registered pseudo-instruction '{name}'")

    def _add_error(self, error):
        """Records a diagnostic, preventing duplicates for the same line/message."""
        target = self.warnings if error.severity == "warning" else self.errors
        if not any(d['line'] == error.line_num and d['message'] == error.message for d in target):
            logger.debug(f"Adding {error.severity}: Line {error.line_num}, Msg: {error.message}, Text: '{error.text}'")
            target.append(error.to_dict())

    # ------------------------------------------------------------------
    # Pass 1
    # ------------------------------------------------------------------

    def first_pass(self, assembly_code):
        """ Pass 1: Build line records and the per-section label tables. """
        self.records = []
        tables = {TEXT_SECTION: {}, DATA_SECTION: {}}
        counters = {TEXT_SECTION: self.origin, DATA_SECTION: self.origin}
        label_lines = {TEXT_SECTION: {}, DATA_SECTION: {}}
        section = TEXT_SECTION
        label_context = False

        logger.debug("--- Starting First Pass ---")
        for line_num, line in enumerate(assembly_code.splitlines(), start=1):
            code = line.split('#', 1)[0]
            statement = code.strip()
            if not statement:
                continue

            if code[:1] not in (' ', '\t'):
                label_context = False
            elif not label_context:
                self._add_error(DanglingIndent("Code indented without a label.", line_num, line))

            colon = _find_label_terminator(statement)
            if colon != -1:
                label = statement[:colon]
                if not label or re.search(r'\s', label):
                    self._add_error(InvalidLabelName(f"Invalid label name: '{label}'", line_num, line))
                table = tables[section]
                if label in table:
                    self._add_error(DuplicateLabel(
                        f"Duplicate label definition: {label} (first defined on line {label_lines[section][label][0]})",
                        line_num, line))
                else:
                    if label == ENTRY_LABEL:
                        self._rebase_for_entry(section, table, counters, line_num, line)
                    table[label] = counters[section]
                    label_lines[section][label] = (line_num, line)
                    label_context = True
                    self.records.append(LabelRecord(label, line_num, line, section))
                    logger.debug(f"Pass 1: Label '{label}' defined at address 0x{counters[section]:08x} in .{section}")
                statement = statement[colon + 1:].strip()
                if not statement:
                    continue

            if statement.startswith('.'):
                section = self._handle_directive(statement, line_num, line, section, counters)
                continue

            parts = re.split(r'\s+', statement, maxsplit=1)
            spec = lookup_instruction(parts[0], self.pseudo_ops)
            if not spec.found:
                self._add_error(UnknownInstruction(f"Unknown instruction: '{parts[0]}'", line_num, line))
            try:
                args = split_operands(parts[1] if len(parts) > 1 else "")
            except AssemblerError as e:
                self._add_error(e.at(line_num, line))
                args = None

            self.records.append(InstructionRecord(spec, args, line_num, line, section))
            logger.debug(f"Pass 1: Instruction '{spec.mnemonic}' at 0x{counters[section]:08x} (line {line_num})")
            counters[section] += WORD_SIZE

        self.section_tables = tables
        self.text_size = counters[TEXT_SECTION] - self.origin
        self._layout_data(tables[DATA_SECTION])
        self.symbol_table = self._merge_tables(tables, label_lines)
        logger.debug(f"--- First Pass Complete: {len(self.records)} records, text size {self.text_size} bytes ---")
        return self.records, self.symbol_table, self.text_size

    def _rebase_for_entry(self, section, table, counters, line_num, line):
        """Reserves the leading word of a section for an implicit 'j START'."""
        for label in table:
            table[label] += WORD_SIZE
        counters[section] += WORD_SIZE
        entry_jump = InstructionRecord(INSTRUCTIONS["j"], (LabelArg(ENTRY_LABEL),), line_num, line, section)
        self.records.insert(0, entry_jump)
        logger.debug(f"Pass 1: '{ENTRY_LABEL}' found; shifted {len(table)} labels in .{section} by {WORD_SIZE}")

    def _layout_data(self, table):
        """Rebinds Data labels behind the Text section and recomputes .align padding there."""
        address = self.origin + self.text_size
        for pos, record in enumerate(self.records):
            if record.section != DATA_SECTION:
                continue
            if isinstance(record, LabelRecord):
                table[record.name] = address & 0xFFFFFFFF
            elif isinstance(record, RawDataRecord) and record.align is not None:
                record = replace(record, data=bytes(-address % (1 << record.align)))
                self.records[pos] = record
            address += record.size
        logger.debug(f"Pass 1: .data placed at 0x{self.origin + self.text_size:08x}")

    def _merge_tables(self, tables, label_lines):
        merged = dict(tables[TEXT_SECTION])
        for label, address in tables[DATA_SECTION].items():
            if label in merged:
                line_num, line = label_lines[DATA_SECTION][label]
                self._add_error(DuplicateLabel(
                    f"Duplicate label definition: {label} (defined in both .text and .data)",
                    line_num, line))
                continue
            merged[label] = address
        return merged

    def _handle_directive(self, statement, line_num, line, section, counters):
        """Processes one directive; returns the section that is active afterwards."""
        parts = re.split(r'\s+', statement, maxsplit=1)
        directive = parts[0].lower()
        args_str = parts[1] if len(parts) > 1 else ""

        if directive == ".data":
            logger.debug(f"Pass 1: Switched to .data segment at 0x{counters[DATA_SECTION]:08x}")
            return DATA_SECTION
        if directive == ".text":
            logger.debug(f"Pass 1: Switched to .text segment at 0x{counters[TEXT_SECTION]:08x}")
            return TEXT_SECTION
        if directive in (".globl", ".extern"):
            return section

        try:
            if directive not in DIRECTIVES:
                raise MalformedDirective(f"Unknown directive: '{directive}'")
            if directive == ".align":
                # .align n pads the section counter to a 2^n boundary
                power = self._align_power(args_str)
                padding = bytes(-counters[section] % (1 << power))
                record = RawDataRecord(padding, line_num, line, section, align=power)
            else:
                record = RawDataRecord(self._directive_data(directive, args_str), line_num, line, section)
        except AssemblerError as e:
            self._add_error(e.at(line_num, line))
            return section

        self.records.append(record)
        logger.debug(f"Pass 1: Directive '{directive}' at 0x{counters[section]:08x}, incremented address by {record.size}")
        counters[section] += record.size
        return section

    @staticmethod
    def _align_power(args_str):
        power = parse_number(args_str)
        if not 0 <= power <= MAX_ALIGN_POWER:
            raise MalformedDirective(f"Invalid alignment value for .align: {args_str} (must be 0-{MAX_ALIGN_POWER})")
        return power

    def _directive_data(self, directive, args_str):
        if directive in (".ascii", ".asciiz"):
            begin = args_str.find('"')
            end = args_str.find('"', begin + 1) if begin != -1 else -1
            if begin == -1 or end == -1:
                raise MalformedDirective(f"Directive {directive} is missing an opening or closing quote")
            data = args_str[begin + 1:end].encode('utf-8')
            return data + b"\x00" if directive == ".asciiz" else data

        if directive in DATA_WIDTHS:
            width = DATA_WIDTHS[directive]
            values = [a for a in (v.strip() for v in args_str.split(',')) if a]
            if not values:
                raise MalformedDirective(f"Directive {directive} expects at least one value")
            mask = (1 << (8 * width)) - 1
            return b"".join((parse_number(v) & mask).to_bytes(width, byteorder="big") for v in values)

        if directive == ".space":
            size = parse_number(args_str)
            if size < 0:
                raise MalformedDirective(f"Invalid size for .space: {args_str}")
            return bytes(size)

        raise MalformedDirective(f"Unknown directive: '{directive}'")

    # ------------------------------------------------------------------
    # Pass 2
    # ------------------------------------------------------------------

    def second_pass(self, records=None, symbol_table=None, text_size=None):
        """ Pass 2: Resolve operands, encode every instruction and pack the image.

        Returns (image, encodings) where encodings is a list of
        (line_num, Encoding) in source order.
        """
        records = self.records if records is None else records
        symbol_table = self.symbol_table if symbol_table is None else symbol_table
        text_size = self.text_size if text_size is None else text_size

        sections = {TEXT_SECTION: bytearray(), DATA_SECTION: bytearray()}
        bases = {TEXT_SECTION: self.origin, DATA_SECTION: self.origin + text_size}
        encodings = []

        logger.debug("--- Starting Second Pass ---")
        for record in records:
            output = sections[record.section]
            address = bases[record.section] + len(output)

            if isinstance(record, RawDataRecord):
                output.extend(record.data)
                continue
            if not isinstance(record, InstructionRecord):
                continue
            if record.args is None:
                # Operand text was malformed; keep the reserved word so later addresses hold
                output.extend(bytes(WORD_SIZE))
                continue

            encoding = self._encode(record, address, symbol_table)
            packed = pack_encoding(encoding)
            output.extend(packed)
            encodings.append((record.line_num, encoding))
            logger.debug(f"Pass 2: Assembled 0x{packed.hex()} for '{record.spec.mnemonic}' at 0x{address:08x} (from line {record.line_num})")

        logger.debug("--- Second Pass Complete ---")
        return bytes(sections[TEXT_SECTION] + sections[DATA_SECTION]), encodings

    def _encode(self, record, address, symbol_table):
        spec, args = record.spec, record.args

        if spec.syntax == PSEUDO:
            handler = self.pseudo_ops[spec.mnemonic]
            try:
                encoding = handler(args, symbol_table, address)
            except AssemblerError as e:
                self._add_error(e.at(record.line_num, record.text))
                logger.warning(f"Pseudo-instruction expansion failed on line {record.line_num}: '{record.text.strip()}'")
                return RegisterEncoding(0, 0, 0, 0, 0, 0)
            if encoding is None:
                self._add_error(MalformedOperand(
                    f"Invalid operands for pseudo-instruction '{spec.mnemonic}'", record.line_num, record.text))
                return RegisterEncoding(0, 0, 0, 0, 0, 0)
            if not isinstance(encoding, (RegisterEncoding, ImmediateEncoding, JumpEncoding)):
                self._add_error(MalformedOperand(
                    f"Pseudo-instruction '{spec.mnemonic}' produced {type(encoding).__name__}, not an encoding",
                    record.line_num, record.text))
                return RegisterEncoding(0, 0, 0, 0, 0, 0)
            return encoding

        if not spec.found:
            # Unknown mnemonic, already reported in Pass 1
            return JumpEncoding(0, spec.code)

        expected = SYNTAX_ARITY[spec.syntax]
        if len(args) != expected:
            raise MalformedOperandCount(
                f"Incorrect operand count for '{spec.mnemonic}'. Expected {expected}, got {len(args)}.",
                record.line_num, record.text)

        try:
            return self._encoders[spec.syntax](spec, args, address, symbol_table)
        except AssemblerError as e:
            self._add_error(e.at(record.line_num, record.text))
            logger.warning(f"Encoding failed for instruction on line {record.line_num}: '{record.text.strip()}'")
            return self._fallback(spec)

    @staticmethod
    def _fallback(spec):
        """Zero-filled Encoding keeping the opcode/function of the instruction."""
        if spec.syntax in (ARITH_LOG_I, LOAD_I, BRANCH, BRANCH_Z, LOAD_STORE):
            return ImmediateEncoding(spec.code, 0, 0, 0)
        if spec.syntax in (JUMP, TRAP):
            return JumpEncoding(spec.code, 0)
        if spec.syntax == SYSCALL:
            return JumpEncoding(0, spec.code)
        if spec.syntax == S2_ARITH_LOG:
            return RegisterEncoding(OVERRIDE_SPECIAL2, 0, 0, 0, 0, spec.code)
        if spec.syntax == COP1_MOVE:
            return RegisterEncoding(OVERRIDE_COP1, 0, 0, 0, 0, 0)
        if spec.syntax == ATOMIC:
            return RegisterEncoding(OVERRIDE_SPECIAL3, 0, 0, 0, 0, spec.code)
        return RegisterEncoding(0, 0, 0, 0, 0, spec.code)

    # --- Operand resolution ---

    @staticmethod
    def _register(arg):
        if isinstance(arg, RegisterArg):
            return arg.index
        if isinstance(arg, LabelArg):
            raise UnknownRegister(f"Invalid register name: '{arg.name}'")
        raise UnknownRegister(f"Expected a register, got immediate {arg.value}")

    @staticmethod
    def _value(arg, symbol_table):
        if isinstance(arg, ImmediateArg):
            return arg.value
        if isinstance(arg, LabelArg):
            if arg.name not in symbol_table:
                raise UnresolvedLabel(f"Undefined label: '{arg.name}'")
            return symbol_table[arg.name]
        raise MalformedOperand(f"Expected an immediate or label, got register ${REGISTER_NAMES[arg.index]}")

    @staticmethod
    def _literal(arg):
        if isinstance(arg, ImmediateArg):
            return arg.value
        if isinstance(arg, RegisterArg):
            raise MalformedOperand(f"Expected a number, got register ${REGISTER_NAMES[arg.index]}")
        raise MalformedOperand(f"Expected a number, got '{arg.name}'")

    @staticmethod
    def _displacement(target, address):
        """Word displacement from this instruction, biased by one word, as 16 bits."""
        return to_signed16(((target - address) >> 2) - 1)

    # --- Register layout ---

    def _encode_arith_log(self, spec, args, address, symbol_table):
        dst, src, tgt = (self._register(a) for a in args)
        return RegisterEncoding(0, src, tgt, dst, 0, spec.code)

    def _encode_div_mult(self, spec, args, address, symbol_table):
        src, tgt = (self._register(a) for a in args)
        return RegisterEncoding(0, src, tgt, 0, 0, spec.code)

    def _encode_shift(self, spec, args, address, symbol_table):
        dst = self._register(args[0])
        tgt = self._register(args[1])
        shamt = self._literal(args[2])
        if not 0 <= shamt <= 31:
            raise MalformedOperand(f"Shift amount '{shamt}' out of range (0 to 31)")
        return RegisterEncoding(0, 0, tgt, dst, shamt, spec.code)

    def _encode_shift_v(self, spec, args, address, symbol_table):
        dst, tgt, src = (self._register(a) for a in args)
        return RegisterEncoding(0, src, tgt, dst, 0, spec.code)

    def _encode_move_to(self, spec, args, address, symbol_table):
        # jr/jalr/mthi/mtlo all carry a single source register
        return RegisterEncoding(0, self._register(args[0]), 0, 0, 0, spec.code)

    def _encode_move_from(self, spec, args, address, symbol_table):
        return RegisterEncoding(0, 0, 0, self._register(args[0]), 0, spec.code)

    def _encode_s2_arith_log(self, spec, args, address, symbol_table):
        dst, src, tgt = (self._register(a) for a in args)
        return RegisterEncoding(OVERRIDE_SPECIAL2, src, tgt, dst, 0, spec.code)

    def _encode_cop1_move(self, spec, args, address, symbol_table):
        tgt, src = (self._register(a) for a in args)
        return RegisterEncoding(OVERRIDE_COP1, spec.code, tgt, src, 0, 0)

    def _encode_atomic(self, spec, args, address, symbol_table):
        tgt = self._register(args[0])
        offset = self._value(args[1], symbol_table)
        base = self._register(args[2])
        displacement = self._displacement(offset, address)
        # The displacement is split across the dst and shamt sub-fields
        return RegisterEncoding(OVERRIDE_SPECIAL3, base, tgt, _trunc_div(displacement, 2), displacement << 1, spec.code)

    def _encode_break(self, spec, args, address, symbol_table):
        return RegisterEncoding(0, 0, 0, 0, 0, spec.code)

    # --- Immediate layout ---

    def _encode_arith_log_i(self, spec, args, address, symbol_table):
        tgt = self._register(args[0])
        src = self._register(args[1])
        imm = self._value(args[2], symbol_table)
        return ImmediateEncoding(spec.code, src, tgt, to_signed16(imm))

    def _encode_load_i(self, spec, args, address, symbol_table):
        tgt = self._register(args[0])
        imm = self._value(args[1], symbol_table)
        return ImmediateEncoding(spec.code, 0, tgt, to_signed16(imm))

    def _encode_branch(self, spec, args, address, symbol_table):
        src = self._register(args[0])
        tgt = self._register(args[1])
        target = self._value(args[2], symbol_table)
        displacement = self._displacement(target, address)
        logger.debug(f"Branch '{spec.mnemonic}' to 0x{target:08x} from 0x{address:08x}. Displacement = {displacement}")
        return ImmediateEncoding(spec.code, src, tgt, displacement)

    def _encode_branch_z(self, spec, args, address, symbol_table):
        src = self._register(args[0])
        target = self._value(args[1], symbol_table)
        return ImmediateEncoding(spec.code, src, 0, self._displacement(target, address))

    def _encode_load_store(self, spec, args, address, symbol_table):
        tgt = self._register(args[0])
        offset = self._value(args[1], symbol_table)
        base = self._register(args[2])
        # The stored displacement mirrors the branch formula
        return ImmediateEncoding(spec.code, base, tgt, self._displacement(offset, address))

    # --- Jump layout ---

    def _encode_jump(self, spec, args, address, symbol_table):
        target = self._value(args[0], symbol_table)
        logger.debug(f"Jump '{spec.mnemonic}' to 0x{target:08x} from 0x{address:08x}. Encoded field = 0x{target >> 2:07x}")
        return JumpEncoding(spec.code, target >> 2)

    def _encode_trap(self, spec, args, address, symbol_table):
        return JumpEncoding(spec.code, self._literal(args[0]))

    def _encode_syscall(self, spec, args, address, symbol_table):
        return JumpEncoding(0, spec.code)

    # ------------------------------------------------------------------

    def assemble(self, assembly_code):
        """ Main method to assemble MIPS code into a flat binary image. """
        logger.info("Starting assembly process...")
        self._reset()

        try:
            self.first_pass(assembly_code)
            # Pass 1 diagnostics are recovered locally; Pass 2 still runs
            self.image, self.encodings = self.second_pass()
        except MalformedOperandCount as e:
            self._add_error(e)
            self.image, self.encodings = b"", []
            logger.warning(f"Assembly aborted: {e}")
        except Exception as e:
            logger.error(f"Unexpected exception during assembly: {e}", exc_info=True)
            self._add_error(AssemblerError(f"An unexpected internal error occurred during assembly: {e}"))
            self.image, self.encodings = b"", []

        if self.errors:
            logger.warning(f"Assembly completed with {len(self.errors)} errors.")
        else:
            logger.info("Assembly successful.")

        return {
            "image": self.image,
            "encodings": self.encodings,
            "labels": dict(self.symbol_table),
            "text_size": self.text_size,
            "errors": self.errors,
            "warnings": self.warnings,
        }
