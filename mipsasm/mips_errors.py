# mipsasm/mips_errors.py


class AssemblerError(Exception):
    """Base class for every diagnostic the assembler can report.

    Carries the offending source line number and raw line text so it can be
    rendered as the ``{"line", "message", "text"}`` mapping used in results.
    """
    kind = "AssemblerError"
    severity = "error"

    def __init__(self, message, line_num=0, text=""):
        super().__init__(message)
        self.message = message
        self.line_num = line_num
        self.text = text

    def at(self, line_num, text):
        """Attaches a source location to an error raised without one."""
        self.line_num = line_num
        self.text = text
        return self

    def to_dict(self):
        return {
            "line": self.line_num,
            "message": self.message,
            "text": self.text,
            "kind": self.kind,
            "severity": self.severity,
        }

    def __str__(self):
        if self.line_num:
            return f"Line {self.line_num}: {self.message}"
        return self.message


class UnknownInstruction(AssemblerError):
    kind = "UnknownInstruction"


class InvalidLabelName(AssemblerError):
    kind = "InvalidLabelName"


class DuplicateLabel(AssemblerError):
    kind = "DuplicateLabel"


class DanglingIndent(AssemblerError):
    kind = "DanglingIndent"
    severity = "warning"


class MalformedDirective(AssemblerError):
    kind = "MalformedDirective"


class NumberFormat(AssemblerError, ValueError):
    kind = "NumberFormat"

    def __init__(self, literal, line_num=0, text=""):
        super().__init__(f"Invalid number literal: '{literal}'", line_num, text)
        self.literal = literal


class MalformedOperand(AssemblerError):
    kind = "MalformedOperand"


class UnresolvedLabel(AssemblerError):
    kind = "UnresolvedLabel"


class UnknownRegister(AssemblerError):
    kind = "UnknownRegister"


class MalformedOperandCount(AssemblerError):
    """Operand count does not match the syntax class; aborts the run."""
    kind = "MalformedOperandCount"
