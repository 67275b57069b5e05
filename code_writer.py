import logging

from compile_errors import TranslationError
from hack_asm import parse_instruction, render
from vm_command import CommandType, Segment

logger = logging.getLogger(__name__)

STACK_BASE_ADDRESS = 256

# segments accessed through a base address register
SEGMENT_BASES = {
    Segment.LOCAL: "LCL",
    Segment.ARGUMENT: "ARG",
    Segment.THIS: "THIS",
    Segment.THAT: "THAT",
}
# segments mapped onto fixed RAM addresses
FIXED_SEGMENTS = {
    Segment.POINTER: 3,
    Segment.TEMP: 5,
}

MAX_INDEX = {
    Segment.CONSTANT: 32767,
    Segment.POINTER: 1,
    Segment.TEMP: 7,
    # statics live in RAM[16..255]
    Segment.STATIC: 239,
}
DEFAULT_MAX_INDEX = 32767

BINARY_COMPS = {
    "add": "D+M",
    "sub": "M-D",
    "and": "D&M",
    "or": "D|M",
}
UNARY_COMPS = {
    "neg": "-M",
    "not": "!M",
}
# jump taken when x - y satisfies the comparison
COMPARISON_JUMPS = {
    "eq": "JEQ",
    "gt": "JGT",
    "lt": "JLT",
}

# saved caller frame, in push order
FRAME_POINTERS = ["LCL", "ARG", "THIS", "THAT"]


class CodeWriter:
    """
    Translates VM commands into Hack assembly instructions. One CodeWriter is used
    for a whole translation so generated labels are never reused
    """

    def __init__(self):
        self.instructions = []
        self.file_name = None
        self.current_function = None
        self.label_index = 0

        self._handlers = {
            CommandType.ARITHMETIC: self.write_arithmetic,
            CommandType.PUSH: self.write_push_pop,
            CommandType.POP: self.write_push_pop,
            CommandType.LABEL: self.write_label,
            CommandType.GOTO: self.write_goto,
            CommandType.IF: self.write_if,
            CommandType.FUNCTION: self.write_function,
            CommandType.CALL: self.write_call,
            CommandType.RETURN: self.write_return,
        }

    def _emit(self, *lines) -> None:
        for line in lines:
            self.instructions.append(parse_instruction(line))

    def _next_labels(self, *prefixes) -> list:
        labels = [f"{prefix}.{self.label_index}" for prefix in prefixes]
        self.label_index += 1
        return labels

    def _next_label(self, prefix: str) -> str:
        return self._next_labels(prefix)[0]

    def _scope(self) -> str:
        return self.current_function or self.file_name or "Bootstrap"

    def _scoped_label(self, label: str) -> str:
        return f"{self._scope()}${label}"

    def _error(self, message: str, command) -> TranslationError:
        return TranslationError(f"{message}: {command}", self.file_name, command.line)

    def _push_d(self) -> None:
        self._emit("@SP", "A=M", "M=D", "@SP", "M=M+1")

    def _pop_d(self) -> None:
        self._emit("@SP", "AM=M-1", "D=M")

    def set_file_name(self, file_name: str) -> None:
        """Start a new VM file; its statics are named <file_name>.<index>"""
        self.file_name = file_name
        self.current_function = None

    def write_init(self) -> None:
        """Bootstrap code: SP = 256, call Sys.init"""
        self._emit(f"@{STACK_BASE_ADDRESS}", "D=A", "@SP", "M=D")
        self.write_call_to("Sys.init", 0)

    def write_command(self, command) -> None:
        self._handlers[command.type](command)

    def write_arithmetic(self, command) -> None:
        op = command.arg1
        if op in BINARY_COMPS:
            self._pop_d()
            self._emit("A=A-1", f"M={BINARY_COMPS[op]}")
        elif op in UNARY_COMPS:
            self._emit("@SP", "A=M-1", f"M={UNARY_COMPS[op]}")
        elif op == "eq":
            # x - y is zero exactly when x == y, even if the subtraction overflows
            true_label = self._next_label(f"${op.upper()}")
            self._pop_d()
            self._emit("A=A-1", "D=M-D")
            self._write_comparison_result(true_label, COMPARISON_JUMPS[op])
        elif op in COMPARISON_JUMPS:
            self._write_ordering(op)
        else:
            raise self._error(f"Unknown arithmetic command {op!r}", command)

    def _write_ordering(self, op: str) -> None:
        """
        gt/lt: leave D with the sign of x - y. Operands of opposite sign are ordered by
        their signs alone, since subtracting them can overflow 16 bits
        """
        prefix = f"${op.upper()}"
        true_label, x_neg_label, diff_label, test_label = self._next_labels(
            prefix, prefix + "_XNEG", prefix + "_DIFF", prefix + "_TEST"
        )

        # R13 = y, D = x
        self._pop_d()
        self._emit("@R13", "M=D", "@SP", "A=M-1", "D=M")
        self._emit(f"@{x_neg_label}", "D;JLT")

        # x >= 0: subtract if y >= 0, otherwise x > y
        self._emit("@R13", "D=M", f"@{diff_label}", "D;JGE")
        self._emit("D=1", f"@{test_label}", "0;JMP")

        # x < 0: subtract if y < 0, otherwise x < y
        self._emit(f"({x_neg_label})", "@R13", "D=M", f"@{diff_label}", "D;JLT")
        self._emit("D=-1", f"@{test_label}", "0;JMP")

        self._emit(f"({diff_label})", "@R13", "D=M", "@SP", "A=M-1", "D=M-D")
        self._emit(f"({test_label})", "@SP", "A=M-1")
        self._write_comparison_result(true_label, COMPARISON_JUMPS[op])

    def _write_comparison_result(self, true_label: str, jump: str) -> None:
        # A points at x's slot: assume true (-1), overwrite with false (0) unless
        # the jump on D is taken
        self._emit(
            "M=-1",
            f"@{true_label}",
            f"D;{jump}",
            "@SP",
            "A=M-1",
            "M=0",
            f"({true_label})",
        )

    def _check_index(self, command) -> None:
        segment, index = command.segment, command.arg2
        max_index = MAX_INDEX.get(segment, DEFAULT_MAX_INDEX)
        if not 0 <= index <= max_index:
            raise self._error(
                f"Index {index} out of range for segment {segment.value} "
                f"(0..{max_index})",
                command,
            )

    def _static_symbol(self, index: int) -> str:
        return f"{self.file_name or 'Static'}.{index}"

    def write_push_pop(self, command) -> None:
        segment, index = command.segment, command.arg2
        self._check_index(command)

        if command.type is CommandType.PUSH:
            if segment is Segment.CONSTANT:
                self._emit(f"@{index}", "D=A")
            elif segment in SEGMENT_BASES:
                self._emit(f"@{index}", "D=A", f"@{SEGMENT_BASES[segment]}", "A=D+M", "D=M")
            elif segment in FIXED_SEGMENTS:
                self._emit(f"@{FIXED_SEGMENTS[segment] + index}", "D=M")
            else:
                self._emit(f"@{self._static_symbol(index)}", "D=M")
            self._push_d()
            return

        if segment is Segment.CONSTANT:
            raise self._error("Cannot pop to the constant segment", command)

        if segment in SEGMENT_BASES:
            # target address goes to R13 while the value is popped
            self._emit(f"@{index}", "D=A", f"@{SEGMENT_BASES[segment]}", "D=D+M", "@R13", "M=D")
            self._pop_d()
            self._emit("@R13", "A=M", "M=D")
        elif segment in FIXED_SEGMENTS:
            self._pop_d()
            self._emit(f"@{FIXED_SEGMENTS[segment] + index}", "M=D")
        else:
            self._pop_d()
            self._emit(f"@{self._static_symbol(index)}", "M=D")

    def write_label(self, command) -> None:
        self._emit(f"({self._scoped_label(command.arg1)})")

    def write_goto(self, command) -> None:
        self._emit(f"@{self._scoped_label(command.arg1)}", "0;JMP")

    def write_if(self, command) -> None:
        self._pop_d()
        self._emit(f"@{self._scoped_label(command.arg1)}", "D;JNE")

    def write_function(self, command) -> None:
        self.current_function = command.arg1
        self._emit(f"({command.arg1})")

        # zero-initialize the local variables
        for _ in range(command.arg2):
            self._emit("@SP", "A=M", "M=0", "@SP", "M=M+1")

    def write_call(self, command) -> None:
        self.write_call_to(command.arg1, command.arg2)

    def write_call_to(self, function_name: str, n_args: int) -> None:
        return_label = self._next_label(self._scoped_label("ret"))

        # push return address
        self._emit(f"@{return_label}", "D=A")
        self._push_d()

        # save the caller's frame
        for pointer in FRAME_POINTERS:
            self._emit(f"@{pointer}", "D=M")
            self._push_d()

        # ARG = SP - n - 5
        self._emit("@SP", "D=M", f"@{n_args + 5}", "D=D-A", "@ARG", "M=D")
        # LCL = SP
        self._emit("@SP", "D=M", "@LCL", "M=D")

        self._emit(f"@{function_name}", "0;JMP", f"({return_label})")

    def write_return(self, command=None) -> None:
        # R13 = FRAME = LCL
        self._emit("@LCL", "D=M", "@R13", "M=D")
        # R14 = return address = *(FRAME - 5), saved before *ARG is overwritten
        self._emit("@5", "A=D-A", "D=M", "@R14", "M=D")
        # *ARG = return value
        self._pop_d()
        self._emit("@ARG", "A=M", "M=D")
        # SP = ARG + 1
        self._emit("@ARG", "D=M+1", "@SP", "M=D")
        # restore THAT, THIS, ARG, LCL from FRAME - 1 .. FRAME - 4
        for pointer in reversed(FRAME_POINTERS):
            self._emit("@R13", "AM=M-1", "D=M", f"@{pointer}", "M=D")
        # goto return address
        self._emit("@R14", "A=M", "0;JMP")

    def getvalue(self) -> str:
        return render(self.instructions)
