import os
import logging

from vm_command import CommandType, Segment, VMCommand

logger = logging.getLogger(__name__)

BINARY_OPS = {
    "+": "add",
    "-": "sub",
    "&": "and",
    "|": "or",
    "<": "lt",
    ">": "gt",
    "=": "eq",
}
# no multiply/divide in the VM, use built-in Math library
MATH_CALLS = {
    "*": "Math.multiply",
    "/": "Math.divide",
}
UNARY_OPS = {
    "-": "neg",
    "~": "not",
}


class VMWriter:
    """Append-only buffer of VM commands for one compilation unit"""

    def __init__(self, vm_fn=None):
        self.vm_fn = vm_fn
        self.commands = []

    def _append(self, command_type: CommandType, arg1=None, arg2=None) -> None:
        self.commands.append(VMCommand(command_type, arg1, arg2))

    def write_push(self, segment, index: int) -> None:
        self._append(CommandType.PUSH, Segment(segment), int(index))

    def write_pop(self, segment, index: int) -> None:
        self._append(CommandType.POP, Segment(segment), int(index))

    def write_arithmetic(self, op_symbol: str) -> None:
        if op_symbol in BINARY_OPS:
            self._append(CommandType.ARITHMETIC, BINARY_OPS[op_symbol])
        elif op_symbol in MATH_CALLS:
            self.write_call(MATH_CALLS[op_symbol], 2)
        else:
            raise ValueError(f'op_symbol "{op_symbol}" is not a binary operator')

    def write_unary_arithmetic(self, unary_op_symbol: str) -> None:
        if unary_op_symbol not in UNARY_OPS:
            raise ValueError(f'unary_op_symbol "{unary_op_symbol}" is not a unary operator')
        self._append(CommandType.ARITHMETIC, UNARY_OPS[unary_op_symbol])

    def write_string(self, text: str) -> None:
        # build the string object one character at a time
        self.write_push("constant", len(text))
        self.write_call("String.new", 1)
        for char in text:
            self.write_push("constant", ord(char))
            self.write_call("String.appendChar", 2)

    def write_label(self, label: str) -> None:
        self._append(CommandType.LABEL, label)

    def write_goto(self, label: str) -> None:
        self._append(CommandType.GOTO, label)

    def write_if(self, label: str) -> None:
        self._append(CommandType.IF, label)

    def write_call(self, name: str, n_args: int) -> None:
        self._append(CommandType.CALL, name, n_args)

    def write_function(self, name: str, n_locals: int) -> None:
        self._append(CommandType.FUNCTION, name, n_locals)

    def write_return(self, is_void=False) -> None:
        # void subroutines still return a value, which the caller discards
        if is_void:
            self.write_push("constant", 0)
        self._append(CommandType.RETURN)

    @property
    def vm_lines(self) -> list:
        return [str(command) for command in self.commands]

    def getvalue(self) -> str:
        return "\n".join(self.vm_lines) + "\n"

    def close(self) -> None:
        if self.vm_fn is None:
            return

        if os.path.exists(self.vm_fn):
            logger.info("Overwriting %s", self.vm_fn)

        with open(self.vm_fn, "w") as f:
            f.write(self.getvalue())
