import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Union

from compile_errors import TranslationError


class Segment(Enum):
    CONSTANT = "constant"
    ARGUMENT = "argument"
    LOCAL = "local"
    STATIC = "static"
    THIS = "this"
    THAT = "that"
    POINTER = "pointer"
    TEMP = "temp"


class CommandType(Enum):
    ARITHMETIC = "arithmetic"
    PUSH = "push"
    POP = "pop"
    LABEL = "label"
    GOTO = "goto"
    IF = "if-goto"
    FUNCTION = "function"
    CALL = "call"
    RETURN = "return"


ARITHMETIC_COMMANDS = ("add", "sub", "neg", "eq", "gt", "lt", "and", "or", "not")

_INDEX_RE = re.compile(r"[0-9]+")
# a leading $ is reserved for labels generated by the translator
_NAME_RE = re.compile(r"[A-Za-z_.:][A-Za-z0-9_.:$]*")


@dataclass(frozen=True)
class VMCommand:
    type: CommandType
    # arithmetic op, segment, label name or function name
    arg1: Optional[Union[str, Segment]] = None
    # index, number of locals or number of arguments
    arg2: Optional[int] = None
    line: Optional[int] = field(default=None, compare=False)

    @property
    def segment(self) -> Segment:
        if self.type not in (CommandType.PUSH, CommandType.POP):
            raise AttributeError(f"{self.type.value} command has no segment")
        return self.arg1

    def __str__(self) -> str:
        if self.type is CommandType.ARITHMETIC:
            return self.arg1
        if self.type is CommandType.RETURN:
            return "return"
        if self.type in (CommandType.PUSH, CommandType.POP):
            return f"{self.type.value} {self.arg1.value} {self.arg2}"
        if self.type in (CommandType.FUNCTION, CommandType.CALL):
            return f"{self.type.value} {self.arg1} {self.arg2}"
        return f"{self.type.value} {self.arg1}"


def parse_command(text: str, unit=None, line=None) -> VMCommand:
    """Parse one line of VM code, without comments"""
    parts = text.split()

    def error(message):
        return TranslationError(f"{message}: {text!r}", unit, line)

    def index(value):
        if not _INDEX_RE.fullmatch(value):
            raise error(f"Invalid numeric operand {value!r}")
        return int(value)

    def name(value):
        if not _NAME_RE.fullmatch(value):
            raise error(f"Invalid name {value!r}")
        return value

    if not parts:
        raise error("Empty command")

    command, operands = parts[0], parts[1:]

    if command in ARITHMETIC_COMMANDS or command == "return":
        if operands:
            raise error(f'"{command}" takes no operands')
        if command == "return":
            return VMCommand(CommandType.RETURN, line=line)
        return VMCommand(CommandType.ARITHMETIC, command, line=line)

    if command in ("push", "pop"):
        if len(operands) != 2:
            raise error(f'"{command}" takes a segment and an index')
        try:
            segment = Segment(operands[0])
        except ValueError:
            raise error(f"Unknown segment {operands[0]!r}") from None
        return VMCommand(CommandType(command), segment, index(operands[1]), line=line)

    if command in ("label", "goto", "if-goto"):
        if len(operands) != 1:
            raise error(f'"{command}" takes a label name')
        return VMCommand(CommandType(command), name(operands[0]), line=line)

    if command in ("function", "call"):
        if len(operands) != 2:
            raise error(f'"{command}" takes a function name and a count')
        return VMCommand(
            CommandType(command), name(operands[0]), index(operands[1]), line=line
        )

    raise error(f"Unknown command {command!r}")


def parse_vm(source: str, unit=None) -> Iterator[VMCommand]:
    """Parse VM source text, skipping blank lines and // comments"""
    for line_number, line in enumerate(source.splitlines(), start=1):
        code = line.split("//", 1)[0].strip()
        if code:
            yield parse_command(code, unit, line_number)
