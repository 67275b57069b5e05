import re
from dataclasses import dataclass
from typing import Iterator, Optional

from compile_errors import AssemblyError

# a-bit followed by the six ALU control bits
COMP_TABLE = {
    "0": "0101010",
    "1": "0111111",
    "-1": "0111010",
    "D": "0001100",
    "A": "0110000",
    "!D": "0001101",
    "!A": "0110001",
    "-D": "0001111",
    "-A": "0110011",
    "D+1": "0011111",
    "A+1": "0110111",
    "D-1": "0001110",
    "A-1": "0110010",
    "D+A": "0000010",
    "D-A": "0010011",
    "A-D": "0000111",
    "D&A": "0000000",
    "D|A": "0010101",
    "M": "1110000",
    "!M": "1110001",
    "-M": "1110011",
    "M+1": "1110111",
    "M-1": "1110010",
    "D+M": "1000010",
    "D-M": "1010011",
    "M-D": "1000111",
    "D&M": "1000000",
    "D|M": "1010101",
}

DEST_TABLE = {
    None: "000",
    "M": "001",
    "D": "010",
    "MD": "011",
    "A": "100",
    "AM": "101",
    "AD": "110",
    "AMD": "111",
}

JUMP_TABLE = {
    None: "000",
    "JGT": "001",
    "JEQ": "010",
    "JGE": "011",
    "JLT": "100",
    "JNE": "101",
    "JLE": "110",
    "JMP": "111",
}

MAX_ADDRESS = 32767

SYMBOL_RE = re.compile(r"[A-Za-z_.$:][A-Za-z0-9_.$:]*")
_CONSTANT_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class AInstruction:
    # decimal constant or symbol
    value: str

    @property
    def is_constant(self) -> bool:
        return self.value.isdigit()

    def __str__(self) -> str:
        return f"@{self.value}"


@dataclass(frozen=True)
class CInstruction:
    comp: str
    dest: Optional[str] = None
    jump: Optional[str] = None

    def __str__(self) -> str:
        text = self.comp
        if self.dest:
            text = f"{self.dest}={text}"
        if self.jump:
            text = f"{text};{self.jump}"
        return text


@dataclass(frozen=True)
class Label:
    name: str

    def __str__(self) -> str:
        return f"({self.name})"


def parse_instruction(text: str, unit=None, line=None):
    """Parse one assembly instruction, without comments or whitespace"""

    def error(message):
        return AssemblyError(f"{message}: {text!r}", unit, line)

    if text.startswith("@"):
        value = text[1:]
        if _CONSTANT_RE.fullmatch(value):
            if int(value) > MAX_ADDRESS:
                raise error(f"Constant out of range (0..{MAX_ADDRESS})")
        elif not SYMBOL_RE.fullmatch(value):
            raise error("Invalid symbol")
        return AInstruction(value)

    if text.startswith("("):
        if not text.endswith(")") or not SYMBOL_RE.fullmatch(text[1:-1]):
            raise error("Invalid label")
        return Label(text[1:-1])

    dest = jump = None
    comp = text
    if "=" in comp:
        dest, comp = comp.split("=", 1)
    if ";" in comp:
        comp, jump = comp.split(";", 1)

    if dest not in DEST_TABLE:
        raise error(f"Invalid dest {dest!r}")
    if comp not in COMP_TABLE:
        raise error(f"Invalid comp {comp!r}")
    if jump not in JUMP_TABLE:
        raise error(f"Invalid jump {jump!r}")
    return CInstruction(comp, dest, jump)


def parse_asm(source: str, unit=None) -> Iterator:
    """Parse assembly source text, skipping blank lines, comments and whitespace"""
    for line_number, line in enumerate(source.splitlines(), start=1):
        code = "".join(line.split("//", 1)[0].split())
        if code:
            yield parse_instruction(code, unit, line_number)


def render(instructions) -> str:
    return "\n".join(str(instruction) for instruction in instructions) + "\n"
