import os
import logging

from compile_errors import AssemblyError
from hack_asm import (
    COMP_TABLE,
    DEST_TABLE,
    JUMP_TABLE,
    AInstruction,
    CInstruction,
    Label,
    parse_asm,
)

logger = logging.getLogger(__name__)

PREDEFINED_SYMBOLS = {
    "SP": 0,
    "LCL": 1,
    "ARG": 2,
    "THIS": 3,
    "THAT": 4,
    "SCREEN": 16384,
    "KBD": 24576,
}
PREDEFINED_SYMBOLS.update({f"R{i}": i for i in range(16)})

VARIABLE_BASE_ADDRESS = 16


class Assembler:
    """Two pass assembler from Hack assembly instructions to 16-bit binary words"""

    def __init__(self, unit_name=None):
        self.unit_name = unit_name
        self.symbol_table = dict(PREDEFINED_SYMBOLS)
        self.next_variable_address = VARIABLE_BASE_ADDRESS

    def assemble(self, instructions) -> list:
        instructions = list(instructions)
        self._bind_labels(instructions)

        words = []
        for instruction in instructions:
            if isinstance(instruction, AInstruction):
                words.append(format(self._address_of(instruction), "016b"))
            elif isinstance(instruction, CInstruction):
                words.append(
                    "111"
                    + COMP_TABLE[instruction.comp]
                    + DEST_TABLE[instruction.dest]
                    + JUMP_TABLE[instruction.jump]
                )
        return words

    def assemble_source(self, source: str) -> list:
        return self.assemble(parse_asm(source, self.unit_name))

    def _bind_labels(self, instructions) -> None:
        """First pass: bind each label to the ROM address of the next instruction"""
        rom_address = 0
        for instruction in instructions:
            if isinstance(instruction, Label):
                if instruction.name in self.symbol_table:
                    raise AssemblyError(
                        f"Label {instruction.name} is already defined", self.unit_name
                    )
                self.symbol_table[instruction.name] = rom_address
            else:
                rom_address += 1

    def _address_of(self, instruction: AInstruction) -> int:
        if instruction.is_constant:
            return int(instruction.value)

        if instruction.value not in self.symbol_table:
            self.symbol_table[instruction.value] = self.next_variable_address
            logger.debug(
                "Allocated variable %s at %d",
                instruction.value,
                self.next_variable_address,
            )
            self.next_variable_address += 1
        return self.symbol_table[instruction.value]


def assemble_file(asm_fn: str, output_fn=None) -> str:
    if not asm_fn.endswith(".asm"):
        raise ValueError("Target file is a not an asm file")

    print(f"Assembling {asm_fn}")
    unit_name = os.path.splitext(os.path.basename(asm_fn))[0]
    with open(asm_fn) as f:
        words = Assembler(unit_name).assemble_source(f.read())

    hack_fn = output_fn or os.path.splitext(asm_fn)[0] + ".hack"
    with open(hack_fn, "w") as f:
        f.write("\n".join(words) + "\n")
    return hack_fn
