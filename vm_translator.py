import os
import logging

from code_writer import CodeWriter
from hack_asm import render
from vm_command import parse_vm

logger = logging.getLogger(__name__)


def translate_units(units: dict, bootstrap: bool = False) -> list:
    """
    Translate a mapping of unit name -> VM commands into Hack assembly instructions.
    The bootstrap code is emitted first, and only when bootstrap is set
    """
    code_writer = CodeWriter()
    if bootstrap:
        code_writer.write_init()

    for unit_name, commands in units.items():
        code_writer.set_file_name(unit_name)
        n_commands = 0
        for command in commands:
            code_writer.write_command(command)
            n_commands += 1
        logger.debug("Translated %s: %d commands", unit_name, n_commands)

    return code_writer.instructions


class VMTranslator:
    """
    Translates a single .vm file, or a directory of .vm files as a whole program
    with bootstrap code, into one .asm file
    """

    def __init__(self, target_path: str, output_fn=None):
        target_path = os.path.normpath(target_path)

        if os.path.isdir(target_path):
            self.vm_fns = sorted(
                os.path.join(target_path, fn)
                for fn in os.listdir(target_path)
                if fn.endswith(".vm")
            )
            if len(self.vm_fns) == 0:
                raise ValueError("No vm files found in the target directory")
            self.bootstrap = True
            default_fn = os.path.join(
                target_path, os.path.basename(os.path.abspath(target_path)) + ".asm"
            )
        elif os.path.isfile(target_path) and target_path.endswith(".vm"):
            self.vm_fns = [target_path]
            self.bootstrap = False
            default_fn = os.path.splitext(target_path)[0] + ".asm"
        else:
            raise ValueError("Target file is a not a vm file")

        self.asm_fn = output_fn or default_fn

    def translate(self) -> list:
        units = {}
        for vm_fn in self.vm_fns:
            print(f"Translating {vm_fn}")
            unit_name = os.path.splitext(os.path.basename(vm_fn))[0]
            with open(vm_fn) as f:
                # parse fully so a malformed file fails before anything is written
                units[unit_name] = list(parse_vm(f.read(), unit_name))

        return translate_units(units, self.bootstrap)

    def write(self) -> str:
        instructions = self.translate()

        with open(self.asm_fn, "w") as f:
            f.write(render(instructions))
        return self.asm_fn
