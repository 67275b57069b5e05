import sys
import logging
import argparse

from assembler import assemble_file
from compile_errors import CompilationError
from jack_compiler import JackCompiler
from vm_translator import VMTranslator

logger = logging.getLogger(__name__)


def _run_jack(args) -> int:
    compiler = JackCompiler(
        args.path,
        write_symbol_tables=getattr(args, "sym", False),
        output_dir=args.output,
        keep_going=args.keep_going,
    )
    written = getattr(compiler, args.command_method)()
    for output_fn in written:
        print(f"output: {output_fn}")
    return 1 if compiler.errors else 0


def _run_vm(args) -> int:
    translator = VMTranslator(args.path, args.output)
    print(f"output: {translator.write()}")
    return 0


def _run_asm(args) -> int:
    print(f"output: {assemble_file(args.path, args.output)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hack-toolchain",
        description="Jack compiler, VM translator and Hack assembler",
    )
    parser.add_argument(
        "-v", "--verbose", help="Log debug messages", action="store_true"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    jack_commands = [
        ("token", "tokenize", "Write the tokens of Jack files to <Name>T.xml"),
        ("parse", "parse", "Write the parse trees of Jack files to <Name>.xml"),
        ("compile", "compile", "Compile Jack files to VM code"),
    ]
    for name, method, help_text in jack_commands:
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "path",
            help="Jack file (with .jack extension) or directory containing Jack files",
        )
        subparser.add_argument("-o", "--output", help="Output directory")
        subparser.add_argument(
            "--keep-going",
            help="Continue with the remaining files when a file fails",
            action="store_true",
        )
        if name == "compile":
            subparser.add_argument(
                "--sym", help="Write symbol tables to JSON", action="store_true"
            )
        subparser.set_defaults(handler=_run_jack, command_method=method)

    vm_parser = subparsers.add_parser(
        "vm", help="Translate VM code to Hack assembly"
    )
    vm_parser.add_argument(
        "path",
        help="VM file (with .vm extension), or directory containing a whole program",
    )
    vm_parser.add_argument("-o", "--output", help="Output .asm file")
    vm_parser.set_defaults(handler=_run_vm)

    asm_parser = subparsers.add_parser("asm", help="Assemble Hack assembly to binary")
    asm_parser.add_argument("path", help="Assembly file (with .asm extension)")
    asm_parser.add_argument("-o", "--output", help="Output .hack file")
    asm_parser.set_defaults(handler=_run_asm)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.handler(args)
    except CompilationError as err:
        logger.error("%s", err)
        return 1
    except (ValueError, OSError) as err:
        logger.error("%s", err)
        return 2


if __name__ == "__main__":
    sys.exit(main())
