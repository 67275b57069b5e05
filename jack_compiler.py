import os
import logging

from compilation_engine import CompilationEngine
from compile_errors import CompilationError
from tokenizer import Tokenizer, tokens_to_xml
from vm_writer import VMWriter

logger = logging.getLogger(__name__)


def compile_source(source: str, class_name=None) -> list:
    """Compile the source of one Jack class to a list of VM commands"""
    tokenizer = Tokenizer(source, class_name or "")
    compilation_engine = CompilationEngine(tokenizer, class_name)
    return compilation_engine.compile_class()


def compile_units(sources: dict, keep_going=False):
    """
    Compile a mapping of class name -> Jack source. Returns the VM commands of every
    unit that compiled and the errors of those that did not. Stops at the first
    failing unit unless keep_going is set
    """
    outputs = {}
    errors = []
    for class_name, source in sources.items():
        try:
            outputs[class_name] = compile_source(source, class_name)
        except CompilationError as err:
            errors.append(err)
            if not keep_going:
                break
            logger.error("%s", err)
    return outputs, errors


class JackCompiler:
    def __init__(
        self,
        target_path: str,
        write_symbol_tables: bool = False,
        output_dir=None,
        keep_going: bool = False,
    ):
        self.write_symbol_tables = write_symbol_tables
        self.output_dir = output_dir
        self.keep_going = keep_going
        self.errors = []

        if os.path.isdir(target_path):
            self.jack_fns = sorted(
                os.path.join(target_path, fn)
                for fn in os.listdir(target_path)
                if fn.endswith(".jack")
            )
            if len(self.jack_fns) == 0:
                raise ValueError("No jack files found in the target directory")
        elif os.path.isfile(target_path) and target_path.endswith(".jack"):
            self.jack_fns = [target_path]
        else:
            raise ValueError("Target file is a not a jack file")

    def _output_path(self, jack_fn: str, suffix: str) -> str:
        out_dir = self.output_dir or os.path.dirname(jack_fn)
        if out_dir and not os.path.isdir(out_dir):
            os.makedirs(out_dir)
        basename = os.path.splitext(os.path.basename(jack_fn))[0]
        return os.path.join(out_dir, basename + suffix)

    def _run(self, action, verb: str) -> list:
        """Apply action to every jack file, returning the paths it wrote"""
        written = []
        for jack_fn in self.jack_fns:
            print(f"{verb} {jack_fn}")
            try:
                written.append(action(jack_fn))
            except CompilationError as err:
                self.errors.append(err)
                if not self.keep_going:
                    raise
                logger.error("%s", err)
        return written

    def tokenize(self) -> list:
        return self._run(self._tokenize_file, "Tokenizing")

    def parse(self) -> list:
        return self._run(self._parse_file, "Parsing")

    def compile(self) -> list:
        return self._run(self._compile_file, "Compiling")

    def _tokenize_file(self, jack_fn: str) -> str:
        tokenizer = Tokenizer.from_file(jack_fn)
        # tokenize completely before writing, so lex errors leave no output
        xml_str = tokens_to_xml(list(tokenizer))

        token_fn = self._output_path(jack_fn, "T.xml")
        with open(token_fn, "w") as f:
            f.write(xml_str)
        return token_fn

    def _parse_file(self, jack_fn: str) -> str:
        compilation_engine = self._compile_class(jack_fn, vm_fn=None)

        parse_tree_fn = self._output_path(jack_fn, ".xml")
        compilation_engine.write_xml_file(parse_tree_fn)
        return parse_tree_fn

    def _compile_file(self, jack_fn: str) -> str:
        vm_fn = self._output_path(jack_fn, ".vm")
        compilation_engine = self._compile_class(jack_fn, vm_fn)
        compilation_engine.vm_writer.close()

        if self.write_symbol_tables:
            compilation_engine.symbol_table.write_symbol_tables(
                os.path.join(os.path.dirname(vm_fn), "symbol_tables"),
                compilation_engine.class_name,
            )
        return vm_fn

    def _compile_class(self, jack_fn: str, vm_fn) -> CompilationEngine:
        tokenizer = Tokenizer.from_file(jack_fn)
        compilation_engine = CompilationEngine(
            tokenizer, tokenizer.unit_name, VMWriter(vm_fn)
        )
        compilation_engine.compile_class()
        return compilation_engine
