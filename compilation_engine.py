import logging
from xml.dom import minidom

import xml_writer
from compile_errors import ParseError
from symbol_table import SymbolKind, SymbolTable
from tokenizer import TokenType
from vm_writer import VMWriter

logger = logging.getLogger(__name__)

OP_SYMBOLS = ["+", "-", "*", "/", "&", "|", "<", ">", "="]
UNARY_OP_SYMBOLS = ["-", "~"]
KEYWORD_CONSTANTS = ["true", "false", "null", "this"]
PRIMITIVE_TYPES = ["int", "char", "boolean"]
CLASS_VAR_KINDS = ["static", "field"]
SUBROUTINE_KINDS = ["constructor", "function", "method"]
STATEMENT_KEYWORDS = ["let", "if", "while", "do", "return"]


class CompilationEngine:
    """
    Recursive descent compiler for one Jack class. VM code is emitted while the
    grammar is recognized, and a parse tree of the class is built alongside it as
    a minidom document
    """

    def __init__(self, tokenizer, class_name=None, vm_writer=None):
        self.tokenizer = tokenizer
        # expected class name, usually the file's basename
        self.class_name = class_name
        self.vm_writer = vm_writer if vm_writer is not None else VMWriter()

        self.symbol_table = SymbolTable()
        self.parse_tree_root = minidom.Document()
        self.label_counters = {"IF": 0, "WHILE": 0}

        self.subroutine_kind = None
        self._last_token = None

    @property
    def unit_name(self):
        return self.tokenizer.unit_name or self.class_name

    def _create_tag(self, parent_tag, child, child_text=None):
        return xml_writer.create_tag(self.parse_tree_root, parent_tag, child, child_text)

    def _close_tag(self, tag):
        xml_writer.close_tag(self.parse_tree_root, tag)

    def _error(self, message, token=None, identifier=None) -> ParseError:
        token = token or self._last_token
        if token is None:
            return ParseError(message, self.unit_name, identifier=identifier)
        return ParseError(
            message, self.unit_name, token.line, token.column, identifier=identifier
        )

    def _peek_is(self, *values) -> bool:
        token = self.tokenizer.peek()
        return (
            token is not None
            and token.type in (TokenType.KEYWORD, TokenType.SYMBOL)
            and token.value in values
        )

    def _advance(self, parent_tag):
        """Consume the next token and add it to the parse tree"""
        if not self.tokenizer.has_more_tokens():
            raise self._error("Unexpected end of input")
        token = self.tokenizer.advance()
        self._last_token = token
        self._create_tag(parent_tag, token.type.value, token.value)
        return token

    def _expect(self, parent_tag, *values):
        token = self._advance(parent_tag)
        if token.type not in (TokenType.KEYWORD, TokenType.SYMBOL) or (
            token.value not in values
        ):
            expected = " or ".join(f'"{value}"' for value in values)
            raise self._error(f'Expected {expected}, got "{token.value}"', token)
        return token

    def _expect_identifier(self, parent_tag):
        token = self._advance(parent_tag)
        if token.type is not TokenType.IDENTIFIER:
            raise self._error(f'Expected identifier, got "{token.value}"', token)
        return token

    def _expect_type(self, parent_tag, allow_void=False) -> str:
        token = self._advance(parent_tag)
        if token.type is TokenType.IDENTIFIER:
            return token.value
        if token.type is TokenType.KEYWORD and (
            token.value in PRIMITIVE_TYPES or (allow_void and token.value == "void")
        ):
            return token.value
        raise self._error(f'Expected type, got "{token.value}"', token)

    def _define(self, name_token, var_type, var_kind) -> None:
        try:
            self.symbol_table.define(name_token.value, var_type, var_kind)
        except ValueError as err:
            raise self._error(str(err), name_token, name_token.value) from err

    def _resolve_variable(self, name_token):
        symbol = self.symbol_table.lookup(name_token.value)
        if symbol is None:
            raise self._error(
                f'Identifier "{name_token.value}" is not defined in the current scope',
                name_token,
                name_token.value,
            )
        if symbol.kind is SymbolKind.FIELD and self.subroutine_kind == "function":
            raise self._error(
                f'Field "{name_token.value}" cannot be used in a function',
                name_token,
                name_token.value,
            )
        return symbol

    def _get_vm_labels(self, construct: str, *suffixes) -> list:
        index = self.label_counters[construct]
        self.label_counters[construct] += 1
        return [f"{construct}_{suffix}{index}" for suffix in suffixes]

    def compile_class(self):
        class_tag = self.parse_tree_root.createElement("class")
        self.parse_tree_root.appendChild(class_tag)

        self._expect(class_tag, "class")

        # className
        name_token = self._expect_identifier(class_tag)
        if self.class_name is not None and name_token.value != self.class_name:
            raise self._error(
                f"File {self.class_name}.jack must contain class with name "
                f"{self.class_name}, got {name_token.value}",
                name_token,
                name_token.value,
            )
        self.class_name = name_token.value

        self._expect(class_tag, "{")

        # zero or more classVarDec
        while self._peek_is(*CLASS_VAR_KINDS):
            self.compile_class_var_dec(class_tag)

        # zero or more subroutineDec
        while self._peek_is(*SUBROUTINE_KINDS):
            self.compile_subroutine(class_tag)

        self._expect(class_tag, "}")

        if self.tokenizer.has_more_tokens():
            raise self._error(
                "Expected end of file after class declaration", self.tokenizer.peek()
            )

        return self.vm_writer.commands

    def compile_class_var_dec(self, parent_tag):
        class_var_dec_tag = self._create_tag(parent_tag, "classVarDec")

        var_kind = SymbolKind(self._expect(class_var_dec_tag, *CLASS_VAR_KINDS).value)
        var_type = self._expect_type(class_var_dec_tag)

        # one or more varName(s)
        while True:
            name_token = self._expect_identifier(class_var_dec_tag)
            self._define(name_token, var_type, var_kind)

            if self._expect(class_var_dec_tag, ",", ";").value == ";":
                break

    def compile_subroutine(self, parent_tag):
        subroutine_tag = self._create_tag(parent_tag, "subroutineDec")

        subroutine_kind = self._expect(subroutine_tag, *SUBROUTINE_KINDS).value
        return_type = self._expect_type(subroutine_tag, allow_void=True)
        name_token = self._expect_identifier(subroutine_tag)

        if subroutine_kind == "constructor" and return_type != self.class_name:
            raise self._error(
                f"Constructor {name_token.value} must return {self.class_name}",
                name_token,
                name_token.value,
            )

        self.subroutine_kind = subroutine_kind
        # add "this" as arg 0 for method, reference to current object
        self.symbol_table.start_subroutine(
            name_token.value,
            this_type=self.class_name if subroutine_kind == "method" else None,
        )

        self._expect(subroutine_tag, "(")
        parameter_list_tag = self._create_tag(subroutine_tag, "parameterList")
        n_parameters = self.compile_parameter_list(parameter_list_tag)
        self._close_tag(parameter_list_tag)
        self._expect(subroutine_tag, ")")

        subroutine_body_tag = self._create_tag(subroutine_tag, "subroutineBody")
        self._expect(subroutine_body_tag, "{")

        # zero or more varDec
        while self._peek_is("var"):
            self.compile_var_dec(subroutine_body_tag)

        n_locals = self.symbol_table.var_count(SymbolKind.VAR)
        function_name = f"{self.class_name}.{name_token.value}"
        self.vm_writer.write_function(function_name, n_locals)

        if subroutine_kind == "constructor":
            # allocate memory for the object's fields and set this to its base address
            n_fields = self.symbol_table.var_count(SymbolKind.FIELD)
            self.vm_writer.write_push("constant", n_fields)
            self.vm_writer.write_call("Memory.alloc", 1)
            self.vm_writer.write_pop("pointer", 0)
        elif subroutine_kind == "method":
            # point this at the object passed as argument 0
            self.vm_writer.write_push("argument", 0)
            self.vm_writer.write_pop("pointer", 0)

        statements_tag = self._create_tag(subroutine_body_tag, "statements")
        self.compile_statements(statements_tag)

        self._expect(subroutine_body_tag, "}")

        logger.debug(
            "Compiled %s with %d parameters and %d locals",
            function_name,
            n_parameters,
            n_locals,
        )

    def compile_parameter_list(self, parent_tag) -> int:
        n_parameters = 0

        if self._peek_is(")"):
            return n_parameters

        while True:
            var_type = self._expect_type(parent_tag)
            name_token = self._expect_identifier(parent_tag)

            # add arg to subroutine-level symbol table
            self._define(name_token, var_type, SymbolKind.ARG)
            n_parameters += 1

            if not self._peek_is(","):
                return n_parameters
            self._advance(parent_tag)

    def compile_var_dec(self, parent_tag):
        var_dec_tag = self._create_tag(parent_tag, "varDec")

        self._expect(var_dec_tag, "var")
        var_type = self._expect_type(var_dec_tag)

        # one or more varNames
        while True:
            name_token = self._expect_identifier(var_dec_tag)
            self._define(name_token, var_type, SymbolKind.VAR)

            if self._expect(var_dec_tag, ",", ";").value == ";":
                break

    def compile_statements(self, parent_tag):
        compilers = {
            "let": (self.compile_let, "letStatement"),
            "if": (self.compile_if, "ifStatement"),
            "while": (self.compile_while, "whileStatement"),
            "do": (self.compile_do, "doStatement"),
            "return": (self.compile_return, "returnStatement"),
        }

        while self._peek_is(*STATEMENT_KEYWORDS):
            compile_statement, tag_name = compilers[self.tokenizer.peek().value]
            compile_statement(self._create_tag(parent_tag, tag_name))

        self._close_tag(parent_tag)

    def compile_do(self, parent_tag):
        self._expect(parent_tag, "do")
        self.compile_subroutine_call(parent_tag)
        self._expect(parent_tag, ";")

        # discard the returned value
        self.vm_writer.write_pop("temp", 0)

    def compile_let(self, parent_tag):
        self._expect(parent_tag, "let")

        name_token = self._expect_identifier(parent_tag)
        symbol = self._resolve_variable(name_token)

        # check for array indexing
        is_array = self._peek_is("[")
        if is_array:
            self._advance(parent_tag)

            # push base address of array onto stack
            self.vm_writer.write_push(symbol.kind.segment, symbol.index)
            self.compile_expression(self._create_tag(parent_tag, "expression"))
            # add indexing expression value to array base address
            self.vm_writer.write_arithmetic("+")

            self._expect(parent_tag, "]")

        self._expect(parent_tag, "=")
        self.compile_expression(self._create_tag(parent_tag, "expression"))
        self._expect(parent_tag, ";")

        if is_array:
            # temporarily store value of right-hand expression, since it may have
            # used the that pointer itself
            self.vm_writer.write_pop("temp", 0)
            self.vm_writer.write_pop("pointer", 1)
            self.vm_writer.write_push("temp", 0)
            self.vm_writer.write_pop("that", 0)
        else:
            self.vm_writer.write_pop(symbol.kind.segment, symbol.index)

    def compile_while(self, parent_tag):
        loop_label, exit_label = self._get_vm_labels("WHILE", "EXP", "END")

        self._expect(parent_tag, "while")
        self.vm_writer.write_label(loop_label)

        self._expect(parent_tag, "(")
        self.compile_expression(self._create_tag(parent_tag, "expression"))
        self._expect(parent_tag, ")")

        # leave the loop when the condition is false
        self.vm_writer.write_unary_arithmetic("~")
        self.vm_writer.write_if(exit_label)

        self._expect(parent_tag, "{")
        self.compile_statements(self._create_tag(parent_tag, "statements"))
        self._expect(parent_tag, "}")

        self.vm_writer.write_goto(loop_label)
        self.vm_writer.write_label(exit_label)

    def compile_return(self, parent_tag):
        self._expect(parent_tag, "return")

        if self._peek_is(";"):
            self.vm_writer.write_return(is_void=True)
        else:
            self.compile_expression(self._create_tag(parent_tag, "expression"))
            self.vm_writer.write_return()

        self._expect(parent_tag, ";")

    def compile_if(self, parent_tag):
        true_label, false_label, exit_label = self._get_vm_labels(
            "IF", "TRUE", "FALSE", "END"
        )

        self._expect(parent_tag, "if")
        self._expect(parent_tag, "(")
        self.compile_expression(self._create_tag(parent_tag, "expression"))
        self._expect(parent_tag, ")")

        self.vm_writer.write_if(true_label)
        self.vm_writer.write_goto(false_label)
        self.vm_writer.write_label(true_label)

        self._expect(parent_tag, "{")
        self.compile_statements(self._create_tag(parent_tag, "statements"))
        self._expect(parent_tag, "}")

        if self._peek_is("else"):
            # skip past else branch
            self.vm_writer.write_goto(exit_label)
            self.vm_writer.write_label(false_label)

            self._advance(parent_tag)
            self._expect(parent_tag, "{")
            self.compile_statements(self._create_tag(parent_tag, "statements"))
            self._expect(parent_tag, "}")

            self.vm_writer.write_label(exit_label)
        else:
            self.vm_writer.write_label(false_label)

    def compile_expression(self, parent_tag):
        self.compile_term(self._create_tag(parent_tag, "term"))

        # zero or more (op term) groupings, evaluated left to right
        while self._peek_is(*OP_SYMBOLS):
            op_symbol = self._advance(parent_tag).value
            self.compile_term(self._create_tag(parent_tag, "term"))
            self.vm_writer.write_arithmetic(op_symbol)

    def compile_term(self, term_tag):
        token = self._advance(term_tag)

        if token.type is TokenType.INT_CONST:
            self.vm_writer.write_push("constant", token.int_value)

        elif token.type is TokenType.STRING_CONST:
            self.vm_writer.write_string(token.value)

        elif token.type is TokenType.KEYWORD and token.value in KEYWORD_CONSTANTS:
            if token.value == "true":
                self.vm_writer.write_push("constant", 0)
                self.vm_writer.write_unary_arithmetic("~")
            elif token.value == "this":
                if self.subroutine_kind == "function":
                    raise self._error('"this" cannot be used in a function', token)
                self.vm_writer.write_push("pointer", 0)
            else:
                # false and null
                self.vm_writer.write_push("constant", 0)

        elif token.type is TokenType.SYMBOL and token.value == "(":
            self.compile_expression(self._create_tag(term_tag, "expression"))
            self._expect(term_tag, ")")

        elif token.type is TokenType.SYMBOL and token.value in UNARY_OP_SYMBOLS:
            self.compile_term(self._create_tag(term_tag, "term"))
            self.vm_writer.write_unary_arithmetic(token.value)

        elif token.type is TokenType.IDENTIFIER:
            if self._peek_is("["):
                # array indexing
                symbol = self._resolve_variable(token)
                self._advance(term_tag)

                # push base address of array onto the stack
                self.vm_writer.write_push(symbol.kind.segment, symbol.index)
                self.compile_expression(self._create_tag(term_tag, "expression"))
                self._expect(term_tag, "]")

                # add indexing expression value to array base address and read it
                self.vm_writer.write_arithmetic("+")
                self.vm_writer.write_pop("pointer", 1)
                self.vm_writer.write_push("that", 0)

            elif self._peek_is("(", "."):
                self.compile_subroutine_call(term_tag, token)

            else:
                symbol = self._resolve_variable(token)
                self.vm_writer.write_push(symbol.kind.segment, symbol.index)

        else:
            raise self._error(f'Expected term, got "{token.value}"', token)

    def compile_subroutine_call(self, parent_tag, name_token=None):
        if name_token is None:
            # subroutineName, className or varName
            name_token = self._expect_identifier(parent_tag)

        n_arguments = 0

        if self._peek_is("."):
            self._advance(parent_tag)
            subroutine_token = self._expect_identifier(parent_tag)

            symbol = self.symbol_table.lookup(name_token.value)
            if symbol is not None:
                # call to a method of an instance of a class
                if symbol.type in PRIMITIVE_TYPES:
                    raise self._error(
                        f'Cannot call method "{subroutine_token.value}" on '
                        f'"{name_token.value}" of type {symbol.type}',
                        name_token,
                        name_token.value,
                    )
                symbol = self._resolve_variable(name_token)
                # object base address is passed as argument 0
                self.vm_writer.write_push(symbol.kind.segment, symbol.index)
                n_arguments += 1
                class_name = symbol.type
            else:
                # call to a class function/constructor
                class_name = name_token.value

            function_name = f"{class_name}.{subroutine_token.value}"

        elif self._peek_is("("):
            # call to a method of current class on this object
            if self.subroutine_kind == "function":
                raise self._error(
                    f'Method "{name_token.value}" cannot be called from a function '
                    "without an object",
                    name_token,
                    name_token.value,
                )
            self.vm_writer.write_push("pointer", 0)
            n_arguments += 1
            function_name = f"{self.class_name}.{name_token.value}"

        else:
            raise self._error(
                f'Expected "(" or "." after "{name_token.value}"', name_token
            )

        self._expect(parent_tag, "(")
        expression_list_tag = self._create_tag(parent_tag, "expressionList")
        n_arguments += self.compile_expression_list(expression_list_tag)
        self._close_tag(expression_list_tag)
        self._expect(parent_tag, ")")

        self.vm_writer.write_call(function_name, n_arguments)

    def compile_expression_list(self, parent_tag) -> int:
        n_expressions = 0

        if self._peek_is(")"):
            return n_expressions

        while True:
            self.compile_expression(self._create_tag(parent_tag, "expression"))
            n_expressions += 1

            if not self._peek_is(","):
                return n_expressions
            self._advance(parent_tag)

    def write_xml_file(self, output_file: str) -> None:
        xml_writer.write_xml_file(self.parse_tree_root, output_file)

    def to_xml(self) -> str:
        return xml_writer.to_xml_string(self.parse_tree_root)
