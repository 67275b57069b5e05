import unittest

from compilation_engine import CompilationEngine
from compile_errors import LexError, ParseError
from jack_compiler import compile_source, compile_units
from tokenizer import Tokenizer


def compile_lines(source, class_name="Main"):
    return [str(command) for command in compile_source(source, class_name)]


def function_body(statements, locals_dec="", kind="function", return_type="void"):
    return (
        "class Main {\n"
        "    field int size;\n"
        "    static boolean flag;\n"
        f"    {kind} {return_type} run(int a, Point p) {{\n"
        f"        {locals_dec}\n"
        f"        {statements}\n"
        "    }\n"
        "}\n"
    )


class CompilationEngineTests(unittest.TestCase):
    def test_if_statement(self):
        source = function_body(
            "if (x < 10) { return x; } return 0;",
            locals_dec="var int i, j, x;",
            return_type="int",
        )

        self.assertEqual(
            compile_lines(source),
            [
                "function Main.run 3",
                "push local 2",
                "push constant 10",
                "lt",
                "if-goto IF_TRUE0",
                "goto IF_FALSE0",
                "label IF_TRUE0",
                "push local 2",
                "return",
                "label IF_FALSE0",
                "push constant 0",
                "return",
            ],
        )

    def test_subroutine_summary_is_logged(self):
        source = function_body("return;", locals_dec="var int i, j, x;")

        with self.assertLogs("compilation_engine", level="DEBUG") as logs:
            compile_source(source, "Main")

        self.assertIn(
            "Compiled Main.run with 2 parameters and 3 locals", logs.output[-1]
        )

    def test_if_else_statement(self):
        source = function_body(
            "if (a) { let a = 1; } else { let a = 2; } return;"
        )

        self.assertEqual(
            compile_lines(source)[1:],
            [
                "push argument 0",
                "if-goto IF_TRUE0",
                "goto IF_FALSE0",
                "label IF_TRUE0",
                "push constant 1",
                "pop argument 0",
                "goto IF_END0",
                "label IF_FALSE0",
                "push constant 2",
                "pop argument 0",
                "label IF_END0",
                "push constant 0",
                "return",
            ],
        )

    def test_while_statement(self):
        source = function_body("while (a > 0) { let a = a - 1; } return;")

        self.assertEqual(
            compile_lines(source)[1:],
            [
                "label WHILE_EXP0",
                "push argument 0",
                "push constant 0",
                "gt",
                "not",
                "if-goto WHILE_END0",
                "push argument 0",
                "push constant 1",
                "sub",
                "pop argument 0",
                "goto WHILE_EXP0",
                "label WHILE_END0",
                "push constant 0",
                "return",
            ],
        )

    def test_generated_labels_are_unique(self):
        source = function_body(
            "while (a) { while (a) { if (a) { } } } "
            "if (a) { } else { } while (a) { } return;"
        )
        labels = [line for line in compile_lines(source) if line.startswith("label")]

        self.assertEqual(len(labels), len(set(labels)))
        self.assertEqual(
            labels,
            [
                "label WHILE_EXP0",
                "label WHILE_EXP1",
                "label IF_TRUE0",
                "label IF_FALSE0",
                "label WHILE_END1",
                "label WHILE_END0",
                "label IF_TRUE1",
                "label IF_FALSE1",
                "label IF_END1",
                "label WHILE_EXP2",
                "label WHILE_END2",
            ],
        )

    def test_expression_is_left_to_right_postfix(self):
        source = function_body(
            "let a = 1 + 2 * -a;\n let flag = ~(a = 3) & true; return;"
        )

        self.assertEqual(
            compile_lines(source)[1:],
            [
                "push constant 1",
                "push constant 2",
                "add",
                "push argument 0",
                "neg",
                "call Math.multiply 2",
                "pop argument 0",
                "push argument 0",
                "push constant 3",
                "eq",
                "not",
                "push constant 0",
                "not",
                "and",
                "pop static 0",
                "push constant 0",
                "return",
            ],
        )

    def test_string_and_keyword_constants(self):
        source = function_body('do Output.printString("Hi"); let p = null; return;')

        self.assertEqual(
            compile_lines(source)[1:],
            [
                "push constant 2",
                "call String.new 1",
                "push constant 72",
                "call String.appendChar 2",
                "push constant 105",
                "call String.appendChar 2",
                "call Output.printString 1",
                "pop temp 0",
                "push constant 0",
                "pop argument 1",
                "push constant 0",
                "return",
            ],
        )

    def test_constructor_allocates_fields(self):
        source = (
            "class Point {\n"
            "    field int x, y;\n"
            "    static int count;\n"
            "    constructor Point new(int ax, int ay) {\n"
            "        let x = ax; let y = ay;\n"
            "        let count = count + 1;\n"
            "        return this;\n"
            "    }\n"
            "}\n"
        )

        self.assertEqual(
            compile_lines(source, "Point"),
            [
                "function Point.new 0",
                "push constant 2",
                "call Memory.alloc 1",
                "pop pointer 0",
                "push argument 0",
                "pop this 0",
                "push argument 1",
                "pop this 1",
                "push static 0",
                "push constant 1",
                "add",
                "pop static 0",
                "push pointer 0",
                "return",
            ],
        )

    def test_method_calls(self):
        source = (
            "class Point {\n"
            "    field int x;\n"
            "    method int getX() { return x; }\n"
            "    method int twice(Point other) {\n"
            "        var Point copy;\n"
            "        let copy = Point.new(other.getX());\n"
            "        do copy.move(1, 2);\n"
            "        return getX() + twice(copy);\n"
            "    }\n"
            "}\n"
        )

        self.assertEqual(
            compile_lines(source, "Point"),
            [
                "function Point.getX 0",
                "push argument 0",
                "pop pointer 0",
                "push this 0",
                "return",
                "function Point.twice 1",
                "push argument 0",
                "pop pointer 0",
                "push argument 1",
                "call Point.getX 1",
                "call Point.new 1",
                "pop local 0",
                "push local 0",
                "push constant 1",
                "push constant 2",
                "call Point.move 3",
                "pop temp 0",
                "push pointer 0",
                "call Point.getX 1",
                "push pointer 0",
                "push local 0",
                "call Point.twice 2",
                "add",
                "return",
            ],
        )

    def test_arrays(self):
        source = function_body(
            "let arr[i] = arr[i + 1]; return;", locals_dec="var Array arr; var int i;"
        )

        self.assertEqual(
            compile_lines(source)[1:],
            [
                "push local 0",
                "push local 1",
                "add",
                "push local 0",
                "push local 1",
                "push constant 1",
                "add",
                "add",
                "pop pointer 1",
                "push that 0",
                "pop temp 0",
                "pop pointer 1",
                "push temp 0",
                "pop that 0",
                "push constant 0",
                "return",
            ],
        )

    def test_parse_tree(self):
        tokenizer = Tokenizer("class Main { function void main() { return; } }", "Main")
        compilation_engine = CompilationEngine(tokenizer, "Main")
        compilation_engine.compile_class()

        lines = compilation_engine.to_xml().splitlines()
        self.assertEqual(lines[0], "<class>")
        self.assertIn("    <parameterList>", lines)
        self.assertEqual(
            lines[lines.index("    <parameterList>") + 1], "    </parameterList>"
        )
        self.assertIn("        <returnStatement>", lines)
        self.assertIn("          <keyword> return </keyword>", lines)
        self.assertEqual(lines[-1], "</class>")

    def test_missing_semicolon(self):
        source = "class Main {\n  function void main() {\n    return\n  }\n}\n"

        with self.assertRaises(ParseError) as cm:
            compile_source(source, "Main")
        self.assertEqual((cm.exception.line, cm.exception.column), (4, 3))
        self.assertEqual(
            str(cm.exception), 'Main:4:3: Expected term, got "}"'
        )

    def test_missing_closing_parenthesis(self):
        with self.assertRaises(ParseError) as cm:
            compile_source(function_body("let a = (1 + 2; return;"), "Main")
        self.assertIn('Expected ")", got ";"', str(cm.exception))

    def test_undefined_variable(self):
        with self.assertRaises(ParseError) as cm:
            compile_source(function_body("let b = 1; return;"), "Main")
        self.assertEqual(cm.exception.identifier, "b")

    def test_duplicate_declaration(self):
        with self.assertRaises(ParseError) as cm:
            compile_source(function_body("return;", locals_dec="var int a;"), "Main")
        self.assertEqual(cm.exception.identifier, "a")

    def test_class_name_must_match_file(self):
        with self.assertRaises(ParseError):
            compile_source("class Other { }", "Main")

    def test_method_call_on_primitive(self):
        with self.assertRaises(ParseError) as cm:
            compile_source(function_body("do a.foo(); return;"), "Main")
        self.assertEqual(cm.exception.identifier, "a")

    def test_function_cannot_use_this_object(self):
        for statements in ("do draw(); return;", "let size = 1; return;", "return this;"):
            with self.subTest(statements=statements):
                with self.assertRaises(ParseError):
                    compile_source(function_body(statements), "Main")

    def test_unexpected_end_of_input(self):
        with self.assertRaises(ParseError) as cm:
            compile_source("class Main {", "Main")
        self.assertIn("Unexpected end of input", str(cm.exception))

    def test_trailing_tokens(self):
        with self.assertRaises(ParseError):
            compile_source("class Main { } class Other { }", "Main")

    def test_lex_errors_propagate(self):
        with self.assertRaises(LexError):
            compile_source(function_body("let a = 40000; return;"), "Main")

    def test_error_in_one_unit_keeps_other_outputs(self):
        sources = {
            "A": "class A { function int one() { return 1; } }",
            "B": "class B { function int two() { return 2 } }",
            "C": "class C { function int three() { return 3; } }",
        }

        outputs, errors = compile_units(sources, keep_going=True)
        self.assertEqual(sorted(outputs), ["A", "C"])
        self.assertEqual([str(c) for c in outputs["A"]], ["function A.one 0", "push constant 1", "return"])
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].unit, "B")

        outputs, errors = compile_units(sources)
        self.assertEqual(sorted(outputs), ["A"])
        self.assertEqual(len(errors), 1)


if __name__ == "__main__":
    unittest.main()
