import os
import json
import tempfile
import unittest

from symbol_table import Symbol, SymbolKind, SymbolTable


class SymbolTableTests(unittest.TestCase):
    def setUp(self):
        self.symbol_table = SymbolTable()
        self.symbol_table.start_subroutine()

    def test_indices_are_dense_per_kind(self):
        indices = [self.symbol_table.define(f"v{i}", "int", "local") for i in range(5)]
        arg_index = self.symbol_table.define("a", "int", SymbolKind.ARG)
        field_indices = [
            self.symbol_table.define(name, "int", "field") for name in ("x", "y")
        ]
        static_index = self.symbol_table.define("count", "int", "static")

        self.assertEqual(indices, [0, 1, 2, 3, 4])
        self.assertEqual(arg_index, 0)
        self.assertEqual(field_indices, [0, 1])
        self.assertEqual(static_index, 0)
        self.assertEqual(self.symbol_table.var_count(SymbolKind.VAR), 5)
        self.assertEqual(self.symbol_table.var_count("field"), 2)

    def test_lookup(self):
        self.symbol_table.define("p", "Point", SymbolKind.FIELD)

        self.assertEqual(self.symbol_table.lookup("p"), Symbol(SymbolKind.FIELD, "Point", 0))
        self.assertIsNone(self.symbol_table.lookup("Point"))

    def test_subroutine_scope_shadows_class_scope(self):
        self.symbol_table.define("x", "int", SymbolKind.FIELD)
        self.symbol_table.define("x", "char", SymbolKind.VAR)

        self.assertEqual(self.symbol_table.lookup("x"), Symbol(SymbolKind.VAR, "char", 0))

        self.symbol_table.start_subroutine()
        self.assertEqual(self.symbol_table.lookup("x"), Symbol(SymbolKind.FIELD, "int", 0))

    def test_start_subroutine_resets_only_subroutine_scope(self):
        self.symbol_table.define("s", "int", SymbolKind.STATIC)
        self.symbol_table.define("a", "int", SymbolKind.ARG)
        self.symbol_table.define("l", "int", SymbolKind.VAR)

        self.symbol_table.start_subroutine()

        self.assertIsNone(self.symbol_table.lookup("a"))
        self.assertIsNone(self.symbol_table.lookup("l"))
        self.assertEqual(self.symbol_table.var_count(SymbolKind.ARG), 0)
        self.assertEqual(self.symbol_table.var_count(SymbolKind.VAR), 0)
        self.assertEqual(self.symbol_table.var_count(SymbolKind.STATIC), 1)
        self.assertEqual(self.symbol_table.define("b", "int", SymbolKind.ARG), 0)

    def test_method_scope_has_this(self):
        self.symbol_table.start_subroutine("draw", this_type="Square")
        self.symbol_table.define("color", "boolean", SymbolKind.ARG)

        self.assertEqual(self.symbol_table.lookup("this"), Symbol(SymbolKind.ARG, "Square", 0))
        self.assertEqual(self.symbol_table.lookup("color").index, 1)

    def test_redefinition_in_same_scope(self):
        self.symbol_table.define("x", "int", SymbolKind.ARG)
        with self.assertRaises(ValueError):
            self.symbol_table.define("x", "int", SymbolKind.VAR)

        self.symbol_table.define("y", "int", SymbolKind.STATIC)
        with self.assertRaises(ValueError):
            self.symbol_table.define("y", "int", SymbolKind.FIELD)

    def test_invalid_kind(self):
        with self.assertRaises(ValueError):
            self.symbol_table.define("x", "int", "global")

    def test_segments(self):
        self.assertEqual(SymbolKind.STATIC.segment, "static")
        self.assertEqual(SymbolKind.FIELD.segment, "this")
        self.assertEqual(SymbolKind.ARG.segment, "argument")
        self.assertEqual(SymbolKind.VAR.segment, "local")

    def test_write_symbol_tables(self):
        self.symbol_table.define("size", "int", SymbolKind.FIELD)
        self.symbol_table.start_subroutine("grow", this_type="Square")
        self.symbol_table.define("amount", "int", SymbolKind.ARG)

        with tempfile.TemporaryDirectory() as tmp_dir:
            table_fn = self.symbol_table.write_symbol_tables(
                os.path.join(tmp_dir, "symbol_tables"), "Square"
            )
            with open(table_fn) as f:
                tables = json.load(f)

        self.assertEqual(
            tables["class"], {"size": {"kind": "field", "type": "int", "index": 0}}
        )
        self.assertEqual(
            tables["subroutines"]["grow"]["amount"],
            {"kind": "argument", "type": "int", "index": 1},
        )


if __name__ == "__main__":
    unittest.main()
