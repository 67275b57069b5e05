import os
import json
from enum import Enum
from typing import NamedTuple, Optional


class SymbolKind(Enum):
    STATIC = "static"
    FIELD = "field"
    ARG = "argument"
    VAR = "local"

    @property
    def is_class_scope(self) -> bool:
        return self in (SymbolKind.STATIC, SymbolKind.FIELD)

    @property
    def segment(self) -> str:
        """VM memory segment holding variables of this kind"""
        if self is SymbolKind.FIELD:
            return "this"
        return self.value


class Symbol(NamedTuple):
    kind: SymbolKind
    type: str
    index: int


class SymbolTable:
    def __init__(self):
        self.class_table = {}
        self.subroutine_table = {}
        self.subroutine_tables = {}
        self._counts = {kind: 0 for kind in SymbolKind}

    def start_subroutine(self, name: Optional[str] = None, this_type=None) -> None:
        """
        Resets the subroutine scope, keeping the class scope. For methods, pass the
        class name as this_type to define "this" as argument 0
        """
        self.subroutine_table = {}
        self._counts[SymbolKind.ARG] = 0
        self._counts[SymbolKind.VAR] = 0
        if name is not None:
            self.subroutine_tables[name] = self.subroutine_table
        if this_type is not None:
            self.define("this", this_type, SymbolKind.ARG)

    def define(self, name: str, type: str, kind) -> int:
        """
        Defines a new identifier of a given name, type, and kind and assigns it a
        running index. STATIC and FIELD identifiers have a class scope, while ARG and
        VAR identifiers have a subroutine scope
        """
        kind = SymbolKind(kind)
        table = self.class_table if kind.is_class_scope else self.subroutine_table

        if name in table:
            scope = "class" if kind.is_class_scope else "subroutine"
            raise ValueError(f'Identifier "{name}" is already defined in {scope} scope')

        index = self._counts[kind]
        table[name] = Symbol(kind, type, index)
        self._counts[kind] += 1
        return index

    def lookup(self, name: str) -> Optional[Symbol]:
        """
        Returns the symbol for name, preferring the subroutine scope. Returns None if
        the identifier is unknown, in which case it names a class or subroutine
        """
        if name in self.subroutine_table:
            return self.subroutine_table[name]
        return self.class_table.get(name)

    def var_count(self, kind) -> int:
        """
        Returns the number of variables of the given kind already defined in the
        current scope.
        """
        return self._counts[SymbolKind(kind)]

    @staticmethod
    def _to_json(table: dict) -> dict:
        return {
            name: {"kind": symbol.kind.value, "type": symbol.type, "index": symbol.index}
            for name, symbol in table.items()
        }

    def write_symbol_tables(self, dir: str, class_name: str) -> str:
        """Write the class table and every subroutine table as JSON"""
        if not os.path.isdir(dir):
            os.makedirs(dir)

        tables = {
            "class": self._to_json(self.class_table),
            "subroutines": {
                name: self._to_json(table)
                for name, table in self.subroutine_tables.items()
            },
        }
        table_fn = os.path.join(dir, class_name + ".json")
        with open(table_fn, "w") as f:
            f.write(json.dumps(tables, indent=2))
        return table_fn
