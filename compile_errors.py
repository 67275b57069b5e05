class CompilationError(Exception):
    """
    Base class for errors that abort processing of one compilation unit. Carries the
    unit name and, where known, the 1-based line and column of the failure
    """

    def __init__(self, message: str, unit=None, line=None, column=None):
        self.message = message
        self.unit = unit
        self.line = line
        self.column = column
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.unit or "<input>"
        if self.line is not None:
            location += f":{self.line}"
            if self.column is not None:
                location += f":{self.column}"
        return f"{location}: {self.message}"


class LexError(CompilationError):
    pass


class ParseError(CompilationError):
    def __init__(self, message: str, unit=None, line=None, column=None, identifier=None):
        self.identifier = identifier
        super().__init__(message, unit, line, column)


class TranslationError(CompilationError):
    pass


class AssemblyError(CompilationError):
    pass
