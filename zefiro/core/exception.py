from __future__ import annotations


class ZefiroException(Exception):
    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        offset: int | None = None,
    ):
        super().__init__(message)
        self.message: str = message
        self.line: int | None = line
        self.column: int | None = column
        self.offset: int | None = offset

    def __str__(self) -> str:
        if self.line is not None:
            position = f"line {self.line + 1}"
            if self.column is not None:
                position += f", column {self.column + 1}"
            return f"{self.message} ({position})"
        elif self.offset is not None:
            return f"{self.message} (offset {self.offset})"
        else:
            return self.message


class ConfigurationError(ZefiroException):
    pass


class ParseError(ZefiroException):
    pass


class SchemaValidationError(ZefiroException):
    pass


class UnsupportedField(SchemaValidationError):
    pass


class UnknownClass(SchemaValidationError):
    pass


class MissingRequiredField(SchemaValidationError):
    pass


class InvalidType(SchemaValidationError):
    pass


class VersionMismatch(SchemaValidationError):
    pass


class MalformedDocument(SchemaValidationError):
    pass


class ValuesError(ZefiroException):
    pass


class ExpressionError(ZefiroException):
    pass


class ExpressionSyntaxError(ExpressionError):
    pass


class UndefinedReference(ExpressionError):
    pass


class ExpressionTypeError(ExpressionError):
    pass


class UnsupportedExpression(ExpressionError):
    pass


class ResolutionError(ZefiroException):
    pass


class MissingRequiredInput(ResolutionError):
    pass


class TypeMismatch(ResolutionError):
    pass


class GlobNoMatch(ResolutionError):
    pass
