"""
Error handling for the EX interpreter
Runtime failures share one exception class tagged with a flat error kind;
parse failures are enhanced with context lines and suggestions
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pyparsing import ParseException
import re


# ============================================================================
# RUNTIME ERRORS
# ============================================================================

class RuntimeErrorKind(Enum):
    """Runtime failure kinds, each with its message template"""
    UNDEFINED_VARIABLE = "Undefined variable '{name}'"
    CANNOT_REDEFINE_CONSTANT = "Cannot redefine constant variable '{name}'"
    CANNOT_REASSIGN_CONSTANT = "Cannot reassign constant variable '{name}'"
    CANNOT_REASSIGN_SMART_LOCKED = "Cannot reassign smart-locked variable '{name}'"
    CANNOT_DELETE_CONSTANT = "Cannot delete constant variable '{name}'"
    CANNOT_DELETE_SMART_LOCKED = "Cannot delete smart-locked variable '{name}'"
    CANNOT_DELETE_UNDEFINED = "Cannot delete undefined variable '{name}'"
    TYPE_MISMATCH = "Type mismatch in '{operation}': expected {expected}, got {got}"
    INVALID_UNARY_OPERATION = "Invalid unary operation '{operator}' on type {operand_type}"
    INVALID_BINARY_OPERATION = "Invalid binary operation: {left_type} {operator} {right_type}"
    DIVISION_BY_ZERO = "Division by zero"
    INTEGER_OVERFLOW = "Integer overflow"
    INVALID_NUMBER_FORMAT = "Invalid number format: '{text}'"
    UNSUPPORTED_EXPRESSION = "Unsupported expression: {node}"
    UNSUPPORTED_STATEMENT = "Unsupported statement: {node}"
    INVALID_FUNCTION_CALL = "Invalid function call: {message}"
    WRONG_NUMBER_OF_ARGUMENTS = "Wrong number of arguments: expected {expected}, got {got}"
    CUSTOM = "{message}"


class EXRuntimeError(Exception):
    """Runtime failure with an optional source location and context line"""

    def __init__(self, kind: RuntimeErrorKind, line: Optional[int] = None,
                 column: Optional[int] = None, context: Optional[str] = None,
                 **details: Any):
        self.kind = kind
        self.details = details
        self.message = kind.value.format(**details)
        self.line = line
        self.column = column
        self.context = context
        super().__init__(self.message)

    @classmethod
    def custom(cls, message: str, context: Optional[str] = None) -> 'EXRuntimeError':
        return cls(RuntimeErrorKind.CUSTOM, context=context, message=message)

    def with_location(self, line: Optional[int], column: Optional[int]) -> 'EXRuntimeError':
        """Attach a location unless one is already recorded"""
        if self.line is None and line is not None:
            self.line = line
            self.column = column
        return self

    def with_context(self, context: str) -> 'EXRuntimeError':
        if not self.context:
            self.context = context
        return self

    def __str__(self) -> str:
        result = ""
        if self.line is not None:
            result += f"[line {self.line}:{self.column or 0}] "
        result += f"Runtime Error: {self.message}"
        if self.context:
            result += f"\n  Context: {self.context}"
        return result


# ============================================================================
# PARSE ERROR REPORTS
# ============================================================================

def format_parse_error(error: Dict) -> str:
    """Render an enhanced parse error dict as the multi-line report"""
    parts = [
        f"Parse error at line {error['line']}, column {error['column']}:",
        f"  {error['message']}",
    ]
    if error['expected']:
        parts.append(f"  Expected: {', '.join(error['expected'])}")
    if error['got']:
        parts.append(f"  Got: {error['got']}")
    if error['context']:
        parts.append("  Context:")
        parts.append(error['context'])
    parts.extend(f"  hint: {hint}" for hint in error['suggestions'])
    return "\n".join(parts) + "\n"


def source_excerpt(source_text: str, line_num: int, col_num: int, radius: int = 2) -> str:
    """Numbered lines around `line_num` with a caret under the failing column"""
    lines = source_text.split('\n')
    first = max(1, line_num - radius)
    last = min(len(lines), line_num + radius)
    width = len(str(last))

    excerpt = []
    for number in range(first, last + 1):
        excerpt.append(f"  {number:>{width}} | {lines[number - 1]}")
        if number == line_num:
            excerpt.append(f"  {'':>{width}} | {' ' * (col_num - 1)}^")
    return "\n".join(excerpt)


def extract_expected(exc: ParseException) -> List[str]:
    """Extract expected tokens from a pyparsing message"""
    expected_match = re.search(r"Expected\s+(.+?)(?:,\s+found|\s+\(|$)", str(exc))
    if expected_match:
        return [expected_match.group(1)]
    return ["valid syntax"]


def extract_got(source_text: str, line_num: int, col_num: int) -> str:
    """Extract what was actually found at the error location"""
    lines = source_text.split('\n')

    if 0 < line_num <= len(lines):
        error_line = lines[line_num - 1]
        if col_num <= len(error_line):
            start = max(0, col_num - 1)
            end = min(len(error_line), col_num + 10)
            got_text = error_line[start:end].strip()
            if got_text:
                return f"'{got_text}'"
        return "end of line"
    return "end of input"


def generate_suggestions(got: str, expected: List[str], source_line: str = "") -> List[str]:
    """Generate hints for common EX syntax slips"""
    suggestions = []
    expected_text = str(expected)

    if "'}'" in expected_text or source_line.count("{") > source_line.count("}"):
        suggestions.append("Check that every '{' block is closed with '}'")

    if re.search(r"\blabel\b", source_line) and "(" in source_line and "=" not in source_line:
        suggestions.append("Label parameters map an external name to an internal one: label f(age=a) { ... }")

    if re.search(r"\w+\([^)=]*\w\)", got.strip("'")) and "::" not in got:
        suggestions.append("Arguments are passed by name: f(name=value)")

    if re.search(r"\b(let|var|fn|def|return)\b", got):
        suggestions.append("EX has no let/fn/return keywords; assign with 'x = value' and declare with 'label'")

    if "'[" in got and "&" not in got:
        suggestions.append("Collection literals may carry a tag: [&l, ...], [&a, ...] or [&d, key: value]")

    return suggestions


def enhance_parse_exception_dict(exc: ParseException, source_text: str) -> Dict:
    """Convert a pyparsing exception to an enhanced error dict"""
    line_num = exc.lineno
    col_num = exc.column

    expected = extract_expected(exc)
    got = extract_got(source_text, line_num, col_num)
    lines = source_text.split('\n')
    source_line = lines[line_num - 1] if 0 < line_num <= len(lines) else ""

    return {
        'message': str(exc),
        'location': exc.loc,
        'line': line_num,
        'column': col_num,
        'expected': expected,
        'got': got,
        'context': source_excerpt(source_text, line_num, col_num),
        'suggestions': generate_suggestions(got, expected, source_line),
    }


# ============================================================================
# PARSE ERROR CLASSES
# ============================================================================

class EXParseError(Exception):
    """Parse error with a source span and the offending source line"""
    def __init__(self, message: str, span: Any = None, context: str = "",
                 details: Optional[Dict] = None):
        self.message = message
        self.span = span
        self.context = context
        self.details = details
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        if self.span:
            result = f"Parse error at {self.span}: {self.message}"
            if self.context:
                result += f"\n  Context: {self.context}"
            return result
        return f"Parse error: {self.message}"

    def report(self) -> str:
        """Full report including expected/got and suggestions when available"""
        if self.details:
            return format_parse_error(self.details)
        return str(self)


class EXErrorHandler:
    """Holds the source text so pyparsing failures can be enhanced"""
    def __init__(self, source_text: str, filename: str = "<input>"):
        self.source_text = source_text
        self.filename = filename
        self.lines = source_text.split('\n')

    def enhance_parse_exception(self, exc: ParseException, span: Any = None) -> EXParseError:
        """Convert a pyparsing exception to an EXParseError"""
        error_dict = enhance_parse_exception_dict(exc, self.source_text)
        line_num = error_dict['line']
        context_line = self.lines[line_num - 1].strip() if 0 < line_num <= len(self.lines) else ""
        return EXParseError(error_dict['message'], span, context_line, error_dict)
