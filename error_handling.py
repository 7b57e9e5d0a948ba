"""
Error model for the Tally language
Fatal lexer/parser exceptions, recoverable runtime errors and their rendering
"""

from typing import Dict, List, Optional, Tuple, TYPE_CHECKING
from pyparsing import col, line, lineno

if TYPE_CHECKING:
    from parsing import SourcePosition, Token
    from runtime import Context


# ============================================================================
# ERROR CLASSES
# ============================================================================

class TallyError(Exception):
    """Base class for every error the language reports"""

    name = "Error"

    def __init__(self, details: str, start: Optional['SourcePosition'] = None,
                 end: Optional['SourcePosition'] = None):
        self.details = details
        self.start = start
        self.end = end
        super().__init__(details)

    @property
    def location(self) -> str:
        if self.start is None:
            return "<unknown>"
        return f"File {self.start.source_name}, line {self.start.line + 1}"

    def __str__(self) -> str:
        return f"{self.name}: {self.details}\n  {self.location}"


class LexerError(TallyError):
    """Malformed source text: bad character, escape, string or comment"""

    name = "LexerError"


class ParseError(TallyError):
    """A token did not fit the grammar"""

    name = "UnexpectedToken"

    def __init__(self, details: str, token: 'Token', expected: Optional[List[str]] = None):
        self.token = token
        self.expected = expected or []
        super().__init__(details, token.start, token.end)


class TallyRuntimeError(TallyError):
    """Recoverable evaluation failure, returned inside a RuntimeResult"""

    name = "RuntimeError"

    def __init__(self, details: str, start: Optional['SourcePosition'] = None,
                 end: Optional['SourcePosition'] = None, context: Optional['Context'] = None):
        super().__init__(details, start, end)
        self.context = context

    @property
    def is_located(self) -> bool:
        return self.start is not None and self.context is not None

    def located(self, start: 'SourcePosition', end: 'SourcePosition',
                context: 'Context') -> 'TallyRuntimeError':
        """Copy of this error pinned to a node and the context it failed in"""
        return TallyRuntimeError(self.details, start, end, context)

    def traceback_frames(self) -> List[Tuple[str, int, str]]:
        """(source name, 1-based line, context name) from innermost scope to root"""
        frames = []
        position = self.start
        context = self.context
        while context is not None:
            if position is None:
                frames.append(("<unknown>", 0, context.name))
            else:
                frames.append((position.source_name, position.line + 1, context.name))
            position = context.entry_position
            context = context.parent
        return frames

    def generate_traceback(self) -> str:
        result = "Traceback (innermost scope first):\n"
        for source_name, line_number, context_name in self.traceback_frames():
            result += f"  File {source_name}, line {line_number}, in {context_name}\n"
        return result

    def __str__(self) -> str:
        return self.generate_traceback() + f"{self.name}: {self.details}"


# ============================================================================
# SOURCE EXCERPTS
# ============================================================================

def arrow_string(start: 'SourcePosition', end: Optional['SourcePosition'] = None) -> str:
    """Source line(s) covered by a span with the span underlined by carets"""
    text = start.source_text
    if not text or start.offset < 0:
        return ""
    if end is None or end.offset <= start.offset:
        end_offset = start.offset + 1
    else:
        end_offset = min(end.offset, len(text))
    start_offset = min(start.offset, len(text))

    first_line = lineno(start_offset, text)
    last_line = lineno(max(end_offset - 1, start_offset), text)

    parts = []
    offset = start_offset
    for current in range(first_line, last_line + 1):
        source_line = line(offset, text)
        line_begin = offset - col(offset, text) + 1
        column_start = offset - line_begin
        if current == last_line:
            column_end = max(end_offset - line_begin, column_start + 1)
        else:
            column_end = len(source_line)
        parts.append(source_line.replace('\t', ' '))
        parts.append(' ' * column_start + '^' * (column_end - column_start))
        offset = line_begin + len(source_line) + 1

    return '\n'.join(parts)


# ============================================================================
# REPORTS
# ============================================================================

def describe_error(error: TallyError) -> Dict:
    """Plain dictionary view of an error, for tooling"""
    report = {
        'name': error.name,
        'message': error.details,
        'source': None,
        'line': None,
        'column': None,
        'expected': [],
        'got': None,
        'traceback': [],
    }
    if error.start is not None:
        report['source'] = error.start.source_name
        report['line'] = error.start.line + 1
        report['column'] = error.start.column + 1
    if isinstance(error, ParseError):
        report['expected'] = list(error.expected)
        report['got'] = error.token.text or error.token.type.name
    if isinstance(error, TallyRuntimeError):
        report['traceback'] = error.traceback_frames()
    return report


def format_error(error: TallyError, show_source: bool = True) -> str:
    """Render an error for humans: traceback, message and source excerpt"""
    if isinstance(error, TallyRuntimeError):
        result = error.generate_traceback() + f"{error.name}: {error.details}"
    else:
        result = f"{error.name}: {error.details}\n  {error.location}"
        if isinstance(error, ParseError) and error.expected:
            result += f"\n  Expected: {', '.join(error.expected)}"

    if show_source and error.start is not None:
        excerpt = arrow_string(error.start, error.end)
        if excerpt:
            result += "\n" + excerpt

    return result
