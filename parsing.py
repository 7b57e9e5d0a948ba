"""
Tally Programming Language Lexer and Parser
Pull-based lexer with source positions and a recursive-descent parser with explicit precedence tiers
"""

from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
from enum import Enum

from ast_nodes import (
    Assignment, BinaryOp, Block, Call, For, FunctionDef, Identifier, If, Index,
    LiteralCell, Node, NumberLiteral, StringLiteral, UnaryOp, pretty_print_ast
)
from error_handling import LexerError, ParseError


@dataclass(frozen=True)
class SourcePosition:
    """A point in a named source buffer; lines and columns are 0-based"""
    offset: int
    line: int
    column: int
    source_name: str
    source_text: str = field(default="", repr=False, compare=False)

    def advanced(self, current_char: Optional[str] = None) -> 'SourcePosition':
        """Position one character further, moving to the next line after a newline"""
        if current_char == '\n':
            return SourcePosition(self.offset + 1, self.line + 1, 0,
                                  self.source_name, self.source_text)
        return SourcePosition(self.offset + 1, self.line, self.column + 1,
                              self.source_name, self.source_text)

    def __str__(self) -> str:
        return f"{self.source_name}:{self.line + 1}:{self.column + 1}"


class TokenType(Enum):
    # Operators
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    ASSIGN = "="
    INCREMENT = "++"
    DECREMENT = "--"

    # Brackets
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"

    # Comparators
    EQ = "=="
    NEQ = "!="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="

    # Boolean operators
    AND = "&&"
    OR = "||"
    NOT = "!"

    # Bitwise operators
    BIT_AND = "&"
    BIT_OR = "|"
    BIT_NOT = "~"
    BIT_XOR = "^"
    SHL = "<<"
    SHR = ">>"

    # Literals and names
    NUMBER = "number"
    IDENTIFIER = "identifier"
    STRING = "string"

    # Punctuation
    COMMA = ","
    DOT = "."
    COLON = ":"
    SEMICOLON = ";"
    EOF = "end of input"


@dataclass(frozen=True)
class Token:
    """Tally token with source information"""
    type: TokenType
    text: str
    start: SourcePosition
    end: SourcePosition

    @classmethod
    def create(cls, token_type: TokenType, text: str, start: SourcePosition,
               end: Optional[SourcePosition] = None) -> 'Token':
        """Build a token; the end defaults to one character past the start"""
        return cls(token_type, text, start, end if end is not None else start.advanced())

    def __str__(self) -> str:
        return f"Token({self.type.name}, {self.text!r})"


SINGLE_CHAR_TOKENS: Dict[str, TokenType] = {
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    ';': TokenType.SEMICOLON,
    ',': TokenType.COMMA,
    '.': TokenType.DOT,
    ':': TokenType.COLON,
    '*': TokenType.STAR,
    '%': TokenType.PERCENT,
    '^': TokenType.BIT_XOR,
    '~': TokenType.BIT_NOT,
}

# first character -> (single character token, {second character: two character token})
PAIRED_TOKENS: Dict[str, Tuple[TokenType, Dict[str, TokenType]]] = {
    '+': (TokenType.PLUS, {'+': TokenType.INCREMENT}),
    '-': (TokenType.MINUS, {'-': TokenType.DECREMENT}),
    '=': (TokenType.ASSIGN, {'=': TokenType.EQ}),
    '!': (TokenType.NOT, {'=': TokenType.NEQ}),
    '>': (TokenType.GT, {'=': TokenType.GTE, '>': TokenType.SHR}),
    '<': (TokenType.LT, {'=': TokenType.LTE, '<': TokenType.SHL}),
    '&': (TokenType.BIT_AND, {'&': TokenType.AND}),
    '|': (TokenType.BIT_OR, {'|': TokenType.OR}),
}

ESCAPE_SEQUENCES: Dict[str, str] = {
    'n': '\n', 'r': '\r', 't': '\t', 'b': '\b', 'a': '\a', 'f': '\f',
    'v': '\v', '\\': '\\', '"': '"', "'": "'", '0': '\0',
}

# escape letter -> maximum number of hex digits
HEX_ESCAPES: Dict[str, int] = {'x': 2, 'u': 4}
HEX_DIGITS = frozenset('0123456789abcdefABCDEF')

# Statement keywords whose syntax is accepted but which produce no node
DISCARDED_KEYWORDS = frozenset({'return', 'while', 'break', 'continue', 'class', 'new', 'import'})

KEYWORDS = frozenset({'let', 'if', 'else', 'for', 'func'}) | DISCARDED_KEYWORDS


# ============================================================================
# LEXER
# ============================================================================

class Lexer:
    """Forward-only lexer producing one token per next_token() call"""

    def __init__(self, source_text: str, source_name: str = "<input>", debug: bool = False):
        self.source_text = source_text
        self.source_name = source_name
        self.debug = debug
        self.position = SourcePosition(-1, 0, -1, source_name, source_text)
        self.current_char: Optional[str] = None
        self._advance()

    def _advance(self) -> None:
        self.position = self.position.advanced(self.current_char)
        offset = self.position.offset
        self.current_char = self.source_text[offset] if offset < len(self.source_text) else None

    def _peek(self) -> Optional[str]:
        offset = self.position.offset + 1
        return self.source_text[offset] if offset < len(self.source_text) else None

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                return

    def tokenize(self) -> List[Token]:
        """All remaining tokens, ending with the first EOF"""
        return list(self)

    def next_token(self) -> Token:
        token = self._next_token()
        if self.debug:
            print(token)
        return token

    def _next_token(self) -> Token:
        while self.current_char is not None and self.current_char.isspace():
            self._advance()

        c = self.current_char
        if c is None:
            return Token.create(TokenType.EOF, "", self.position)

        if c.isdigit():
            return self._read_number()

        if c.isalpha() or c == '_':
            return self._read_identifier()

        if c == '"':
            return self._read_string()

        if c == '/':
            token = self._read_slash()
            # comments yield nothing, go on to the next real token
            return token if token is not None else self._next_token()

        if c in PAIRED_TOKENS:
            return self._read_paired()

        if c in SINGLE_CHAR_TOKENS:
            token = Token.create(SINGLE_CHAR_TOKENS[c], c, self.position)
            self._advance()
            return token

        raise LexerError(f"Unexpected character '{c}'", self.position, self.position.advanced())

    def _read_paired(self) -> Token:
        start = self.position
        first = self.current_char
        single_type, doubles = PAIRED_TOKENS[first]
        second = self._peek()

        if second is not None and second in doubles:
            self._advance()
            self._advance()
            return Token.create(doubles[second], first + second, start, self.position)

        self._advance()
        return Token.create(single_type, first, start)

    def _read_number(self) -> Token:
        start = self.position
        chars = []
        seen_dot = False

        while self.current_char is not None and (self.current_char.isdigit() or self.current_char in '._'):
            if self.current_char == '.':
                if seen_dot:
                    break
                seen_dot = True
                chars.append('.')
            elif self.current_char != '_':
                chars.append(self.current_char)
            self._advance()

        return Token.create(TokenType.NUMBER, ''.join(chars), start, self.position)

    def _read_identifier(self) -> Token:
        start = self.position
        chars = []

        while self.current_char is not None and (self.current_char.isalnum() or self.current_char == '_'):
            chars.append(self.current_char)
            self._advance()

        return Token.create(TokenType.IDENTIFIER, ''.join(chars), start, self.position)

    def _read_string(self) -> Token:
        start = self.position
        chars = []
        self._advance()

        while self.current_char is not None and self.current_char != '"':
            if self.current_char == '\\':
                self._advance()
                chars.append(self._read_escape(start))
            else:
                chars.append(self.current_char)
            self._advance()

        if self.current_char is None:
            raise LexerError("Unterminated string literal", start, self.position)

        self._advance()
        return Token.create(TokenType.STRING, ''.join(chars), start, self.position)

    def _read_escape(self, string_start: SourcePosition) -> str:
        """Decode the escape whose letter is the current character"""
        c = self.current_char
        if c is None:
            raise LexerError("Unterminated string literal", string_start, self.position)

        if c in ESCAPE_SEQUENCES:
            return ESCAPE_SEQUENCES[c]

        if c in HEX_ESCAPES:
            escape_start = self.position
            digits = ""
            while len(digits) < HEX_ESCAPES[c]:
                following = self._peek()
                if following is None or following not in HEX_DIGITS:
                    break
                self._advance()
                digits += self.current_char
            if not digits:
                raise LexerError(f"Invalid escape sequence '\\{c}': expected hex digits",
                                 escape_start, self.position.advanced())
            return chr(int(digits, 16))

        raise LexerError(f"Invalid escape character '{c}'", self.position, self.position.advanced())

    def _read_slash(self) -> Optional[Token]:
        """Division operator, or None after skipping a comment"""
        start = self.position
        self._advance()

        if self.current_char == '/':
            while self.current_char is not None and self.current_char != '\n':
                self._advance()
            return None

        if self.current_char == '*':
            self._advance()
            while self.current_char is not None:
                if self.current_char == '*' and self._peek() == '/':
                    self._advance()
                    self._advance()
                    return None
                self._advance()
            raise LexerError("Unterminated block comment", start, self.position)

        return Token.create(TokenType.SLASH, "/", start)


# ============================================================================
# PARSER
# ============================================================================

ADDITIVE_OPERATORS = (
    TokenType.PLUS, TokenType.MINUS, TokenType.BIT_AND, TokenType.SHL,
    TokenType.BIT_NOT, TokenType.BIT_OR, TokenType.SHR, TokenType.BIT_XOR,
)
MULTIPLICATIVE_OPERATORS = (TokenType.STAR, TokenType.SLASH, TokenType.PERCENT)
COMPARISON_OPERATORS = (
    TokenType.EQ, TokenType.NEQ, TokenType.GT, TokenType.LT, TokenType.GTE, TokenType.LTE,
)
LOGICAL_OPERATORS = (TokenType.AND, TokenType.OR)


def describe_token(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of input"
    return f"{token.type.name} '{token.text}'"


class Parser:
    """Recursive-descent parser with one token of lookahead"""

    def __init__(self, lexer: Lexer, debug: bool = False):
        self.lexer = lexer
        self.debug = debug
        self.current_token = lexer.next_token()

    # ------------------------------------------------------------------ entry points

    def parse(self) -> List[Node]:
        """Parse the whole input into top-level statements"""
        statements = []
        while self.current_token.type != TokenType.EOF:
            statement = self._parse_code_block()
            if statement is None:
                continue
            if self.debug:
                print(pretty_print_ast(statement))
            statements.append(statement)
        return statements

    def parse_expression(self) -> Node:
        """Parse a single expression spanning the whole input"""
        expression = self._parse_expression()
        self._expect(TokenType.EOF)
        return expression

    # ------------------------------------------------------------------ token helpers

    def _advance_token(self) -> Token:
        token = self.current_token
        self.current_token = self.lexer.next_token()
        return token

    def _check(self, *types: TokenType) -> bool:
        return self.current_token.type in types

    def _at_keyword(self, word: str) -> bool:
        return self.current_token.type == TokenType.IDENTIFIER and self.current_token.text == word

    def _expect(self, token_type: TokenType) -> Token:
        if self.current_token.type != token_type:
            raise ParseError(
                f"Unexpected token: {describe_token(self.current_token)}, expected '{token_type.value}'",
                self.current_token,
                expected=[token_type.value],
            )
        return self._advance_token()

    def _expect_statement_end(self) -> None:
        """A statement ends at ';' (consumed) or before '}' / end of input"""
        if self._check(TokenType.SEMICOLON):
            self._advance_token()
        elif not self._check(TokenType.RBRACE, TokenType.EOF):
            raise ParseError(
                f"Unexpected token: {describe_token(self.current_token)}, expected ';'",
                self.current_token,
                expected=[';'],
            )

    def _unexpected(self, expected: str) -> ParseError:
        return ParseError(
            f"Unexpected token: {describe_token(self.current_token)}",
            self.current_token,
            expected=[expected],
        )

    # ------------------------------------------------------------------ statements

    def _parse_code_block(self) -> Optional[Node]:
        if self._check(TokenType.LBRACE):
            open_brace = self._advance_token()
            statements = self._parse_statements()
            close_brace = self._expect(TokenType.RBRACE)
            return Block(open_brace, tuple(statements), close_brace)

        return self._parse_statement()

    def _parse_statements(self) -> List[Node]:
        statements = []
        while not self._check(TokenType.RBRACE):
            if self._check(TokenType.EOF):
                raise self._unexpected('}')
            statement = self._parse_code_block()
            if statement is not None:
                statements.append(statement)
        return statements

    def _parse_statement(self) -> Optional[Node]:
        if self._at_keyword('let'):
            result = self._parse_let()
            self._expect_statement_end()
            return result

        if self._at_keyword('if'):
            return self._parse_if()

        if self._at_keyword('for'):
            return self._parse_for()

        if self._at_keyword('func'):
            return self._parse_function()

        if self.current_token.type == TokenType.IDENTIFIER and self.current_token.text in DISCARDED_KEYWORDS:
            self._skip_discarded()
            return None

        result = self._parse_expression()
        self._expect_statement_end()
        return result

    def _parse_let(self) -> Node:
        self._advance_token()
        name = Identifier(self._expect(TokenType.IDENTIFIER))
        self._expect(TokenType.ASSIGN)
        return Assignment(name, self._parse_expression())

    def _parse_if(self) -> Node:
        keyword = self._advance_token()
        cases = [self._parse_guarded_body()]
        else_body = None

        while self._at_keyword('else'):
            self._advance_token()
            if self._at_keyword('if'):
                self._advance_token()
                cases.append(self._parse_guarded_body())
            else:
                else_body = self._parse_code_block()
                break

        return If(keyword, tuple(cases), else_body)

    def _parse_guarded_body(self) -> Tuple[Node, Optional[Node]]:
        self._expect(TokenType.LPAREN)
        condition = self._parse_expression()
        self._expect(TokenType.RPAREN)
        return condition, self._parse_code_block()

    def _parse_for(self) -> Node:
        keyword = self._advance_token()
        self._expect(TokenType.LPAREN)
        init = self._parse_let() if self._at_keyword('let') else self._parse_expression()
        self._expect(TokenType.SEMICOLON)
        condition = self._parse_expression()
        self._expect(TokenType.SEMICOLON)
        increment = self._parse_expression()
        self._expect(TokenType.RPAREN)
        body = self._parse_code_block()
        return For(keyword, init, condition, increment, body)

    def _parse_function(self) -> Node:
        keyword = self._advance_token()
        name = self._expect(TokenType.IDENTIFIER)
        self._expect(TokenType.LPAREN)
        parameters = self._parse_parameters()
        close = self._expect(TokenType.RPAREN)

        if self._check(TokenType.LBRACE):
            self._advance_token()
            body = tuple(self._parse_statements())
            close = self._expect(TokenType.RBRACE)
        else:
            statement = self._parse_statement()
            body = (statement,) if statement is not None else ()

        return FunctionDef(keyword, name, parameters, body, close)

    def _parse_parameters(self) -> Tuple[str, ...]:
        names = []
        if not self._check(TokenType.RPAREN):
            names.append(self._expect(TokenType.IDENTIFIER).text)
            while self._check(TokenType.COMMA):
                self._advance_token()
                names.append(self._expect(TokenType.IDENTIFIER).text)
        return tuple(names)

    def _skip_discarded(self) -> None:
        """Consume a statement whose syntax is accepted but which builds no node"""
        keyword = self._advance_token().text

        if keyword == 'return':
            self._parse_expression()
            self._expect_statement_end()
        elif keyword == 'while':
            self._expect(TokenType.LPAREN)
            self._parse_expression()
            self._expect(TokenType.RPAREN)
            self._parse_code_block()
            self._expect_statement_end()
        elif keyword in ('break', 'continue'):
            self._expect_statement_end()
        elif keyword == 'class':
            self._expect(TokenType.IDENTIFIER)
            self._expect(TokenType.LBRACE)
            self._parse_statements()
            self._expect(TokenType.RBRACE)
        elif keyword == 'new':
            self._expect(TokenType.IDENTIFIER)
            self._expect(TokenType.LPAREN)
            self._parse_arguments()
            self._expect(TokenType.RPAREN)
            self._expect_statement_end()
        elif keyword == 'import':
            self._expect(TokenType.IDENTIFIER)
            self._expect_statement_end()

        if self.debug:
            print(f"Discarded '{keyword}' statement")

    # ------------------------------------------------------------------ expressions

    def _parse_expression(self) -> Node:
        return self._parse_assignment()

    def _parse_assignment(self) -> Node:
        target = self._parse_logical()

        if self._check(TokenType.ASSIGN):
            self._advance_token()
            return Assignment(target, self._parse_assignment())

        return target

    def _parse_left_assoc(self, operand: Callable[[], Node], operators: Sequence[TokenType]) -> Node:
        result = operand()

        while self._check(*operators):
            operator = self._advance_token()
            result = BinaryOp(result, operator, operand())

        return result

    def _parse_logical(self) -> Node:
        return self._parse_left_assoc(self._parse_comparison, LOGICAL_OPERATORS)

    def _parse_comparison(self) -> Node:
        return self._parse_left_assoc(self._parse_additive, COMPARISON_OPERATORS)

    def _parse_additive(self) -> Node:
        return self._parse_left_assoc(self._parse_multiplicative, ADDITIVE_OPERATORS)

    def _parse_multiplicative(self) -> Node:
        return self._parse_left_assoc(self._parse_unary, MULTIPLICATIVE_OPERATORS)

    def _parse_unary(self) -> Node:
        if self._check(TokenType.PLUS, TokenType.MINUS):
            operator = self._advance_token()
            return UnaryOp(operator, self._parse_unary())

        return self._parse_postfix()

    def _parse_postfix(self) -> Node:
        result = self._parse_primary()

        while True:
            if self._check(TokenType.LPAREN):
                self._advance_token()
                arguments = self._parse_arguments()
                close = self._expect(TokenType.RPAREN)
                result = Call(result, tuple(arguments), close)
            elif self._check(TokenType.LBRACKET):
                self._advance_token()
                index = self._parse_expression()
                close = self._expect(TokenType.RBRACKET)
                result = Index(result, index, close)
            else:
                break

        return result

    def _parse_arguments(self) -> List[Node]:
        arguments = []

        if not self._check(TokenType.RPAREN):
            arguments.append(self._parse_expression())
            while self._check(TokenType.COMMA):
                self._advance_token()
                arguments.append(self._parse_expression())

        return arguments

    def _parse_primary(self) -> Node:
        token = self.current_token

        if token.type == TokenType.NUMBER:
            self._advance_token()
            return NumberLiteral(token)

        if token.type == TokenType.STRING:
            self._advance_token()
            return StringLiteral(token, LiteralCell(token.text))

        if token.type == TokenType.IDENTIFIER:
            return self._parse_identifier()

        if token.type == TokenType.LPAREN:
            self._advance_token()
            result = self._parse_expression()
            self._expect(TokenType.RPAREN)
            return result

        raise self._unexpected('expression')

    def _parse_identifier(self) -> Node:
        identifier = Identifier(self._advance_token())

        if self._check(TokenType.INCREMENT, TokenType.DECREMENT):
            # x++ stores x + 1 but yields the value x held before
            operator = self._advance_token()
            return Assignment(identifier, UnaryOp(operator, identifier), postfix=True)

        return identifier


# ============================================================================
# FACTORIES
# ============================================================================

def create_parser(source_text: str, source_name: str = "<input>", debug: bool = False) -> Parser:
    """Create a parser over the given source"""
    return Parser(Lexer(source_text, source_name, debug=debug), debug=debug)


def create_debug_parser(source_text: str, source_name: str = "<input>") -> Parser:
    """Create a parser that traces tokens and statements"""
    return create_parser(source_text, source_name, debug=True)


def tokenize(source_text: str, source_name: str = "<input>") -> List[Token]:
    """Lex a whole source, EOF token included"""
    return Lexer(source_text, source_name).tokenize()


def parse_program(source_text: str, source_name: str = "<input>", debug: bool = False) -> List[Node]:
    """Lex and parse a whole source into top-level statements"""
    return create_parser(source_text, source_name, debug).parse()


if __name__ == "__main__":
    test_program = """
    // squares of the first few numbers
    let total = 0;
    for (let i = 0; i < 4; i++) {
        total = total + i * i;
    }
    total
    """
    try:
        for statement in parse_program(test_program, "<example>"):
            print(pretty_print_ast(statement))
    except (LexerError, ParseError) as e:
        print(f"Parse error: {e}")
