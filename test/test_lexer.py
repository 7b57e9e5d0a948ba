"""
Lexer tests for the Tally language
Token kinds, positions, literals, comments and lexical errors
"""

import pytest
from parsing import Lexer, SourcePosition, Token, TokenType, tokenize
from error_handling import LexerError


def kinds(source):
  return [token.type for token in tokenize(source)]


def texts(source):
  return [token.text for token in tokenize(source) if token.type != TokenType.EOF]


class TestPositions:
  """Test position tracking"""

  def test_first_character_is_origin(self):
    """The cursor starts before the text and lands on offset 0"""
    token = tokenize("abc")[0]
    assert (token.start.offset, token.start.line, token.start.column) == (0, 0, 0)

  def test_newline_moves_to_next_line(self):
    """A newline bumps the line and resets the column"""
    tokens = tokenize("a\n  b")
    b = tokens[1]
    assert (b.start.offset, b.start.line, b.start.column) == (4, 1, 2)

  def test_advanced_returns_new_position(self):
    """Positions are values; advancing never changes the original"""
    position = SourcePosition(0, 0, 0, "<test>")
    moved = position.advanced('\n')
    assert (position.line, position.column) == (0, 0)
    assert (moved.offset, moved.line, moved.column) == (1, 1, 0)

  def test_rendered_one_based(self):
    """str() shows 1-based line and column"""
    assert str(SourcePosition(5, 2, 3, "script.tly")) == "script.tly:3:4"

  def test_single_char_token_end(self):
    """Token end defaults to one character past the start"""
    plus = tokenize("+")[0]
    assert plus.end.offset == 1

  def test_multi_char_token_end(self):
    """Multi-character tokens end after their last character"""
    tokens = tokenize("== total")
    assert tokens[0].end.offset == 2
    assert tokens[1].start.offset == 3
    assert tokens[1].end.offset == 8

  def test_emitted_positions_stay_fixed(self):
    """Later lexing does not move earlier tokens"""
    lexer = Lexer("a b c")
    first = lexer.next_token()
    lexer.tokenize()
    assert first.start.offset == 0

  def test_token_create_with_explicit_end(self):
    start = SourcePosition(0, 0, 0, "<test>")
    end = SourcePosition(3, 0, 3, "<test>")
    token = Token.create(TokenType.IDENTIFIER, "abc", start, end)
    assert token.end is end


class TestNumbers:
  """Test numeric literals"""

  def test_integer(self):
    assert texts("42") == ["42"]

  def test_underscores_dropped(self):
    """Underscores group digits and vanish from the token text"""
    assert texts("1_000.5") == ["1000.5"]

  def test_second_dot_ends_number(self):
    """A second decimal point starts a new token instead of failing"""
    assert kinds("1.2.3") == [TokenType.NUMBER, TokenType.DOT, TokenType.NUMBER, TokenType.EOF]
    assert texts("1.2.3") == ["1.2", ".", "3"]

  def test_trailing_dot(self):
    assert texts("7.") == ["7."]


class TestIdentifiers:
  """Test identifiers and keywords"""

  def test_identifier_chars(self):
    assert texts("_foo1 bar_2") == ["_foo1", "bar_2"]

  def test_keywords_are_identifiers(self):
    """Keywords are recognised by the parser, not the lexer"""
    assert kinds("let if") == [TokenType.IDENTIFIER, TokenType.IDENTIFIER, TokenType.EOF]


class TestOperators:
  """Test punctuation and operator tokens"""

  @pytest.mark.parametrize("source,expected", [
      ("==", TokenType.EQ),
      ("!=", TokenType.NEQ),
      (">=", TokenType.GTE),
      ("<=", TokenType.LTE),
      ("&&", TokenType.AND),
      ("||", TokenType.OR),
      ("++", TokenType.INCREMENT),
      ("--", TokenType.DECREMENT),
      ("<<", TokenType.SHL),
      (">>", TokenType.SHR),
  ])
  def test_two_char_operators(self, source, expected):
    assert kinds(source) == [expected, TokenType.EOF]

  @pytest.mark.parametrize("source,expected", [
      ("=", TokenType.ASSIGN),
      ("!", TokenType.NOT),
      (">", TokenType.GT),
      ("<", TokenType.LT),
      ("&", TokenType.BIT_AND),
      ("|", TokenType.BIT_OR),
      ("+", TokenType.PLUS),
      ("-", TokenType.MINUS),
  ])
  def test_single_char_fallback(self, source, expected):
    """Without a matching second character the single-character token is emitted"""
    assert kinds(source + " 1") == [expected, TokenType.NUMBER, TokenType.EOF]

  def test_lookahead_does_not_swallow(self):
    """The character after a lone operator starts the next token"""
    assert kinds("a=b") == [TokenType.IDENTIFIER, TokenType.ASSIGN, TokenType.IDENTIFIER, TokenType.EOF]
    assert kinds("<-1") == [TokenType.LT, TokenType.MINUS, TokenType.NUMBER, TokenType.EOF]

  def test_punctuation(self):
    assert kinds("( ) { } [ ] ; , . : * / % ^ ~") == [
        TokenType.LPAREN, TokenType.RPAREN, TokenType.LBRACE, TokenType.RBRACE,
        TokenType.LBRACKET, TokenType.RBRACKET, TokenType.SEMICOLON, TokenType.COMMA,
        TokenType.DOT, TokenType.COLON, TokenType.STAR, TokenType.SLASH,
        TokenType.PERCENT, TokenType.BIT_XOR, TokenType.BIT_NOT, TokenType.EOF,
    ]

  def test_unknown_character(self):
    with pytest.raises(LexerError) as exc_info:
      tokenize("1 @ 2")
    assert "'@'" in exc_info.value.details
    assert exc_info.value.start.offset == 2


class TestStrings:
  """Test string literals and escapes"""

  def test_plain_string(self):
    tokens = tokenize('"hello world"')
    assert tokens[0].type == TokenType.STRING
    assert tokens[0].text == "hello world"
    assert tokens[0].end.offset == 13

  @pytest.mark.parametrize("escape,expected", [
      ("\\n", "\n"),
      ("\\t", "\t"),
      ("\\\\", "\\"),
      ('\\"', '"'),
      ("\\'", "'"),
      ("\\0", "\0"),
      ("\\x41", "A"),
      ("\\u00e9", "é"),
  ])
  def test_escapes(self, escape, expected):
    assert tokenize('"' + escape + '"')[0].text == expected

  def test_short_hex_escape_keeps_next_char(self):
    """A hex escape stops at the first non-hex character, which stays in the string"""
    assert tokenize('"\\x4g"')[0].text == "\x04g"

  def test_hex_escape_max_digits(self):
    assert tokenize('"\\x414"')[0].text == "A4"

  def test_hex_escape_without_digits(self):
    with pytest.raises(LexerError):
      tokenize('"\\x"')

  def test_unknown_escape(self):
    with pytest.raises(LexerError) as exc_info:
      tokenize('"\\q"')
    assert "'q'" in exc_info.value.details

  def test_unterminated_string(self):
    with pytest.raises(LexerError) as exc_info:
      tokenize('"abc')
    assert "Unterminated string" in exc_info.value.details
    assert exc_info.value.start.offset == 0

  def test_unterminated_after_backslash(self):
    with pytest.raises(LexerError):
      tokenize('"abc\\')


class TestComments:
  """Test comments"""

  def test_line_comment(self):
    assert texts("1 // one\n2") == ["1", "2"]

  def test_line_comment_at_eof(self):
    assert kinds("1 // trailing") == [TokenType.NUMBER, TokenType.EOF]

  def test_block_comment(self):
    assert texts("1 /* a\nb */ 2") == ["1", "2"]

  def test_consecutive_comments(self):
    assert texts("/* a */ // b\n/* c */ x") == ["x"]

  def test_unterminated_block_comment(self):
    with pytest.raises(LexerError) as exc_info:
      tokenize("1 /* never closed")
    assert "block comment" in exc_info.value.details

  def test_slash_is_division(self):
    assert kinds("6 / 3") == [TokenType.NUMBER, TokenType.SLASH, TokenType.NUMBER, TokenType.EOF]


class TestLexerProtocol:
  """Test the pull interface"""

  def test_eof_repeats(self):
    """Once input is exhausted next_token keeps returning EOF"""
    lexer = Lexer("x")
    lexer.next_token()
    assert lexer.next_token().type == TokenType.EOF
    assert lexer.next_token().type == TokenType.EOF

  def test_empty_source(self):
    assert kinds("   \n\t ") == [TokenType.EOF]

  def test_iteration_stops_after_eof(self):
    assert [token.text for token in Lexer("a b")] == ["a", "b", ""]

  def test_debug_prints_tokens(self, capsys):
    Lexer("x = 1", debug=True).tokenize()
    out = capsys.readouterr().out
    assert "Token(IDENTIFIER, 'x')" in out
    assert "Token(EOF, '')" in out

  def test_source_name_recorded(self):
    assert tokenize("x", "script.tly")[0].start.source_name == "script.tly"
