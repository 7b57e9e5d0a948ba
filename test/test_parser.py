"""
Parser tests for the Tally language
Precedence tiers, statements, desugaring, positions and parse errors
"""

import pytest
from ast_nodes import (
  Assignment, BinaryOp, Block, Call, For, FunctionDef, Identifier, If, Index,
  NumberLiteral, StringLiteral, UnaryOp, ast_to_dict, find_nodes_by_type, pretty_print_ast
)
from error_handling import ParseError
from parsing import TokenType, create_debug_parser, create_parser, parse_program


def parse_one(source):
  nodes = parse_program(source)
  assert len(nodes) == 1
  return nodes[0]


def parse_expr(source):
  return create_parser(source).parse_expression()


class TestPrecedence:
  """Test operator precedence and associativity"""

  def test_multiplicative_binds_tighter(self):
    node = parse_expr("1 + 2 * 3")
    assert isinstance(node, BinaryOp)
    assert node.operator.text == "+"
    assert isinstance(node.right, BinaryOp)
    assert node.right.operator.text == "*"

  def test_left_associative(self):
    """1 - 2 - 3 groups as (1 - 2) - 3"""
    node = parse_expr("1 - 2 - 3")
    assert node.operator.text == "-"
    assert isinstance(node.left, BinaryOp)
    assert isinstance(node.right, NumberLiteral)

  def test_assignment_right_associative(self):
    node = parse_expr("a = b = 3")
    assert isinstance(node, Assignment)
    assert isinstance(node.value, Assignment)
    assert node.value.target.name == "b"

  def test_comparison_below_additive(self):
    assert parse_expr("1 + 2 < 4").operator.text == "<"

  def test_logical_lowest_binary(self):
    assert parse_expr("a < b && c").operator.text == "&&"

  def test_bitwise_and_shift_are_additive(self):
    """&, |, ^, << and >> share the additive tier"""
    node = parse_expr("1 << 2 * 3")
    assert node.operator.text == "<<"
    node = parse_expr("1 & 2 == 2")
    assert node.operator.text == "=="

  def test_tilde_is_binary(self):
    node = parse_expr("1 ~ 2")
    assert isinstance(node, BinaryOp)
    assert node.operator.type == TokenType.BIT_NOT

  def test_parentheses(self):
    node = parse_expr("(1 + 2) * 3")
    assert node.operator.text == "*"
    assert node.left.operator.text == "+"

  def test_unary_binds_tighter_than_multiplication(self):
    node = parse_expr("-x * 2")
    assert node.operator.text == "*"
    assert isinstance(node.left, UnaryOp)

  def test_nested_unary(self):
    node = parse_expr("- -1")
    assert isinstance(node, UnaryOp)
    assert isinstance(node.operand, UnaryOp)


class TestPostfix:
  """Test calls, indexing and increments"""

  def test_call_arguments(self):
    node = parse_expr("f(1, x, \"s\")")
    assert isinstance(node, Call)
    assert node.callee.name == "f"
    assert [type(arg) for arg in node.arguments] == [NumberLiteral, Identifier, StringLiteral]

  def test_empty_call(self):
    assert parse_expr("f()").arguments == ()

  def test_chained_calls(self):
    node = parse_expr("f()()")
    assert isinstance(node, Call)
    assert isinstance(node.callee, Call)

  def test_chained_index(self):
    node = parse_expr("a[0][1]")
    assert isinstance(node, Index)
    assert isinstance(node.container, Index)

  def test_call_then_index(self):
    node = parse_expr("f(1)[0]")
    assert isinstance(node, Index)
    assert isinstance(node.container, Call)

  def test_postfix_increment_desugars(self):
    """x++ becomes a postfix assignment of x + 1"""
    node = parse_expr("x++")
    assert isinstance(node, Assignment)
    assert node.postfix
    assert node.target.name == "x"
    assert isinstance(node.value, UnaryOp)
    assert node.value.operator.type == TokenType.INCREMENT
    assert node.value.operand.name == "x"

  def test_postfix_decrement_span(self):
    node = parse_expr("count--")
    assert node.start.offset == 0
    assert node.end.offset == 7


class TestStatements:
  """Test statement forms"""

  def test_let_is_assignment(self):
    node = parse_one("let x = 5;")
    assert isinstance(node, Assignment)
    assert not node.postfix
    assert node.target.name == "x"

  def test_statements_split_on_semicolons(self):
    assert len(parse_program("1; 2; 3")) == 3

  def test_last_statement_in_block_needs_no_semicolon(self):
    block = parse_one("{ 1; 2 }")
    assert isinstance(block, Block)
    assert len(block.statements) == 2

  def test_empty_block(self):
    assert parse_one("{}").statements == ()

  def test_if_else_if_else(self):
    node = parse_one("if (a) { 1 } else if (b) { 2 } else { 3 }")
    assert isinstance(node, If)
    assert len(node.cases) == 2
    assert [condition.name for condition, _ in node.cases] == ["a", "b"]
    assert isinstance(node.else_body, Block)

  def test_if_with_single_statement_body(self):
    node = parse_one("if (a) b = 1;")
    condition, body = node.cases[0]
    assert isinstance(body, Assignment)
    assert node.else_body is None

  def test_for_with_let(self):
    node = parse_one("for (let i = 0; i < 3; i++) { x = i; }")
    assert isinstance(node, For)
    assert isinstance(node.init, Assignment)
    assert node.condition.operator.text == "<"
    assert node.increment.postfix
    assert isinstance(node.body, Block)

  def test_for_with_expression_init(self):
    node = parse_one("for (i = 0; i < 3; i = i + 1) total = total + i;")
    assert isinstance(node.body, Assignment)

  def test_function_definition(self):
    node = parse_one("func add(a, b) { a + b }")
    assert isinstance(node, FunctionDef)
    assert node.name == "add"
    assert node.parameters == ("a", "b")
    assert len(node.body) == 1

  def test_function_with_single_statement_body(self):
    node = parse_one("func twice(x) x * 2;")
    assert node.parameters == ("x",)
    assert isinstance(node.body[0], BinaryOp)

  def test_function_without_parameters(self):
    assert parse_one("func f() { }").parameters == ()

  def test_discarded_statements(self):
    """Accepted-but-ignored keywords produce no nodes"""
    source = """
    return 1;
    while (x) { y };
    break;
    continue;
    class Point { let x = 1; }
    new Point(1, 2);
    import math;
    5
    """
    nodes = parse_program(source)
    assert len(nodes) == 1
    assert isinstance(nodes[0], NumberLiteral)

  def test_discarded_inside_block(self):
    block = parse_one("{ return 1; 2 }")
    assert len(block.statements) == 1

  def test_empty_program(self):
    assert parse_program("") == []
    assert parse_program("// only a comment") == []


class TestParseErrors:
  """Test fatal parse errors"""

  def test_missing_semicolon(self):
    with pytest.raises(ParseError) as exc_info:
      parse_program("1 2")
    assert exc_info.value.token.text == "2"
    assert exc_info.value.expected == [";"]

  def test_unclosed_paren(self):
    with pytest.raises(ParseError) as exc_info:
      parse_program("(1 + 2")
    assert exc_info.value.expected == [")"]
    assert exc_info.value.token.type == TokenType.EOF

  def test_unclosed_block(self):
    with pytest.raises(ParseError) as exc_info:
      parse_program("{ 1;")
    assert exc_info.value.expected == ["}"]

  def test_missing_operand(self):
    with pytest.raises(ParseError) as exc_info:
      parse_program("a = ;")
    assert "SEMICOLON" in exc_info.value.details

  def test_if_requires_parentheses(self):
    with pytest.raises(ParseError):
      parse_program("if x { 1 }")

  def test_let_requires_name(self):
    with pytest.raises(ParseError):
      parse_program("let 5 = 1;")

  def test_expression_must_span_input(self):
    with pytest.raises(ParseError) as exc_info:
      parse_expr("1 + 2; 3")
    assert exc_info.value.expected == ["end of input"]

  def test_error_position(self):
    with pytest.raises(ParseError) as exc_info:
      parse_program("let x = 1;\nlet y = * 2;")
    start = exc_info.value.start
    assert (start.line, start.column) == (1, 8)


class TestTreeQueries:
  """Test positions, dumps and structural comparison"""

  def test_binary_span(self):
    node = parse_expr("alpha + beta")
    assert node.start.offset == 0
    assert node.end.offset == 12

  def test_if_span_ends_at_last_body(self):
    node = parse_one("if (a) { 1 } else { 2 }")
    assert node.end.offset == 23

  def test_find_nodes_by_type(self):
    node = parse_one("func f(a) { g(a) + h(a[0]) }")
    calls = find_nodes_by_type(node, Call)
    assert [call.callee.name for call in calls] == ["g", "h"]

  def test_pretty_print(self):
    dump = pretty_print_ast(parse_expr("1 + x"))
    assert dump.splitlines() == ["BinaryOp(+)", "  NumberLiteral(1)", "  Identifier(x)"]

  def test_ast_to_dict_positions(self):
    data = ast_to_dict(parse_expr("x"))
    assert data["type"] == "Identifier"
    assert data["start"]["offset"] == 0
    assert data["end"]["offset"] == 1

  def test_comments_and_whitespace_do_not_change_structure(self):
    """Stripping comments and redundant whitespace yields the same tree"""
    verbose = """
    // running total
    let total   =  0 ;   /* start */
    for ( let i = 0 ;  i < 10 ; i++ )   {
        total = total + i * 2 ;  // doubled
    }
    if (total > 50) { print( "big" ) } else { print("small") }
    """
    compact = 'let total=0;for(let i=0;i<10;i++){total=total+i*2;}' \
              'if(total>50){print("big")}else{print("small")}'

    def structure(source):
      return [ast_to_dict(node, include_positions=False) for node in parse_program(source)]

    assert structure(verbose) == structure(compact)

  def test_debug_parser_prints_statements(self, capsys):
    create_debug_parser("1 + 2;").parse()
    out = capsys.readouterr().out
    assert "BinaryOp(+)" in out
