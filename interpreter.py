"""
Tally Interpreter
Tree-walking evaluation of AST nodes against chained scope contexts
Every visit returns a RuntimeResult; runtime failures are returned, never raised
"""

from typing import Any, Callable, Dict, List, Optional, Sequence
import math
import operator

from ast_nodes import (
  Assignment, BinaryOp, Block, Call, For, FunctionDef, Identifier, If, Index,
  Node, NumberLiteral, StringLiteral, UnaryOp
)
from error_handling import TallyRuntimeError
from parsing import create_parser
from runtime import Context, Function, RuntimeResult, ScopeError
from stdlib import install_builtins
from utilities import (
  arity_error,
  bitwise_op,
  ieee_divide,
  ieee_modulo,
  is_number,
  operation_error,
  shift_op,
  to_display,
  type_name,
)


# ============================================================================
# OPERATOR TABLES
# ============================================================================

NUMBER_OPERATIONS: Dict[str, Callable[[float, float], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": ieee_divide,
    "%": ieee_modulo,
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "&": bitwise_op(operator.and_),
    "|": bitwise_op(operator.or_),
    "^": bitwise_op(operator.xor),
    "<<": shift_op(operator.lshift),
    ">>": shift_op(operator.rshift),
}

BOOLEAN_OPERATIONS: Dict[str, Callable[[bool, bool], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "&&": lambda left, right: left and right,
    "||": lambda left, right: left or right,
}

NULL_OPERATIONS: Dict[str, Callable[[None, None], bool]] = {
    "==": lambda left, right: True,
    "!=": lambda left, right: False,
}


def compare_vendors(op: str, left: str, right: str) -> Optional[bool]:
  """The only string ordering the language knows: "AMD" > "Intel" """
  if (left, right) not in (("AMD", "Intel"), ("Intel", "AMD")):
    return None
  if op == ">":
    return left == "AMD"
  return left == "Intel"


STRING_OPERATIONS: Dict[str, Callable[[str, str], Any]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "+": operator.add,
    "<": lambda left, right: compare_vendors("<", left, right),
    ">": lambda left, right: compare_vendors(">", left, right),
}

UNARY_OPERATIONS: Dict[str, Callable[[float], float]] = {
    "+": lambda value: value,
    "-": operator.neg,
    "++": lambda value: value + 1.0,
    "--": lambda value: value - 1.0,
}


def operations_for(left: Any, right: Any) -> Optional[Dict[str, Callable]]:
  """Operator table for a pair of operand types, None if the pair has none"""
  if is_number(left) and is_number(right):
    return NUMBER_OPERATIONS
  if isinstance(left, bool) and isinstance(right, bool):
    return BOOLEAN_OPERATIONS
  if isinstance(left, str) and isinstance(right, str):
    return STRING_OPERATIONS
  if left is None and right is None:
    return NULL_OPERATIONS
  return None


# ============================================================================
# HELPERS
# ============================================================================

def create_root_context(name: str = "<module>") -> Context:
  """Fresh global scope seeded with the built-in constants and functions"""
  return install_builtins(Context(name))


def runtime_error(message: str, node: Node, context: Context) -> RuntimeResult:
  return RuntimeResult.failure(TallyRuntimeError(message, node.start, node.end, context))


def run_statements(statements: Sequence[Node], context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate statements in order; the first error wins, otherwise the last value"""
  last_value = None
  for statement in statements:
    result = eval_node(statement, context, debug)
    if result.is_error:
      return result
    last_value = result.value
  return RuntimeResult.success(last_value)


def check_index(container: Any, index: Any, node: Node, context: Context) -> RuntimeResult:
  """Validate an index into an array or string; success carries the floored position"""
  if not isinstance(container, (list, str)):
    return runtime_error(f"Cannot index into type {type_name(container)}", node, context)
  if not is_number(index):
    return runtime_error(f"Cannot index with type {type_name(index)}", node, context)
  if not math.isfinite(index):
    return runtime_error(f"Index {to_display(index)} is out of range", node, context)

  position = math.floor(index)
  if position < 0 or position >= len(container):
    return runtime_error(f"Index {position} is out of range", node, context)
  return RuntimeResult.success(position)


def assign_name(name: str, value: Any, node: Node, context: Context) -> Optional[RuntimeResult]:
  """Write through the set rule; a failed RuntimeResult if the name is constant"""
  try:
    context.assign(name, value)
  except ScopeError as e:
    return runtime_error(str(e), node, context)
  return None


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_node(node: Node, context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate any AST node against a context"""
  if debug:
    print(f"Evaluating: {type(node).__name__}")

  if isinstance(node, NumberLiteral):
    return eval_number(node, context, debug)
  elif isinstance(node, StringLiteral):
    return eval_string(node, context, debug)
  elif isinstance(node, Identifier):
    return eval_identifier(node, context, debug)
  elif isinstance(node, BinaryOp):
    return eval_binary_op(node, context, debug)
  elif isinstance(node, UnaryOp):
    return eval_unary_op(node, context, debug)
  elif isinstance(node, Assignment):
    return eval_assignment(node, context, debug)
  elif isinstance(node, Call):
    return eval_call(node, context, debug)
  elif isinstance(node, Index):
    return eval_index(node, context, debug)
  elif isinstance(node, Block):
    return eval_block(node, context, debug)
  elif isinstance(node, If):
    return eval_if(node, context, debug)
  elif isinstance(node, For):
    return eval_for(node, context, debug)
  elif isinstance(node, FunctionDef):
    return eval_function_def(node, context, debug)
  else:
    return runtime_error(f"Cannot evaluate node {type(node).__name__}", node, context)


def eval_number(node: NumberLiteral, context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate number literal"""
  try:
    return RuntimeResult.success(float(node.text))
  except ValueError:
    return runtime_error(f"Invalid number: {node.text}", node, context)


def eval_string(node: StringLiteral, context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate string literal"""
  return RuntimeResult.success(node.text)


def eval_identifier(node: Identifier, context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate identifier by looking it up through the scope chain"""
  variable = context.lookup(node.name)
  if variable is None:
    return runtime_error(f"Variable {node.name} is not defined", node, context)
  return RuntimeResult.success(variable.value)


def eval_binary_op(node: BinaryOp, context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate both operands, then dispatch on their runtime types"""
  left = eval_node(node.left, context, debug)
  if left.is_error:
    return left
  right = eval_node(node.right, context, debug)
  if right.is_error:
    return right

  op = node.operator.text
  table = operations_for(left.value, right.value)
  operation = table.get(op) if table is not None else None
  if operation is None:
    return runtime_error(operation_error(op, left.value, right.value), node, context)

  value = operation(left.value, right.value)
  if value is None:
    # only the vendor ordering yields None, for string pairs it does not cover
    return runtime_error(operation_error(op, left.value, right.value), node, context)
  return RuntimeResult.success(value)


def eval_unary_op(node: UnaryOp, context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate prefix sign or increment on a number"""
  operand = eval_node(node.operand, context, debug)
  if operand.is_error:
    return operand

  op = node.operator.text
  if not is_number(operand.value) or op not in UNARY_OPERATIONS:
    return runtime_error(f"Unsupported unary operation '{op}' on {type_name(operand.value)}", node, context)
  return RuntimeResult.success(UNARY_OPERATIONS[op](operand.value))


def eval_assignment(node: Assignment, context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate the right-hand side, then store it into a name or an indexed slot"""
  result = eval_node(node.value, context, debug)
  if result.is_error:
    return result
  value = result.value
  target = node.target

  if isinstance(target, Identifier):
    previous = context.get(target.name)
    failure = assign_name(target.name, value, node, context)
    if failure is not None:
      return failure
    return RuntimeResult.success(previous if node.postfix else value)

  if isinstance(target, Index):
    return assign_index(target, value, context, debug)

  return runtime_error("Invalid assignment target", target, context)


def assign_index(target: Index, value: Any, context: Context, debug: bool = False) -> RuntimeResult:
  """container[index] = value for arrays (in place) and strings (rebuilt)"""
  container = eval_node(target.container, context, debug)
  if container.is_error:
    return container
  index = eval_node(target.index, context, debug)
  if index.is_error:
    return index

  checked = check_index(container.value, index.value, target, context)
  if checked.is_error:
    return checked
  position = checked.value

  if isinstance(container.value, list):
    container.value[position] = value
    return RuntimeResult.success(value)

  text = container.value
  updated = text[:position] + to_display(value) + text[position + 1:]
  if isinstance(target.container, StringLiteral):
    target.container.cell.text = updated
  elif isinstance(target.container, Identifier):
    failure = assign_name(target.container.name, updated, target, context)
    if failure is not None:
      return failure
  else:
    return runtime_error("Cannot assign into a computed string", target, context)
  return RuntimeResult.success(value)


def eval_call(node: Call, context: Context, debug: bool = False) -> RuntimeResult:
  """Evaluate function application"""
  callee = node.callee
  if not isinstance(callee, Identifier):
    return runtime_error("Invalid function name", callee, context)

  variable = context.lookup(callee.name)
  if variable is None:
    return runtime_error(f"Function {callee.name} is not defined", callee, context)
  function = variable.value
  if not isinstance(function, Function):
    return runtime_error(f"Variable {callee.name} is not a function", callee, context)

  args = []
  for argument in node.arguments:
    result = eval_node(argument, context, debug)
    if result.is_error:
      return result
    args.append(result.value)

  if function.is_native:
    result = function.native(args)
  else:
    result = call_function(function, args, node, context, debug)

  if result.is_error and not result.error.is_located:
    return RuntimeResult.failure(result.error.located(node.start, node.end, context))
  return result


def call_function(function: Function, args: List[Any], node: Call, context: Context,
                  debug: bool = False) -> RuntimeResult:
  """Run a source-defined function in a fresh scope under its defining context"""
  if len(args) != len(function.parameters):
    return arity_error(function.name, f"exactly {len(function.parameters)}", len(args))

  call_context = function.closure.child(function.name, node.start)
  call_context.declare_all(function.parameters, args)

  if debug:
    print(f"Calling {function.name}({', '.join(to_display(arg) for arg in args)})")

  return run_statements(function.body, call_context, debug)


def eval_index(node: Index, context: Context, debug: bool = False) -> RuntimeResult:
  """Read one element of an array or one character of a string"""
  container = eval_node(node.container, context, debug)
  if container.is_error:
    return container
  index = eval_node(node.index, context, debug)
  if index.is_error:
    return index

  checked = check_index(container.value, index.value, node, context)
  if checked.is_error:
    return checked
  return RuntimeResult.success(container.value[checked.value])


def eval_block(node: Block, context: Context, debug: bool = False) -> RuntimeResult:
  """Run statements in a child scope"""
  return run_statements(node.statements, context.child("<block>", node.start), debug)


def eval_if(node: If, context: Context, debug: bool = False) -> RuntimeResult:
  """First case whose condition is exactly true runs; otherwise the else body"""
  for condition, body in node.cases:
    result = eval_node(condition, context, debug)
    if result.is_error:
      return result
    if result.value is True:
      return eval_node(body, context, debug) if body is not None else RuntimeResult.success(None)

  if node.else_body is not None:
    return eval_node(node.else_body, context, debug)
  return RuntimeResult.success(None)


def eval_for(node: For, context: Context, debug: bool = False) -> RuntimeResult:
  """C-style loop in its own scope; stops as soon as the condition is not exactly true"""
  loop_context = context.child("<for-loop>", node.start)

  result = eval_node(node.init, loop_context, debug)
  if result.is_error:
    return result

  while True:
    condition = eval_node(node.condition, loop_context, debug)
    if condition.is_error:
      return condition
    if condition.value is not True:
      break

    if node.body is not None:
      result = eval_node(node.body, loop_context, debug)
      if result.is_error:
        return result

    result = eval_node(node.increment, loop_context, debug)
    if result.is_error:
      return result

  return RuntimeResult.success(None)


def eval_function_def(node: FunctionDef, context: Context, debug: bool = False) -> RuntimeResult:
  """Bind a function value closing over the defining context"""
  function = Function(
      name=node.name,
      parameters=node.parameters,
      body=node.body,
      closure=context,
  )
  failure = assign_name(node.name, function, node, context)
  if failure is not None:
    return failure
  return RuntimeResult.success(None)


# ============================================================================
# INTERPRETER
# ============================================================================

class Interpreter:
  """Parses and runs source text against caller-owned root contexts"""

  def __init__(self, debug: bool = False):
    self.debug = debug

  def new_context(self, name: str = "<module>") -> Context:
    return create_root_context(name)

  def run(self, nodes: Sequence[Node], context: Context) -> RuntimeResult:
    return run_statements(nodes, context, self.debug)

  def evaluate(self, source_text: str, source_name: str = "<input>",
               context: Optional[Context] = None) -> RuntimeResult:
    """Lex, parse and run; lexer and parser errors are raised before anything executes"""
    nodes = create_parser(source_text, source_name, self.debug).parse()
    if context is None:
      context = self.new_context()
    return self.run(nodes, context)


def evaluate(source_text: str, source_name: str = "<input>", context: Optional[Context] = None,
             debug: bool = False) -> RuntimeResult:
  """Evaluate source text, in a fresh root context unless one is given"""
  return Interpreter(debug).evaluate(source_text, source_name, context)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(debug: bool = False) -> Interpreter:
  """Factory function returning an interpreter"""
  return Interpreter(debug)


def create_debug_interpreter() -> Interpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
