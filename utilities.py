"""
Utilities module for the Tally interpreter
Value classification, display formatting, IEEE/int32 arithmetic helpers and argument validation
"""

from typing import Any, Callable, List, Optional
import math

from runtime import Function, RuntimeResult, native_failure


# ==================== TYPE CHECKING UTILITIES ====================

def is_number(value: Any) -> bool:
  """
  Check if value is a language number

  Args:
    value: Runtime value

  Returns:
    True for floats; booleans are never numbers
  """
  return isinstance(value, float)


def type_name(value: Any) -> str:
  """
  Runtime type name of a value, as shown in error messages

  Args:
    value: Runtime value

  Returns:
    One of number, boolean, string, null, array, function

  Examples:
    type_name(1.0) -> "number"
    type_name(None) -> "null"
  """
  if value is None:
    return "null"
  if isinstance(value, bool):
    return "boolean"
  if isinstance(value, float):
    return "number"
  if isinstance(value, str):
    return "string"
  if isinstance(value, list):
    return "array"
  if isinstance(value, Function):
    return "function"
  return type(value).__name__


# ==================== DISPLAY ====================

def format_number(value: float) -> str:
  """
  Render a number the way the language prints it

  Examples:
    format_number(3.0) -> "3"
    format_number(2.5) -> "2.5"
    format_number(float('inf')) -> "inf"
  """
  if math.isfinite(value) and value == math.floor(value) and abs(value) < 1e16:
    return str(int(value))
  return repr(value)


def to_display(value: Any) -> str:
  """
  Convert any runtime value to its printed form

  Args:
    value: Runtime value

  Returns:
    Display string; strings are returned verbatim
  """
  if value is None:
    return "null"
  if isinstance(value, bool):
    return "true" if value else "false"
  if isinstance(value, float):
    return format_number(value)
  if isinstance(value, list):
    return "[" + ", ".join(to_display(item) for item in value) + "]"
  return str(value)


# ==================== NUMERIC UTILITIES ====================

def to_int32(value: float) -> int:
  """
  Truncate a number toward zero and wrap it to a signed 32-bit integer

  Examples:
    to_int32(5.9) -> 5
    to_int32(-5.9) -> -5
    to_int32(2147483648.0) -> -2147483648
  """
  if not math.isfinite(value):
    return 0
  wrapped = int(value) & 0xFFFFFFFF
  return wrapped - 0x100000000 if wrapped >= 0x80000000 else wrapped


def ieee_divide(left: float, right: float) -> float:
  """Floating division yielding inf/nan instead of raising on zero"""
  if right == 0.0:
    if left == 0.0 or math.isnan(left):
      return math.nan
    sign = math.copysign(1.0, left) * math.copysign(1.0, right)
    return math.copysign(math.inf, sign)
  return left / right


def ieee_modulo(left: float, right: float) -> float:
  """Remainder with the sign of the dividend; nan for a zero divisor"""
  if right == 0.0 or math.isinf(left):
    return math.nan
  return math.fmod(left, right)


def bitwise_op(op: Callable[[int, int], int]) -> Callable[[float, float], float]:
  """
  Factory lifting an integer operation to numbers via 32-bit truncation

  Args:
    op: Operation on two Python ints

  Returns:
    Function on two floats whose result is again a wrapped 32-bit value as float
  """
  def operation(left: float, right: float) -> float:
    return float(to_int32(op(to_int32(left), to_int32(right))))

  return operation


def shift_op(op: Callable[[int, int], int]) -> Callable[[float, float], float]:
  """Like bitwise_op, with the shift count masked to its low five bits"""
  def operation(left: float, right: float) -> float:
    return float(to_int32(op(to_int32(left), to_int32(right) & 0x1F)))

  return operation


# ==================== ERROR MESSAGE BUILDERS ====================

def arity_error(func_name: str, expected: str, got: int) -> RuntimeResult:
  """
  Generate arity mismatch failure

  Args:
    func_name: Function name
    expected: Human description of the accepted count, e.g. "exactly 1"
    got: Actual number of arguments

  Returns:
    Failed RuntimeResult with formatted message
  """
  plural = "" if expected.endswith(" 1") else "s"
  return native_failure(f"{func_name}() takes {expected} argument{plural}, got {got}")


def type_mismatch_error(func_name: str, expected: str, actual: Any) -> RuntimeResult:
  """
  Generate type mismatch failure

  Args:
    func_name: Function name
    expected: Expected type description
    actual: Offending runtime value

  Returns:
    Failed RuntimeResult with formatted message
  """
  return native_failure(f"{func_name}() takes only {expected}, got {type_name(actual)}")


def operation_error(op: str, left: Any, right: Any) -> str:
  """Message for an operator applied to an unsupported pair of values"""
  return f"Unsupported operation '{op}' between {type_name(left)} and {type_name(right)}"


# ==================== VALIDATION UTILITIES ====================

def validate_arity(func_name: str, args: List[Any], minimum: int,
                   maximum: Optional[int] = None) -> Optional[RuntimeResult]:
  """
  Check an argument count

  Args:
    func_name: Function name for error messages
    args: Argument values
    minimum: Fewest accepted arguments
    maximum: Most accepted arguments; None means unbounded

  Returns:
    Failed RuntimeResult if the count is wrong, None otherwise
  """
  count = len(args)
  if maximum is None:
    if count < minimum:
      return arity_error(func_name, f"at least {minimum}", count)
    return None
  if minimum <= count <= maximum:
    return None
  if minimum == maximum:
    return arity_error(func_name, f"exactly {minimum}", count)
  return arity_error(func_name, f"{minimum} to {maximum}", count)


def validate_function_args(func_name: str, args: List[Any],
                           expected_types: List[str]) -> Optional[RuntimeResult]:
  """
  Validate function arguments match expected types

  Args:
    func_name: Function name for error messages
    args: List of argument values
    expected_types: Expected type name per position ("any" accepts everything)

  Returns:
    Failed RuntimeResult on the first mismatch, None if all arguments fit

  Examples:
    validate_function_args("pow", [2.0, 3.0], ["number", "number"]) -> None
  """
  failure = validate_arity(func_name, args, len(expected_types), len(expected_types))
  if failure is not None:
    return failure

  for arg, expected in zip(args, expected_types):
    if expected != "any" and type_name(arg) != expected:
      return type_mismatch_error(func_name, f"{expected}s", arg)

  return None
