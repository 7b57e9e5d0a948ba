"""
Tally Standard Library
Built-in constants and native functions seeded into every root context
"""

from typing import Any, Callable, Dict, List
import math
import random
import sys
import time

from runtime import Context, Function, RuntimeResult, make_native, native_failure
from utilities import (
  is_number,
  to_display,
  ieee_divide,
  type_mismatch_error,
  validate_arity,
  validate_function_args,
)


# ============================================================================
# CONSTANTS
# ============================================================================

BUILTIN_CONSTANTS: Dict[str, Any] = {
    "pi": math.pi,
    "e": math.e,
    "null": None,
    "true": True,
    "false": False,
}


# ============================================================================
# NUMERIC HELPERS
# ============================================================================

def safe_math(func: Callable[[float], float]) -> Callable[[float], float]:
  """Wrap a math function so domain errors give nan and overflow gives inf"""
  def wrapped(value: float) -> float:
    try:
      return func(value)
    except ValueError:
      return math.nan
    except OverflowError:
      return math.copysign(math.inf, value) if func is math.sinh else math.inf

  return wrapped


def safe_pow(base: float, exponent: float) -> float:
  """math.pow without exceptions"""
  try:
    return math.pow(base, exponent)
  except ValueError:
    if base == 0.0 and exponent < 0:
      return math.inf
    return math.nan
  except OverflowError:
    odd = exponent == math.floor(exponent) and math.fmod(exponent, 2.0) != 0.0
    return -math.inf if base < 0 and odd else math.inf


def natural_log(value: float) -> float:
  if value == 0.0:
    return -math.inf
  if value < 0 or math.isnan(value):
    return math.nan
  return math.log(value)


def keep_non_finite(func: Callable[[float], int]) -> Callable[[float], float]:
  """Integer-producing rounding lifted to floats; inf and nan pass through"""
  def wrapped(value: float) -> float:
    if not math.isfinite(value):
      return value
    return float(func(value))

  return wrapped


# ============================================================================
# IO FUNCTIONS
# ============================================================================

def tally_print(args: List[Any]) -> RuntimeResult:
  """Write the display form of every argument, without a trailing newline"""
  print(''.join(to_display(arg) for arg in args), end='', flush=True)
  return RuntimeResult.success(None)


def format_arguments(func_name: str, args: List[Any]) -> RuntimeResult:
  """Apply str.format to the display forms of args[1:]"""
  failure = validate_arity(func_name, args, 1)
  if failure is not None:
    return failure

  template = args[0]
  if not isinstance(template, str):
    return native_failure(f"{func_name}() format string was not a string")

  try:
    return RuntimeResult.success(template.format(*[to_display(arg) for arg in args[1:]]))
  except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
    return native_failure(f"{func_name}() invalid format string: {e}")


def tally_printf(args: List[Any]) -> RuntimeResult:
  result = format_arguments("printf", args)
  if result.is_error:
    return result
  print(result.value, end='', flush=True)
  return RuntimeResult.success(None)


def tally_sprintf(args: List[Any]) -> RuntimeResult:
  return format_arguments("sprintf", args)


SCANF_CONVERSIONS: Dict[str, Callable[[str], Any]] = {
    "%d": lambda text: float(int(text)),
    "%f": float,
    "%s": str,
}


def tally_scanf(args: List[Any]) -> RuntimeResult:
  """Read one line from stdin and convert it according to the format"""
  failure = validate_function_args("scanf", args, ["string"])
  if failure is not None:
    return failure

  convert = SCANF_CONVERSIONS.get(args[0])
  if convert is None:
    return native_failure("scanf() format was not a valid format")

  try:
    text = input()
  except EOFError:
    return native_failure("scanf() failed to read input")

  try:
    return RuntimeResult.success(convert(text.strip() if args[0] != "%s" else text))
  except ValueError:
    return native_failure("scanf() failed to parse input")


def tally_clear(args: List[Any]) -> RuntimeResult:
  failure = validate_arity("clear", args, 0, 0)
  if failure is not None:
    return failure
  print("\033[2J\033[H", end='', flush=True)
  return RuntimeResult.success(None)


def tally_sleep(args: List[Any]) -> RuntimeResult:
  """Pause for the given number of milliseconds"""
  failure = validate_function_args("sleep", args, ["number"])
  if failure is not None:
    return failure
  milliseconds = args[0]
  if math.isfinite(milliseconds) and milliseconds > 0:
    time.sleep(milliseconds / 1000.0)
  return RuntimeResult.success(None)


# ============================================================================
# MATH FUNCTIONS
# ============================================================================

def unary_math(name: str, func: Callable[[float], float]) -> Callable[[List[Any]], RuntimeResult]:
  """Factory for one-number built-ins"""
  def builtin(args: List[Any]) -> RuntimeResult:
    failure = validate_function_args(name, args, ["number"])
    if failure is not None:
      return failure
    return RuntimeResult.success(float(func(args[0])))

  return builtin


def numbers_only(func_name: str, args: List[Any]) -> RuntimeResult:
  """Failure for the first non-number argument, or a success carrying None"""
  for arg in args:
    if not is_number(arg):
      return type_mismatch_error(func_name, "numbers", arg)
  return RuntimeResult.success(None)


def tally_sqrt(args: List[Any]) -> RuntimeResult:
  """sqrt(x) or sqrt(x, n) for the n-th root"""
  failure = validate_arity("sqrt", args, 1, 2)
  if failure is None:
    failure = numbers_only("sqrt", args)
  if failure.is_error:
    return failure

  if len(args) == 1:
    return RuntimeResult.success(safe_math(math.sqrt)(args[0]))
  return RuntimeResult.success(safe_pow(args[0], ieee_divide(1.0, args[1])))


def tally_pow(args: List[Any]) -> RuntimeResult:
  failure = validate_function_args("pow", args, ["number", "number"])
  if failure is not None:
    return failure
  return RuntimeResult.success(safe_pow(args[0], args[1]))


def extremum(name: str, pick: Callable[..., float]) -> Callable[[List[Any]], RuntimeResult]:
  """Factory for min/max over two or more numbers"""
  def builtin(args: List[Any]) -> RuntimeResult:
    failure = validate_arity(name, args, 2)
    if failure is None:
      failure = numbers_only(name, args)
    if failure.is_error:
      return failure
    return RuntimeResult.success(pick(args))

  return builtin


def tally_clamp(args: List[Any]) -> RuntimeResult:
  """clamp(value, min, max)"""
  failure = validate_function_args("clamp", args, ["number", "number", "number"])
  if failure is not None:
    return failure

  value, low, high = args
  if value < low:
    return RuntimeResult.success(low)
  if value > high:
    return RuntimeResult.success(high)
  return RuntimeResult.success(value)


def tally_random(args: List[Any]) -> RuntimeResult:
  """Uniform number in [min, max)"""
  failure = validate_function_args("random", args, ["number", "number"])
  if failure is not None:
    return failure
  low, high = args
  return RuntimeResult.success(random.random() * (high - low) + low)


def tally_log(args: List[Any]) -> RuntimeResult:
  """log(value, base)"""
  failure = validate_function_args("log", args, ["number", "number"])
  if failure is not None:
    return failure

  value, base = args
  if base == 1.0 or base < 0 or math.isnan(base):
    return RuntimeResult.success(math.nan)
  return RuntimeResult.success(ieee_divide(natural_log(value), natural_log(base)))


def tally_log10(args: List[Any]) -> RuntimeResult:
  failure = validate_function_args("log10", args, ["number"])
  if failure is not None:
    return failure
  value = args[0]
  return RuntimeResult.success(math.log10(value) if value > 0 else natural_log(value))


def tally_log2(args: List[Any]) -> RuntimeResult:
  failure = validate_function_args("log2", args, ["number"])
  if failure is not None:
    return failure
  value = args[0]
  return RuntimeResult.success(math.log2(value) if value > 0 else natural_log(value))


# ============================================================================
# STRING AND ARRAY FUNCTIONS
# ============================================================================

def tally_len(args: List[Any]) -> RuntimeResult:
  """Length of a string or an array"""
  failure = validate_arity("len", args, 1, 1)
  if failure is not None:
    return failure

  value = args[0]
  if not isinstance(value, (str, list)):
    return type_mismatch_error("len", "strings and arrays", value)
  return RuntimeResult.success(float(len(value)))


def tally_substr(args: List[Any]) -> RuntimeResult:
  """substr(string, start, length)"""
  failure = validate_function_args("substr", args, ["string", "number", "number"])
  if failure is not None:
    return failure

  text, start, length = args
  if not (math.isfinite(start) and math.isfinite(length)):
    return native_failure("substr() start and length must be finite")

  start, length = int(start), int(length)
  if start < 0 or length < 0 or start + length > len(text):
    return native_failure(f"substr() range {start}..{start + length} is out of range for length {len(text)}")
  return RuntimeResult.success(text[start:start + length])


def tally_replace(args: List[Any]) -> RuntimeResult:
  """replace(string, old, new)"""
  failure = validate_function_args("replace", args, ["string", "string", "string"])
  if failure is not None:
    return failure

  text, old, new = args
  if not old:
    return native_failure("replace() old value cannot be empty")
  return RuntimeResult.success(text.replace(old, new))


def tally_arr(args: List[Any]) -> RuntimeResult:
  """arr(length) of nulls, or arr(length, fill)"""
  failure = validate_arity("arr", args, 1, 2)
  if failure is not None:
    return failure

  length = args[0]
  if not is_number(length):
    return type_mismatch_error("arr", "a number as length", length)
  if not math.isfinite(length) or length < 0:
    return native_failure(f"arr() length must be a non-negative number, got {to_display(length)}")

  if length > sys.maxsize:
    return native_failure(f"arr() length is too large, got {to_display(length)}")

  fill = args[1] if len(args) == 2 else None
  try:
    return RuntimeResult.success([fill] * int(length))
  except MemoryError:
    return native_failure(f"arr() length is too large, got {to_display(length)}")


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

BUILTIN_FUNCTIONS: Dict[str, Function] = {
    # I/O functions
    "print": make_native("print", tally_print),
    "printf": make_native("printf", tally_printf),
    "sprintf": make_native("sprintf", tally_sprintf),
    "scanf": make_native("scanf", tally_scanf),
    "clear": make_native("clear", tally_clear),
    "sleep": make_native("sleep", tally_sleep),

    # Trigonometric and hyperbolic functions
    "sin": make_native("sin", unary_math("sin", safe_math(math.sin))),
    "cos": make_native("cos", unary_math("cos", safe_math(math.cos))),
    "tan": make_native("tan", unary_math("tan", safe_math(math.tan))),
    "asin": make_native("asin", unary_math("asin", safe_math(math.asin))),
    "acos": make_native("acos", unary_math("acos", safe_math(math.acos))),
    "atan": make_native("atan", unary_math("atan", safe_math(math.atan))),
    "sinh": make_native("sinh", unary_math("sinh", safe_math(math.sinh))),
    "cosh": make_native("cosh", unary_math("cosh", safe_math(math.cosh))),
    "tanh": make_native("tanh", unary_math("tanh", safe_math(math.tanh))),

    # Arithmetic functions
    "sqrt": make_native("sqrt", tally_sqrt),
    "pow": make_native("pow", tally_pow),
    "abs": make_native("abs", unary_math("abs", abs)),
    "floor": make_native("floor", unary_math("floor", keep_non_finite(math.floor))),
    "ceil": make_native("ceil", unary_math("ceil", keep_non_finite(math.ceil))),
    "round": make_native("round", unary_math("round", keep_non_finite(round))),
    "min": make_native("min", extremum("min", min)),
    "max": make_native("max", extremum("max", max)),
    "clamp": make_native("clamp", tally_clamp),
    "random": make_native("random", tally_random),

    # Logarithms
    "log": make_native("log", tally_log),
    "log10": make_native("log10", tally_log10),
    "log2": make_native("log2", tally_log2),
    "ln": make_native("ln", unary_math("ln", natural_log)),

    # Strings and arrays
    "len": make_native("len", tally_len),
    "substr": make_native("substr", tally_substr),
    "replace": make_native("replace", tally_replace),
    "arr": make_native("arr", tally_arr),
}


def install_builtins(context: Context) -> Context:
  """Bind every constant and built-in function in a context, all as constants"""
  for name, value in BUILTIN_CONSTANTS.items():
    context.declare(name, value, constant=True)
  for name, function in BUILTIN_FUNCTIONS.items():
    context.declare(name, function, constant=True)
  return context


def list_builtin_functions() -> List[str]:
  """List all available built-in functions"""
  return list(BUILTIN_FUNCTIONS.keys())


def list_builtin_names() -> List[str]:
  """Constants and functions together, for completion"""
  return list(BUILTIN_CONSTANTS.keys()) + list_builtin_functions()


if __name__ == "__main__":
  print("Tally Standard Library")
  print("=" * 30)
  print(f"Constants: {', '.join(BUILTIN_CONSTANTS)}")
  print(f"Available functions: {len(BUILTIN_FUNCTIONS)}")
  for name in BUILTIN_FUNCTIONS:
    print(f"  {name}")
