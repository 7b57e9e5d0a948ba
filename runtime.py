"""
Tally runtime data structures
Scope contexts, variables, callables and the result-or-error value every evaluation returns
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, TYPE_CHECKING
from dataclasses import dataclass

from error_handling import TallyRuntimeError

if TYPE_CHECKING:
  from ast_nodes import Node
  from parsing import SourcePosition


# ============================================================================
# RESULTS
# ============================================================================

@dataclass
class RuntimeResult:
  """Outcome of evaluating one node: a value, or an error, never both"""
  value: Any = None
  error: Optional[TallyRuntimeError] = None

  @classmethod
  def success(cls, value: Any) -> 'RuntimeResult':
    return cls(value=value)

  @classmethod
  def failure(cls, error: TallyRuntimeError) -> 'RuntimeResult':
    return cls(error=error)

  @property
  def is_error(self) -> bool:
    return self.error is not None

  def __str__(self) -> str:
    if self.error is not None:
      return str(self.error)
    from utilities import to_display
    return to_display(self.value)


def native_failure(message: str) -> RuntimeResult:
  """Failure raised by host code that has no source position of its own"""
  return RuntimeResult.failure(TallyRuntimeError(message))


# ============================================================================
# CALLABLES
# ============================================================================

NativeCallable = Callable[[List[Any]], RuntimeResult]


@dataclass(eq=False)
class Function:
  """A callable value: either a host closure or a source-defined body"""
  name: str
  native: Optional[NativeCallable] = None
  parameters: Tuple[str, ...] = ()
  body: Tuple['Node', ...] = ()
  closure: Optional['Context'] = None

  @property
  def is_native(self) -> bool:
    return self.native is not None

  def __str__(self) -> str:
    return f"<function {self.name}>"


def make_native(name: str, implementation: NativeCallable) -> Function:
  return Function(name=name or "<anonymous>", native=implementation)


# ============================================================================
# SCOPES
# ============================================================================

class ScopeError(Exception):
  """Invalid write to a binding, e.g. reassigning a constant"""
  pass


@dataclass
class Variable:
  value: Any
  constant: bool = False


class Context:
  """A lexical scope: bindings plus a link to the enclosing scope"""

  def __init__(self, name: str, entry_position: Optional['SourcePosition'] = None,
               parent: Optional['Context'] = None):
    self.name = name
    self.entry_position = entry_position
    self.parent = parent
    self.bindings: Dict[str, Variable] = {}

  def __repr__(self) -> str:
    return f"<Context {self.name} ({len(self.bindings)} bindings)>"

  @property
  def root(self) -> 'Context':
    context = self
    while context.parent is not None:
      context = context.parent
    return context

  def chain(self) -> Iterator['Context']:
    """This context and its ancestors, innermost first"""
    context = self
    while context is not None:
      yield context
      context = context.parent

  def child(self, name: str, entry_position: Optional['SourcePosition'] = None) -> 'Context':
    return Context(name, entry_position, parent=self)

  def find_scope(self, name: str) -> Optional['Context']:
    for context in self.chain():
      if name in context.bindings:
        return context
    return None

  def lookup(self, name: str) -> Optional[Variable]:
    scope = self.find_scope(name)
    return scope.bindings[name] if scope is not None else None

  def get(self, name: str, default: Any = None) -> Any:
    variable = self.lookup(name)
    return variable.value if variable is not None else default

  def __contains__(self, name: str) -> bool:
    return self.find_scope(name) is not None

  def assign(self, name: str, value: Any) -> None:
    """Write through the scope chain; names bound nowhere are created in the root"""
    scope = self.find_scope(name)
    if scope is None:
      self.root.bindings[name] = Variable(value)
      return

    variable = scope.bindings[name]
    if variable.constant:
      raise ScopeError(f"Cannot assign to constant {name}")
    variable.value = value

  def declare(self, name: str, value: Any, constant: bool = False) -> None:
    """Bind directly in this context, shadowing any outer binding"""
    existing = self.bindings.get(name)
    if existing is not None and existing.constant:
      raise ScopeError(f"Cannot assign to constant {name}")
    self.bindings[name] = Variable(value, constant)

  def declare_all(self, names: Sequence[str], values: Sequence[Any]) -> None:
    for name, value in zip(names, values):
      self.declare(name, value)
