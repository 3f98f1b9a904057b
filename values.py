"""
EX runtime values
One frozen dataclass per variant; values are replaced, never mutated in place
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


INT_MIN = -(2 ** 127)
INT_MAX = 2 ** 127 - 1
UINT_MAX = 2 ** 128 - 1


# ============================================================================
# SCALARS
# ============================================================================

@dataclass(frozen=True)
class Int:
  value: int


@dataclass(frozen=True)
class UInt:
  value: int


@dataclass(frozen=True)
class Float:
  value: float


@dataclass(frozen=True)
class BigInt:
  """Integer literal too large for 128 bits, kept as its digit string"""
  digits: str


@dataclass(frozen=True)
class String:
  value: str


@dataclass(frozen=True)
class Bool:
  value: bool


@dataclass(frozen=True)
class Char:
  value: str


@dataclass(frozen=True)
class Nil:
  pass


NIL = Nil()
TRUE = Bool(True)
FALSE = Bool(False)


# ============================================================================
# AGGREGATES
# ============================================================================

@dataclass(frozen=True)
class Array:
  items: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class Axis:
  """Same shape as Array under a distinct tag"""
  items: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class Dictionary:
  entries: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# CALLABLES AND STRUCTS
# ============================================================================

@dataclass(frozen=True, eq=False)
class Function:
  """Callable label: external params pair positionally with internal names"""
  name: str
  params: Tuple[str, ...]
  internal_names: Tuple[str, ...]
  body: Tuple[Any, ...]
  visible_blocks: Tuple[str, ...] = ()

  def __eq__(self, other):
    return isinstance(other, Function) and other.name == self.name

  def __hash__(self):
    return hash(("Function", self.name))


@dataclass(frozen=True, eq=False)
class ControlFlow:
  name: str
  body: Tuple[Any, ...]

  def __eq__(self, other):
    return isinstance(other, ControlFlow) and other.name == self.name

  def __hash__(self):
    return hash(("ControlFlow", self.name))


@dataclass(frozen=True)
class Method:
  name: str
  params: Tuple[str, ...]
  body: Tuple[Any, ...]


@dataclass(frozen=True, eq=False)
class StructDef:
  name: str
  methods: Dict[str, Method] = field(default_factory=dict)

  def __eq__(self, other):
    return isinstance(other, StructDef) and other.name == self.name

  def __hash__(self):
    return hash(("StructDef", self.name))


@dataclass(frozen=True)
class StructInstance:
  struct_name: str
  fields: Dict[str, Any] = field(default_factory=dict)
  methods: Dict[str, Method] = field(default_factory=dict)

  def with_field(self, name: str, value: Any) -> 'StructInstance':
    """Return a copy with one field inserted or replaced"""
    fields = dict(self.fields)
    fields[name] = value
    return StructInstance(self.struct_name, fields, self.methods)


# ============================================================================
# INTROSPECTION
# ============================================================================

TYPE_NAMES = {
    Int: "Int",
    UInt: "UInt",
    Float: "Float",
    BigInt: "BigInt",
    String: "String",
    Bool: "Bool",
    Char: "Char",
    Nil: "Nil",
    Array: "Array",
    Axis: "Axis",
    Dictionary: "Dictionary",
    Function: "Function",
    ControlFlow: "ControlFlow",
    StructDef: "StructDef",
    StructInstance: "StructInstance",
}


def type_name(value: Any) -> str:
  return TYPE_NAMES.get(type(value), type(value).__name__)


def truthy(value: Any) -> bool:
  """Truthiness used by if/while/&&/||/!"""
  if isinstance(value, Nil):
    return False
  if isinstance(value, Bool):
    return value.value
  if isinstance(value, (Int, UInt)):
    return value.value != 0
  if isinstance(value, Float):
    return value.value != 0.0 and not math.isnan(value.value)
  if isinstance(value, BigInt):
    return value.digits.lstrip("-+0") != ""
  if isinstance(value, String):
    return value.value != ""
  if isinstance(value, (Array, Axis)):
    return len(value.items) > 0
  if isinstance(value, Dictionary):
    return len(value.entries) > 0
  return True


def deep_equals(left: Any, right: Any) -> bool:
  """Structural equality that also compares callable bodies.

  The default == treats Function, ControlFlow and StructDef values as equal
  whenever their names match; this helper does not.
  """
  if type(left) is not type(right):
    return False
  if isinstance(left, Function):
    return (left.name == right.name and left.params == right.params
            and left.internal_names == right.internal_names
            and left.body == right.body
            and left.visible_blocks == right.visible_blocks)
  if isinstance(left, ControlFlow):
    return left.name == right.name and left.body == right.body
  if isinstance(left, StructDef):
    return left.name == right.name and left.methods == right.methods
  if isinstance(left, (Array, Axis)):
    return (len(left.items) == len(right.items)
            and all(deep_equals(a, b) for a, b in zip(left.items, right.items)))
  if isinstance(left, Dictionary):
    return (left.entries.keys() == right.entries.keys()
            and all(deep_equals(v, right.entries[k]) for k, v in left.entries.items()))
  if isinstance(left, StructInstance):
    return (left.struct_name == right.struct_name
            and left.fields.keys() == right.fields.keys()
            and all(deep_equals(v, right.fields[k]) for k, v in left.fields.items())
            and left.methods == right.methods)
  return left == right


# ============================================================================
# RENDERING
# ============================================================================

def format_float(number: float) -> str:
  if math.isnan(number):
    return "NaN"
  if math.isinf(number):
    return "inf" if number > 0 else "-inf"
  if number.is_integer() and abs(number) < 1e16:
    return str(int(number))
  return repr(number)


def render(value: Any, nested: bool = False) -> str:
  """Render a value the way Print shows it"""
  if isinstance(value, Nil):
    return "nil"
  if isinstance(value, Bool):
    return "true" if value.value else "false"
  if isinstance(value, (Int, UInt)):
    return str(value.value)
  if isinstance(value, Float):
    return format_float(value.value)
  if isinstance(value, BigInt):
    return value.digits
  if isinstance(value, String):
    return f'"{value.value}"' if nested else value.value
  if isinstance(value, Char):
    return f"'{value.value}'" if nested else value.value
  if isinstance(value, Array):
    return "[" + ", ".join(render(item, True) for item in value.items) + "]"
  if isinstance(value, Axis):
    return "axis(" + ", ".join(render(item, True) for item in value.items) + ")"
  if isinstance(value, Dictionary):
    inner = ", ".join(f"{k}: {render(v, True)}" for k, v in value.entries.items())
    return "{" + inner + "}"
  if isinstance(value, Function):
    return f"<label {value.name}({', '.join(value.params)})>"
  if isinstance(value, ControlFlow):
    return f"<label @{value.name}>"
  if isinstance(value, StructDef):
    return f"<struct {value.name}>"
  if isinstance(value, StructInstance):
    if not value.fields:
      return f"{value.struct_name} {{}}"
    inner = ", ".join(f"{k}: {render(v, True)}" for k, v in value.fields.items())
    return f"{value.struct_name} {{ {inner} }}"
  return str(value)


def from_python(obj: Any) -> Any:
  """Wrap a plain Python object as a runtime value"""
  if obj is None:
    return NIL
  if isinstance(obj, bool):
    return Bool(obj)
  if isinstance(obj, int):
    if INT_MIN <= obj <= INT_MAX:
      return Int(obj)
    return BigInt(str(obj))
  if isinstance(obj, float):
    return Float(obj)
  if isinstance(obj, str):
    return String(obj)
  if isinstance(obj, (list, tuple)):
    return Array(tuple(from_python(item) for item in obj))
  if isinstance(obj, dict):
    return Dictionary({str(k): from_python(v) for k, v in obj.items()})
  raise TypeError(f"Cannot convert {type(obj).__name__} to a runtime value")
