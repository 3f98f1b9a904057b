"""
EX Standard Library
Built-in functions dispatched by name before user labels, plus the
standard constants loaded into the global scope
"""

import os
import platform
import struct
import sys
from typing import Any, Callable, Dict, List, Optional

from error_handling import EXRuntimeError
from utilities import expect_array, expect_int, resolve_index, require_args
from values import (
  Array, Bool, Char, Float, Int, Nil, String, UInt,
  NIL, INT_MAX, INT_MIN, UINT_MAX, format_float, from_python, render, type_name
)


VERSION = "0.1.0"


# ============================================================================
# PRINT AND INTROSPECTION
# ============================================================================

def ex_print(values: List[Any]) -> Any:
  """Print every argument value in call order, then a newline"""
  print("".join(render(value) for value in values))
  return NIL


def ex_typeof(src: Any) -> Any:
  return String(type_name(src))


# ============================================================================
# TYPE CASTS
# ============================================================================

def _cast_int(value: Any) -> Any:
  if isinstance(value, Int):
    return value
  if isinstance(value, UInt):
    if value.value > INT_MAX:
      raise EXRuntimeError.custom("Cannot cast UInt to Int: overflow")
    return Int(value.value)
  if isinstance(value, Float):
    return Int(int(value.value))
  if isinstance(value, Bool):
    return Int(1 if value.value else 0)
  if isinstance(value, Char):
    return Int(ord(value.value))
  if isinstance(value, String):
    try:
      number = int(value.value.strip())
    except ValueError:
      raise EXRuntimeError.custom(f"Cannot cast string '{value.value}' to Int")
    if not INT_MIN <= number <= INT_MAX:
      raise EXRuntimeError.custom(f"Cannot cast string '{value.value}' to Int")
    return Int(number)
  if isinstance(value, Nil):
    return Int(0)
  raise EXRuntimeError.custom(f"Cannot cast {type_name(value)} to Int")


def _cast_uint(value: Any) -> Any:
  if isinstance(value, UInt):
    return value
  if isinstance(value, Int):
    if value.value < 0:
      raise EXRuntimeError.custom("Cannot cast negative Int to UInt")
    return UInt(value.value)
  if isinstance(value, Float):
    if value.value < 0:
      raise EXRuntimeError.custom("Cannot cast negative Float to UInt")
    return UInt(int(value.value))
  if isinstance(value, Bool):
    return UInt(1 if value.value else 0)
  if isinstance(value, Char):
    return UInt(ord(value.value))
  if isinstance(value, String):
    try:
      number = int(value.value.strip())
    except ValueError:
      raise EXRuntimeError.custom(f"Cannot cast string '{value.value}' to UInt")
    if not 0 <= number <= UINT_MAX:
      raise EXRuntimeError.custom(f"Cannot cast string '{value.value}' to UInt")
    return UInt(number)
  if isinstance(value, Nil):
    return UInt(0)
  raise EXRuntimeError.custom(f"Cannot cast {type_name(value)} to UInt")


def _cast_float(value: Any) -> Any:
  if isinstance(value, Float):
    return value
  if isinstance(value, (Int, UInt)):
    return Float(float(value.value))
  if isinstance(value, Bool):
    return Float(1.0 if value.value else 0.0)
  if isinstance(value, Char):
    return Float(float(ord(value.value)))
  if isinstance(value, String):
    try:
      return Float(float(value.value.strip()))
    except ValueError:
      raise EXRuntimeError.custom(f"Cannot cast string '{value.value}' to Float")
  if isinstance(value, Nil):
    return Float(0.0)
  raise EXRuntimeError.custom(f"Cannot cast {type_name(value)} to Float")


def _cast_bool(value: Any) -> Any:
  if isinstance(value, Bool):
    return value
  if isinstance(value, Nil):
    return Bool(False)
  if isinstance(value, (Int, UInt, Float)):
    return Bool(value.value != 0)
  if isinstance(value, String):
    return Bool(value.value != "")
  if isinstance(value, Char):
    return Bool(value.value != "\0")
  raise EXRuntimeError.custom(f"Cannot cast {type_name(value)} to Bool")


def _cast_string(value: Any) -> Any:
  if isinstance(value, String):
    return value
  if isinstance(value, (Int, UInt)):
    return String(str(value.value))
  if isinstance(value, Float):
    return String(format_float(value.value))
  if isinstance(value, Bool):
    return String("true" if value.value else "false")
  if isinstance(value, Char):
    return String(value.value)
  if isinstance(value, Nil):
    return String("nil")
  raise EXRuntimeError.custom(f"Cannot cast {type_name(value)} to String")


def _cast_char(value: Any) -> Any:
  if isinstance(value, Char):
    return value
  if isinstance(value, (Int, UInt)):
    if not 0 <= value.value <= 0x10FFFF:
      raise EXRuntimeError.custom("Invalid codepoint for Char")
    return Char(chr(value.value))
  if isinstance(value, String):
    if len(value.value) != 1:
      raise EXRuntimeError.custom("String must contain exactly 1 character to cast to Char")
    return Char(value.value)
  raise EXRuntimeError.custom(f"Cannot cast {type_name(value)} to Char")


CAST_TARGETS: Dict[str, Callable[[Any], Any]] = {
    "INT": _cast_int,
    "INTEGER": _cast_int,
    "UINT": _cast_uint,
    "UINTEGER": _cast_uint,
    "FLOAT": _cast_float,
    "BOOL": _cast_bool,
    "BOOLEAN": _cast_bool,
    "STR": _cast_string,
    "STRING": _cast_string,
    "CHAR": _cast_char,
    "CHARACTER": _cast_char,
    "NIL": lambda value: NIL,
    "NULL": lambda value: NIL,
}


def ex_cast_type(value: Any, target: Any) -> Any:
  """Convert `value` to the type named by the string `target`"""
  if not isinstance(target, String):
    raise EXRuntimeError.custom("Expected target type as String")
  caster = CAST_TARGETS.get(target.value.upper())
  if caster is None:
    raise EXRuntimeError.custom(f"Unknown target type '{target.value}'")
  return caster(value)


# ============================================================================
# ARRAY FUNCTIONS
# ============================================================================

def array_new() -> Any:
  return Array(())


def array_len(src: Any) -> Any:
  items, _ = expect_array(src, "array_len")
  return Int(len(items))


def array_is_empty(src: Any) -> Any:
  items, _ = expect_array(src, "array_is_empty")
  return Bool(not items)


def array_get(src: Any, idx: Any) -> Any:
  items, _ = expect_array(src, "array_get")
  position = resolve_index(expect_int(idx, "array_get", "idx"), len(items), "array_get")
  return items[position]


def array_set(src: Any, idx: Any, value: Any) -> Any:
  items, rebuild = expect_array(src, "array_set")
  position = resolve_index(expect_int(idx, "array_set", "idx"), len(items), "array_set")
  items[position] = value
  return rebuild(items)


def array_push(src: Any, value: Any) -> Any:
  items, rebuild = expect_array(src, "array_push")
  items.append(value)
  return rebuild(items)


def array_pop(src: Any) -> Any:
  """Return the last element"""
  items, _ = expect_array(src, "array_pop")
  if not items:
    raise EXRuntimeError.custom("array_pop on empty array")
  return items[-1]


def array_insert(src: Any, idx: Any, value: Any) -> Any:
  items, rebuild = expect_array(src, "array_insert")
  index = expect_int(idx, "array_insert", "idx")
  position = len(items) + index if index < 0 else index
  if position < 0 or position > len(items):
    raise EXRuntimeError.custom(
        f"array_insert index out of bounds: idx={index}, len={len(items)}")
  items.insert(position, value)
  return rebuild(items)


def array_remove(src: Any, idx: Any) -> Any:
  items, rebuild = expect_array(src, "array_remove")
  position = resolve_index(expect_int(idx, "array_remove", "idx"), len(items), "array_remove")
  del items[position]
  return rebuild(items)


def array_clear(src: Any) -> Any:
  _, rebuild = expect_array(src, "array_clear")
  return rebuild([])


def array_clone(src: Any) -> Any:
  items, rebuild = expect_array(src, "array_clone")
  return rebuild(items)


def array_slice(src: Any, start: Any, end: Any) -> Any:
  """Slice with negative offsets from the end; bounds are clamped, never fail"""
  items, rebuild = expect_array(src, "array_slice")
  length = len(items)
  lo = expect_int(start, "array_slice", "start")
  hi = expect_int(end, "array_slice", "end")
  lo = length + lo if lo < 0 else lo
  hi = length + hi if hi < 0 else hi
  lo = min(max(lo, 0), length)
  hi = min(max(hi, lo), length)
  return rebuild(items[lo:hi])


def array_concat(a: Any, b: Any) -> Any:
  left, rebuild = expect_array(a, "array_concat")
  right, _ = expect_array(b, "array_concat")
  return rebuild(left + right)


def array_reverse(src: Any) -> Any:
  items, rebuild = expect_array(src, "array_reverse")
  return rebuild(items[::-1])


def array_sort(src: Any) -> Any:
  items, rebuild = expect_array(src, "array_sort")
  for kind in (Int, UInt, Float, String):
    if all(isinstance(item, kind) for item in items):
      return rebuild(sorted(items, key=lambda item: item.value))
  raise EXRuntimeError.custom("array_sort supports only arrays of Int/UInt/Float/String")


def array_find(src: Any, value: Any) -> Any:
  items, _ = expect_array(src, "array_find")
  for position, item in enumerate(items):
    if item == value:
      return Int(position)
  return NIL


def array_contains(src: Any, value: Any) -> Any:
  items, _ = expect_array(src, "array_contains")
  return Bool(value in items)


# ============================================================================
# BUILT-IN FUNCTION REGISTRY
# ============================================================================

def make_builtin_function(name: str, func: Callable, params: Optional[List[str]],
                          type_signature: str = "") -> Dict:
  """Create a built-in function entry; params of None means variadic"""
  return {
      'type': 'builtin_function',
      'name': name,
      'func': func,
      'params': params,
      'type_signature': type_signature
  }


BUILTIN_FUNCTIONS: Dict[str, Dict] = {
    # I/O and introspection
    "print": make_builtin_function("print", ex_print, None, "..a -> Nil"),
    "typeof": make_builtin_function("typeof", ex_typeof, ["src"], "a -> String"),
    "cast_type": make_builtin_function("cast_type", ex_cast_type, ["value", "type"], "a -> String -> b"),

    # Arrays
    "array_new": make_builtin_function("array_new", array_new, [], "-> Array"),
    "array_len": make_builtin_function("array_len", array_len, ["src"], "Array -> Int"),
    "array_is_empty": make_builtin_function("array_is_empty", array_is_empty, ["src"], "Array -> Bool"),
    "array_get": make_builtin_function("array_get", array_get, ["src", "idx"], "Array -> Int -> a"),
    "array_set": make_builtin_function("array_set", array_set, ["src", "idx", "value"], "Array -> Int -> a -> Array"),
    "array_push": make_builtin_function("array_push", array_push, ["src", "value"], "Array -> a -> Array"),
    "array_pop": make_builtin_function("array_pop", array_pop, ["src"], "Array -> a"),
    "array_insert": make_builtin_function("array_insert", array_insert, ["src", "idx", "value"], "Array -> Int -> a -> Array"),
    "array_remove": make_builtin_function("array_remove", array_remove, ["src", "idx"], "Array -> Int -> Array"),
    "array_clear": make_builtin_function("array_clear", array_clear, ["src"], "Array -> Array"),
    "array_clone": make_builtin_function("array_clone", array_clone, ["src"], "Array -> Array"),
    "array_slice": make_builtin_function("array_slice", array_slice, ["src", "start", "end"], "Array -> Int -> Int -> Array"),
    "array_concat": make_builtin_function("array_concat", array_concat, ["a", "b"], "Array -> Array -> Array"),
    "array_reverse": make_builtin_function("array_reverse", array_reverse, ["src"], "Array -> Array"),
    "array_sort": make_builtin_function("array_sort", array_sort, ["src"], "Array -> Array"),
    "array_find": make_builtin_function("array_find", array_find, ["src", "value"], "Array -> a -> Int | Nil"),
    "array_contains": make_builtin_function("array_contains", array_contains, ["src", "value"], "Array -> a -> Bool"),
}


def is_builtin(name: str) -> bool:
  return name in BUILTIN_FUNCTIONS


def call_builtin(name: str, args: Dict[str, Any]) -> Any:
  """Invoke a built-in with its named arguments"""
  builtin = BUILTIN_FUNCTIONS[name]
  if builtin['params'] is None:
    return builtin['func'](list(args.values()))
  return builtin['func'](*require_args(name, args, builtin['params']))


def list_builtin_functions() -> List[str]:
  """List all available built-in functions"""
  return list(BUILTIN_FUNCTIONS.keys())


# ============================================================================
# STANDARD VARIABLES
# ============================================================================

def standard_variables() -> Dict[str, Any]:
  """Constants describing the language and the host"""
  constants = {
      "__VERSION__": VERSION,
      "__LANG__": "EX",
      "__OS__": platform.system().lower() or sys.platform,
      "__ARCH__": platform.machine() or "unknown",
      "__FAMILY__": "unix" if os.name == "posix" else "windows",
      "__CPU_BITS__": struct.calcsize("P") * 8,
      "__CPU_CORES__": os.cpu_count() or 1,
      "__MAX_INT__": INT_MAX,
      "__MIN_INT__": INT_MIN,
      "__INT__": "INTEGER",
      "__UINT__": "UINTEGER",
      "__FLOAT__": "FLOAT",
      "__BIGINT__": "BIG_INTEGER",
      "__STRING__": "STRING",
      "__CHAR__": "CHARACTER",
      "__BOOL__": "BOOLEAN",
      "__NIL__": "NIL",
      "__PATH_SEP__": os.sep,
      "__LINE_SEP__": "\n",
  }
  return {name: from_python(value) for name, value in constants.items()}


def define_std_vars(environment) -> None:
  """Define every standard variable as a constant in the current scope"""
  for name, value in standard_variables().items():
    environment.define_constant(name, value)
