"""
Utilities module for the EX interpreter
Argument validation and error builders shared by the evaluator and the library
"""

from typing import Any, Callable, Dict, List, Tuple

from error_handling import EXRuntimeError, RuntimeErrorKind
from values import (
  Array, Axis, Bool, Char, Float, Int, String, UInt,
  INT_MIN, INT_MAX, UINT_MAX, format_float, type_name
)


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(operation: str, expected: str, actual: Any) -> EXRuntimeError:
  """
  Generate type mismatch error

  Args:
    operation: Operation or function name
    expected: Expected type description
    actual: Offending runtime value
  """
  return EXRuntimeError(
    RuntimeErrorKind.TYPE_MISMATCH,
    operation=operation,
    expected=expected,
    got=type_name(actual)
  )


def operation_error(op: str, left: Any, right: Any) -> EXRuntimeError:
  """Invalid binary operation between two runtime values"""
  return EXRuntimeError(
    RuntimeErrorKind.INVALID_BINARY_OPERATION,
    left_type=type_name(left),
    operator=op,
    right_type=type_name(right)
  )


# ==================== VALIDATION UTILITIES ====================

def expect_array(value: Any, fname: str) -> Tuple[List[Any], Callable[[Any], Any]]:
  """
  Unwrap an Array or Axis

  Returns:
    The items as a fresh list and the constructor that rebuilds the same tag
  """
  if isinstance(value, Array):
    return list(value.items), lambda items: Array(tuple(items))
  if isinstance(value, Axis):
    return list(value.items), lambda items: Axis(tuple(items))
  raise EXRuntimeError.custom(f"{fname} expects Array, got {type_name(value)}")


def expect_int(value: Any, fname: str, arg: str) -> int:
  if isinstance(value, Int):
    return value.value
  raise type_mismatch_error(fname, f"Int for '{arg}'", value)


def resolve_index(idx: int, length: int, fname: str) -> int:
  """Map a possibly negative index onto 0..length-1 or fail"""
  real = length + idx if idx < 0 else idx
  if real < 0 or real >= length:
    raise EXRuntimeError.custom(f"{fname} index out of bounds: idx={idx}, len={length}")
  return real


def require_args(fname: str, args: Dict[str, Any], names: List[str]) -> List[Any]:
  """Fetch named arguments in order, failing on the first missing one"""
  missing = [name for name in names if name not in args]
  if missing:
    raise EXRuntimeError(
      RuntimeErrorKind.INVALID_FUNCTION_CALL,
      message=f"{fname} missing argument '{missing[0]}'"
    )
  return [args[name] for name in names]


# ==================== NUMERIC UTILITIES ====================

def checked_int(result: int) -> Int:
  if result < INT_MIN or result > INT_MAX:
    raise EXRuntimeError(RuntimeErrorKind.INTEGER_OVERFLOW)
  return Int(result)


def checked_uint(result: int) -> UInt:
  if result < 0 or result > UINT_MAX:
    raise EXRuntimeError(RuntimeErrorKind.INTEGER_OVERFLOW)
  return UInt(result)


def is_number(value: Any) -> bool:
  return isinstance(value, (Int, UInt, Float))


# ==================== DICTIONARY UTILITIES ====================

def dictionary_key(value: Any) -> str:
  """Convert a primitive key value to its dictionary key text"""
  if isinstance(value, (Int, UInt)):
    return str(value.value)
  if isinstance(value, Float):
    return format_float(value.value)
  if isinstance(value, Bool):
    return "true" if value.value else "false"
  if isinstance(value, (String, Char)):
    return value.value
  raise EXRuntimeError.custom(
    f"Dictionary keys must be primitive types, got {type_name(value)}")
