"""
Built-in library tests
"""

import pytest
from environment import Environment
from error_handling import EXRuntimeError, RuntimeErrorKind
from stdlib import (
  BUILTIN_FUNCTIONS, array_concat, array_contains, array_find, array_get,
  array_insert, array_pop, array_push, array_remove, array_reverse, array_set,
  array_slice, array_sort, call_builtin, define_std_vars, ex_cast_type,
  is_builtin, list_builtin_functions, standard_variables
)
from values import (
  Array, Axis, Bool, Char, Float, Int, String, UInt, NIL, INT_MAX, INT_MIN
)


def ints(*numbers):
  return Array(tuple(Int(n) for n in numbers))


class TestArrayFunctions:

  def test_push_returns_new_array(self):
    original = ints(1)
    assert array_push(original, Int(2)) == ints(1, 2)
    assert original == ints(1)

  def test_get_and_set_accept_negative_indices(self):
    assert array_get(ints(1, 2, 3), Int(-1)) == Int(3)
    assert array_set(ints(1, 2, 3), Int(-3), Int(9)) == ints(9, 2, 3)

  def test_get_out_of_bounds(self):
    with pytest.raises(EXRuntimeError, match="array_get index out of bounds: idx=5, len=1"):
      array_get(ints(1), Int(5))

  def test_pop_returns_last_element(self):
    assert array_pop(ints(4, 5)) == Int(5)
    with pytest.raises(EXRuntimeError, match="array_pop on empty array"):
      array_pop(ints())

  def test_insert_allows_end_position(self):
    assert array_insert(ints(1, 2), Int(2), Int(3)) == ints(1, 2, 3)
    assert array_insert(ints(1, 2), Int(0), Int(0)) == ints(0, 1, 2)
    with pytest.raises(EXRuntimeError, match="array_insert index out of bounds"):
      array_insert(ints(1), Int(3), Int(0))

  def test_remove(self):
    assert array_remove(ints(1, 2, 3), Int(1)) == ints(1, 3)

  def test_slice_clamps(self):
    assert array_slice(ints(1, 2, 3), Int(-2), Int(10)) == ints(2, 3)
    assert array_slice(ints(1, 2, 3), Int(2), Int(1)) == ints()

  def test_concat_and_reverse(self):
    assert array_concat(ints(1), ints(2, 3)) == ints(1, 2, 3)
    assert array_reverse(ints(1, 2, 3)) == ints(3, 2, 1)

  def test_sort_homogeneous_only(self):
    assert array_sort(ints(3, 1, 2)) == ints(1, 2, 3)
    assert array_sort(Array((String("b"), String("a")))) == Array((String("a"), String("b")))
    with pytest.raises(EXRuntimeError, match="array_sort supports only"):
      array_sort(Array((Int(1), String("a"))))

  def test_find_and_contains(self):
    assert array_find(ints(4, 5), Int(5)) == Int(1)
    assert array_find(ints(4, 5), Int(6)) == NIL
    assert array_contains(ints(4, 5), Int(4)) == Bool(True)
    assert array_contains(ints(4, 5), Float(4.0)) == Bool(False)

  def test_axis_tag_is_preserved(self):
    assert array_push(Axis((Int(1),)), Int(2)) == Axis((Int(1), Int(2)))

  def test_non_array_argument(self):
    with pytest.raises(EXRuntimeError, match="array_reverse expects Array, got Int"):
      array_reverse(Int(1))

  def test_non_int_index(self):
    with pytest.raises(EXRuntimeError) as info:
      array_get(ints(1), String("0"))
    assert info.value.kind is RuntimeErrorKind.TYPE_MISMATCH
    assert info.value.message == "Type mismatch in 'array_get': expected Int for 'idx', got String"


class TestCasts:

  @pytest.mark.parametrize("value,target,expected", [
      (String("42"), "int", Int(42)),
      (Float(3.9), "INTEGER", Int(3)),
      (Bool(True), "Int", Int(1)),
      (Char("A"), "int", Int(65)),
      (Int(5), "uint", UInt(5)),
      (Int(2), "float", Float(2.0)),
      (String("2.5"), "FLOAT", Float(2.5)),
      (Int(0), "bool", Bool(False)),
      (String("x"), "boolean", Bool(True)),
      (Float(2.0), "string", String("2")),
      (Bool(False), "str", String("false")),
      (Int(66), "char", Char("B")),
      (String("z"), "character", Char("z")),
      (Int(1), "nil", NIL),
  ])
  def test_cast(self, value, target, expected):
    assert ex_cast_type(value, String(target)) == expected

  def test_unparseable_string(self):
    with pytest.raises(EXRuntimeError, match="Cannot cast string 'abc' to Int"):
      ex_cast_type(String("abc"), String("int"))

  def test_negative_to_uint(self):
    with pytest.raises(EXRuntimeError, match="Cannot cast negative Int to UInt"):
      ex_cast_type(Int(-1), String("uint"))

  def test_unknown_target(self):
    with pytest.raises(EXRuntimeError, match="Unknown target type 'Matrix'"):
      ex_cast_type(Int(1), String("Matrix"))


class TestRegistry:

  def test_dispatch_by_name(self):
    assert is_builtin("array_len")
    assert not is_builtin("my_function")
    assert call_builtin("array_len", {"src": ints(1, 2)}) == Int(2)
    assert call_builtin("typeof", {"src": UInt(1)}) == String("UInt")
    assert call_builtin("cast_type", {"value": Int(7), "type": String("string")}) == String("7")

  def test_missing_argument(self):
    with pytest.raises(EXRuntimeError) as info:
      call_builtin("array_get", {"src": ints(1)})
    assert info.value.kind is RuntimeErrorKind.INVALID_FUNCTION_CALL
    assert "array_get missing argument 'idx'" in info.value.message

  def test_print_builtin(self, capsys):
    assert call_builtin("print", {"a": String("x="), "b": Int(1)}) == NIL
    assert capsys.readouterr().out == "x=1\n"

  def test_registry_listing(self):
    names = list_builtin_functions()
    assert "print" in names and "array_contains" in names
    assert set(names) == set(BUILTIN_FUNCTIONS)


class TestStandardVariables:

  def test_std_vars_are_constants(self):
    env = Environment()
    define_std_vars(env)
    assert env.get("__LANG__") == String("EX")
    assert env.get("__MAX_INT__") == Int(INT_MAX)
    assert env.get("__INT__") == String("INTEGER")
    assert env.lookup("__VERSION__").is_constant
    with pytest.raises(EXRuntimeError, match="Cannot reassign constant variable '__OS__'"):
      env.define("__OS__", String("other"))

  def test_std_vars_are_runtime_values(self):
    variables = standard_variables()
    assert isinstance(variables["__CPU_CORES__"], Int)
    assert variables["__CPU_CORES__"].value >= 1
    assert variables["__MIN_INT__"] == Int(INT_MIN)
    assert variables["__LINE_SEP__"] == String("\n")
