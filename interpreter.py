"""
EX Interpreter
Tree-walking executor over the parsed AST. One Interpreter owns the binding
store and the visibility registry for the life of a session; batches of
statements fed to it share globals and visible blocks.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

import ast_nodes as nodes
from ast_nodes import node_name
from environment import Environment
from error_handling import EXRuntimeError, RuntimeErrorKind
from stdlib import call_builtin, is_builtin
from utilities import (
  checked_int,
  checked_uint,
  dictionary_key,
  is_number,
  operation_error
)
from values import (
  Array, Axis, BigInt, Bool, Char, ControlFlow, Dictionary, Float, Function,
  Int, Method, String, StructDef, StructInstance, UInt,
  NIL, TRUE, render, truthy, type_name
)
from visibility import VisibilityRegistry


# ============================================================================
# OPERATORS
# ============================================================================

def add_values(left: Any, right: Any) -> Any:
  """+ on numbers, and concatenation on strings and chars"""
  if isinstance(left, Int) and isinstance(right, Int):
    return checked_int(left.value + right.value)
  if isinstance(left, UInt) and isinstance(right, UInt):
    return checked_uint(left.value + right.value)
  if is_number(left) and is_number(right):
    return Float(float(left.value) + float(right.value))
  if isinstance(left, (String, Char)) and isinstance(right, (String, Char)):
    if isinstance(left, Char) and isinstance(right, Char):
      raise operation_error("+", left, right)
    return String(left.value + right.value)
  raise operation_error("+", left, right)


def _truncated_mod(a: int, b: int) -> int:
  remainder = abs(a) % abs(b)
  return -remainder if a < 0 else remainder


def arithmetic(op: str, left: Any, right: Any) -> Any:
  """- * / % on numeric operands"""
  if not (is_number(left) and is_number(right)):
    raise operation_error(op, left, right)

  if op in ("/", "%") and right.value == 0:
    raise EXRuntimeError(RuntimeErrorKind.DIVISION_BY_ZERO)

  if op == "/":
    return Float(float(left.value) / float(right.value))

  same_int = isinstance(left, Int) and isinstance(right, Int)
  same_uint = isinstance(left, UInt) and isinstance(right, UInt)
  if same_int or same_uint:
    checked = checked_int if same_int else checked_uint
    if op == "-":
      return checked(left.value - right.value)
    if op == "*":
      return checked(left.value * right.value)
    return checked(_truncated_mod(left.value, right.value))

  a, b = float(left.value), float(right.value)
  if op == "-":
    return Float(a - b)
  if op == "*":
    return Float(a * b)
  return Float(math.fmod(a, b))


def compare(op: str, left: Any, right: Any) -> Any:
  """Ordering comparisons are defined on numbers only"""
  if not (is_number(left) and is_number(right)):
    raise operation_error(op, left, right)
  a, b = left.value, right.value
  if op == "<":
    return Bool(a < b)
  if op == "<=":
    return Bool(a <= b)
  if op == ">":
    return Bool(a > b)
  return Bool(a >= b)


def negate(value: Any) -> Any:
  if isinstance(value, Int):
    return checked_int(-value.value)
  if isinstance(value, Float):
    return Float(-value.value)
  if isinstance(value, BigInt):
    digits = value.digits
    return BigInt(digits[1:] if digits.startswith("-") else "-" + digits)
  raise EXRuntimeError(RuntimeErrorKind.INVALID_UNARY_OPERATION,
                       operator="-", operand_type=type_name(value))


# ============================================================================
# INTERPRETER
# ============================================================================

class Interpreter:
  """Executes statement batches against persistent program state"""

  def __init__(self, debug: bool = False):
    self.debug = debug
    self.environment = Environment(debug)
    self.registry = VisibilityRegistry()
    # Visible blocks the innermost active call may read; None outside calls
    self.permitted_blocks: Optional[List[str]] = None

  def interpret(self, statements: List[Any]) -> None:
    """Run a batch; the first failure propagates and earlier effects stay"""
    for stmt in statements:
      self.execute(stmt)

  def execute_block(self, statements: List[Any]) -> None:
    for stmt in statements:
      self.execute(stmt)

  # ==========================================================================
  # STATEMENTS
  # ==========================================================================

  def execute(self, stmt: Any) -> None:
    if self.debug:
      print(f"Executing: {node_name(stmt)}")
    try:
      self._execute(stmt)
    except EXRuntimeError as e:
      span = getattr(stmt, 'span', None)
      if span is not None:
        e.with_location(span.start_line, span.start_col)
        if span.text:
          e.with_context(span.text.strip())
      raise

  def _execute(self, stmt: Any) -> None:
    env = self.environment

    if isinstance(stmt, nodes.Expression):
      self.evaluate(stmt.expression)
    elif isinstance(stmt, nodes.SmartLock):
      env.define_smart_lock(stmt.variable, env.get(stmt.variable))
    elif isinstance(stmt, nodes.SmartUnlock):
      env.define_smart_unlock(stmt.variable, env.get(stmt.variable))
    elif isinstance(stmt, nodes.SmartKill):
      env.delete_variable(stmt.variable)
    elif isinstance(stmt, nodes.SmartRevive):
      env.define(stmt.variable, NIL)
    elif isinstance(stmt, nodes.SmartConst):
      env.define_constant(stmt.variable, env.get(stmt.variable))
    elif isinstance(stmt, nodes.If):
      self._execute_if(stmt)
    elif isinstance(stmt, nodes.Label):
      self._execute_label(stmt)
    elif isinstance(stmt, nodes.Jump):
      self._execute_jump(stmt)
    elif isinstance(stmt, nodes.Pass):
      pass
    elif isinstance(stmt, nodes.For):
      self._execute_for(stmt)
    elif isinstance(stmt, nodes.While):
      while truthy(self.evaluate(stmt.condition)):
        with env.scope():
          self.execute_block(stmt.body)
    elif isinstance(stmt, nodes.DoWhile):
      while True:
        with env.scope():
          self.execute_block(stmt.body)
        if not truthy(self.evaluate(stmt.condition)):
          break
    elif isinstance(stmt, nodes.Visible):
      self.registry.declare(stmt.name, stmt.definitions)
    elif isinstance(stmt, nodes.StructDef):
      methods = {
          m.name: Method(m.name, tuple(m.params), tuple(m.body))
          for m in stmt.methods
      }
      env.define(stmt.name, StructDef(stmt.name, methods))
    else:
      raise EXRuntimeError(RuntimeErrorKind.UNSUPPORTED_STATEMENT, node=node_name(stmt))

  def _execute_if(self, stmt: nodes.If) -> None:
    if truthy(self.evaluate(stmt.condition)):
      self.execute_block(stmt.then_branch)
      return
    for condition, body in stmt.elif_branches:
      if truthy(self.evaluate(condition)):
        self.execute_block(body)
        return
    if stmt.else_branch is not None:
      self.execute_block(stmt.else_branch)

  def _execute_label(self, stmt: nodes.Label) -> None:
    for decl in stmt.labels:
      if decl.callable:
        value = Function(
            decl.name,
            tuple(decl.params),
            tuple(decl.internal_names),
            tuple(decl.body),
            tuple(decl.visible_blocks)
        )
      else:
        value = ControlFlow(decl.name, tuple(decl.body))
      self.environment.define(decl.name, value)

  def _execute_jump(self, stmt: nodes.Jump) -> None:
    target = self.environment.get(stmt.target)
    if not isinstance(target, ControlFlow):
      raise EXRuntimeError.custom(
          f"'{stmt.target}' is not a valid jump target (must be a control flow label)")
    if self.debug:
      print(f"  jump -> @{target.name}")
    with self.environment.scope():
      self.execute_block(target.body)

  def _execute_for(self, stmt: nodes.For) -> None:
    iterable = self.evaluate(stmt.iterable)
    if not isinstance(iterable, Array):
      raise EXRuntimeError.custom(
          f"For-loop expects an Array iterable, got {type_name(iterable)}")
    with self.environment.scope():
      for item in iterable.items:
        with self.environment.scope():
          self.environment.define_local(stmt.iterator, item)
          self.execute_block(stmt.body)

  # ==========================================================================
  # EXPRESSIONS
  # ==========================================================================

  def evaluate(self, expr: Any) -> Any:
    if self.debug:
      print(f"Evaluating: {node_name(expr)}")

    if isinstance(expr, nodes.Literal):
      return expr.value
    elif isinstance(expr, nodes.Grouping):
      return self.evaluate(expr.expression)
    elif isinstance(expr, nodes.Variable):
      return self._lookup_variable(expr.name)
    elif isinstance(expr, nodes.Binary):
      return self._evaluate_binary(expr)
    elif isinstance(expr, nodes.Unary):
      right = self.evaluate(expr.right)
      if expr.operator == "-":
        return negate(right)
      if expr.operator == "!":
        return Bool(not truthy(right))
      raise EXRuntimeError(RuntimeErrorKind.INVALID_UNARY_OPERATION,
                           operator=expr.operator, operand_type=type_name(right))
    elif isinstance(expr, nodes.AllocateVariable):
      self.environment.define(expr.name, self.evaluate(expr.value))
      return NIL
    elif isinstance(expr, nodes.IndexAssign):
      return self._evaluate_index_assign(expr)
    elif isinstance(expr, nodes.Print):
      print(render(self.evaluate(expr.expression)))
      return NIL
    elif isinstance(expr, nodes.Array):
      return Array(tuple(self.evaluate(e) for e in expr.elements))
    elif isinstance(expr, nodes.Axis):
      return Axis(tuple(self.evaluate(e) for e in expr.elements))
    elif isinstance(expr, nodes.Dictionary):
      entries = {}
      for key_expr, value_expr in expr.pairs:
        key = dictionary_key(self.evaluate(key_expr))
        entries[key] = self.evaluate(value_expr)
      return Dictionary(entries)
    elif isinstance(expr, nodes.Iterable):
      return Array(tuple(Int(v) for v in expr.values))
    elif isinstance(expr, nodes.Access):
      current = self.evaluate(expr.root)
      for accessor in expr.accessors:
        current = self._index(current, self.evaluate(accessor))
      return current
    elif isinstance(expr, nodes.MacroCall):
      for item in expr.expressions:
        self.evaluate(item)
      self.execute_block(expr.body)
      return TRUE
    elif isinstance(expr, nodes.FunctionCall):
      return self._evaluate_call(expr)
    elif isinstance(expr, nodes.StructInstantiation):
      return self._instantiate(expr)
    elif isinstance(expr, nodes.MemberAccess):
      return self._member_access(expr)
    elif isinstance(expr, nodes.MemberAssign):
      return self._member_assign(expr)
    elif isinstance(expr, nodes.MethodCall):
      return self._method_call(expr)
    raise EXRuntimeError(RuntimeErrorKind.UNSUPPORTED_EXPRESSION, node=node_name(expr))

  def _lookup_variable(self, name: str) -> Any:
    binding = self.environment.lookup(name)
    if binding is not None:
      return binding.value
    if self.permitted_blocks is not None:
      found, value = self.registry.lookup(self.permitted_blocks, name)
      if found:
        return value
    raise EXRuntimeError(RuntimeErrorKind.UNDEFINED_VARIABLE, name=name)

  def _evaluate_binary(self, expr: nodes.Binary) -> Any:
    # Both operands are always evaluated, including for && and ||
    left = self.evaluate(expr.left)
    right = self.evaluate(expr.right)
    op = expr.operator

    if op == "+":
      return add_values(left, right)
    if op in ("-", "*", "/", "%"):
      return arithmetic(op, left, right)
    if op == "==":
      return Bool(left == right)
    if op == "!=":
      return Bool(left != right)
    if op in ("<", "<=", ">", ">="):
      return compare(op, left, right)
    if op == "&&":
      return right if truthy(left) else left
    if op == "||":
      return left if truthy(left) else right
    raise operation_error(op, left, right)

  # ==========================================================================
  # INDEXING
  # ==========================================================================

  def _index(self, container: Any, key: Any) -> Any:
    if isinstance(container, (Array, Axis)):
      position = self._resolve_position(container.items, key)
      return container.items[position]
    if isinstance(container, Dictionary):
      text = dictionary_key(key)
      if text not in container.entries:
        raise EXRuntimeError.custom(f"Key '{text}' not found in dictionary")
      return container.entries[text]
    if isinstance(container, String):
      position = self._resolve_position(container.value, key)
      return Char(container.value[position])
    raise EXRuntimeError.custom(f"Cannot access member on type '{type_name(container)}'")

  @staticmethod
  def _resolve_position(items, key: Any) -> int:
    if not isinstance(key, Int):
      raise EXRuntimeError.custom(f"Array index must be integer, got {type_name(key)}")
    length = len(items)
    position = length + key.value if key.value < 0 else key.value
    if position < 0 or position >= length:
      raise EXRuntimeError.custom(
          f"Index {key.value} out of bounds for array of length {length}")
    return position

  def _evaluate_index_assign(self, expr: nodes.IndexAssign) -> Any:
    root = self.environment.get(expr.name)
    keys = [self.evaluate(accessor) for accessor in expr.accessors]
    value = self.evaluate(expr.value)
    self.environment.define(expr.name, self._replace_at(root, keys, value))
    return NIL

  def _replace_at(self, container: Any, keys: List[Any], value: Any) -> Any:
    """Rebuild `container` with the element at the key path replaced"""
    key, rest = keys[0], keys[1:]
    if isinstance(container, Array):
      position = self._resolve_position(container.items, key)
      items = list(container.items)
      items[position] = self._replace_at(items[position], rest, value) if rest else value
      return Array(tuple(items))
    if isinstance(container, Dictionary):
      text = dictionary_key(key)
      entries = dict(container.entries)
      if rest:
        if text not in entries:
          raise EXRuntimeError.custom(f"Key '{text}' not found in dictionary")
        entries[text] = self._replace_at(entries[text], rest, value)
      else:
        entries[text] = value
      return Dictionary(entries)
    if isinstance(container, Axis):
      raise EXRuntimeError.custom("Cannot assign into an Axis; axis values are constant")
    raise EXRuntimeError.custom(f"Cannot assign by index on type '{type_name(container)}'")

  # ==========================================================================
  # FUNCTION CALLS
  # ==========================================================================

  def _evaluate_call(self, expr: nodes.FunctionCall) -> Any:
    if is_builtin(expr.function):
      arguments = {name: self.evaluate(arg) for name, arg in expr.args}
      if self.debug:
        print(f"  builtin {expr.function}({', '.join(arguments)})")
      return call_builtin(expr.function, arguments)

    target = self.environment.get(expr.function)
    if not isinstance(target, Function):
      raise EXRuntimeError.custom(
          f"'{expr.function}' is not callable (type: {type_name(target)})")
    return self.call_function(target, expr.args)

  def call_function(self, function: Function, args: List[Tuple[str, Any]]) -> Any:
    """Run a callable label.

    Permitted visible blocks are materialized first, then arguments are
    evaluated in the caller's context. The body runs in a fresh scope that
    holds the block variables and the parameters under their internal
    names; afterwards existing block keys are refreshed from that scope.
    The scope and the permitted-blocks field are restored on every exit.
    """
    for block in function.visible_blocks:
      self.registry.require(block, function.name)
      if not self.registry.is_initialized(block):
        self._initialize_block(block)

    arguments: Dict[str, Any] = {}
    for name, arg in args:
      arguments[name] = self.evaluate(arg)

    if self.debug:
      print(f"  call {function.name}({', '.join(arguments)})")

    saved_blocks = self.permitted_blocks
    self.permitted_blocks = list(function.visible_blocks)
    try:
      with self.environment.scope():
        for block in function.visible_blocks:
          for name, value in self.registry.values(block).items():
            self.environment.define_local(name, value)

        for external, internal in zip(function.params, function.internal_names):
          if external not in arguments:
            raise EXRuntimeError.custom(
                f"Missing required parameter '{external}' in function '{function.name}'")
          self.environment.define_local(internal, arguments[external])

        self.execute_block(function.body)

        for block in function.visible_blocks:
          self.registry.write_back(block, self._resolve)
    finally:
      self.permitted_blocks = saved_blocks
      if self.debug:
        print(f"  exit {function.name}")

    return NIL

  def _initialize_block(self, block: str) -> None:
    if self.debug:
      print(f"  initializing visible block '{block}'")
    materialized: Dict[str, Any] = {}
    with self.environment.scope():
      for name, init in self.registry.definitions[block]:
        value = self.evaluate(init)
        materialized[name] = value
        self.environment.define_local(name, value)
    self.registry.materialize(block, materialized)

  def _resolve(self, name: str) -> Tuple[bool, Any]:
    binding = self.environment.lookup(name)
    if binding is None:
      return False, None
    return True, binding.value

  # ==========================================================================
  # STRUCTS
  # ==========================================================================

  def _bind_method_params(self, method: Method, arguments: List[Any]) -> None:
    """Bind positional arguments after a leading self; missing params stay unbound, extras are ignored"""
    params = list(method.params)
    if params and params[0] == "self":
      params = params[1:]
    for name, value in zip(params, arguments):
      self.environment.define_local(name, value)

  def _instantiate(self, expr: nodes.StructInstantiation) -> Any:
    definition = self.environment.get(expr.struct_name)
    if not isinstance(definition, StructDef):
      raise EXRuntimeError.custom(f"'{expr.struct_name}' is not a struct definition")

    lookup = "constructor" if expr.method_name == "new" else expr.method_name
    method = definition.methods.get(lookup)
    if method is None:
      raise EXRuntimeError.custom(
          f"Struct '{expr.struct_name}' has no method '{expr.method_name}' (lookup '{lookup}')")

    arguments = [self.evaluate(arg) for arg in expr.args]
    instance = StructInstance(expr.struct_name, {}, dict(definition.methods))

    with self.environment.scope():
      self.environment.define_local("self", instance)
      self._bind_method_params(method, arguments)
      self.execute_block(method.body)
      updated = self.environment.get("self")
      if not isinstance(updated, StructInstance):
        raise EXRuntimeError.custom("'self' was overwritten with a non-struct value")
    return updated

  def _member_access(self, expr: nodes.MemberAccess) -> Any:
    target = self.evaluate(expr.object)
    if not isinstance(target, StructInstance):
      raise EXRuntimeError.custom(
          f"Cannot access member '{expr.member}' on non-struct type {type_name(target)}")
    if expr.member not in target.fields:
      raise EXRuntimeError.custom(
          f"Struct '{target.struct_name}' has no field '{expr.member}'")
    return target.fields[expr.member]

  def _member_assign(self, expr: nodes.MemberAssign) -> Any:
    if not isinstance(expr.object, nodes.Variable):
      raise EXRuntimeError.custom("Member assignment requires a simple variable reference")
    name = expr.object.name
    value = self.evaluate(expr.value)
    target = self.environment.get(name)
    if not isinstance(target, StructInstance):
      raise EXRuntimeError.custom(
          f"Cannot assign to member '{expr.member}' on non-struct type {type_name(target)}")
    self.environment.define(name, target.with_field(expr.member, value))
    return NIL

  def _method_call(self, expr: nodes.MethodCall) -> Any:
    target = self.evaluate(expr.object)
    if not isinstance(target, StructInstance):
      raise EXRuntimeError.custom(
          f"Cannot call method '{expr.method}' on non-struct type {type_name(target)}")
    method = target.methods.get(expr.method)
    if method is None:
      raise EXRuntimeError.custom(
          f"Struct '{target.struct_name}' has no method '{expr.method}'")

    arguments = [self.evaluate(arg) for arg in expr.args]

    with self.environment.scope():
      self.environment.define_local("self", target)
      for name, value in target.fields.items():
        self.environment.define_local(name, value)
      self._bind_method_params(method, arguments)
      self.execute_block(method.body)

      current_self = self.environment.lookup("self")
      if current_self is not None and isinstance(current_self.value, StructInstance):
        updated = current_self.value
      else:
        fields = dict(target.fields)
        for name in target.fields:
          found, value = self._resolve(name)
          if found:
            fields[name] = value
        updated = StructInstance(target.struct_name, fields, target.methods)

    if isinstance(expr.object, nodes.Variable):
      self.environment.define(expr.object.name, updated)
    return NIL


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def create_interpreter(debug: bool = False) -> Interpreter:
  """Factory function returning an interpreter with an empty global scope"""
  return Interpreter(debug=debug)


def create_debug_interpreter() -> Interpreter:
  """Factory function returning a debug interpreter"""
  return create_interpreter(debug=True)
