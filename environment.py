"""
EX binding store
A stack of scopes; scope 0 is the permanent global scope
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from error_handling import EXRuntimeError, RuntimeErrorKind


@dataclass
class Binding:
  value: Any
  is_constant: bool = False
  is_smart_locked: bool = False

  def flags(self) -> str:
    marks = []
    if self.is_constant:
      marks.append("const")
    if self.is_smart_locked:
      marks.append("locked")
    return ", ".join(marks)


class Environment:
  """Scoped variable store with constant and smart-lock guards.

  Lookups walk innermost to outermost and the first match wins. Plain
  `define` updates an existing binding wherever it lives and only
  introduces a new binding when the name is unknown; the tier-setting
  definitions always act on the current scope.
  """

  def __init__(self, debug: bool = False):
    self.scopes: List[Dict[str, Binding]] = [{}]
    self.debug = debug

  @property
  def depth(self) -> int:
    return len(self.scopes)

  @property
  def globals(self) -> Dict[str, Binding]:
    return self.scopes[0]

  @property
  def current(self) -> Dict[str, Binding]:
    return self.scopes[-1]

  def push_scope(self) -> None:
    self.scopes.append({})
    if self.debug:
      print(f"  push scope -> depth {len(self.scopes)}")

  def pop_scope(self) -> None:
    if len(self.scopes) > 1:
      self.scopes.pop()
      if self.debug:
        print(f"  pop scope -> depth {len(self.scopes)}")

  @contextmanager
  def scope(self) -> Iterator[Dict[str, Binding]]:
    """Push a scope for the duration of a with-block, popping it on any exit"""
    self.push_scope()
    try:
      yield self.current
    finally:
      self.pop_scope()

  def _find(self, name: str) -> Optional[Binding]:
    for scope in reversed(self.scopes):
      binding = scope.get(name)
      if binding is not None:
        return binding
    return None

  def define(self, name: str, value: Any) -> None:
    binding = self._find(name)
    if binding is None:
      self.current[name] = Binding(value)
      return
    if binding.is_constant:
      raise EXRuntimeError(RuntimeErrorKind.CANNOT_REASSIGN_CONSTANT, name=name)
    if binding.is_smart_locked:
      raise EXRuntimeError(RuntimeErrorKind.CANNOT_REASSIGN_SMART_LOCKED, name=name)
    binding.value = value

  def define_local(self, name: str, value: Any) -> None:
    """Insert a plain binding into the current scope, shadowing outer ones"""
    self.current[name] = Binding(value)

  def define_constant(self, name: str, value: Any) -> None:
    self.current[name] = Binding(value, is_constant=True)

  def define_smart_lock(self, name: str, value: Any) -> None:
    self.current[name] = Binding(value, is_smart_locked=True)

  def define_smart_unlock(self, name: str, value: Any) -> None:
    self.current.pop(name, None)
    self.current[name] = Binding(value)

  def get(self, name: str) -> Any:
    binding = self._find(name)
    if binding is None:
      raise EXRuntimeError(RuntimeErrorKind.UNDEFINED_VARIABLE, name=name)
    return binding.value

  def lookup(self, name: str) -> Optional[Binding]:
    return self._find(name)

  def exists(self, name: str) -> bool:
    return self._find(name) is not None

  def delete_variable(self, name: str) -> None:
    for scope in reversed(self.scopes):
      binding = scope.get(name)
      if binding is None:
        continue
      if binding.is_constant:
        raise EXRuntimeError(RuntimeErrorKind.CANNOT_DELETE_CONSTANT, name=name)
      if binding.is_smart_locked:
        raise EXRuntimeError(RuntimeErrorKind.CANNOT_DELETE_SMART_LOCKED, name=name)
      del scope[name]
      return
    raise EXRuntimeError(RuntimeErrorKind.CANNOT_DELETE_UNDEFINED, name=name)
