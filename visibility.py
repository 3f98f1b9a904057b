"""
EX visibility registry
Named shared-state blocks, declared eagerly and materialized on first use
"""

from typing import Any, Callable, Dict, List, Tuple

from error_handling import EXRuntimeError


class VisibilityRegistry:
  """Declarations, materialized values and initialized flags per block"""

  def __init__(self):
    self.definitions: Dict[str, List[Tuple[str, Any]]] = {}
    self.visible: Dict[str, Dict[str, Any]] = {}
    self.initialized: Dict[str, bool] = {}

  def declare(self, name: str, definitions: List[Tuple[str, Any]]) -> None:
    """Record a block's initializers without evaluating them"""
    self.definitions[name] = list(definitions)
    self.visible[name] = {}
    self.initialized[name] = False

  def is_declared(self, name: str) -> bool:
    return name in self.definitions

  def is_initialized(self, name: str) -> bool:
    return self.initialized.get(name, False)

  def require(self, block: str, function_name: str) -> None:
    if not self.is_declared(block):
      raise EXRuntimeError.custom(
          f"Function '{function_name}' references undefined visible block '{block}'")

  def materialize(self, name: str, values: Dict[str, Any]) -> None:
    self.visible[name] = values
    self.initialized[name] = True

  def values(self, name: str) -> Dict[str, Any]:
    return self.visible.get(name, {})

  def lookup(self, blocks: List[str], name: str) -> Tuple[bool, Any]:
    """Search the given blocks in order; first match wins"""
    for block in blocks:
      block_values = self.visible.get(block)
      if block_values is not None and name in block_values:
        return True, block_values[name]
    return False, None

  def write_back(self, block: str, resolve: Callable[[str], Tuple[bool, Any]]) -> None:
    """Refresh existing keys of a block from `resolve`; never adds keys"""
    block_values = self.visible.get(block)
    if block_values is None:
      return
    for key in list(block_values):
      found, value = resolve(key)
      if found:
        block_values[key] = value
