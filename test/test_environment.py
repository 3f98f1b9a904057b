"""
Binding store tests: scoping, constants and smart locks
"""

import pytest
from environment import Environment
from error_handling import EXRuntimeError, RuntimeErrorKind
from values import Float, Int


class TestScoping:

  @pytest.fixture
  def env(self):
    return Environment()

  def test_define_updates_existing_outer_binding(self, env):
    env.define("x", Int(1))
    env.push_scope()
    env.define("x", Int(2))
    assert "x" not in env.current
    env.pop_scope()
    assert env.get("x") == Int(2)

  def test_new_inner_name_vanishes_after_pop(self, env):
    env.push_scope()
    env.define("tmp", Int(1))
    assert env.exists("tmp")
    env.pop_scope()
    assert not env.exists("tmp")

  def test_define_local_shadows_without_touching_outer(self, env):
    env.define("x", Int(1))
    env.push_scope()
    env.define_local("x", Int(9))
    assert env.get("x") == Int(9)
    env.pop_scope()
    assert env.get("x") == Int(1)

  def test_pop_keeps_global_scope(self, env):
    env.pop_scope()
    env.pop_scope()
    assert env.depth == 1

  def test_scope_guard_pops_on_failure(self, env):
    with pytest.raises(EXRuntimeError):
      with env.scope():
        assert env.depth == 2
        env.get("missing")
    assert env.depth == 1

  def test_get_undefined(self, env):
    with pytest.raises(EXRuntimeError, match="Undefined variable 'nope'") as info:
      env.get("nope")
    assert info.value.kind is RuntimeErrorKind.UNDEFINED_VARIABLE
    assert env.lookup("nope") is None


class TestGuards:

  @pytest.fixture
  def env(self):
    return Environment()

  def test_constant_blocks_reassignment_and_deletion(self, env):
    env.define_constant("PI", Float(3.14))
    with pytest.raises(EXRuntimeError) as info:
      env.define("PI", Int(0))
    assert info.value.kind is RuntimeErrorKind.CANNOT_REASSIGN_CONSTANT
    with pytest.raises(EXRuntimeError) as info:
      env.delete_variable("PI")
    assert info.value.kind is RuntimeErrorKind.CANNOT_DELETE_CONSTANT
    assert env.get("PI") == Float(3.14)

  def test_smart_lock_blocks_reassignment_and_deletion(self, env):
    env.define_smart_lock("x", Int(1))
    with pytest.raises(EXRuntimeError, match="Cannot reassign smart-locked variable 'x'"):
      env.define("x", Int(2))
    with pytest.raises(EXRuntimeError, match="Cannot delete smart-locked variable 'x'"):
      env.delete_variable("x")

  def test_unlock_restores_plain_binding(self, env):
    env.define_smart_lock("x", Int(1))
    env.define_smart_unlock("x", Int(1))
    env.define("x", Int(5))
    assert env.get("x") == Int(5)
    assert not env.lookup("x").is_smart_locked

  def test_constant_checked_before_lock(self, env):
    env.define_constant("x", Int(1))
    env.current["x"].is_smart_locked = True
    with pytest.raises(EXRuntimeError) as info:
      env.define("x", Int(2))
    assert info.value.kind is RuntimeErrorKind.CANNOT_REASSIGN_CONSTANT

  def test_tier_definitions_act_on_current_scope_only(self, env):
    env.define("x", Int(1))
    env.push_scope()
    env.define_constant("x", Int(2))
    assert env.get("x") == Int(2)
    env.pop_scope()
    env.define("x", Int(3))
    assert env.get("x") == Int(3)

  def test_delete_removes_innermost(self, env):
    env.define("x", Int(1))
    env.push_scope()
    env.define_local("x", Int(2))
    env.delete_variable("x")
    assert env.get("x") == Int(1)

  def test_delete_undefined(self, env):
    with pytest.raises(EXRuntimeError, match="Cannot delete undefined variable 'ghost'"):
      env.delete_variable("ghost")

  def test_binding_flags(self, env):
    env.define_constant("c", Int(1))
    env.define_smart_lock("l", Int(1))
    env.define("p", Int(1))
    assert env.lookup("c").flags() == "const"
    assert env.lookup("l").flags() == "locked"
    assert env.lookup("p").flags() == ""
