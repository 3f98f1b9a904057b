"""
Integration tests running complete EX programs through parser and interpreter
"""

import pytest
from error_handling import EXRuntimeError, RuntimeErrorKind


COUNTER_PROGRAM = """
// shared state lives in a visible block, not in globals
visible counter { n = 0, step = 2 }

label bump() visible(counter) {
  n = n + step
}

label show(prefix=p) visible(counter) {
  kprint p + cast_type(value=n, type="string")
}

bump()
bump()
show(prefix="count: ")
"""

STRUCT_PROGRAM = """
struct Counter {
  constructor(self, start) {
    self.value = start
  }
  add(self, amount) {
    self.value = self.value + amount
  }
}

c = Counter::new(10)
c.add(5)
c.add(1)
kprint c.value
kprint c
"""

LOOP_PROGRAM = """
total = 0
for i in ::[1..5] {
  total = total + i
}
kprint total

n = 3
while n > 0 {
  kprint n
  n = n - 1
}

do {
  kprint "once"
} while false

label @greet { kprint "jumped" }
jump greet
"""

COLLECTION_PROGRAM = """
data = [&d,
    "nums": [&l, 11, 22, 33],
    "axis": [&a, 100, 200, 300]
]
kprint data["nums"][1]
kprint data["axis"][-1]
data["nums"][0] = 99
kprint data["nums"]

keySum = 5 + 9
table = [&d, keySum: "fourteen"]
kprint table[14]
kprint array_len(src=array_push(src=data["nums"], value=44))
"""


class TestPrograms:

  def test_visible_counter(self, run):
    assert run(COUNTER_PROGRAM) == "count: 4\n"

  def test_visible_state_is_not_global(self, run):
    run(COUNTER_PROGRAM)
    with pytest.raises(EXRuntimeError) as info:
      run("kprint n")
    assert info.value.kind is RuntimeErrorKind.UNDEFINED_VARIABLE

  def test_structs(self, run):
    assert run(STRUCT_PROGRAM) == "16\nCounter { value: 16 }\n"

  def test_loops_and_jumps(self, run):
    assert run(LOOP_PROGRAM) == "15\n3\n2\n1\nonce\njumped\n"

  def test_collections(self, run):
    assert run(COLLECTION_PROGRAM) == "22\n300\n[99, 22, 33]\nfourteen\n4\n"

  def test_renamed_parameters(self, run):
    source = """
label describe(name=who, age=years) {
  kprint who + " is " + cast_type(value=years, type="string")
}
describe(age=30, name="Ada")
"""
    assert run(source) == "Ada is 30\n"

  def test_binding_tiers(self, run):
    source = """
x = 1
lock x
unlock x
x = 2
kill x
revive x
kprint x
"""
    assert run(source) == "nil\n"

  def test_programs_share_one_session(self, run):
    run("label twice(v=v) { kprint v * 2 }")
    assert run("twice(v=21)") == "42\n"


class TestProgramErrors:

  def test_error_points_at_innermost_statement(self, interpreter, parser):
    source = "label broken() {\n  kprint 1 / 0\n}\nbroken()\n"
    with pytest.raises(EXRuntimeError) as info:
      interpreter.interpret(parser.parse_string(source))
    assert info.value.kind is RuntimeErrorKind.DIVISION_BY_ZERO
    assert info.value.line == 2
    assert info.value.context == "kprint 1 / 0"

  def test_effects_before_failure_are_kept(self, interpreter, parser, capsys):
    with pytest.raises(EXRuntimeError):
      interpreter.interpret(parser.parse_string("a = 1\nkprint a\nkprint b\na = 2"))
    assert capsys.readouterr().out == "1\n"
    assert interpreter.environment.get("a").value == 1

  def test_constant_survives_failed_reassignment(self, run):
    run("limit = 10\nconst limit")
    with pytest.raises(EXRuntimeError) as info:
      run("limit = 11")
    assert info.value.kind is RuntimeErrorKind.CANNOT_REASSIGN_CONSTANT
    assert run("kprint limit") == "10\n"
