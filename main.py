"""
EX Programming Language - Main Entry Point
A small scripting language with labels, visible blocks and structs
"""

import sys
import argparse
import re
from pathlib import Path
from typing import Callable, List
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from ast_nodes import pretty_print_ast
from error_handling import EXParseError, EXRuntimeError
from interpreter import Interpreter, create_interpreter
from parsing import KEYWORDS, create_parser
from stdlib import VERSION, define_std_vars, list_builtin_functions
from values import render


HISTORY_FILE = "~/.ex_history"
PROMPT = "ex> "
CONTINUATION_PROMPT = "... "


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='EX Programming Language - labels, visible blocks and structs',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.ex              # Run an EX script
  %(prog)s -i                     # Interactive mode
  %(prog)s --parse script.ex      # Parse and show the AST
  %(prog)s --debug script.ex      # Run with execution tracing
  %(prog)s --no-std-vars script.ex  # Run without __VERSION__ and friends
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='EX script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show the AST without running it'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Trace parsing, statement execution and expression evaluation'
  )

  parser.add_argument(
      '--no-std-vars',
      dest='std_vars',
      action='store_false',
      help='Do not define the standard __NAME__ constants'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=f'EX v{VERSION}'
  )

  return parser


def build_interpreter(debug: bool = False, load_std_vars: bool = True) -> Interpreter:
  interpreter = create_interpreter(debug)
  if load_std_vars:
    define_std_vars(interpreter.environment)
  return interpreter


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse an EX script file and show the AST"""
  try:
    parser = create_parser(debug)

    print(f"Parsing {script_path}...")
    statements = parser.parse_file(script_path)

    print(f"\nParsed {len(statements)} top-level statements:")
    print("=" * 50)

    for i, stmt in enumerate(statements, 1):
      print(f"\nStatement {i}:")
      print(pretty_print_ast(stmt), end="")

  except EXParseError as e:
    print(f"Parse error in '{script_path}': {e.report()}")
    sys.exit(1)


def run_script_file(script_path: str, debug: bool = False, load_std_vars: bool = True) -> None:
  """Parse a script and run it on a fresh interpreter"""
  try:
    parser = create_parser(debug)
    interpreter = build_interpreter(debug, load_std_vars)

    if debug:
      print(f"Parsing {script_path}...")
    statements = parser.parse_file(script_path)

    interpreter.interpret(statements)

    if debug:
      print(f"Executed {len(statements)} statements")

  except EXParseError as e:
    print(f"Parse error in '{script_path}': {e.report()}")
    sys.exit(1)
  except EXRuntimeError as e:
    print(f"\n{'='*70}")
    print(f"Runtime Error in '{script_path}'")
    print(f"{'='*70}")
    print(f"\nError: {e.message}")

    if e.line is not None:
      print(f"\nLocation: {script_path}:{e.line}:{e.column or 0}")

    if e.context:
      print(f"\nSource:")
      print(f"  {e.context}")
      print(f"  {'~' * len(e.context)}")

    print(f"\n{'='*70}\n")
    sys.exit(1)


# ============================================================================
# INTERACTIVE MODE
# ============================================================================

def is_complete(code: str) -> bool:
  """True once every bracket opened outside strings and comments is closed"""
  stripped = re.sub(r'"(?:[^"\\\n]|\\.)*"|\'(?:[^\'\\\n]|\\.)\'', '', code)
  stripped = re.sub(r'/\*.*?\*/', '', stripped, flags=re.DOTALL)
  stripped = re.sub(r'//[^\n]*', '', stripped)
  depth = 0
  for ch in stripped:
    if ch in "{[(":
      depth += 1
    elif ch in "}])":
      depth -= 1
  return depth <= 0


def format_environment(interpreter: Interpreter) -> List[str]:
  """One line per global binding, with its const/locked flags"""
  lines = []
  for name, binding in interpreter.environment.globals.items():
    val_str = render(binding.value, nested=True)
    if len(val_str) > 60:
      val_str = val_str[:57] + "..."
    flags = binding.flags()
    lines.append(f"  {name} = {val_str}" + (f"  [{flags}]" if flags else ""))
  return lines


def print_help() -> None:
  print("REPL Commands:")
  print("  :parse <code>     - Show the parsed AST")
  print("  :env              - Show global bindings")
  print("  :debug            - Toggle execution tracing")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language features:")
  print("  x = 5                                  - Assignment")
  print("  kprint x + 1                           - Print a value")
  print("  label f(age=a) { kprint a }            - Callable label")
  print("  f(age=5)                               - Call with named arguments")
  print("  label @loop { ... }   jump loop        - Control-flow label")
  print("  visible counter { n = 0 }              - Shared block")
  print("  label inc() visible(counter) { n = n + 1 }")
  print("  struct P { constructor(self, x) { self.x = x } }")
  print("  p = P::new(3)                          - Struct instantiation")


def setup_readline():
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First session or unreadable history

  readline.set_history_length(1000)

  completions = sorted(set(KEYWORDS) | set(list_builtin_functions())) + [
      ":parse", ":env", ":debug", ":help", "exit"
  ]

  def completer(text, state):
    options = [cmd for cmd in completions if cmd.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(readline.write_history_file, history_file)


def run_interactive_mode(debug: bool = False, load_std_vars: bool = True,
                         read_line: Callable[[str], str] = input) -> None:
  """Run EX in interactive mode against one persistent interpreter"""
  print(f"EX v{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE and read_line is input:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  if read_line is input:
    setup_readline()

  parser = create_parser(debug)
  interpreter = build_interpreter(debug, load_std_vars)

  while True:
    try:
      code = read_line(PROMPT)

      if code.strip() == "exit":
        break

      if not code.strip():
        continue

      if code.startswith(":parse "):
        try:
          for stmt in parser.parse_string(code[7:]):
            print(pretty_print_ast(stmt), end="")
        except EXParseError as e:
          print(e.report())
        continue

      if code.strip() == ":env":
        lines = format_environment(interpreter)
        print("Global bindings:")
        print("\n".join(lines) if lines else "  (no bindings)")
        continue

      if code.strip() == ":debug":
        debug = not debug
        parser.debug = debug
        interpreter.debug = debug
        interpreter.environment.debug = debug
        print(f"Debug mode {'enabled' if debug else 'disabled'}")
        continue

      if code.strip() == ":help":
        print_help()
        continue

      while not is_complete(code):
        code += "\n" + read_line(CONTINUATION_PROMPT)

      try:
        interpreter.interpret(parser.parse_string(code, "<repl>"))
      except EXParseError as e:
        print(e.report())
      except EXRuntimeError as e:
        print(e)

    except KeyboardInterrupt:
      print("\nGoodbye!")
      break
    except EOFError:
      print("\nGoodbye!")
      break


def show_language_info() -> None:
  """Show EX language information"""
  print("EX Programming Language")
  print("=" * 50)
  print("A tree-walking scripting language with:")
  print("• Constant and smart-locked bindings")
  print("• Callable labels with renamed parameters")
  print("• Goto-style control-flow labels")
  print("• Capability-gated visible blocks")
  print("• Structs with constructors and methods")
  print()


def main() -> None:
  """Main entry point for EX"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args()

  if len(sys.argv) == 1:
    show_language_info()
    print("Starting interactive mode...")
    print("Use 'ex --help' for command line options")
    print()
    run_interactive_mode()
    return

  if args.script:
    if not Path(args.script).exists():
      print(f"Error: Script file '{args.script}' does not exist")
      sys.exit(1)

    if args.parse:
      parse_file(args.script, debug=args.debug)
    else:
      run_script_file(args.script, debug=args.debug, load_std_vars=args.std_vars)

  elif args.interactive:
    run_interactive_mode(debug=args.debug, load_std_vars=args.std_vars)

  else:
    arg_parser.print_help()
    print()
    show_language_info()


if __name__ == "__main__":
  main()
