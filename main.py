"""
Tally Programming Language - Main Entry Point
Script runner, token/AST dumps and an interactive REPL
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional
import os

# Readline support for history and auto-completion
try:
  import readline
  READLINE_AVAILABLE = True
except ImportError:
  READLINE_AVAILABLE = False

from ast_nodes import pretty_print_ast
from error_handling import TallyError, format_error
from interpreter import Interpreter, create_debug_interpreter, create_interpreter, create_root_context
from parsing import KEYWORDS, create_debug_parser, create_parser, tokenize
from runtime import Context
from stdlib import list_builtin_names
from utilities import to_display

VERSION = "Tally v0.1.0"
HISTORY_FILE = "~/.tally_history"
REPL_COMMANDS = [":tokens", ":ast", ":env", ":help", "exit"]


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='tally',
      description='Tally - a small expression-oriented scripting language',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s script.tly             # Run a Tally script
  %(prog)s -i                     # Interactive mode
  %(prog)s --tokens script.tly    # Show the token stream
  %(prog)s --parse script.tly     # Parse and show the AST
  %(prog)s --debug script.tly     # Run with debug output
        """
  )

  parser.add_argument(
      'script',
      nargs='?',
      help='Tally script file to execute'
  )

  parser.add_argument(
      '-i', '--interactive',
      action='store_true',
      help='Start interactive mode'
  )

  parser.add_argument(
      '--tokens',
      action='store_true',
      help='Tokenize file and show tokens (for debugging)'
  )

  parser.add_argument(
      '--parse',
      action='store_true',
      help='Parse file and show AST (for debugging)'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def report_error(message: str) -> None:
  print(message, file=sys.stderr)


def read_script(script_path: str) -> str:
  """Read a script, exiting with status 1 when it cannot be read"""
  try:
    return Path(script_path).read_text(encoding='utf-8')
  except FileNotFoundError:
    report_error(f"Error: Script file '{script_path}' not found")
    report_error("  Hint: Check the file path and make sure the file exists")
  except PermissionError:
    report_error(f"Error: Permission denied reading '{script_path}'")
  except UnicodeDecodeError as e:
    report_error(f"Error: Cannot decode file '{script_path}': {e}")
    report_error("  Hint: Make sure the file is a text file with UTF-8 encoding")
  sys.exit(1)


def tokenize_file(script_path: str) -> None:
  """Show the token stream of a script"""
  source = read_script(script_path)
  try:
    for token in tokenize(source, script_path):
      print(f"{token.start}  {token}")
  except TallyError as e:
    report_error(format_error(e))
    sys.exit(1)


def parse_file(script_path: str, debug: bool = False) -> None:
  """Parse a script and show the AST of each top-level statement"""
  source = read_script(script_path)
  parser = create_debug_parser(source, script_path) if debug else create_parser(source, script_path)

  try:
    nodes = parser.parse()
  except TallyError as e:
    report_error(format_error(e))
    sys.exit(1)

  print(f"Parsed {len(nodes)} top-level statements:")
  print("=" * 50)
  for i, node in enumerate(nodes, 1):
    print(f"\nStatement {i}:")
    print(pretty_print_ast(node))


def run_script_file(script_path: str, debug: bool = False) -> None:
  """Run a script in a fresh root context and print its final value"""
  source = read_script(script_path)
  interpreter = create_debug_interpreter() if debug else create_interpreter()
  context = create_root_context(Path(script_path).name)

  try:
    result = interpreter.evaluate(source, script_path, context)
  except TallyError as e:
    report_error(format_error(e))
    sys.exit(1)
  except RecursionError:
    report_error("RecursionError: maximum recursion depth exceeded")
    sys.exit(1)

  if result.is_error:
    report_error(format_error(result.error))
    sys.exit(1)

  if result.value is not None:
    print(to_display(result.value))


def setup_readline() -> None:
  """Setup readline with history and auto-completion"""
  if not READLINE_AVAILABLE:
    return

  history_file = os.path.expanduser(HISTORY_FILE)
  try:
    readline.read_history_file(history_file)
  except OSError:
    pass  # First time, no history yet, or permission denied

  readline.set_history_length(1000)

  completions = sorted(KEYWORDS) + list_builtin_names() + REPL_COMMANDS

  def completer(text, state):
    options = [word for word in completions if word.startswith(text)]
    if state < len(options):
      return options[state]
    return None

  readline.set_completer(completer)
  readline.parse_and_bind("tab: complete")

  import atexit
  atexit.register(save_history, history_file)


def save_history(history_file: str) -> None:
  try:
    readline.write_history_file(history_file)
  except OSError as e:
    report_error(f"Warning: could not save history to {history_file}: {e}")


def show_environment(context: Context) -> None:
  """Print the user-defined bindings of the REPL root"""
  builtins = set(list_builtin_names())
  user_bindings = {name: variable for name, variable in context.bindings.items()
                   if name not in builtins}

  print("Current environment:")
  if not user_bindings:
    print("  (no user-defined bindings)")
    return

  for name, variable in user_bindings.items():
    val_str = to_display(variable.value)
    if len(val_str) > 60:
      val_str = val_str[:57] + "..."
    print(f"  {name} = {val_str}")


def show_help() -> None:
  print("REPL Commands:")
  print("  :tokens <src>     - Show the tokens of a line")
  print("  :ast <src>        - Show the parsed AST of a line")
  print("  :env              - Show current environment")
  print("  :help             - Show this help")
  print("  exit              - Exit REPL")
  print()
  print("Language features:")
  print("  let x = 5;                  - Variable binding")
  print("  func add(a, b) { a + b }    - Function definition")
  print("  if (x > 3) { print(\"big\") } - Conditionals")
  print("  for (let i = 0; i < 3; i++) print(i)  - Loops")
  print("  let a = arr(3, 0); a[1] = 7 - Arrays and indexing")


def handle_repl_line(code: str, context: Context, interpreter: Interpreter) -> bool:
  """Process one REPL line; returns False when the session should end"""
  stripped = code.strip()

  if stripped == "exit":
    return False

  if not stripped:
    return True

  if stripped.startswith(":tokens"):
    try:
      for token in tokenize(stripped[len(":tokens"):].strip(), "<stdin>"):
        print(f"  {token}")
    except TallyError as e:
      print(format_error(e))
    return True

  if stripped.startswith(":ast"):
    try:
      parser = create_parser(stripped[len(":ast"):].strip(), "<stdin>")
      for node in parser.parse():
        print(pretty_print_ast(node))
    except TallyError as e:
      print(format_error(e))
    return True

  if stripped == ":env":
    show_environment(context)
    return True

  if stripped == ":help":
    show_help()
    return True

  try:
    result = interpreter.evaluate(code, "<stdin>", context)
  except TallyError as e:
    print(format_error(e))
    return True
  except RecursionError:
    print("RecursionError: maximum recursion depth exceeded")
    return True

  if result.is_error:
    print(format_error(result.error))
  elif result.value is not None:
    print(f"=> {to_display(result.value)}")
  return True


def run_interactive_mode(debug: bool = False) -> None:
  """Run Tally in interactive mode against one persistent root context"""
  print(f"{VERSION} - Interactive Mode")
  print("Type 'exit' to quit, ':help' for commands")
  if READLINE_AVAILABLE:
    print("Readline enabled: Use ↑/↓ for history, Tab for completion")
  if debug:
    print("Debug mode enabled")
  print()

  setup_readline()

  interpreter = create_debug_interpreter() if debug else create_interpreter()
  context = interpreter.new_context("<stdin>")

  while True:
    try:
      code = input("tally> ")
    except (KeyboardInterrupt, EOFError):
      print("\nGoodbye!")
      break

    if not handle_repl_line(code, context, interpreter):
      break


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point for Tally"""
  arg_parser = create_arg_parser()
  args = arg_parser.parse_args(argv)

  if args.interactive or not args.script:
    run_interactive_mode(debug=args.debug)
    return

  if args.tokens:
    tokenize_file(args.script)
  elif args.parse:
    parse_file(args.script, debug=args.debug)
  else:
    run_script_file(args.script, debug=args.debug)


if __name__ == "__main__":
  main()
