import sys
import traceback

from ast_nodes import Program, ExprStmt, Call, Variable
from compiler import Compiler
from errors import JingError, ParseError
from intrinsics import default_intrinsics
from lexer import Lexer
from parser import Parser
from values import to_display
from vm import VM


USAGE = """Usage:
  jing run <file.jing> [--trace] [--max-steps N]
  jing parse <file.jing>
  jing build <file.jing>
  jing repl
  jing intrinsics
  (optional) --debug to show Python traceback"""


# Simple AST printer (so you can SEE what the parser built)
def ast_to_dict(node):
    if node is None:
        return None

    t = node.__class__.__name__
    d = {"type": t}

    if t in ("Program", "Block"):
        d["statements"] = [ast_to_dict(s) for s in node.statements]
    elif t == "Literal":
        d["value"] = node.value if isinstance(node.value, str) else to_display(node.value)
    elif t == "Variable":
        d["name"] = node.name
    elif t in ("Binary", "Logical"):
        d["op"] = node.op
        d["left"] = ast_to_dict(node.left)
        d["right"] = ast_to_dict(node.right)
    elif t == "Unary":
        d["op"] = node.op
        d["operand"] = ast_to_dict(node.operand)
    elif t == "Assign":
        d["target"] = node.target.name
        d["value"] = ast_to_dict(node.value)
    elif t == "Call":
        d["callee"] = ast_to_dict(node.callee)
        d["args"] = [ast_to_dict(a) for a in node.args]
    elif t == "ExprStmt":
        d["expr"] = ast_to_dict(node.expr)
    elif t == "Let":
        d["name"] = node.name
        d["initializer"] = ast_to_dict(node.initializer)
    elif t == "If":
        d["condition"] = ast_to_dict(node.condition)
        d["then"] = ast_to_dict(node.then_branch)
        d["else"] = ast_to_dict(node.else_branch)
    elif t == "While":
        d["condition"] = ast_to_dict(node.condition)
        d["body"] = ast_to_dict(node.body)
    elif t == "FuncDef":
        d["name"] = node.name
        d["params"] = list(node.params)
        d["body"] = ast_to_dict(node.body)
    elif t == "Return":
        d["expr"] = ast_to_dict(node.expr)
    else:
        d["raw"] = str(node)

    return d


def _is_nested(value):
    if isinstance(value, dict):
        return True
    return isinstance(value, list) and any(isinstance(v, (dict, list)) for v in value)


def pretty(obj, indent=0):
    sp = "  " * indent
    if isinstance(obj, dict):
        lines = []
        for k, v in obj.items():
            if isinstance(v, list) and not _is_nested(v):
                # short scalar lists (parameter names) stay on one line
                lines.append(f"{sp}{k}: [{', '.join(str(x) for x in v)}]")
            elif _is_nested(v):
                lines.append(f"{sp}{k}:")
                lines.append(pretty(v, indent + 1))
            else:
                lines.append(f"{sp}{k}: {v}")
        return "\n".join(lines)
    if isinstance(obj, list):
        lines = []
        for item in obj:
            lines.append(f"{sp}-")
            lines.append(pretty(item, indent + 1))
        return "\n".join(lines)
    return f"{sp}{obj}"


def parse_source(code):
    return Parser(Lexer(code)).parse()


def compile_source(code, known_globals=()):
    return Compiler(known_globals=known_globals).compile(parse_source(code))


def read_source(path):
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def report(e, debug):
    if debug:
        traceback.print_exc()
    else:
        print(str(e), file=sys.stderr)


def cmd_parse(path, debug=False):
    try:
        text = pretty(ast_to_dict(parse_source(read_source(path))))
    except (JingError, OSError) as e:
        report(e, debug)
        sys.exit(1)
    except RecursionError:
        print("Error: syntax tree too deeply nested to print", file=sys.stderr)
        sys.exit(1)
    print(text)


def cmd_build(path, debug=False):
    try:
        chunk = compile_source(read_source(path))
    except (JingError, OSError) as e:
        report(e, debug)
        sys.exit(1)
    print(chunk.disassemble())


def cmd_run(path, debug=False, trace=False, max_steps=None):
    try:
        chunk = compile_source(read_source(path))
        vm = VM(chunk, trace=trace, max_steps=max_steps)
        vm.run()
    except (JingError, OSError) as e:
        report(e, debug)
        sys.exit(1)


def cmd_intrinsics():
    for fn in default_intrinsics():
        print(f"{fn.name}/{fn.arity}  {fn.help}")


def _count_braces_delta(line: str) -> int:
    # Minimal brace balancer for REPL multiline input.
    # Ignores braces inside "..." strings and after // comments.
    delta = 0
    in_string = False
    i = 0
    while i < len(line):
        ch = line[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == "/" and line[i + 1 : i + 2] == "/":
            break
        elif ch == '"':
            in_string = True
        elif ch == "{":
            delta += 1
        elif ch == "}":
            delta -= 1
        i += 1
    return delta


def compile_repl_input(source, known_globals):
    # First, try parsing as a normal program (statements).
    try:
        program = parse_source(source)
    except ParseError as parse_err:
        # If that fails, try parsing as a single expression and auto-print it.
        try:
            expr = Parser(Lexer(source)).parse_expression_only()
        except JingError:
            raise parse_err
        if isinstance(expr, Call) and isinstance(expr.callee, Variable) and expr.callee.name == "print":
            program = Program([ExprStmt(expr)])
        else:
            program = Program([ExprStmt(Call(Variable("print"), [expr]))])

    return Compiler(known_globals=known_globals).compile(program)


def cmd_repl(debug: bool = False, trace: bool = False):
    vm = VM(trace=trace)

    print("Jing REPL. Type :q to quit.")

    buffer_lines = []
    brace_depth = 0
    while True:
        prompt = "jing> " if not buffer_lines else "...> "
        try:
            line = input(prompt)
        except (EOFError, KeyboardInterrupt):
            print()
            break

        stripped = line.strip()
        if not buffer_lines and stripped in (":q", ":quit", "quit", "exit"):
            break

        if not stripped and not buffer_lines:
            continue

        buffer_lines.append(line)
        brace_depth += _count_braces_delta(line)

        # Wait for block completion if braces aren't balanced yet.
        if brace_depth > 0:
            continue

        source = "\n".join(buffer_lines) + "\n"
        buffer_lines = []
        brace_depth = 0

        try:
            chunk = compile_repl_input(source, known_globals=vm.globals.keys())
            vm.interpret(chunk)
        except JingError as e:
            vm.reset()
            if debug:
                traceback.print_exc()
            else:
                print(str(e), file=sys.stderr)
        except KeyboardInterrupt:
            # abandon the running input, keep the session
            vm.reset()
            print("Interrupted", file=sys.stderr)


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)

    debug = "--debug" in args
    trace = "--trace" in args
    args = [a for a in args if a not in ("--debug", "--trace")]

    max_steps = None
    if "--max-steps" in args:
        i = args.index("--max-steps")
        try:
            max_steps = int(args[i + 1])
        except (IndexError, ValueError):
            print("--max-steps expects an integer")
            sys.exit(1)
        del args[i : i + 2]

    if not args:
        print(USAGE)
        sys.exit(1)

    cmd = args[0]

    if cmd in ("repl", "intrinsics"):
        if len(args) != 1:
            print(USAGE)
            sys.exit(1)
        if cmd == "repl":
            cmd_repl(debug=debug, trace=trace)
        else:
            cmd_intrinsics()
        return

    if len(args) != 2:
        print(USAGE)
        sys.exit(1)

    path = args[1]

    if cmd == "parse":
        cmd_parse(path, debug=debug)
    elif cmd == "build":
        cmd_build(path, debug=debug)
    elif cmd == "run":
        cmd_run(path, debug=debug, trace=trace, max_steps=max_steps)
    else:
        print(f"Unknown command: {cmd}")
        sys.exit(1)


if __name__ == "__main__":
    main()
