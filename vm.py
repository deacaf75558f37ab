import sys

from bytecode import FunctionInfo, JUMPS, PUSH_CONST
from errors import JingError, JingRuntimeError
from values import (
    Environment, HostFunction, UserFunction,
    add, subtract, multiply, divide, modulo, negate, compare,
    is_truthy, values_equal,
)


BINARY_OPS = {
    "ADD": add,
    "SUB": subtract,
    "MUL": multiply,
    "DIV": divide,
    "MOD": modulo,
}

COMPARISONS = {
    "LT": "<",
    "LE": "<=",
    "GT": ">",
    "GE": ">=",
}


class CallFrame:
    def __init__(self, return_ip, base, caller_env, caller_func, call_ip):
        self.return_ip = return_ip
        self.base = base              # value-stack depth below the call's slots
        self.caller_env = caller_env
        self.caller_func = caller_func
        self.call_ip = call_ip


class VM:
    def __init__(self, chunk=None, registry=None, max_call_depth=1000, max_steps=None, trace=False):
        if registry is None:
            from intrinsics import default_intrinsics

            registry = default_intrinsics()
        self.registry = registry

        self.MAX_CALL_DEPTH = max_call_depth
        self.max_steps = max_steps  # set to an int to guard against infinite loops
        self.trace_enabled = trace

        self.code = []              # linked instructions of every loaded chunk
        self.lines = []
        self.constants = []
        self.functions = {}         # name -> FunctionInfo (rebased)
        self.functions_by_entry = {}

        self.ip = 0                 # instruction pointer (where we are)
        self.stack = []             # stack for values
        self.env = Environment()    # global frame at the bottom
        self.globals = self.env.globals
        self.frames = []            # call frames, innermost last
        self.current_function_name = "<main>"
        self.steps = 0

        self.start_ip = 0
        if chunk is not None:
            self.start_ip, _ = self.link(chunk)

    # -------- loading --------
    def link(self, chunk):
        """Append a compiled chunk to the program; returns its (start, end) range."""
        base_ip = len(self.code)
        base_const = len(self.constants)

        for value in chunk.constants:
            if isinstance(value, UserFunction):
                value = UserFunction(value.name, value.arity, value.entry + base_ip)
            self.constants.append(value)

        for opcode, arg in chunk.code:
            if opcode == PUSH_CONST:
                arg = arg + base_const
            elif opcode in JUMPS:
                if arg is None:
                    raise JingRuntimeError(f"Unpatched jump in chunk: {opcode}")
                arg = arg + base_ip
            self.code.append((opcode, arg))
        self.lines.extend(chunk.lines)

        # every declaration by entry; the name table points at the latest one
        rebased = {}
        for info in list(chunk.entries.values()) + list(chunk.functions.values()):
            if info.entry not in rebased:
                rebased[info.entry] = FunctionInfo(info.name, info.arity, info.entry + base_ip, info.params)
                self.functions_by_entry[info.entry + base_ip] = rebased[info.entry]
        for name, info in chunk.functions.items():
            self.functions[name] = rebased[info.entry]

        return base_ip, len(self.code)

    def interpret(self, chunk):
        start_ip, end_ip = self.link(chunk)
        self.run_range(start_ip, end_ip)

    def reset(self):
        # drop everything but the globals (REPL recovery after an error)
        self.stack.clear()
        self.frames.clear()
        self.env = Environment(self.globals)
        self.current_function_name = "<main>"

    # -------- diagnostics --------
    def line_at(self, ip):
        if 0 <= ip < len(self.lines):
            return self.lines[ip]
        return None

    def build_stacktrace(self):
        frames = [{
            "func": self.current_function_name,
            "line": self.line_at(self.ip),
            "ip": self.ip,
        }]
        # callers (most recent first)
        for fr in reversed(self.frames):
            frames.append({
                "func": fr.caller_func,
                "line": self.line_at(fr.call_ip),
                "ip": fr.call_ip,
            })
        return frames

    # -------- stack helpers --------
    def pop(self):
        if not self.stack:
            raise JingRuntimeError("Stack underflow")
        return self.stack.pop()

    def peek(self):
        if not self.stack:
            raise JingRuntimeError("Stack underflow")
        return self.stack[-1]

    def pop_args(self, count):
        if count > len(self.stack):
            raise JingRuntimeError("Stack underflow")
        if count == 0:
            return []
        args = self.stack[-count:]
        del self.stack[-count:]
        return args

    def check_ip(self, target, context: str):
        if not isinstance(target, int) or target < 0 or target >= len(self.code):
            raise JingRuntimeError(f"Invalid jump target for {context}: {target}")

    # -------- execution --------
    def resolve(self, name):
        found, value = self.env.lookup(name)
        if found:
            return value
        info = self.functions.get(name)
        if info is not None:
            return UserFunction(info.name, info.arity, info.entry)
        intrinsic = self.registry.get(name)
        if intrinsic is not None:
            return intrinsic
        raise JingRuntimeError(f"Undefined variable '{name}'")

    def call(self, callee, argc):
        args = self.pop_args(argc)

        if isinstance(callee, UserFunction):
            if argc != callee.arity:
                raise JingRuntimeError(f"Expected {callee.arity} arguments but got {argc}")
            if len(self.frames) >= self.MAX_CALL_DEPTH:
                raise JingRuntimeError(f"Max call depth exceeded ({self.MAX_CALL_DEPTH})")
            info = self.functions_by_entry.get(callee.entry)
            if info is None:
                raise JingRuntimeError(f"Unknown function entry for '{callee.name}': {callee.entry}")
            self.check_ip(callee.entry, "call")

            self.frames.append(CallFrame(
                return_ip=self.ip + 1,
                base=len(self.stack),
                caller_env=self.env,
                caller_func=self.current_function_name,
                call_ip=self.ip,
            ))
            self.env = self.env.child(dict(zip(info.params, args)))
            self.current_function_name = callee.name
            self.ip = callee.entry
            return

        if isinstance(callee, HostFunction):
            if argc != callee.arity:
                raise JingRuntimeError(f"Function '{callee.name}' expects {callee.arity} arguments, got {argc}")
            self.stack.append(callee.invoke(args))
            self.ip += 1
            return

        raise JingRuntimeError("Can only call functions")

    def step(self) -> bool:
        self.check_ip(self.ip, "ip")
        opcode, arg = self.code[self.ip]

        if self.trace_enabled:
            shown = opcode if arg is None else f"{opcode} {arg}"
            print(f"TRACE ip={self.ip:04d} {shown} stack={len(self.stack)}", file=sys.stderr)

        if opcode == "PUSH_CONST":
            self.stack.append(self.constants[arg])
            self.ip += 1
            return False

        if opcode == "POP":
            self.pop()
            self.ip += 1
            return False

        if opcode == "LOAD":
            self.stack.append(self.resolve(arg))
            self.ip += 1
            return False

        if opcode == "DEFINE":
            self.env.define(arg, self.pop())
            self.ip += 1
            return False

        if opcode == "ASSIGN":
            # assignment is an expression: the value stays on the stack
            self.env.assign(arg, self.peek())
            self.ip += 1
            return False

        if opcode in BINARY_OPS:
            b = self.pop()
            a = self.pop()
            self.stack.append(BINARY_OPS[opcode](a, b))
            self.ip += 1
            return False

        if opcode in COMPARISONS:
            b = self.pop()
            a = self.pop()
            self.stack.append(compare(COMPARISONS[opcode], a, b))
            self.ip += 1
            return False

        if opcode in ("EQ", "NEQ"):
            b = self.pop()
            a = self.pop()
            equal = values_equal(a, b)
            self.stack.append(equal if opcode == "EQ" else not equal)
            self.ip += 1
            return False

        if opcode == "NEG":
            self.stack.append(negate(self.pop()))
            self.ip += 1
            return False

        if opcode == "NOT":
            self.stack.append(not is_truthy(self.pop()))
            self.ip += 1
            return False

        if opcode == "JUMP":
            self.check_ip(arg, "jump")
            self.ip = arg
            return False

        if opcode == "JUMP_IF_FALSY":
            # the condition stays on the stack; the compiler pops it
            if is_truthy(self.peek()):
                self.ip += 1
            else:
                self.check_ip(arg, "jump")
                self.ip = arg
            return False

        if opcode == "CALL":
            self.call(self.pop(), arg)
            return False

        if opcode == "RETURN":
            if not self.frames:
                raise JingRuntimeError("Return outside of a function")
            ret = self.pop()
            fr = self.frames.pop()
            del self.stack[fr.base:]
            self.env = fr.caller_env
            self.current_function_name = fr.caller_func
            self.stack.append(ret)
            self.ip = fr.return_ip
            return False

        if opcode == "ENTER_SCOPE":
            self.env.push_scope()
            self.ip += 1
            return False

        if opcode == "LEAVE_SCOPE":
            self.env.pop_scope()
            self.ip += 1
            return False

        if opcode == "HALT":
            return True

        raise JingRuntimeError(f"Unknown opcode: {opcode}")

    def run(self):
        self.run_range(self.start_ip, len(self.code))

    def run_range(self, start_ip: int, end_ip: int):
        self.ip = start_ip
        try:
            while self.ip < end_ip:
                if self.max_steps is not None:
                    self.steps += 1
                    if self.steps > self.max_steps:
                        raise JingRuntimeError("Step limit exceeded (possible infinite loop)")

                halted = self.step()
                if halted:
                    break
        except JingRuntimeError as e:
            if e.ip is None:
                e.ip = self.ip
                e.frames = self.build_stacktrace()
            raise
        except JingError:
            raise
        except Exception as e:
            raise JingRuntimeError(str(e), ip=self.ip, frames=self.build_stacktrace()) from e
