from errors import CompileError
from values import to_display


PUSH_CONST = "PUSH_CONST"
POP = "POP"
LOAD = "LOAD"
DEFINE = "DEFINE"
ASSIGN = "ASSIGN"
ADD = "ADD"
SUB = "SUB"
MUL = "MUL"
DIV = "DIV"
MOD = "MOD"
NEG = "NEG"
EQ = "EQ"
NEQ = "NEQ"
LT = "LT"
LE = "LE"
GT = "GT"
GE = "GE"
NOT = "NOT"
JUMP = "JUMP"
JUMP_IF_FALSY = "JUMP_IF_FALSY"
CALL = "CALL"
RETURN = "RETURN"
ENTER_SCOPE = "ENTER_SCOPE"
LEAVE_SCOPE = "LEAVE_SCOPE"
HALT = "HALT"

JUMPS = (JUMP, JUMP_IF_FALSY)


class FunctionInfo:
    def __init__(self, name, arity, entry, params):
        self.name = name
        self.arity = arity
        self.entry = entry      # index of the first body instruction
        self.params = list(params)

    def __repr__(self):
        return f"FunctionInfo({self.name!r}, arity={self.arity}, entry={self.entry}, params={self.params})"


class Chunk:
    def __init__(self):
        self.code = []        # list of (OPCODE, arg)
        self.lines = []       # source line per instruction (or None)
        self.constants = []
        self.functions = {}   # name -> FunctionInfo (latest declaration)
        self.entries = {}     # entry -> FunctionInfo, one per declaration
        self._const_index = {}

    def __len__(self):
        return len(self.code)

    def add_const(self, value):
        # keyed by type too: True == 1.0 in Python
        key = (type(value), value)
        if key in self._const_index:
            return self._const_index[key]
        self.constants.append(value)
        self._const_index[key] = len(self.constants) - 1
        return len(self.constants) - 1

    def emit(self, opcode, arg=None, line=None):
        # returns instruction index (useful for jumps)
        self.code.append((opcode, arg))
        self.lines.append(line)
        return len(self.code) - 1

    def patch(self, index, target):
        opcode, _ = self.code[index]
        if opcode not in JUMPS:
            raise CompileError(f"Cannot patch non-jump instruction {opcode} at {index}")
        self.code[index] = (opcode, target)

    def current_address(self):
        return len(self.code)

    def verify(self):
        n = len(self.code)
        for i, (opcode, arg) in enumerate(self.code):
            if opcode in JUMPS and not (isinstance(arg, int) and 0 <= arg < n):
                raise CompileError(f"Invalid jump target at {i:04d}: {arg}")
            if opcode == PUSH_CONST and not (isinstance(arg, int) and 0 <= arg < len(self.constants)):
                raise CompileError(f"Invalid constant index at {i:04d}: {arg}")
        for info in list(self.functions.values()) + list(self.entries.values()):
            if not (0 <= info.entry < n):
                raise CompileError(f"Invalid entry offset for function '{info.name}': {info.entry}")

    def disassemble(self):
        out = ["CONSTANTS:"]
        for i, c in enumerate(self.constants):
            shown = f'"{c}"' if isinstance(c, str) else to_display(c)
            out.append(f"  [{i}] {shown}")

        if self.entries:
            out.append("")
            out.append("FUNCTIONS:")
            for _, info in sorted(self.entries.items()):
                out.append(f"  {info.name}  arity={info.arity}  entry={info.entry:04d}  params={info.params}")

        out.append("")
        out.append("INSTRUCTIONS:")
        for i, (opcode, arg) in enumerate(self.code):
            line = self.lines[i]
            where = f"{line:>4}" if line is not None else "   |"
            text = opcode if arg is None else f"{opcode:<14} {arg}"
            if opcode == PUSH_CONST:
                text += f"  ; {to_display(self.constants[arg])}"
            out.append(f"  {i:04d} {where}  {text}")
        return "\n".join(out)
