class JingError(Exception):
    kind = "Error"
    label = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def format(self, indent: str = "") -> str:
        return f"{indent}{self.label}: {self.message}"

    def __str__(self) -> str:
        return self.format()


class LexError(JingError):
    kind = "Lex"
    label = "Lexical error"

    def __init__(self, message: str, line: int):
        super().__init__(message)
        self.line = line

    def format(self, indent: str = "") -> str:
        return f"{indent}{self.label} at line {self.line}: {self.message}"


class ParseError(JingError):
    kind = "Parse"
    label = "Parse error"

    def __init__(self, message: str, line: int):
        super().__init__(message)
        self.line = line

    def format(self, indent: str = "") -> str:
        return f"{indent}{self.label} at line {self.line}: {self.message}"


class CompileError(JingError):
    kind = "Compile"
    label = "Compilation error"


class JingRuntimeError(JingError):
    kind = "Runtime"
    label = "Runtime error"

    def __init__(self, message: str, ip: int | None = None, frames=None):
        super().__init__(message)
        self.ip = ip
        self.frames = frames or []  # most recent first

    def format(self, indent: str = "") -> str:
        lines = [f"{indent}{self.label}: {self.message}"]
        if self.ip is not None:
            lines.append(f"{indent}  ip={self.ip:04d}")
        for fr in self.frames:
            func = fr.get("func", "<unknown>")
            line = fr.get("line")
            if line is None:
                loc = f"ip={fr.get('ip', '?')}"
            else:
                loc = f"line {line}"
            lines.append(f"{indent}  at fn {func} ({loc})")
        return "\n".join(lines)


class JingTypeError(JingRuntimeError):
    kind = "Type"
    label = "Type error"


class JingIOError(JingRuntimeError):
    kind = "IO"
    label = "I/O error"
