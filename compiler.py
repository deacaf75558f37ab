from ast_nodes import (
    Program, Literal, Variable, Binary, Unary, Logical, Assign, Call,
    ExprStmt, Let, Block, If, While, FuncDef, Return,
)
from bytecode import (
    Chunk, FunctionInfo,
    PUSH_CONST, POP, LOAD, DEFINE, ASSIGN, NEG, NOT,
    JUMP, JUMP_IF_FALSY, CALL, RETURN, ENTER_SCOPE, LEAVE_SCOPE, HALT,
)
from errors import CompileError
from values import UserFunction


BINARY_OPCODES = {
    "+": "ADD",
    "-": "SUB",
    "*": "MUL",
    "/": "DIV",
    "%": "MOD",
    "==": "EQ",
    "!=": "NEQ",
    "<": "LT",
    "<=": "LE",
    ">": "GT",
    ">=": "GE",
}


def declared_functions(statements):
    names = set()
    for stmt in statements:
        if isinstance(stmt, FuncDef):
            names.add(stmt.name)
            names |= declared_functions(stmt.body.statements)
        elif isinstance(stmt, Block):
            names |= declared_functions(stmt.statements)
        elif isinstance(stmt, If):
            names |= declared_functions([s for s in (stmt.then_branch, stmt.else_branch) if s is not None])
        elif isinstance(stmt, While):
            names |= declared_functions([stmt.body])
    return names


class Compiler:
    def __init__(self, registry=None, known_globals=()):
        if registry is None:
            from intrinsics import default_intrinsics

            registry = default_intrinsics()
        self.registry = registry
        self.chunk = Chunk()
        self.scopes = [list(known_globals)]  # compile-time name lists, innermost last
        self.function_depth = 0
        self.program_functions = set()

    def emit(self, opcode, arg=None, node=None):
        return self.chunk.emit(opcode, arg, line=getattr(node, "line", None))

    def emit_const(self, value, node=None):
        return self.emit(PUSH_CONST, self.chunk.add_const(value), node)

    def compile(self, program):
        # entry point
        if not isinstance(program, Program):
            raise CompileError("Compiler expects a Program node at the top")

        self.program_functions = declared_functions(program.statements)
        try:
            for stmt in program.statements:
                self.compile_stmt(stmt)
        except RecursionError:
            raise CompileError("Expression too deeply nested") from None

        self.emit(HALT)
        self.chunk.verify()
        return self.chunk

    # -------- scopes --------
    def begin_scope(self, names=()):
        self.scopes.append(list(names))

    def end_scope(self):
        self.scopes.pop()

    def declare(self, name):
        if name not in self.scopes[-1]:
            self.scopes[-1].append(name)

    def is_declared(self, name):
        return any(name in scope for scope in self.scopes)

    # -------- statements --------
    def compile_stmt(self, node):
        if isinstance(node, ExprStmt):
            self.compile_expr(node.expr)
            self.emit(POP, node=node)
            return

        if isinstance(node, Let):
            self.compile_expr(node.initializer)
            self.emit(DEFINE, node.name, node)
            self.declare(node.name)
            return

        if isinstance(node, Block):
            self.emit(ENTER_SCOPE, node=node)
            self.begin_scope()
            for stmt in node.statements:
                self.compile_stmt(stmt)
            self.end_scope()
            self.emit(LEAVE_SCOPE, node=node)
            return

        if isinstance(node, If):
            self.compile_if(node)
            return

        if isinstance(node, While):
            self.compile_while(node)
            return

        if isinstance(node, FuncDef):
            self.compile_funcdef(node)
            return

        if isinstance(node, Return):
            if self.function_depth == 0:
                raise CompileError("return used outside of a function")
            if node.expr is None:
                self.emit_const(None, node)
            else:
                self.compile_expr(node.expr)
            self.emit(RETURN, node=node)
            return

        raise CompileError(f"Unknown statement node: {node.__class__.__name__}")

    def compile_if(self, node):
        self.compile_expr(node.condition)
        jmp_else_i = self.emit(JUMP_IF_FALSY, None, node)

        # condition is popped exactly once on either path
        self.emit(POP, node=node)
        self.compile_stmt(node.then_branch)
        jmp_end_i = self.emit(JUMP, None, node)

        self.chunk.patch(jmp_else_i, self.chunk.current_address())
        self.emit(POP, node=node)
        if node.else_branch is not None:
            self.compile_stmt(node.else_branch)

        self.chunk.patch(jmp_end_i, self.chunk.current_address())

    def compile_while(self, node):
        loop_start = self.chunk.current_address()

        self.compile_expr(node.condition)
        jmp_exit_i = self.emit(JUMP_IF_FALSY, None, node)
        self.emit(POP, node=node)

        self.compile_stmt(node.body)
        self.emit(JUMP, loop_start, node)

        self.chunk.patch(jmp_exit_i, self.chunk.current_address())
        self.emit(POP, node=node)

    def compile_funcdef(self, node):
        skip_i = self.emit(JUMP, None, node)

        entry = self.chunk.current_address()
        info = FunctionInfo(node.name, len(node.params), entry, node.params)
        self.chunk.functions[node.name] = info
        self.chunk.entries[entry] = info
        # declared before the body so recursive calls see a user function
        self.declare(node.name)

        # parameters are the first locals of the body scope
        self.function_depth += 1
        self.begin_scope(node.params)
        for stmt in node.body.statements:
            self.compile_stmt(stmt)
        self.end_scope()
        self.function_depth -= 1

        # implicit `return nil` if control reaches the end of the body
        self.emit_const(None, node)
        self.emit(RETURN, node=node)

        self.chunk.patch(skip_i, self.chunk.current_address())
        self.emit_const(UserFunction(node.name, len(node.params), entry), node)
        self.emit(DEFINE, node.name, node)

    # -------- expressions --------
    def compile_expr(self, node):
        if isinstance(node, Literal):
            self.emit_const(node.value, node)
            return

        if isinstance(node, Variable):
            self.emit(LOAD, node.name, node)
            return

        if isinstance(node, Binary):
            self.compile_binary(node)
            return

        if isinstance(node, Unary):
            self.compile_expr(node.operand)
            if node.op == "-":
                self.emit(NEG, node=node)
            elif node.op == "!":
                self.emit(NOT, node=node)
            else:
                raise CompileError(f"Unknown unary operator: {node.op}")
            return

        if isinstance(node, Logical):
            self.compile_logical(node)
            return

        if isinstance(node, Assign):
            if not isinstance(node.target, Variable):
                raise CompileError("Invalid assignment target")
            self.compile_expr(node.value)
            self.emit(ASSIGN, node.target.name, node)
            return

        if isinstance(node, Call):
            self.compile_call(node)
            return

        raise CompileError(f"Unknown expression node: {node.__class__.__name__}")

    def left_chain(self, node, kind):
        # a + b + c parses left-deep; walk the left spine without recursing
        chain = []
        while isinstance(node, kind):
            chain.append(node)
            node = node.left
        chain.reverse()
        return node, chain

    def compile_binary(self, node):
        first, chain = self.left_chain(node, Binary)
        self.compile_expr(first)
        for binary in chain:
            opcode = BINARY_OPCODES.get(binary.op)
            if opcode is None:
                raise CompileError(f"Unknown operator: {binary.op}")
            self.compile_expr(binary.right)
            self.emit(opcode, node=binary)

    def compile_logical(self, node):
        first, chain = self.left_chain(node, Logical)
        self.compile_expr(first)
        for logical in chain:
            self.compile_logical_tail(logical)

    # left operand is already on the stack
    def compile_logical_tail(self, node):
        if node.op == "and":
            # falsy left stays on the stack as the result
            jmp_end_i = self.emit(JUMP_IF_FALSY, None, node)
            self.emit(POP, node=node)
            self.compile_expr(node.right)
            self.chunk.patch(jmp_end_i, self.chunk.current_address())
            return

        if node.op == "or":
            # truthy left stays on the stack as the result
            jmp_right_i = self.emit(JUMP_IF_FALSY, None, node)
            jmp_end_i = self.emit(JUMP, None, node)
            self.chunk.patch(jmp_right_i, self.chunk.current_address())
            self.emit(POP, node=node)
            self.compile_expr(node.right)
            self.chunk.patch(jmp_end_i, self.chunk.current_address())
            return

        raise CompileError(f"Unknown logical operator: {node.op}")

    def compile_call(self, node):
        self.check_intrinsic_arity(node)

        # args left-to-right, callee last (it ends up on top)
        for arg in node.args:
            self.compile_expr(arg)
        self.compile_expr(node.callee)
        self.emit(CALL, len(node.args), node)

    def check_intrinsic_arity(self, node):
        if not isinstance(node.callee, Variable):
            return
        name = node.callee.name
        if self.is_declared(name) or name in self.program_functions:
            return
        intrinsic = self.registry.get(name)
        if intrinsic is not None and intrinsic.arity != len(node.args):
            raise CompileError(f"{name}() expects {intrinsic.arity} arguments, got {len(node.args)}")
