class ASTNode:
    # Optional source line (1-based). Parser sets this.
    line: int | None = None


class Program(ASTNode):
    def __init__(self, statements):
        self.statements = statements


# ---------- expressions ----------

class Literal(ASTNode):
    def __init__(self, value):
        self.value = value  # float | str | bool | None


class Variable(ASTNode):
    def __init__(self, name):
        self.name = name


class Binary(ASTNode):
    def __init__(self, left, op, right):
        self.left = left
        self.op = op  # + - * / % == != < <= > >=
        self.right = right


class Unary(ASTNode):
    def __init__(self, op, operand):
        self.op = op  # "-" or "!"
        self.operand = operand


class Logical(ASTNode):
    def __init__(self, left, op, right):
        self.left = left
        self.op = op  # "and" | "or"
        self.right = right


class Assign(ASTNode):
    def __init__(self, target, value):
        self.target = target  # Variable
        self.value = value


class Call(ASTNode):
    def __init__(self, callee, args):
        self.callee = callee
        self.args = args


# ---------- statements ----------

class ExprStmt(ASTNode):
    def __init__(self, expr):
        self.expr = expr


class Let(ASTNode):
    def __init__(self, name, initializer):
        self.name = name
        self.initializer = initializer


class Block(ASTNode):
    def __init__(self, statements):
        self.statements = statements


class If(ASTNode):
    def __init__(self, condition, then_branch, else_branch=None):
        self.condition = condition
        self.then_branch = then_branch
        self.else_branch = else_branch


class While(ASTNode):
    def __init__(self, condition, body):
        self.condition = condition
        self.body = body


class FuncDef(ASTNode):
    def __init__(self, name, params, body):
        self.name = name
        self.params = params  # list[str]
        self.body = body      # Block


class Return(ASTNode):
    def __init__(self, expr=None):
        self.expr = expr
