from ast_nodes import (
    Program, Literal, Variable, Binary, Unary, Logical, Assign, Call,
    ExprStmt, Let, Block, If, While, FuncDef, Return,
)
from errors import ParseError


class Parser:
    def __init__(self, lexer):
        self.lexer = lexer
        self.current_token = self._pull()
        self.next_token = self._pull()

    # NEWLINE tokens only separate statements; the grammar is ';'-terminated
    def _pull(self):
        tok = self.lexer.get_next_token()
        while tok.type == "NEWLINE":
            tok = self.lexer.get_next_token()
        return tok

    # move to next token, but only if it matches what we expect
    def eat(self, token_type, message=None):
        tok = self.current_token
        if tok.type != token_type:
            raise ParseError(message or f"Expected {token_type}, got {self.describe(tok)}", tok.line)
        self.current_token = self.next_token
        if tok.type != "EOF":
            self.next_token = self._pull()
        return tok

    def check(self, *token_types):
        return self.current_token.type in token_types

    def error_here(self, message):
        raise ParseError(message, self.current_token.line)

    def nested_guard(self, rule):
        try:
            return rule()
        except RecursionError:
            raise ParseError("Expression too deeply nested", self.current_token.line) from None

    def describe(self, tok):
        if tok.type == "EOF":
            return "end of input"
        if tok.value is not None:
            return f"{tok.type} '{tok.value}'"
        return tok.type

    # ---------- TOP LEVEL ----------
    def parse(self):
        statements = []
        while self.current_token.type != "EOF":
            statements.append(self.nested_guard(self.declaration))
        return Program(statements)

    def parse_expression_only(self):
        # REPL helper: a lone expression with an optional trailing ';'
        expr = self.nested_guard(self.expression)
        if self.check("SEMICOLON"):
            self.eat("SEMICOLON")
        if not self.check("EOF"):
            self.error_here(f"Unexpected {self.describe(self.current_token)} after expression")
        return expr

    # ---------- DECLARATIONS / STATEMENTS ----------
    def declaration(self):
        if self.check("LET"):
            return self.let_declaration()
        if self.check("FN"):
            return self.func_def()
        return self.statement()

    def let_declaration(self):
        tok = self.eat("LET")
        name_tok = self.eat("IDENT", "Expected variable name after 'let'")
        self.eat("EQUAL", f"Expected '=' after variable name '{name_tok.value}'")
        initializer = self.expression()
        self.eat("SEMICOLON", "Expected ';' after variable declaration")
        node = Let(name_tok.value, initializer)
        node.line = tok.line
        return node

    def func_def(self):
        tok = self.eat("FN")
        name_tok = self.eat("IDENT", "Expected function name after 'fn'")
        self.eat("LPAREN", f"Expected '(' after function name '{name_tok.value}'")

        params = []
        if not self.check("RPAREN"):
            params.append(self.param(params))
            while self.check("COMMA"):
                self.eat("COMMA")
                params.append(self.param(params))
        self.eat("RPAREN", "Expected ')' after parameters")

        if not self.check("LBRACE"):
            self.error_here("Expected '{' before function body")
        body = self.block()

        node = FuncDef(name_tok.value, params, body)
        node.line = tok.line
        return node

    def param(self, seen):
        name_tok = self.eat("IDENT", "Expected parameter name")
        if name_tok.value in seen:
            raise ParseError(f"Duplicate parameter '{name_tok.value}'", name_tok.line)
        return name_tok.value

    def statement(self):
        if self.check("IF"):
            return self.if_statement()
        if self.check("WHILE"):
            return self.while_statement()
        if self.check("RETURN"):
            return self.return_statement()
        if self.check("LBRACE"):
            return self.block()
        return self.expression_statement()

    def if_statement(self):
        tok = self.eat("IF")
        condition = self.expression()
        then_branch = self.statement()
        else_branch = None
        if self.check("ELSE"):
            self.eat("ELSE")
            else_branch = self.statement()
        node = If(condition, then_branch, else_branch)
        node.line = tok.line
        return node

    def while_statement(self):
        tok = self.eat("WHILE")
        condition = self.expression()
        body = self.statement()
        node = While(condition, body)
        node.line = tok.line
        return node

    def return_statement(self):
        tok = self.eat("RETURN")
        expr = None
        if not self.check("SEMICOLON"):
            expr = self.expression()
        self.eat("SEMICOLON", "Expected ';' after return value")
        node = Return(expr)
        node.line = tok.line
        return node

    def block(self):
        tok = self.eat("LBRACE")
        statements = []
        while not self.check("RBRACE", "EOF"):
            statements.append(self.declaration())
        self.eat("RBRACE", "Expected '}' after block")
        node = Block(statements)
        node.line = tok.line
        return node

    def expression_statement(self):
        line = self.current_token.line
        expr = self.expression()
        self.eat("SEMICOLON", "Expected ';' after expression")
        node = ExprStmt(expr)
        node.line = line
        return node

    # ---------- EXPRESSIONS ----------
    # expression -> assignment
    def expression(self):
        return self.assignment()

    # assignment -> IDENT '=' assignment | logic_or
    def assignment(self):
        target = self.logic_or()

        if self.check("EQUAL"):
            eq_tok = self.eat("EQUAL")
            value = self.assignment()
            if not isinstance(target, Variable):
                raise ParseError("Invalid assignment target", eq_tok.line)
            node = Assign(target, value)
            node.line = eq_tok.line
            return node

        return target

    # logic_or -> logic_and (OR logic_and)*
    def logic_or(self):
        node = self.logic_and()
        while self.check("OR"):
            tok = self.eat("OR")
            node = Logical(node, "or", self.logic_and())
            node.line = tok.line
        return node

    # logic_and -> equality (AND equality)*
    def logic_and(self):
        node = self.equality()
        while self.check("AND"):
            tok = self.eat("AND")
            node = Logical(node, "and", self.equality())
            node.line = tok.line
        return node

    def equality(self):
        return self.binary_level(self.comparison, ("EQEQ", "NOTEQ"))

    def comparison(self):
        return self.binary_level(self.term, ("LT", "LTE", "GT", "GTE"))

    def term(self):
        return self.binary_level(self.factor, ("PLUS", "MINUS"))

    def factor(self):
        return self.binary_level(self.unary, ("STAR", "SLASH", "PERCENT"))

    # left-associative: operand (op operand)*
    def binary_level(self, operand, op_types):
        node = operand()
        while self.current_token.type in op_types:
            op_token = self.eat(self.current_token.type)
            right = operand()
            node = Binary(node, self.op_token_to_text(op_token.type), right)
            node.line = op_token.line
        return node

    # unary -> ('-' | '!' | 'not') unary | call
    def unary(self):
        if self.check("MINUS", "BANG", "NOT"):
            tok = self.eat(self.current_token.type)
            op = "-" if tok.type == "MINUS" else "!"
            node = Unary(op, self.unary())
            node.line = tok.line
            return node
        return self.call()

    # call -> primary ('(' args? ')')*
    def call(self):
        node = self.primary()
        while self.check("LPAREN"):
            tok = self.eat("LPAREN")
            args = []
            if not self.check("RPAREN"):
                args.append(self.expression())
                while self.check("COMMA"):
                    self.eat("COMMA")
                    args.append(self.expression())
            self.eat("RPAREN", "Expected ')' after arguments")
            node = Call(node, args)
            node.line = tok.line
        return node

    # primary -> NUMBER | STRING | true | false | nil | IDENT | '(' expression ')'
    def primary(self):
        tok = self.current_token

        if tok.type in ("NUMBER", "STRING"):
            self.eat(tok.type)
            node = Literal(tok.value)
        elif tok.type == "TRUE":
            self.eat("TRUE")
            node = Literal(True)
        elif tok.type == "FALSE":
            self.eat("FALSE")
            node = Literal(False)
        elif tok.type == "NIL":
            self.eat("NIL")
            node = Literal(None)
        elif tok.type == "IDENT":
            self.eat("IDENT")
            node = Variable(tok.value)
        elif tok.type == "LPAREN":
            self.eat("LPAREN")
            node = self.expression()
            self.eat("RPAREN", "Expected ')' after expression")
            return node
        else:
            raise ParseError(f"Expected expression, got {self.describe(tok)}", tok.line)

        node.line = tok.line
        return node

    # ---------- HELPERS ----------
    def op_token_to_text(self, op_type):
        mapping = {
            "PLUS": "+",
            "MINUS": "-",
            "STAR": "*",
            "SLASH": "/",
            "PERCENT": "%",
            "EQEQ": "==",
            "NOTEQ": "!=",
            "LT": "<",
            "LTE": "<=",
            "GT": ">",
            "GTE": ">=",
        }
        return mapping[op_type]
