from errors import LexError


KEYWORDS = {
    "let": "LET",
    "if": "IF",
    "else": "ELSE",
    "while": "WHILE",
    "fn": "FN",
    "return": "RETURN",
    "true": "TRUE",
    "false": "FALSE",
    "nil": "NIL",
    "and": "AND",
    "or": "OR",
    "not": "NOT",
}

SINGLE_CHAR_TOKENS = {
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "/": "SLASH",
    "%": "PERCENT",
    "(": "LPAREN",
    ")": "RPAREN",
    "{": "LBRACE",
    "}": "RBRACE",
    ",": "COMMA",
    ";": "SEMICOLON",
}

# second char "=" turns these into the two-char form
WITH_EQUALS = {
    "=": ("EQUAL", "EQEQ"),
    "!": ("BANG", "NOTEQ"),
    "<": ("LT", "LTE"),
    ">": ("GT", "GTE"),
}

DIGITS = "0123456789"

ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    '"': '"',
}


class Token:
    def __init__(self, type, value=None, line=1, column=1):
        self.type = type
        self.value = value
        self.line = line
        self.column = column

    def __repr__(self):
        if self.value is not None:
            return f"{self.type}({self.value!r})"
        return f"{self.type}"

    def __eq__(self, other):
        if not isinstance(other, Token):
            return NotImplemented
        return (self.type, self.value, self.line) == (other.type, other.value, other.line)


class Lexer:
    def __init__(self, text):
        self.text = text
        self.pos = 0
        self.current_char = text[0] if text else None
        self.line = 1
        self.column = 1

    def advance(self):
        # track line/column based on current_char before moving
        if self.current_char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.pos += 1
        if self.pos >= len(self.text):
            self.current_char = None
        else:
            self.current_char = self.text[self.pos]

    def peek(self):
        nxt = self.pos + 1
        if nxt >= len(self.text):
            return None
        return self.text[nxt]

    # spaces/tabs/carriage returns only; newlines become tokens
    def skip_whitespace(self):
        while self.current_char and self.current_char in " \t\r":
            self.advance()

    def skip_comment(self):
        while self.current_char and self.current_char != "\n":
            self.advance()

    def read_identifier(self):
        start_line, start_col = self.line, self.column
        result = ""
        while self.current_char and (self.current_char.isalnum() or self.current_char == "_"):
            result += self.current_char
            self.advance()

        kind = KEYWORDS.get(result)
        if kind is not None:
            return Token(kind, line=start_line, column=start_col)
        return Token("IDENT", result, line=start_line, column=start_col)

    def read_number(self):
        start_line, start_col = self.line, self.column
        result = ""

        while self.current_char and self.current_char in DIGITS:
            result += self.current_char
            self.advance()

        if self.current_char == ".":
            result += "."
            self.advance()
            if not (self.current_char and self.current_char in DIGITS):
                raise LexError(f"Invalid number literal '{result}'", start_line)
            while self.current_char and self.current_char in DIGITS:
                result += self.current_char
                self.advance()

        return Token("NUMBER", float(result), line=start_line, column=start_col)

    def read_string(self):
        start_line, start_col = self.line, self.column
        self.advance()  # skip opening quote
        result = ""

        while self.current_char is not None and self.current_char != '"':
            if self.current_char == "\\":
                self.advance()  # consume backslash
                if self.current_char is None:
                    break
                esc = self.current_char
                # unknown escapes are kept as backslash + char
                result += ESCAPES.get(esc, "\\" + esc)
                self.advance()
                continue

            result += self.current_char
            self.advance()

        if self.current_char != '"':
            raise LexError("Unterminated string", start_line)

        self.advance()  # skip closing quote
        return Token("STRING", result, line=start_line, column=start_col)

    def get_next_token(self):
        while self.current_char:

            if self.current_char == "\n":
                start_line, start_col = self.line, self.column
                self.advance()
                return Token("NEWLINE", line=start_line, column=start_col)

            if self.current_char in " \t\r":
                self.skip_whitespace()
                continue

            if self.current_char == "/" and self.peek() == "/":
                self.skip_comment()
                continue

            if self.current_char.isalpha() or self.current_char == "_":
                return self.read_identifier()

            if self.current_char in DIGITS:
                return self.read_number()

            if self.current_char == '"':
                return self.read_string()

            start_line, start_col = self.line, self.column

            if self.current_char in WITH_EQUALS:
                single, double = WITH_EQUALS[self.current_char]
                if self.peek() == "=":
                    self.advance()
                    self.advance()
                    return Token(double, line=start_line, column=start_col)
                self.advance()
                return Token(single, line=start_line, column=start_col)

            # && and || have no single-char form
            if self.current_char in "&|":
                ch = self.current_char
                if self.peek() != ch:
                    raise LexError(f"Unexpected character '{ch}' (did you mean '{ch}{ch}'?)", start_line)
                self.advance()
                self.advance()
                return Token("AND" if ch == "&" else "OR", line=start_line, column=start_col)

            kind = SINGLE_CHAR_TOKENS.get(self.current_char)
            if kind is not None:
                self.advance()
                return Token(kind, line=start_line, column=start_col)

            raise LexError(f"Unexpected character '{self.current_char}'", start_line)

        return Token("EOF", line=self.line, column=self.column)

    def tokenize(self):
        tokens = []
        while True:
            tok = self.get_next_token()
            tokens.append(tok)
            if tok.type == "EOF":
                return tokens
