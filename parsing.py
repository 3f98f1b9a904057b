"""
EX Programming Language Parser
pyparsing grammar producing the statement and expression nodes in ast_nodes
"""

from typing import Any, List

from pyparsing import (
    Regex, Keyword, Literal, Suppress, Forward, Group, ZeroOrMore, OneOrMore,
    Optional as PyParsingOptional, DelimitedList, MatchFirst, StringEnd,
    ParseException, ParseBaseException, ParserElement, infix_notation, OpAssoc,
    one_of, cpp_style_comment, lineno, col, line
)

import ast_nodes as nodes
from ast_nodes import SourceSpan
from error_handling import EXErrorHandler, EXParseError
from values import (
    BigInt, Bool, Char, Float, Int, String, UInt, NIL, INT_MAX, UINT_MAX
)

# Enable packrat parsing for performance
ParserElement.enable_packrat()


KEYWORDS = [
    "label", "jump", "pass", "for", "in", "while", "do", "if", "elif", "else",
    "visible", "struct", "lock", "unlock", "kill", "revive", "const",
    "kprint", "log", "macro", "true", "false", "nil",
]

ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


# ============================================================================
# LITERAL CONVERSION
# ============================================================================

def unescape(body: str) -> str:
    """Resolve backslash escapes; an unknown escape keeps the escaped character"""
    result = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            result.append(ESCAPES.get(body[i + 1], body[i + 1]))
            i += 2
        else:
            result.append(ch)
            i += 1
    return "".join(result)


def integer_value(text: str) -> Any:
    """Decimal or O-prefixed integer text to Int, or BigInt past the signed 128-bit range"""
    prefix = text[:2].lower()
    if prefix == "ox":
        number = int(text[2:], 16)
    elif prefix == "ob":
        number = int(text[2:], 2)
    elif prefix == "oo":
        number = int(text[2:], 8)
    else:
        number = int(text)
    if number > INT_MAX:
        return BigInt(str(number))
    return Int(number)


def unsigned_value(text: str) -> Any:
    number = int(text[:-1])
    if number > UINT_MAX:
        return BigInt(str(number))
    return UInt(number)


def inclusive_range(start: int, end: int) -> tuple:
    if start <= end:
        return tuple(range(start, end + 1))
    return tuple(range(start, end - 1, -1))


# ============================================================================
# GRAMMAR
# ============================================================================

class EXGrammar:
    """EX grammar definition using pyparsing"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.filename = "<input>"
        self._setup_grammar()

    def _span(self, s: str, loc: int) -> SourceSpan:
        line_num = lineno(loc, s)
        text = line(loc, s)
        return SourceSpan(self.filename, line_num, col(loc, s), line_num, len(text) + 1, text.strip())

    def _setup_grammar(self):
        """Setup the EX grammar; parse actions build ast_nodes directly"""
        span = self._span

        expression = Forward()
        statement = Forward()

        # Punctuation
        LPAR, RPAR, LBRACK, RBRACK, LBRACE, RBRACE = map(Suppress, "()[]{}")
        COMMA = Suppress(",")
        COLON = Suppress(":")
        DOT = Suppress(".")
        EQ = Regex(r"=(?!=)").suppress()
        SEMI = Suppress(";")

        # Keywords
        kw = {name: Keyword(name) for name in KEYWORDS}
        any_keyword = MatchFirst([kw[name] for name in KEYWORDS])

        identifier = ~any_keyword + Regex(r"[A-Za-z_][A-Za-z0-9_]*")

        # Literals
        hex_int = Regex(r"O[xX][0-9A-Fa-f]+(?![\w])")
        bin_int = Regex(r"O[bB][01]+(?![\w])")
        oct_int = Regex(r"O[oO][0-7]+(?![\w])")
        float_lit = Regex(r"\d+\.\d+(?:[eE][+-]?\d+)?")
        uint_lit = Regex(r"\d+u(?![\w])")
        dec_int = Regex(r"\d+(?![\w])")
        string_lit = Regex(r'"(?:[^"\\\n]|\\.)*"')
        char_lit = Regex(r"'(?:[^'\\\n]|\\.)'")

        def literal_action(convert):
            return lambda s, loc, t: nodes.Literal(convert(t[0]), span(s, loc))

        number = (
            (hex_int | bin_int | oct_int).set_parse_action(literal_action(integer_value)) |
            float_lit.copy().set_parse_action(literal_action(lambda text: Float(float(text)))) |
            uint_lit.copy().set_parse_action(literal_action(unsigned_value)) |
            dec_int.copy().set_parse_action(literal_action(integer_value))
        )
        string_literal = string_lit.copy().set_parse_action(
            literal_action(lambda text: String(unescape(text[1:-1]))))
        char_literal = char_lit.copy().set_parse_action(
            literal_action(lambda text: Char(unescape(text[1:-1]))))
        constant = (
            kw["true"].copy().set_parse_action(literal_action(lambda _: Bool(True))) |
            kw["false"].copy().set_parse_action(literal_action(lambda _: Bool(False))) |
            kw["nil"].copy().set_parse_action(literal_action(lambda _: NIL))
        )
        literal = number | string_literal | char_literal | constant

        # Iterable range ::[a..b], inclusive on both ends
        signed_int = Regex(r"-?\d+")
        iterable = (
            Suppress("::") + LBRACK + signed_int + Suppress("..") + signed_int + RBRACK
        ).set_parse_action(
            lambda s, loc, t: nodes.Iterable(inclusive_range(int(t[0]), int(t[1])), span(s, loc)))

        # Collections
        dict_pair = Group(expression + COLON + expression)

        def make_dictionary(s, loc, t):
            return nodes.Dictionary([(pair[0], pair[1]) for pair in t], span(s, loc))

        tagged_dict = (
            LBRACK + Regex(r"&d(?![\w])").suppress() +
            PyParsingOptional(COMMA + PyParsingOptional(DelimitedList(dict_pair))) + RBRACK
        ).set_parse_action(make_dictionary)
        brace_dict = (
            LBRACE + PyParsingOptional(DelimitedList(dict_pair)) + RBRACE
        ).set_parse_action(make_dictionary)

        tagged_axis = (
            LBRACK + Regex(r"&a(?![\w])").suppress() +
            PyParsingOptional(COMMA + PyParsingOptional(DelimitedList(expression))) + RBRACK
        ).set_parse_action(lambda s, loc, t: nodes.Axis(list(t), span(s, loc)))
        array = (
            LBRACK + PyParsingOptional(Regex(r"&l(?![\w])").suppress() + PyParsingOptional(COMMA)) +
            PyParsingOptional(DelimitedList(expression)) + RBRACK
        ).set_parse_action(lambda s, loc, t: nodes.Array(list(t), span(s, loc)))

        # Blocks are always a single Group token holding the statements
        block = Group(LBRACE + ZeroOrMore(statement) + RBRACE)

        # Calls
        positional_args = Group(LPAR + PyParsingOptional(DelimitedList(expression)) + RPAR)
        named_arg = Group(identifier + EQ + expression)
        named_args = Group(LPAR + PyParsingOptional(DelimitedList(named_arg)) + RPAR)

        function_call = (identifier + named_args).set_parse_action(
            lambda s, loc, t: nodes.FunctionCall(
                t[0], [(arg[0], arg[1]) for arg in t[1]], span(s, loc)))
        struct_instantiation = (
            identifier + Suppress("::") + identifier + positional_args
        ).set_parse_action(
            lambda s, loc, t: nodes.StructInstantiation(t[0], t[1], list(t[2]), span(s, loc)))
        macro_call = (
            kw["macro"].suppress() + positional_args + block
        ).set_parse_action(
            lambda s, loc, t: nodes.MacroCall(list(t[0]), list(t[1]), span(s, loc)))
        grouping = (LPAR + expression + RPAR).set_parse_action(
            lambda s, loc, t: nodes.Grouping(t[0], span(s, loc)))
        # A name directly followed by "(" is a call with missing argument names
        variable = (identifier + ~LPAR).set_parse_action(
            lambda s, loc, t: nodes.Variable(t[0], span(s, loc)))

        primary = (
            iterable |
            literal |
            tagged_dict |
            tagged_axis |
            array |
            brace_dict |
            macro_call |
            struct_instantiation |
            function_call |
            grouping |
            variable
        )

        # Postfix chain: [i], .field, .method(args)
        index_suffix = (LBRACK + expression + RBRACK).set_parse_action(
            lambda t: ("index", t[0]))
        method_suffix = (DOT + identifier + positional_args).set_parse_action(
            lambda t: ("method", t[0], list(t[1])))
        member_suffix = (DOT + identifier).set_parse_action(
            lambda t: ("member", t[0]))

        def make_postfix(s, loc, t):
            node = t[0]
            accessors = []
            for suffix in t[1:]:
                if suffix[0] == "index":
                    accessors.append(suffix[1])
                    continue
                if accessors:
                    node = nodes.Access(node, accessors, span(s, loc))
                    accessors = []
                if suffix[0] == "member":
                    node = nodes.MemberAccess(node, suffix[1], span(s, loc))
                else:
                    node = nodes.MethodCall(node, suffix[1], suffix[2], span(s, loc))
            if accessors:
                node = nodes.Access(node, accessors, span(s, loc))
            return node

        postfix = (primary + ZeroOrMore(index_suffix | method_suffix | member_suffix)).set_parse_action(make_postfix)

        # Operators, tightest binding first
        def make_unary(s, loc, t):
            items = list(t[0])
            operand = items[-1]
            for operator in reversed(items[:-1]):
                operand = nodes.Unary(operator, operand, span(s, loc))
            return operand

        def make_binary(s, loc, t):
            items = list(t[0])
            node = items[0]
            for i in range(1, len(items), 2):
                node = nodes.Binary(node, items[i], items[i + 1], span(s, loc))
            return node

        expression <<= infix_notation(postfix, [
            (one_of("! -"), 1, OpAssoc.RIGHT, make_unary),
            (one_of("* / %"), 2, OpAssoc.LEFT, make_binary),
            (one_of("+ -"), 2, OpAssoc.LEFT, make_binary),
            (one_of("<= >= < >"), 2, OpAssoc.LEFT, make_binary),
            (one_of("== !="), 2, OpAssoc.LEFT, make_binary),
            (Literal("&&"), 2, OpAssoc.LEFT, make_binary),
            (Literal("||"), 2, OpAssoc.LEFT, make_binary),
        ])

        # ====================================================================
        # STATEMENTS
        # ====================================================================

        def make_assignment(s, loc, t):
            target, value = t[0], t[1]
            where = span(s, loc)
            if isinstance(target, nodes.Variable):
                expr = nodes.AllocateVariable(target.name, value, where)
            elif isinstance(target, nodes.MemberAccess):
                expr = nodes.MemberAssign(target.object, target.member, value, where)
            elif isinstance(target, nodes.Access) and isinstance(target.root, nodes.Variable):
                expr = nodes.IndexAssign(target.root.name, target.accessors, value, where)
            else:
                raise ParseException(s, loc, "Invalid assignment target")
            return nodes.Expression(expr, where)

        assignment = (postfix + EQ + expression).set_parse_action(make_assignment)

        def binding_statement(name, node_class):
            return (kw[name].suppress() + identifier).set_parse_action(
                lambda s, loc, t: node_class(t[0], span(s, loc)))

        binding_tiers = (
            binding_statement("lock", nodes.SmartLock) |
            binding_statement("unlock", nodes.SmartUnlock) |
            binding_statement("kill", nodes.SmartKill) |
            binding_statement("revive", nodes.SmartRevive) |
            binding_statement("const", nodes.SmartConst)
        )

        print_statement = ((kw["kprint"] | kw["log"]).suppress() + expression).set_parse_action(
            lambda s, loc, t: nodes.Expression(nodes.Print(t[0], span(s, loc)), span(s, loc)))

        elif_clause = Group(kw["elif"].suppress() + expression + block)

        def make_if(s, loc, t):
            elif_branches = [(clause[0], list(clause[1])) for clause in t[2]]
            else_branch = list(t[3]) if len(t) > 3 else None
            return nodes.If(t[0], list(t[1]), elif_branches, else_branch, span(s, loc))

        if_statement = (
            kw["if"].suppress() + expression + block +
            Group(ZeroOrMore(elif_clause)) +
            PyParsingOptional(kw["else"].suppress() + block)
        ).set_parse_action(make_if)

        # label f(external=internal, ...) visible(b1, b2) { ... }
        # label @name { ... }
        param = Group(identifier + EQ + identifier)

        def make_callable_label(t):
            params = t[1]
            return nodes.LabelDecl(
                name=t[0],
                callable=True,
                params=[p[0] for p in params],
                internal_names=[p[1] for p in params],
                visible_blocks=list(t[2]),
                body=list(t[3])
            )

        callable_label = (
            identifier +
            Group(PyParsingOptional(LPAR + PyParsingOptional(DelimitedList(param)) + RPAR)) +
            Group(PyParsingOptional(
                kw["visible"].suppress() + LPAR + PyParsingOptional(DelimitedList(identifier)) + RPAR)) +
            block
        ).set_parse_action(make_callable_label)
        control_label = (Suppress("@") + identifier + block).set_parse_action(
            lambda t: nodes.LabelDecl(name=t[0], callable=False, body=list(t[1])))

        label_statement = (
            kw["label"].suppress() + DelimitedList(control_label | callable_label)
        ).set_parse_action(lambda s, loc, t: nodes.Label(list(t), span(s, loc)))

        jump_statement = (
            kw["jump"].suppress() + PyParsingOptional(Suppress("@")) + identifier
        ).set_parse_action(lambda s, loc, t: nodes.Jump(t[0], span(s, loc)))
        pass_statement = kw["pass"].copy().set_parse_action(
            lambda s, loc, t: nodes.Pass(span(s, loc)))

        for_statement = (
            kw["for"].suppress() + identifier + kw["in"].suppress() + expression + block
        ).set_parse_action(lambda s, loc, t: nodes.For(t[0], t[1], list(t[2]), span(s, loc)))
        while_statement = (
            kw["while"].suppress() + expression + block
        ).set_parse_action(lambda s, loc, t: nodes.While(t[0], list(t[1]), span(s, loc)))
        do_while_statement = (
            kw["do"].suppress() + block + kw["while"].suppress() + expression
        ).set_parse_action(lambda s, loc, t: nodes.DoWhile(list(t[0]), t[1], span(s, loc)))

        # visible name { x = e, y = e }
        visible_definition = Group(identifier + EQ + expression) + PyParsingOptional(COMMA)
        visible_statement = (
            kw["visible"].suppress() + identifier + LBRACE + Group(ZeroOrMore(visible_definition)) + RBRACE
        ).set_parse_action(
            lambda s, loc, t: nodes.Visible(t[0], [(d[0], d[1]) for d in t[1]], span(s, loc)))

        # struct Name { constructor(self, a) { ... } method(self) { ... } }
        method_declaration = (
            identifier + Group(LPAR + PyParsingOptional(DelimitedList(identifier)) + RPAR) + block +
            PyParsingOptional(COMMA)
        ).set_parse_action(lambda t: nodes.MethodDecl(t[0], list(t[1]), list(t[2])))
        struct_statement = (
            kw["struct"].suppress() + identifier + LBRACE + Group(ZeroOrMore(method_declaration)) + RBRACE
        ).set_parse_action(lambda s, loc, t: nodes.StructDef(t[0], list(t[1]), span(s, loc)))

        expression_statement = expression.copy().set_parse_action(
            lambda s, loc, t: nodes.Expression(t[0], span(s, loc)))

        statement <<= (
            label_statement |
            if_statement |
            for_statement |
            do_while_statement |
            while_statement |
            visible_statement |
            struct_statement |
            jump_statement |
            pass_statement |
            binding_tiers |
            print_statement |
            assignment |
            expression_statement
        ) + PyParsingOptional(SEMI)

        program = ZeroOrMore(statement) + StringEnd()
        program.ignore(cpp_style_comment)
        single_expression = expression + StringEnd()
        single_expression.ignore(cpp_style_comment)

        # Store the main parsers
        self.program = program
        self.statement = statement
        self.expression = expression
        self.single_expression = single_expression
        self.primary = primary
        self.block = block

    def _raise_parse_error(self, exc: ParseBaseException, text: str, filename: str):
        line_num = getattr(exc, 'lineno', 1)
        col_num = getattr(exc, 'col', 1)
        error_span = SourceSpan(filename, line_num, col_num, line_num, col_num + 1, "")
        raise EXErrorHandler(text, filename).enhance_parse_exception(exc, error_span) from None

    def parse_program(self, text: str, filename: str = "<input>") -> List[Any]:
        """Parse a complete EX program into a statement list"""
        self.filename = filename
        if not text.strip():
            return []
        try:
            result = self.program.parse_string(text, parse_all=True)
        except ParseBaseException as e:
            self._raise_parse_error(e, text, filename)
        return list(result)

    def parse_expression(self, text: str, filename: str = "<input>") -> Any:
        """Parse a single EX expression"""
        self.filename = filename
        try:
            result = self.single_expression.parse_string(text, parse_all=True)
        except ParseBaseException as e:
            self._raise_parse_error(e, text, filename)
        return result[0]


class EXParser:
    """Main EX parser"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.grammar = EXGrammar(debug)

    def parse_file(self, filepath: str) -> List[Any]:
        """Parse an EX source file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise EXParseError(f"File not found: {filepath}")
        except UnicodeDecodeError as e:
            raise EXParseError(f"Cannot decode file {filepath}: {e}")
        return self.parse_string(content, filepath)

    def parse_string(self, text: str, filename: str = "<input>") -> List[Any]:
        """Parse EX source code from string"""
        statements = self.grammar.parse_program(text, filename)
        if self.debug:
            print(f"Parsed {len(statements)} statement(s) from {filename}")
        return statements

    def parse_expression(self, text: str, filename: str = "<input>") -> Any:
        """Parse a single EX expression"""
        return self.grammar.parse_expression(text, filename)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> EXParser:
    """Create an EX parser"""
    return EXParser(debug=debug)


def create_debug_parser() -> EXParser:
    """Create an EX parser with debug enabled"""
    return EXParser(debug=True)
