"""
simple calculator, recursive descent over digit tokens
- integer literals, parentheses, addition and subtraction
- each digit is its own token, the parser folds runs of them
- `+` takes a term (chains left to right), `-` takes a whole expr

grammar:
expr    : term ((PLUS term)* (MINUS expr)?)
term    : LPAREN expr RPAREN
        | number
number  : DIGIT (DIGIT)*
"""

from collections import namedtuple
from contextlib import contextmanager
from enum import Enum
import argparse
import re
import sys

from pyecharts import options as opts
from pyecharts.charts import Tree

LOCAL_ECHARTS = False
DEFAULT_TREE_FILE = 'Tree.html'
_SHOULD_LOG_TOKENS = False
_SHOULD_LOG_TREE = False
# paren nesting and the tree walk recurse, raise the interpreter limit up to this
RECURSION_LIMIT = 20000

DIGITS = '0123456789'
# str.isspace() also accepts the \x1c-\x1f separators, they are not whitespace here
SEPARATORS = '\x1c\x1d\x1e\x1f'

###############################################################################
#                                                                             #
#   ERROR MESSAGE                                                             #
#                                                                             #
###############################################################################

Position = namedtuple('Position', ['line', 'col'])


class ErrorInfo:
    # lexer error

    @staticmethod
    def invalid_token(item):
        return f'invalid token {item!r}'

    # parser error

    @staticmethod
    def expected(want, item):
        return f'expected {want}, found `{item}`'

    @staticmethod
    def unexpected_end_of_input():
        return 'unexpected end of input'


class ParseError(Exception):
    def __init__(self, message, position=None):
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self):
        if self.position is None:
            return f'{self.__class__.__name__}: {self.message}'
        return f'{self.__class__.__name__}: <{self.position.line}:{self.position.col}>: {self.message}'


class Expected(ParseError):
    """a specific token was required but another one was found"""

    def __init__(self, expected, found):
        super().__init__(ErrorInfo.expected(expected, found.text()), found.position)
        self.expected = expected
        self.found = found


class UnexpectedEndOfInput(ParseError):
    def __init__(self):
        super().__init__(ErrorInfo.unexpected_end_of_input())


class InvalidToken(ParseError):
    """the lexer met a char outside of the language"""

    def __init__(self, char, position=None):
        super().__init__(ErrorInfo.invalid_token(char), position)
        self.char = char


###############################################################################
#                                                                             #
#  LEXER                                                                      #
#                                                                             #
###############################################################################

# Token types
class TokenType(Enum):
    LPAREN  = '('
    RPAREN  = ')'
    PLUS    = '+'
    MINUS   = '-'
    DIGIT   = 'DIGIT'


class Token:
    def __init__(self, token_type, value, position=None):
        """Token

        Args:
          token_type: TokenType
          value: str for punctuation, int 0-9 for DIGIT
          position: Position, only used for error messages
        """
        self.type = token_type
        self.value = value
        self.position = position

    def text(self):
        """the source char this token was made of"""
        return str(self.value)

    def __eq__(self, other):
        if not isinstance(other, Token):
            return NotImplemented
        return self.type == other.type and self.value == other.value

    __hash__ = None

    def __str__(self):
        if self.position is None:
            return f'Token({self.type.name}, {repr(self.value)})'
        return f'Token({self.type.name}, {repr(self.value)}, pos={self.position.line}:{self.position.col})'

    def __repr__(self):
        return self.__str__()


class Lexer:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.current_char = self.text[self.pos] if self.text else None
        # for error information
        self.line = 1
        self.col = 1

    def position(self):
        return Position(self.line, self.col)

    def error(self):
        raise InvalidToken(self.current_char, self.position())

    def advance(self):
        """get next char, and increase the pos pointer
        """
        if self.current_char == '\n':
            self.line += 1
            self.col = 0

        self.pos += 1
        self.col += 1
        if self.pos > len(self.text) - 1:
            self.current_char = None  # end of input
        else:
            self.current_char = self.text[self.pos]

    def is_whitespace(self):
        return self.current_char.isspace() and self.current_char not in SEPARATORS

    def skip_whitespace(self):
        while self.current_char is not None and self.is_whitespace():
            self.advance()

    def get_next_token(self):
        """lexical analyzer, one token one time, None at the end of input
        """
        while self.current_char is not None:
            if self.is_whitespace():
                self.skip_whitespace()
                continue

            # one digit -> one token, runs are folded by the parser
            if self.current_char in DIGITS:
                token = Token(TokenType.DIGIT, int(self.current_char), self.position())
                self.advance()
                return token

            try:
                token_type = TokenType(self.current_char)
            except ValueError:
                self.error()
            else:
                token = Token(token_type, self.current_char, self.position())
                self.advance()
                return token

        return None

    def tokenize(self):
        tokens = []
        token = self.get_next_token()
        while token is not None:
            tokens.append(token)
            token = self.get_next_token()
        return tokens


def tokenize(text):
    return Lexer(text).tokenize()


###############################################################################
#                                                                             #
#  AST & PARSER                                                               #
#                                                                             #
###############################################################################

@contextmanager
def deep_recursion(limit=None):
    """let deeply nested input recurse past the default interpreter limit

    Usable as a decorator too, the limit goes back to its old value on exit.
    """
    old_limit = sys.getrecursionlimit()
    sys.setrecursionlimit(max(old_limit, limit or RECURSION_LIMIT))
    try:
        yield
    finally:
        sys.setrecursionlimit(old_limit)


class AST:
    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return vars(self) == vars(other)

    __hash__ = None


class Number(AST):
    def __init__(self, value: int):
        self.value = value

    def __repr__(self):
        return f'Number({self.value})'


class BinOp(AST):
    """base of the two binary nodes, `op` is the symbol shown for the node"""
    op = None

    def __init__(self, left, right):
        self.left = left
        self.right = right

    def __repr__(self):
        return f'{self.__class__.__name__}({self.left!r}, {self.right!r})'


class Add(BinOp):
    op = '+'


class Subtract(BinOp):
    op = '-'


class Parser:
    """every rule takes the index of its first token and returns (node, index)

    The returned index is where the unconsumed remainder starts, a rule
    never looks past the prefix it owns.
    """

    def __init__(self, tokens):
        self.tokens = tokens

    def token_at(self, pos):
        if pos < len(self.tokens):
            return self.tokens[pos]
        return None

    def remaining(self, pos):
        return self.tokens[pos:]

    def expr(self, pos=0):
        """parse expr

        expr: term ((PLUS term)* (MINUS expr)?)

        The MINUS branch is unrolled: 1-2-3 collects [1, 2, 3] and folds
        them from the right into 1-(2-3).
        """
        operands = []
        while True:
            node, pos = self.term(pos)
            token = self.token_at(pos)
            while token is not None and token.type == TokenType.PLUS:
                right, pos = self.term(pos + 1)
                node = Add(node, right)
                token = self.token_at(pos)
            operands.append(node)

            if token is None or token.type != TokenType.MINUS:
                break
            pos += 1

        node = operands.pop()
        while operands:
            node = Subtract(operands.pop(), node)
        return node, pos

    def term(self, pos):
        """parse term

        term: LPAREN expr RPAREN
            | number
        """
        token = self.token_at(pos)
        if token is None:
            raise UnexpectedEndOfInput()

        if token.type == TokenType.LPAREN:
            node, pos = self.expr(pos + 1)
            token = self.token_at(pos)
            if token is None:
                raise UnexpectedEndOfInput()
            if token.type != TokenType.RPAREN:
                raise Expected('right parenthesis', token)
            return node, pos + 1

        return self.number(pos)

    def number(self, pos):
        """parse number

        number: DIGIT (DIGIT)*
        """
        token = self.token_at(pos)
        if token is None:
            raise UnexpectedEndOfInput()
        if token.type != TokenType.DIGIT:
            raise Expected('digit', token)

        value = token.value
        pos += 1
        token = self.token_at(pos)
        while token is not None and token.type == TokenType.DIGIT:
            value = value * 10 + token.value
            pos += 1
            token = self.token_at(pos)

        return Number(value), pos

    @deep_recursion()
    def parse(self):
        node, pos = self.expr(0)
        token = self.token_at(pos)
        if token is not None:
            raise Expected('end of input', token)
        return node


def parse(text):
    return Parser(tokenize(text)).parse()


###############################################################################
#                                                                             #
#  INTERPRETER                                                                #
#                                                                             #
###############################################################################

class NodeVisitor:
    def visit(self, node):
        """dispatches
        """
        method_name = 'visit_' + type(node).__name__
        visitor = getattr(self, method_name, self.generic_visitor)
        return visitor(node)

    def generic_visitor(self, node):
        raise Exception(f'No visit_{type(node).__name__} method')


class Interpreter(NodeVisitor):
    def __init__(self, tree):
        self.tree = tree

    def visit_Add(self, node: Add):
        # additions chain down the left side: ((1+2)+3)+4
        rights = []
        while isinstance(node, Add):
            rights.append(node.right)
            node = node.left

        result = self.visit(node)
        for right in reversed(rights):
            result += self.visit(right)
        return result

    def visit_Subtract(self, node: Subtract):
        # subtractions chain down the right side: 1-(2-(3-4))
        lefts = []
        while isinstance(node, Subtract):
            lefts.append(node.left)
            node = node.right

        result = self.visit(node)
        for left in reversed(lefts):
            result = self.visit(left) - result
        return result

    def visit_Number(self, node: Number):
        return node.value

    @deep_recursion()
    def interpret(self):
        return self.visit(self.tree)


def evaluate(text):
    return Interpreter(parse(text)).interpret()


###############################################################################
#                                                                             #
#  DISPLAYER                                                                  #
#                                                                             #
###############################################################################

class Displayer(NodeVisitor):
    def __init__(self, tree) -> None:
        self.tree = tree

    def visit_Add(self, node: Add):
        return self.visit_BinOp(node)

    def visit_Subtract(self, node: Subtract):
        return self.visit_BinOp(node)

    def visit_BinOp(self, node: BinOp):
        data = {
            'name': node.op,
            'children': [self.visit(node.left), self.visit(node.right)]
        }
        return data

    def visit_Number(self, node: Number):
        data = {
            'name': f'{node.value}'
        }
        return data

    @deep_recursion()
    def pack(self):
        return self.visit(self.tree)

    def display(self, path=DEFAULT_TREE_FILE):
        data = self.pack()
        (
            Tree(init_opts=opts.InitOpts(page_title='Tree'))
            .add(
                series_name="",  # name
                data=[data],  # data
                initial_tree_depth=-1,  # all expand
                orient="TB",  # top-to-bottom
                label_opts=opts.LabelOpts(
                    position="top",
                    vertical_align="middle",
                ),
            )
            .set_global_opts(title_opts=opts.TitleOpts(title="Tree"))
            .render(path)
        )
        # modify js reference to local
        if LOCAL_ECHARTS:
            with open(path, 'r') as fin:
                content = fin.read()
            content = re.sub(r'src="[^"]*echarts\.min\.js"', 'src="echarts.min.js"', content)
            with open(path, 'w') as fout:
                fout.write(content)
        return path


###############################################################################
#                                                                             #
#   MAIN                                                                      #
#                                                                             #
###############################################################################

def log_tokens(msg):
    if _SHOULD_LOG_TOKENS:
        print(msg)


def log_tree(msg):
    if _SHOULD_LOG_TREE:
        print(msg)


def build_arg_parser():
    parser = argparse.ArgumentParser(
        prog='pcalc',
        description='pcalc - parenthesized integer calculator',
        epilog='options go before the expression, everything after the first word is expression text',
    )
    parser.add_argument('--tokens', action='store_true', help='Print the input and its tokens')
    parser.add_argument('--tree', action='store_true', help='Print the parsed tree')
    parser.add_argument('--display', metavar='FILE',
                        help=f'Render the tree into an html chart, like {DEFAULT_TREE_FILE}')
    parser.add_argument('--local-echarts', action='store_true',
                        help='Reference a local echarts.min.js in the rendered chart')
    parser.add_argument('expression', nargs=argparse.REMAINDER, help='expression words, joined with single spaces')
    return parser


def main(argv=None):
    global _SHOULD_LOG_TOKENS
    global _SHOULD_LOG_TREE
    global LOCAL_ECHARTS

    args = build_arg_parser().parse_args(argv)

    _SHOULD_LOG_TOKENS = args.tokens
    _SHOULD_LOG_TREE = args.tree
    LOCAL_ECHARTS = args.local_echarts

    words = args.expression
    if words and words[0] == '--':
        words = words[1:]
    text = ' '.join(words)

    try:
        with deep_recursion():
            log_tokens(f'input: {text}')
            tokens = tokenize(text)
            log_tokens(f'tokens: {tokens}')

            tree = Parser(tokens).parse()
            log_tree(f'tree: {tree!r}')

            if args.display:
                Displayer(tree).display(args.display)

            interpreter = Interpreter(tree)
            print(interpreter.interpret())

    except ParseError as e:
        print(e)
        return 1
    except RecursionError:
        print('RecursionError: expression is nested too deeply')
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
