# lispy.py

import inspect
import logging
import re
from pathlib import Path
from typing import Any, Callable, List, Optional, Literal, Dict
from dataclasses import dataclass, field

import yaml
from koine import Parser

from lispy.lispy_transformer import LispyTransformer, ParseNode, NUMBER_MIN, NUMBER_MAX, SYNTAX_TAGS
from lispy.lispy_interpreter import Evaluator
from lispy.lispy_printer import Printer
from lispy.lispy_datatypes import (
    Value, Number, Error, Symbol, Expr, SExpr, QExpr, Environment
)

logger = logging.getLogger("lispy.runtime")

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "lispy_grammar.yaml"

# Builtins whose Lispy name cannot be spelled as a Python identifier.
OPERATOR_NAMES = {'add': '+', 'sub': '-', 'mul': '*', 'div': '/'}


# ===================================================================
# 1. Builtins
# ===================================================================

def _fail(args: Expr, message: str, kind: str) -> Error:
    """Consumes an argument list and returns the error describing why it was rejected."""
    args.destroy()
    return Error(message, kind=kind)


def _check_single_qexpr(args: Expr, func: str, nonempty: bool = False) -> Optional[Error]:
    if len(args) > 1:
        return _fail(args, f"Function '{func}' passed too many arguments.", 'arity')
    if len(args) == 0:
        return _fail(args, f"Function '{func}' passed no arguments.", 'arity')
    if not isinstance(args[0], QExpr):
        return _fail(args, f"Function '{func}' passed incorrect type.", 'type')
    if nonempty and len(args[0]) == 0:
        return _fail(args, f"Function '{func}' passed {{}}", 'empty')
    return None


def _truncating_div(x: int, y: int) -> int:
    # Integer division rounds toward zero, not toward negative infinity.
    q = abs(x) // abs(y)
    return q if (x < 0) == (y < 0) else -q


def _in_range(num: int) -> bool:
    return NUMBER_MIN <= num <= NUMBER_MAX


def _builtin_op(args: Expr, op: str) -> Value:
    # Ensure all arguments are numbers
    for cell in args:
        if not isinstance(cell, Number):
            return _fail(args, "Cannot operate on non number.", 'type')
    if len(args) == 0:
        return _fail(args, f"Function '{op}' passed no arguments.", 'arity')

    x = args.pop(0)

    # No further arguments and sub: unary negation
    if op == '-' and len(args) == 0:
        x.num = -x.num

    while len(args) > 0 and _in_range(x.num):
        y = args.pop(0)
        match op:
            case '+':
                x.num += y.num
            case '-':
                x.num -= y.num
            case '*':
                x.num *= y.num
            case '/':
                if y.num == 0:
                    x.destroy()
                    y.destroy()
                    x = Error("Division by Zero", kind='div-zero')
                    break
                x.num = _truncating_div(x.num, y.num)
        y.destroy()

    args.destroy()
    # Results stay within the same signed 64-bit range the reader accepts
    if isinstance(x, Number) and not _in_range(x.num):
        return Error("Integer overflow", kind='overflow')
    return x


class StdLib:
    """Contains Python implementations for all Lispy built-ins.

    Every builtin takes `(env, args)`, owns `args` from the moment it is
    called, and consumes it on every path.
    """
    def __init__(self, evaluator: Evaluator):
        self.evaluator = evaluator
        # Name -> bound builtin, resolved once here rather than on every call.
        self.builtins: Dict[str, Callable[[Environment, Expr], Value]] = {}
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                lispy_name = name[1:]
                self.builtins[OPERATOR_NAMES.get(lispy_name, lispy_name)] = member

    def install(self, env: Environment):
        """Binds every builtin into `env` as a Function value."""
        for name, fn in self.builtins.items():
            env.add_builtin(name, fn)

    def dispatch(self, env: Environment, name: str, args: Expr) -> Value:
        """Calls the builtin registered under exactly `name`."""
        fn = self.builtins.get(name)
        if fn is None:
            return _fail(args, "Unknown function", 'unknown')
        return fn(env, args)

    # --- List operations ---
    def _list(self, env: Environment, a: Expr) -> Value:
        return a.retag(QExpr)

    def _head(self, env: Environment, a: Expr) -> Value:
        err = _check_single_qexpr(a, 'head', nonempty=True)
        if err is not None:
            return err
        v = a.take(0)
        # Delete all elements that are not head
        while len(v) > 1:
            v.pop(1).destroy()
        return v

    def _tail(self, env: Environment, a: Expr) -> Value:
        err = _check_single_qexpr(a, 'tail', nonempty=True)
        if err is not None:
            return err
        v = a.take(0)
        v.pop(0).destroy()
        return v

    def _join(self, env: Environment, a: Expr) -> Value:
        for cell in a:
            if not isinstance(cell, QExpr):
                return _fail(a, "Function 'join' passed incorrect type.", 'type')
        if len(a) == 0:
            a.destroy()
            return QExpr()

        x = a.pop(0)
        while len(a) > 0:
            x = x.join(a.pop(0))
        a.destroy()
        return x

    def _eval(self, env: Environment, a: Expr) -> Value:
        err = _check_single_qexpr(a, 'eval')
        if err is not None:
            return err
        x = a.take(0).retag(SExpr)
        return self.evaluator.eval(x, env)

    # --- Environment ---
    def _def(self, env: Environment, a: Expr) -> Value:
        if len(a) == 0:
            return _fail(a, "Function 'def' passed no arguments.", 'arity')
        if not isinstance(a[0], QExpr):
            return _fail(a, "Function 'def' passed incorrect type.", 'type')

        syms = a[0]
        for sym in syms:
            if not isinstance(sym, Symbol):
                return _fail(a, "Function 'def' cannot define non-symbol.", 'type')
        if len(syms) != len(a) - 1:
            return _fail(a, "Function 'def' cannot define incorrect number of values to symbols.", 'arity')

        for i, sym in enumerate(syms):
            env.put(sym, a[i + 1])

        a.destroy()
        return SExpr()

    # --- Math ---
    def _add(self, env: Environment, a: Expr) -> Value: return _builtin_op(a, '+')
    def _sub(self, env: Environment, a: Expr) -> Value: return _builtin_op(a, '-')
    def _mul(self, env: Environment, a: Expr) -> Value: return _builtin_op(a, '*')
    def _div(self, env: Environment, a: Expr) -> Value: return _builtin_op(a, '/')


# ===================================================================
# 2. Script Execution
# ===================================================================

Token = Dict[str, Any]

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    @property
    def is_error_value(self) -> bool:
        """True when evaluation succeeded but produced a Lispy Error value."""
        return self.status == 'success' and isinstance(self.value, Error)

    def format_error(self) -> str:
        """Prefixes the message with `<input>:line:col` when the location is known."""
        if self.status != 'error':
            return ""
        msg = self.error_message or "Unknown error"
        token = self.error_token or {}
        if token.get('line') is None:
            return msg
        where = f"<input>:{token['line']}"
        if token.get('col') is not None:
            where += f":{token['col']}"
        return f"{where}: {msg}"


class ScriptRunner:
    """Parses, transforms, and executes Lispy code."""

    _parser: Optional[Parser] = None
    _transformer: Optional[LispyTransformer] = None

    @staticmethod
    def _load_parser(grammar_path: Path) -> Parser:
        grammar_path = Path(grammar_path).resolve()
        with grammar_path.open() as f:
            grammar_def = yaml.safe_load(f)
        return Parser(grammar_def, base_path=grammar_path.parent)

    def _parse_error_token(self, parse_out) -> Optional[Token]:
        # koine reports positions inside the message as "L<line>:C<col>"
        m = re.search(r"L(\d+):C(\d+)", (parse_out or {}).get('message') or "")
        if m is None:
            return None
        return {'line': int(m.group(1)), 'col': int(m.group(2))}

    def _format_parse_error(self, parse_out, source: str) -> str:
        msg = f"ParseError: {(parse_out or {}).get('message') or parse_out}"
        token = self._parse_error_token(parse_out)
        context = self._source_context(source, token['line'], token['col']) if token else ""
        return f"{msg}\n{context}" if context else msg

    def _source_context(self, source: str, line: int, col: Optional[int]) -> str:
        # The offending line with a caret under the column koine stopped at
        lines = source.splitlines()
        if not 1 <= line <= len(lines):
            return ""
        caret = " " * (max(col or 1, 1) - 1) + "^"
        return f"    {lines[line - 1]}\n    {caret}"

    def _format_runtime_error(self, e: Exception) -> str:
        match e:
            case RecursionError():
                msg = "InternalError: expression nested too deeply"
            case _:
                msg = f"InternalError: {e}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg

    def _format_stacktrace(self) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""
        frames = []
        for frame in stack:
            name = frame.get('name') or '<call>'
            args = frame.get('args')
            args_s = " ".join(self.printer.pformat(a) for a in (args or [])).strip()
            frames.append(f"({name} {args_s})" if args_s else f"({name})")
        return "Lispy stacktrace: " + " ".join(frames)

    def __init__(self, environment: Optional[Environment] = None, grammar_path: Optional[Path] = None):
        if grammar_path is not None:
            self.parser = self._load_parser(grammar_path)
        else:
            if ScriptRunner._parser is None:
                ScriptRunner._parser = self._load_parser(GRAMMAR_PATH)
            self.parser = ScriptRunner._parser

        if ScriptRunner._transformer is None:
            ScriptRunner._transformer = LispyTransformer()
        self.transformer = ScriptRunner._transformer

        self.environment = environment if environment is not None else Environment()
        self.evaluator = Evaluator(self.environment)
        self.stdlib = StdLib(self.evaluator)
        self.stdlib.install(self.environment)
        self.printer = Printer()
        self.side_effects: List[Dict] = []

    def _parse_ast(self, source_code: str) -> tuple[Optional[dict], Optional[ExecutionResult]]:
        """Runs the koine parser; returns (ast, None) or (None, failure)."""
        parse_out = self.parser.parse(source_code)
        if parse_out.get('status') != 'success':
            msg = self._format_parse_error(parse_out, source_code)
            self.side_effects.append({'topics': ['stderr'], 'message': msg})
            return None, ExecutionResult(
                status='error',
                error_message=msg,
                error_token=self._parse_error_token(parse_out),
                side_effects=self.side_effects
            )
        return parse_out['ast'], None

    def _read_statements(self, ast: dict) -> List[SExpr]:
        """Groups top-level expressions into one S-expression per starting source line.

        An expression that spans several lines belongs to the line it opens on.
        """
        statements: List[SExpr] = []
        current_line = None
        for node in ParseNode.from_dict(ast).children:
            if node.tag in SYNTAX_TAGS:
                continue
            if not statements or node.line != current_line:
                statements.append(SExpr())
                current_line = node.line
            statements[-1].add(self.transformer.transform(node))
        return statements

    def _error_result(self, e: Exception) -> ExecutionResult:
        err_msg = self._format_runtime_error(e)
        # Emit consolidated stderr side-effect
        self.side_effects.append({'topics': ['stderr'], 'message': err_msg})
        self.evaluator.call_stack.clear()
        return ExecutionResult(status='error', error_message=err_msg, side_effects=self.side_effects)

    def handle_script(self, source_code: str) -> ExecutionResult:
        """Evaluates the whole input as a single top-level S-expression."""
        self.side_effects = []
        self.evaluator.call_stack.clear()
        try:
            ast, failure = self._parse_ast(source_code)
            if failure is not None:
                return failure
            program = self.transformer.transform(ast)
            logger.debug("read: %s", self.printer.pformat(program))
            result = self.evaluator.eval(program, self.environment)
            logger.debug("evaluated: %s", self.printer.pformat(result))
            return ExecutionResult(status='success', value=result, side_effects=self.side_effects)
        except Exception as e:
            return self._error_result(e)

    def handle_program(self, source_code: str) -> ExecutionResult:
        """Evaluates a script one line at a time.

        Each line is treated like a REPL line: its expressions form one
        S-expression. Lines run in order against the shared environment, the
        value of the last one is the result, and every Error value along the
        way is also reported as a stderr side effect.
        """
        self.side_effects = []
        self.evaluator.call_stack.clear()
        try:
            ast, failure = self._parse_ast(source_code)
            if failure is not None:
                return failure
            result: Value = SExpr()
            for statement in self._read_statements(ast):
                logger.debug("read: %s", self.printer.pformat(statement))
                result.destroy()
                result = self.evaluator.eval(statement, self.environment)
                if isinstance(result, Error):
                    self.side_effects.append({'topics': ['stderr'], 'message': self.printer.pformat(result)})
            return ExecutionResult(status='success', value=result, side_effects=self.side_effects)
        except Exception as e:
            return self._error_result(e)
