"""
The core Lispy interpreter: the Evaluator.
"""
import logging
from typing import Any, List, Optional, Dict

from lispy.lispy_datatypes import Value, Error, Symbol, Function, SExpr, Environment

logger = logging.getLogger("lispy.interpreter")


class Evaluator:
    """The Lispy execution engine.

    `eval` consumes the value it is given and returns a new value owned by the
    caller. Errors are ordinary values; nothing here raises for a bad program.
    """
    def __init__(self, environment: Optional[Environment] = None):
        self.environment = environment if environment is not None else Environment()
        self.call_stack: List[Dict[str, Any]] = []

    def _push_frame(self, name, args):
        self.call_stack.append({
            'name': name,
            'args': args,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _dbg(self, *parts):
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(" ".join(str(p) for p in parts))

    def eval(self, value: Value, env: Optional[Environment] = None) -> Value:
        """Reduces `value` to its result, taking ownership of it."""
        env = env if env is not None else self.environment
        match value:
            case Symbol():
                x = env.get(value)
                value.destroy()
                return x
            case SExpr():
                return self._eval_sexpr(value, env)
            case _:
                # Numbers, errors, functions and q-expressions evaluate to themselves.
                return value

    def _eval_sexpr(self, v: SExpr, env: Environment) -> Value:
        # Evaluate children
        for i in range(len(v)):
            v[i] = self.eval(v[i], env)

        # Error checking: the first error in source order wins
        for i in range(len(v)):
            if isinstance(v[i], Error):
                return v.take(i)

        # Empty expression
        if len(v) == 0:
            return v

        # Single expression
        if len(v) == 1:
            return v.take(0)

        # Ensure first element is a function after evaluation
        f = v.pop(0)
        if not isinstance(f, Function):
            v.destroy()
            f.destroy()
            return Error("First element is not a function", kind='not-function')

        return self.call(f, v, env)

    def call(self, func: Function, args: SExpr, env: Optional[Environment] = None) -> Value:
        """Invokes a builtin with an argument list; both are consumed."""
        env = env if env is not None else self.environment
        self._dbg("call", func.name, args)
        # The frame stays on the stack if the builtin raises, so the runner can report it.
        # Arguments are snapshotted only under debug logging; builtins consume them.
        snapshot = args.copy() if logger.isEnabledFor(logging.DEBUG) else None
        self._push_frame(func.name, snapshot)
        _ok = False
        try:
            result = func(env, args)
            _ok = True
        finally:
            if _ok:
                self._pop_frame()
        func.destroy()
        return result
