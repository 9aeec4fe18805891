"""Lispy: a small S-expression interpreter with quoted expressions."""
from lispy.lispy_datatypes import (
    Value, Number, Error, Symbol, Function, Expr, SExpr, QExpr, Environment
)
from lispy.lispy_interpreter import Evaluator
from lispy.lispy_printer import Printer
from lispy.lispy_runtime import ScriptRunner, ExecutionResult, StdLib
from lispy.lispy_transformer import LispyTransformer, ParseNode
