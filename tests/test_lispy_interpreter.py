import logging

import pytest

from lispy.lispy_interpreter import Evaluator
from lispy.lispy_runtime import StdLib
from lispy.lispy_datatypes import (
    Number, Error, Symbol, Function, SExpr, QExpr, Environment
)


@pytest.fixture
def evaluator():
    ev = Evaluator()
    StdLib(ev).install(ev.environment)
    return ev


def S(*cells):
    return SExpr(cells)


def Q(*cells):
    return QExpr(cells)


def N(n):
    return Number(n)


def Sym(name):
    return Symbol(name)


# --- Self-evaluating values ---

def test_number_evaluates_to_itself(evaluator):
    assert evaluator.eval(N(5)) == N(5)

def test_error_evaluates_to_itself(evaluator):
    assert evaluator.eval(Error("boom")) == Error("boom")

def test_qexpr_is_not_evaluated(evaluator):
    q = Q(Sym("+"), N(1), Sym("undefined"))
    assert evaluator.eval(q) is q

def test_empty_sexpr_evaluates_to_itself(evaluator):
    assert evaluator.eval(S()) == S()

def test_single_element_sexpr_unwraps(evaluator):
    assert evaluator.eval(S(N(7))) == N(7)
    assert evaluator.eval(S(S(S(N(7))))) == N(7)

def test_single_function_sexpr_returns_function(evaluator):
    assert isinstance(evaluator.eval(S(Sym("+"))), Function)


# --- Symbols ---

def test_unbound_symbol_is_error(evaluator):
    result = evaluator.eval(Sym("nope"))
    assert result == Error("Unbound symbol 'nope'")

def test_symbol_lookup_returns_copy(evaluator):
    evaluator.environment.put("xs", Q(N(1)))
    got = evaluator.eval(Sym("xs"))
    got.add(N(2))
    assert evaluator.environment.get("xs") == Q(N(1))


# --- Calls ---

def test_addition(evaluator):
    assert evaluator.eval(S(Sym("+"), N(2), N(3))) == N(5)

def test_unary_minus(evaluator):
    assert evaluator.eval(S(Sym("-"), N(5))) == N(-5)

def test_division_by_zero(evaluator):
    assert evaluator.eval(S(Sym("/"), N(10), N(0))) == Error("Division by Zero")

def test_nested_call(evaluator):
    expr = S(Sym("+"), N(1), S(Sym("*"), N(2), N(3)))
    assert evaluator.eval(expr) == N(7)

def test_non_function_head_is_error(evaluator):
    assert evaluator.eval(S(N(1), N(2))) == Error("First element is not a function")

def test_non_function_head_never_calls_anything(evaluator):
    calls = []

    def spy(env, args):
        calls.append(args)
        return N(0)

    evaluator.environment.add_builtin("spy", spy)
    result = evaluator.eval(S(N(1), Sym("spy"), N(2)))
    assert result == Error("First element is not a function")
    assert calls == []

def test_first_error_in_source_order_wins(evaluator):
    expr = S(Sym("+"), Sym("a"), S(Sym("/"), N(1), N(0)), Sym("b"))
    assert evaluator.eval(expr) == Error("Unbound symbol 'a'")

def test_function_not_called_on_erroneous_arguments(evaluator):
    calls = []

    def spy(env, args):
        calls.append(args)
        return N(0)

    evaluator.environment.add_builtin("spy", spy)
    assert evaluator.eval(S(Sym("spy"), Sym("missing"))) == Error("Unbound symbol 'missing'")
    assert calls == []

def test_call_receives_remaining_arguments(evaluator):
    seen = []

    def spy(env, args):
        seen.append(args.copy())
        args.destroy()
        return N(len(seen))

    evaluator.environment.add_builtin("spy", spy)
    assert evaluator.eval(S(Sym("spy"), N(1), Q(N(2)))) == N(1)
    assert seen == [S(N(1), Q(N(2)))]


# --- Call stack ---

def test_call_stack_is_empty_after_successful_call(evaluator):
    evaluator.eval(S(Sym("+"), N(1), S(Sym("*"), N(2), N(3))))
    assert evaluator.call_stack == []

def test_call_stack_keeps_frame_when_builtin_raises(evaluator):
    def explode(env, args):
        raise RuntimeError("kaboom")

    evaluator.environment.add_builtin("explode", explode)
    with pytest.raises(RuntimeError, match="kaboom"):
        evaluator.eval(S(Sym("explode"), N(1)))
    assert evaluator.call_stack == [{'name': "explode", 'args': None}]

def test_call_stack_snapshots_arguments_under_debug(evaluator, caplog):
    def explode(env, args):
        args.destroy()
        raise RuntimeError("kaboom")

    evaluator.environment.add_builtin("explode", explode)
    with caplog.at_level(logging.DEBUG, logger="lispy.interpreter"):
        with pytest.raises(RuntimeError):
            evaluator.eval(S(Sym("explode"), N(1), Q(N(2))))
    assert evaluator.call_stack[0]['args'] == S(N(1), Q(N(2)))

def test_debug_logging_of_calls(evaluator, caplog):
    with caplog.at_level(logging.DEBUG, logger="lispy.interpreter"):
        evaluator.eval(S(Sym("+"), N(1), N(2)))
    assert any("call +" in r.getMessage() for r in caplog.records)


# --- Environment argument ---

def test_eval_uses_explicit_environment(evaluator):
    other = Environment()
    other.put("x", N(42))
    assert evaluator.eval(Sym("x"), other) == N(42)
    assert evaluator.eval(Sym("x")) == Error("Unbound symbol 'x'")
