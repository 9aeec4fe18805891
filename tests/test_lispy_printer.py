import pytest
from lispy.lispy_printer import Printer
from lispy.lispy_datatypes import Number, Error, Symbol, Function, SExpr, QExpr


@pytest.fixture
def printer():
    return Printer()


def _noop(env, args):
    return args

# Test cases: (id, object, expected_string)
FORMAT_TEST_CASES = [
    ("number", Number(123), "123"),
    ("negative_number", Number(-5), "-5"),
    ("big_number", Number(2 ** 70), str(2 ** 70)),
    ("error", Error("Division by Zero"), "Error: Division by Zero"),
    ("symbol", Symbol("head"), "head"),
    ("operator_symbol", Symbol("+"), "+"),
    ("function", Function(_noop, "noop"), "<function>"),
    ("empty_sexpr", SExpr(), "()"),
    ("empty_qexpr", QExpr(), "{}"),
    ("sexpr", SExpr([Symbol("+"), Number(1), Number(2)]), "(+ 1 2)"),
    ("qexpr", QExpr([Number(1), Number(2), Number(3)]), "{1 2 3}"),
    (
        "nested",
        QExpr([Symbol("+"), SExpr([Symbol("*"), Number(2)]), QExpr([QExpr()])]),
        "{+ (* 2) {{}}}"
    ),
    ("error_inside_list", SExpr([Error("x")]), "(Error: x)"),
    ("unknown", 3.5, "3.5"),
]

@pytest.mark.parametrize("test_id, obj, expected", FORMAT_TEST_CASES, ids=[c[0] for c in FORMAT_TEST_CASES])
def test_pformat(printer, test_id, obj, expected):
    assert printer.pformat(obj) == expected


def test_pformat_does_not_mutate(printer):
    value = SExpr([QExpr([Number(1)]), Symbol("a")])
    before = value.copy()
    printer.pformat(value)
    assert value == before
