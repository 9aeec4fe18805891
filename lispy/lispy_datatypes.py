"""
Defines the core data types for the Lispy language runtime.

This module provides the tagged runtime values the interpreter works with
(numbers, errors, symbols, builtin functions and the two list kinds) and the
Environment that maps symbol names to values.

Every composite value owns its children exclusively. Values move between
containers with `pop`, `take` and `join`; `copy` is the only way to obtain two
independent values with equal content.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Callable, Optional, Iterable, Type, Union
import collections.abc


# =================================================================
# Abstract Base Classes
# =================================================================

class Value(ABC):
    """Abstract base class for every Lispy runtime value."""

    @abstractmethod
    def copy(self) -> 'Value':
        """Returns a fully independent deep clone of this value."""

    def destroy(self):
        """Releases everything this value owns. Atoms own nothing."""
        pass


# =================================================================
# Atoms
# =================================================================

class Number(Value):
    """A signed integer."""
    def __init__(self, num: int):
        self.num = num

    def copy(self) -> 'Number':
        return Number(self.num)

    def __repr__(self) -> str:
        return f"Number({self.num!r})"

    def __eq__(self, other):
        return isinstance(other, Number) and self.num == other.num

    def __hash__(self):
        return hash(self.num)


class Error(Value):
    """A terminal evaluation result carrying a human-readable reason.

    `kind` is an optional machine-readable category (e.g. 'div-zero'); only the
    message takes part in equality and printing.
    """
    def __init__(self, message: str, kind: Optional[str] = None):
        self.message = message
        self.kind = kind

    def copy(self) -> 'Error':
        return Error(self.message, self.kind)

    def __repr__(self) -> str:
        return f"Error({self.message!r})"

    def __eq__(self, other):
        return isinstance(other, Error) and self.message == other.message

    def __hash__(self):
        return hash(self.message)


class Symbol(Value):
    """An identifier, resolved only by environment lookup."""
    def __init__(self, name: str):
        self.name = name

    def copy(self) -> 'Symbol':
        return Symbol(self.name)

    def __repr__(self) -> str:
        return f"Symbol<{self.name!r}>"

    def __eq__(self, other):
        return isinstance(other, Symbol) and self.name == other.name

    def __hash__(self):
        # Hash by the underlying text so that symbols with identical
        # names are treated as equal in hashed collections.
        return hash(self.name)


class Function(Value):
    """A builtin primitive: `fn(environment, args) -> Value`.

    The name is the one the function was registered under and is kept for
    debugging; it never affects printing or equality.
    """
    def __init__(self, fn: Callable[['Environment', 'SExpr'], Value], name: Optional[str] = None):
        self.fn = fn
        self.name = name

    def copy(self) -> 'Function':
        return Function(self.fn, self.name)

    def __call__(self, env: 'Environment', args: 'SExpr') -> Value:
        return self.fn(env, args)

    def __repr__(self) -> str:
        return f"<Function name={self.name!r}>"

    def __eq__(self, other):
        return isinstance(other, Function) and self.fn == other.fn

    def __hash__(self):
        return hash(self.fn)


# =================================================================
# Lists
# =================================================================

class Expr(Value, collections.abc.MutableSequence):
    """
    Base class for SExpr and QExpr, the two list kinds. Both hold an ordered,
    resizable sequence of owned values and differ only in how the evaluator
    treats them.
    """
    def __init__(self, cells: Optional[Iterable[Value]] = None):
        self.cells: List[Value] = list(cells) if cells is not None else []

    def __getitem__(self, index):
        return self.cells[index]

    def __setitem__(self, index, value):
        self.cells[index] = value

    def __delitem__(self, index):
        del self.cells[index]

    def __len__(self) -> int:
        return len(self.cells)

    def insert(self, index, value):
        self.cells.insert(index, value)

    def add(self, child: Value) -> 'Expr':
        """Transfers ownership of `child` to the end of this list."""
        self.cells.append(child)
        return self

    def pop(self, index: int = -1) -> Value:
        """Removes the element at `index` and hands its ownership to the caller."""
        return self.cells.pop(index)

    def take(self, index: int) -> Value:
        """Pops the element at `index` and destroys what remains of this list."""
        x = self.pop(index)
        self.destroy()
        return x

    def join(self, other: 'Expr') -> 'Expr':
        """Moves every element of `other` onto the end of this list, then destroys `other`."""
        while other.cells:
            self.add(other.pop(0))
        other.destroy()
        return self

    def retag(self, cls: Type['Expr']) -> 'Expr':
        """Reinterprets this list's contents as `cls` without copying them.

        The returned list takes over the cells; this shell is left empty.
        """
        if type(self) is cls:
            return self
        new = cls()
        new.cells, self.cells = self.cells, []
        return new

    def copy(self) -> 'Expr':
        return type(self)(cell.copy() for cell in self.cells)

    def destroy(self):
        for cell in self.cells:
            cell.destroy()
        self.cells = []


class SExpr(Expr):
    """An expression to be evaluated: a function followed by its arguments."""
    def __repr__(self) -> str:
        return f"SExpr({self.cells!r})"

    def __eq__(self, other):
        return isinstance(other, SExpr) and self.cells == other.cells


class QExpr(Expr):
    """A quoted list: structurally an SExpr, but evaluation treats it as data."""
    def __repr__(self) -> str:
        return f"QExpr({self.cells!r})"

    def __eq__(self, other):
        return isinstance(other, QExpr) and self.cells == other.cells


# =================================================================
# Environment
# =================================================================

class Environment:
    """Maps symbol names to values.

    Bindings are stored and handed out as deep copies, so nothing outside the
    environment ever aliases a bound value. Names are unique; binding an
    existing name replaces its value in place, keeping insertion order.
    """
    def __init__(self):
        self.bindings: Dict[str, Value] = {}

    @staticmethod
    def _key(key: Union[str, Symbol]) -> str:
        if isinstance(key, Symbol):
            return key.name
        if not isinstance(key, str):
            raise TypeError(f"Environment key must be a str or Symbol, not {type(key)}")
        return key

    def get(self, key: Union[str, Symbol]) -> Value:
        """Returns a copy of the value bound to `key`, or an unbound-symbol Error."""
        name = self._key(key)
        value = self.bindings.get(name)
        if value is None:
            return Error(f"Unbound symbol '{name}'", kind='unbound')
        return value.copy()

    def put(self, key: Union[str, Symbol], value: Value):
        """Binds `key` to a copy of `value`, replacing any existing binding."""
        name = self._key(key)
        old = self.bindings.get(name)
        if old is not None:
            old.destroy()
        self.bindings[name] = value.copy()

    def add_builtin(self, name: str, fn: Callable[['Environment', SExpr], Value]):
        self.put(name, Function(fn, name))

    def __contains__(self, key: Any) -> bool:
        if isinstance(key, Symbol):
            key = key.name
        return key in self.bindings

    def __len__(self) -> int:
        return len(self.bindings)

    def keys(self) -> collections.abc.KeysView[str]:
        return self.bindings.keys()

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        return f"<Environment bindings=[{keys}]>"
