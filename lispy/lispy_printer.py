"""
A printer for Lispy values.
"""
from lispy.lispy_datatypes import Number, Error, Symbol, Function, SExpr, QExpr


class Printer:
    """Formats Lispy values as the text a user would type back in."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format a value. Never mutates `obj`."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        # Default to Python's repr for unknown types
        return repr

    def _create_handlers(self):
        return {
            Number: self._pformat_number,
            Error: self._pformat_error,
            Symbol: self._pformat_symbol,
            Function: self._pformat_function,
            SExpr: self._pformat_sexpr,
            QExpr: self._pformat_qexpr,
        }

    def _pformat_number(self, obj):
        return str(obj.num)

    def _pformat_error(self, obj):
        return f"Error: {obj.message}"

    def _pformat_symbol(self, obj):
        return obj.name

    def _pformat_function(self, obj):
        return "<function>"

    def _pformat_block(self, cells, open_char, close_char):
        return open_char + " ".join(self.pformat(c) for c in cells) + close_char

    def _pformat_sexpr(self, obj):
        return self._pformat_block(obj.cells, "(", ")")

    def _pformat_qexpr(self, obj):
        return self._pformat_block(obj.cells, "{", "}")
