"""Interpreter compatibility tweaks applied once when ``finprep`` is imported.

On Python 3.14+ sqlglot builds an Oracle literal from the string
``"binary_double_nan"`` while ibis imports its SQL compilers. The stricter
``decimal`` module raises ``InvalidOperation`` for it and the compiler
package is left half-imported, which breaks the DuckDB backend.

Turning the ``InvalidOperation`` trap off before ibis is imported lets the
literal be created. It stays off since sqlglot imports further compiler
modules lazily.
"""

from __future__ import annotations

import decimal as _decimal

_decimal.getcontext().traps[_decimal.InvalidOperation] = False
