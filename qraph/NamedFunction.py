"""
NamedFunction: turn numeric Python callables into SymPy ``Function`` classes
===========================================================================

Purpose
-------
Expressions typed by users (``sqrt(25-x^2)``, ``p1(2, 2, 3, 7, x)``) are parsed
with SymPy. Each name of the function library must therefore exist as a SymPy
``Function`` class so that parsing produces an opaque application node, while
the numeric work is done later by a NumPy-ready callable.

:func:`NamedFunction` builds such a class from a plain callable:

- the callable's positional parameters fix the arity of the SymPy function,
- constructing an application with the wrong number of arguments raises
  :class:`~qraph.errors.ArityError` naming the expected parameters,
- the callable (wrapped with the same arity check) is exposed as ``f_numpy``
  so :mod:`qraph.numpify` can bind it during code generation,
- the application stays opaque: no symbolic rewriting and no ``evalf``.

Key invariants / assumptions
----------------------------
- The decorated callable has only required positional parameters.
- Zero-parameter callables are allowed (``rnd()``).

Examples
--------
>>> import numpy as np
>>> import sympy as sp
>>> @NamedFunction
... def hyp(a, b):
...     return np.hypot(a, b)
>>> x = sp.Symbol("x")
>>> hyp(x, 4).args
(x, 4)
>>> float(hyp.f_numpy(3.0, 4.0))
5.0
"""

from __future__ import annotations

import functools
import inspect
import textwrap
from typing import Any, Callable, Optional, Type, cast

import sympy as sp

from .errors import ArityError

__all__ = [
    "NamedFunction",
    "arity_checked",
]


_NumericCallable = Callable[..., Any]


# === SECTION: Signature support [id: signature]===
#
# SymPy's Function metaclass makes __signature__ read-only. We override it at the
# metaclass level to preserve `inspect.signature(...)` for generated classes.
# === END SECTION: Signature support ===


class _SignedFunctionMeta(type(sp.Function)):
    """Metaclass that allows overriding ``__signature__`` on generated classes."""

    @property
    def __signature__(cls) -> Optional[inspect.Signature]:  # noqa: D401
        return cast(Optional[inspect.Signature], getattr(cls, "_custom_signature", None))


def _positional_parameter_names(sig: inspect.Signature, *, what: str) -> tuple[str, ...]:
    """Return parameter names, rejecting anything but required positionals.

    Raises
    ------
    ValueError
        If the signature contains varargs, varkw, keyword-only parameters, or defaults.
    """
    supported_kinds = {
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    }
    names: list[str] = []
    for p in sig.parameters.values():
        if p.kind not in supported_kinds:
            raise ValueError(
                f"{what} must use only positional parameters (no *args, **kwargs, or keyword-only). "
                f"Got parameter {p.name!r} with kind={p.kind}."
            )
        if p.default is not inspect.Parameter.empty:
            raise ValueError(f"{what} must not define default values; library calls are fixed-arity.")
        names.append(p.name)
    return tuple(names)


def arity_checked(name: str, parameters: tuple[str, ...], impl: _NumericCallable) -> _NumericCallable:
    """Wrap *impl* so that calls with the wrong argument count raise ``ArityError``."""
    expected = len(parameters)

    @functools.wraps(impl)
    def checked(*args: Any) -> Any:
        if len(args) != expected:
            raise ArityError(name, parameters, len(args))
        return impl(*args)

    checked.parameters = parameters  # type: ignore[attr-defined]
    return checked


def _build_docstring(name: str, parameters: tuple[str, ...], original_doc: Optional[str]) -> str:
    doc: list[str] = []
    if original_doc:
        doc.append(textwrap.dedent(original_doc).strip())
        doc.append("")
    doc.append("NamedFunction-generated SymPy Function.")
    doc.append("")
    doc.append("Call")
    doc.append("----")
    doc.append(f"`{name}({', '.join(parameters)})`")
    return "\n".join(doc).strip()


def NamedFunction(
    obj: Optional[_NumericCallable] = None,
    *,
    name: Optional[str] = None,
) -> Any:
    """Decorate a numeric callable to produce an opaque, fixed-arity SymPy Function class.

    Parameters
    ----------
    obj:
        The numeric implementation. Its required positional parameters define
        the arity and are used in error messages.
    name:
        Name of the generated class (and of the function inside expressions).
        Defaults to ``obj.__name__``. Useful for names that shadow builtins,
        such as ``abs`` or ``min``.

    Returns
    -------
    Type[sympy.Function]
        A SymPy Function subclass exposing ``f_numpy`` and ``parameters``.

    Raises
    ------
    TypeError
        If ``obj`` is not callable.
    ValueError
        If ``obj`` has varargs, keyword-only parameters or defaults.
    """
    if obj is None:
        return functools.partial(NamedFunction, name=name)
    if inspect.isclass(obj) or not callable(obj):
        raise TypeError(f"@NamedFunction must decorate a function, not {type(obj)}")

    func_name = name or getattr(obj, "__name__", None)
    if not func_name or not func_name.isidentifier():
        raise ValueError(f"NamedFunction needs a valid identifier name, got {func_name!r}")

    sig = inspect.signature(obj)
    parameters = _positional_parameter_names(sig, what=f"function {func_name}")
    nargs = len(parameters)
    numeric = arity_checked(func_name, parameters, obj)

    def __new__(cls: Type[sp.Function], *args: Any, **options: Any) -> sp.Basic:
        if len(args) != nargs:
            raise ArityError(func_name, parameters, len(args))
        return sp.Function.__new__(cls, *args, **options)

    def _eval_evalf(self: sp.Function, prec: int) -> None:
        # Opaque: numeric values come from f_numpy only.
        return None

    class_dict: dict[str, object] = {
        "nargs": nargs,
        "__new__": __new__,
        "_eval_evalf": _eval_evalf,
        "__module__": obj.__module__,
        "__doc__": _build_docstring(func_name, parameters, obj.__doc__),
        "f_numpy": staticmethod(numeric),
        "parameters": parameters,
        "_original_func": staticmethod(obj),
    }

    NewClass = _SignedFunctionMeta(func_name, (sp.Function,), class_dict)
    NewClass._custom_signature = inspect.Signature(list(sig.parameters.values()))
    return cast(Type[sp.Function], NewClass)
