"""Handler signature validation for strict mode."""

from __future__ import annotations

import inspect
from typing import Any, get_type_hints

from mrouter.errors import ConfigurationError

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def validate_handler_signature(func: Any, param_names: tuple[str, ...], method: str, path: str) -> None:
    """Check that *func* can be called with the template's captured values.

    Handlers are invoked positionally, in the order the template declares
    its placeholders, and every captured value is a ``str``.

    Raises :class:`ConfigurationError` with an actionable message when the
    handler violates strict-mode rules.
    """
    name = getattr(func, "__name__", repr(func))
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        # Builtins without introspectable signatures are accepted as-is.
        return

    # --- Rule 1: The handler must accept every captured value ---
    try:
        sig.bind(*param_names)
    except TypeError as exc:
        raise ConfigurationError(
            f"\n\nStrict-mode violation in handler '{name}' "
            f"[{method} {path}]\n"
            f"  Problem: Handler cannot be called with {len(param_names)} path value(s): {exc}.\n"
            f"  Fix:     Accept the placeholders positionally, e.g. def {name}({', '.join(param_names)}).\n"
        ) from exc

    params = [p for p in sig.parameters.values() if p.kind in _POSITIONAL]
    has_varargs = any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in sig.parameters.values())

    # --- Rule 2: Positional names must follow the template order ---
    if not has_varargs:
        declared = tuple(p.name for p in params[: len(param_names)])
        if declared != param_names:
            raise ConfigurationError(
                f"\n\nStrict-mode violation in handler '{name}' "
                f"[{method} {path}]\n"
                f"  Current: ({', '.join(declared)})\n"
                f"  Problem: Parameters must be named after the placeholders, in template order.\n"
                f"  Fix:     Use ({', '.join(param_names)}).\n"
            )

    # --- Rule 3: Captured values are strings ---
    try:
        hints = get_type_hints(func)
    except Exception:  # noqa: BLE001
        hints = {}
    for param in params[: len(param_names)]:
        hint = hints.get(param.name)
        if hint is not None and hint is not str and hint is not Any:
            label = hint.__name__ if isinstance(hint, type) else repr(hint)
            raise ConfigurationError(
                f"\n\nStrict-mode violation in handler '{name}' "
                f"[{method} {path}]\n"
                f"  Current: {param.name}: {label}\n"
                f"  Problem: Path parameters are always captured as str.\n"
                f"  Fix:     Annotate '{param.name}' as str and convert inside the handler.\n"
            )
