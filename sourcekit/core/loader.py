"""Compilation and loading of a source's entry script."""

import importlib.abc
import importlib.util
import traceback
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import CodeType, ModuleType
from typing import Any

from sourcekit.core.errors import CompileError, LoadError
from sourcekit.utils.logging_config import get_logger

logger = get_logger(__name__)

# Names checked, in order, for the factory a source exports
FACTORY_NAMES = ("source", "default")

Handler = Callable[[], Any]


class CompiledSourceLoader(importlib.abc.Loader):
    """Module loader that runs already-compiled source code."""

    def __init__(self, code: CodeType) -> None:
        self.code = code

    def create_module(self, spec) -> None:
        return None

    def exec_module(self, module: ModuleType) -> None:
        exec(self.code, module.__dict__)


def read_source(path: str | Path) -> str:
    """Read a source script as UTF-8 text."""
    source_path = Path(path)
    try:
        return source_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(
            "Failed to read source",
            extra={
                "source_file": str(source_path),
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        raise CompileError(f"cannot read {source_path.name}: {e}") from e


def compile_source(source_text: str, filename: str = "index.py") -> CodeType:
    """Compile source text, turning syntax errors into ``CompileError``."""
    try:
        return compile(source_text, filename, "exec")
    except (SyntaxError, ValueError) as e:
        logger.error(
            "Failed to compile source",
            extra={"source_file": filename, "error": str(e), "error_type": type(e).__name__},
        )
        raise CompileError(str(e)) from e


def load_factory(code: CodeType, module_name: str = "sourcekit_source") -> Callable:
    """Execute compiled code in a fresh module and return its factory.

    The module is never registered in ``sys.modules``, so every run starts
    from a clean namespace.
    """
    spec = importlib.util.spec_from_file_location(
        module_name, code.co_filename, loader=CompiledSourceLoader(code)
    )
    if not spec or not spec.loader:
        raise LoadError(f"Could not create module spec for {module_name}")
    module = importlib.util.module_from_spec(spec)

    try:
        spec.loader.exec_module(module)
    except SystemExit as e:
        logger.error(
            "Source module called sys.exit during load",
            extra={"module_name": module_name, "exit_code": e.code},
        )
        raise LoadError(f"Source module called sys.exit({e.code!r}) during load") from e
    except Exception as e:
        logger.error(
            "Failed to execute source module",
            extra={
                "module_name": module_name,
                "error": str(e),
                "error_type": type(e).__name__,
                "traceback": traceback.format_exc(),
            },
        )
        raise LoadError(f"Source module raised during load: {e}") from e

    for attr_name in FACTORY_NAMES:
        factory = getattr(module, attr_name, None)
        if factory is None:
            continue
        if not callable(factory):
            raise LoadError(f'Exported "{attr_name}" is not a function')
        logger.debug(
            "Found source factory",
            extra={"module_name": module_name, "factory": attr_name},
        )
        return factory

    raise LoadError(
        "Source does not export a factory (define a function named "
        + " or ".join(f'"{name}"' for name in FACTORY_NAMES)
        + ")"
    )


def load_source_file(path: str | Path) -> Callable:
    """Compile and load the factory from a source file."""
    source_path = Path(path)
    return load_factory(
        compile_source(read_source(source_path), str(source_path)),
        module_name=f"sourcekit_source_{source_path.parent.parent.name or 'main'}",
    )


@dataclass
class SourceHandle:
    """The lifecycle hooks a source's factory handed back."""

    refresh: Handler | None = None
    stop: Handler | None = None

    @classmethod
    def from_result(cls, result: Any) -> "SourceHandle":
        """Build a handle from a mapping, an object, or ``None``."""
        if result is None:
            return cls()

        def pick(name: str) -> Handler | None:
            if isinstance(result, Mapping):
                handler = result.get(name)
            else:
                handler = getattr(result, name, None)
            if handler is None:
                return None
            if not callable(handler):
                logger.warning(
                    "Ignoring non-callable source handler",
                    extra={"handler": name, "handler_type": type(handler).__name__},
                )
                return None
            return handler

        return cls(refresh=pick("refresh"), stop=pick("stop"))
