"""
Extension loader - resolves and runs unit hooks in load order.

Each unit may ship one hook file per kind (``app.py`` / ``agent.py``)
exposing a ``setup(context)`` callable:

    def setup(context):
        # synchronous work runs in load order
        client = ConfigClient(context.config)

        # asynchronous work holds the barrier open via a token
        done = context.register("config-client")
        client.on_ready(done)

Hooks for every unit are resolved first, then invoked one after another.
The first failure aborts the run with a LoadFault.
"""

from typing import Any, Callable, List, Optional, Protocol, Sequence
from dataclasses import dataclass
from pathlib import Path
import hashlib
import importlib.util
import inspect
import logging
import sys

from .faults import LoadFault
from .units import HookKind, Unit


logger = logging.getLogger("kindle.loader")


@dataclass(frozen=True)
class Hook:
    """A resolved, invocable extension point of one unit."""

    unit: Unit
    kind: HookKind
    func: Callable[[Any], Any]
    origin: str

    def __call__(self, context: Any) -> Any:
        return self.func(context)

    def __repr__(self) -> str:
        return f"Hook({self.kind.value}, {self.origin})"


class HookResolver(Protocol):
    """Finds the hook a unit provides for a kind; None when it has none."""

    def resolve(self, unit: Unit, kind: HookKind) -> Optional[Hook]:
        ...


class FileHookResolver:
    """
    Resolves hooks from the well-known hook files inside unit directories.

    A missing file means the unit has no hook. A file without a ``setup``
    callable is still imported (its top-level code runs) and contributes
    no hook.
    """

    entrypoint = "setup"

    def locate(self, unit: Unit, kind: HookKind) -> Optional[Path]:
        """Path of the hook file for kind, or None if the unit has none."""
        path = unit.path / kind.filename
        return path if path.is_file() else None

    def resolve(self, unit: Unit, kind: HookKind) -> Optional[Hook]:
        """
        Import the unit's hook file and return its setup callable.

        Raises:
            LoadFault: If the file fails to import or setup is not callable
        """
        path = self.locate(unit, kind)
        if path is None:
            return None

        module = self._import(unit, kind, path)

        func = getattr(module, self.entrypoint, None)
        if func is None:
            logger.debug(f"  ↳ {unit.name}: {path.name} has no {self.entrypoint}()")
            return None
        if not callable(func):
            raise LoadFault(unit, kind, f"{path.name}: '{self.entrypoint}' is not callable")

        return Hook(unit=unit, kind=kind, func=func, origin=str(path))

    def _import(self, unit: Unit, kind: HookKind, path: Path) -> Any:
        """Import a hook file under a private module name."""
        digest = hashlib.sha1(str(path.resolve()).encode()).hexdigest()[:12]
        module_name = f"_kindle_hook_{kind.value}_{digest}"

        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise LoadFault(unit, kind, f"cannot import {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise LoadFault(unit, kind, f"import of {path.name} failed: {e}") from e

        return module


class ExtensionLoader:
    """
    Runs unit hooks strictly in the resolver's order.

    The loader does no I/O of its own; hook lookup is delegated to a
    HookResolver (FileHookResolver by default).
    """

    def __init__(self, resolver: Optional[HookResolver] = None):
        self.resolver = resolver or FileHookResolver()
        self.invoked: List[Hook] = []

    def resolve_hooks(self, kind: HookKind, units: Sequence[Unit]) -> List[Hook]:
        """
        Resolve the hooks of every unit, in order, before any of them runs.

        Raises:
            LoadFault: If a hook cannot be resolved
        """
        kind = HookKind.parse(kind)
        hooks: List[Hook] = []

        for unit in units:
            try:
                hook = self.resolver.resolve(unit, kind)
            except LoadFault:
                raise
            except Exception as e:
                raise LoadFault(unit, kind, f"resolution failed: {e}") from e

            if hook is None:
                logger.debug(f"  ↳ {unit.name}: no {kind.value} hook")
                continue
            hooks.append(hook)

        return hooks

    def load_hooks(self, kind: HookKind, units: Sequence[Unit], context: Any) -> List[Any]:
        """
        Invoke each unit's hook synchronously with the shared context.

        A hook may return a cancellable handle; ``async def`` hooks return a
        coroutine, which is handed to ``context.spawn()`` so it runs as a
        tracked background task.

        Args:
            kind: Hook kind to load
            units: Units in authoritative load order
            context: Object passed as the sole argument to every hook

        Returns:
            Handles returned by hooks (for cancellation on teardown)

        Raises:
            LoadFault: On the first hook that raises; later hooks never run
        """
        hooks = self.resolve_hooks(kind, units)
        handles: List[Any] = []

        for hook in hooks:
            logger.debug(f"  ↳ Loading {hook.kind.value} hook of {hook.unit.name}")
            try:
                result = hook(context)
                if inspect.iscoroutine(result):
                    result = self._spawn(hook, result, context)
            except LoadFault:
                raise
            except Exception as e:
                raise LoadFault(hook.unit, hook.kind, str(e) or type(e).__name__) from e
            finally:
                self.invoked.append(hook)

            if result is not None and callable(getattr(result, "cancel", None)):
                handles.append(result)

        return handles

    @staticmethod
    def _spawn(hook: Hook, coroutine: Any, context: Any) -> Any:
        """Hand an ``async def`` hook's coroutine to the context as a tracked task."""
        # Unit paths are unique where directory names may not be
        try:
            return context.spawn(coroutine, name=f"{hook.unit.path}:{hook.kind.value}")
        except BaseException:
            coroutine.close()
            raise
