"""Keyword to locator-template bindings.

Bindings live in a directory with one definition file per namespace.  The
file base name (without extension) is the namespace and every line maps a
keyword to a locator template::

    # login.properties
    user_box = //input[@id='user']
    submit_btn = //button[@id='{0}']

The store is safe to read from any thread while another thread refreshes
it: each refresh builds a complete new table and publishes it with a single
reference swap, so a reader sees either the old or the new namespace, never
a mix of both.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import Settings, load_settings

log = logging.getLogger(__name__)

BindingSource = Union[str, Path, Mapping[str, Mapping[str, str]]]
Namespace = Mapping[str, str]

_COMMENT_PREFIXES = ("#", "!")


@dataclass(frozen=True)
class MalformedEntry:
    """A definition line that could not be turned into a binding."""

    namespace: str
    line: int
    text: str
    reason: str


def _logical_lines(text: str) -> List[Tuple[int, str]]:
    """Join ``\\``-continued lines, keeping the number of the first one.

    Comment lines never continue.
    """

    result: List[Tuple[int, str]] = []
    buf: List[str] = []
    start = 0
    for no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not buf:
            start = no
            if line.startswith(_COMMENT_PREFIXES):
                result.append((no, line))
                continue
        if line.endswith("\\") and not line.endswith("\\\\"):
            buf.append(line[:-1])
            continue
        buf.append(line)
        result.append((start, "".join(buf)))
        buf = []
    if buf:
        result.append((start, "".join(buf)))
    return result


def parse_definitions(
    text: str, namespace: str
) -> Tuple[Dict[str, str], List[MalformedEntry]]:
    """Parse ``keyword = template`` lines.

    The separator is the first ``=`` or ``:``.  Blank lines and lines
    starting with ``#`` or ``!`` are ignored.  Lines without a separator or
    with an empty keyword are returned as :class:`MalformedEntry` instead
    of aborting the parse.  A repeated keyword keeps its last value.
    """

    bindings: Dict[str, str] = {}
    bad: List[MalformedEntry] = []
    for no, line in _logical_lines(text):
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue
        cut = [i for i in (line.find("="), line.find(":")) if i >= 0]
        if not cut:
            bad.append(MalformedEntry(namespace, no, line, "missing separator"))
            continue
        key = line[: min(cut)].strip()
        value = line[min(cut) + 1 :].strip()
        if not key:
            bad.append(MalformedEntry(namespace, no, line, "empty keyword"))
            continue
        if key in bindings:
            log.warning("%s:%d redefines keyword '%s'", namespace, no, key)
        bindings[key] = value
    return bindings, bad


def read_directory(directory: Path) -> Dict[str, Dict[str, str]]:
    """Read every definition file in ``directory``.

    Raises :class:`OSError` if the directory itself cannot be listed.
    Unreadable or undecodable files are reported and skipped.
    """

    table: Dict[str, Dict[str, str]] = {}
    for path in sorted(directory.iterdir()):
        if path.name.startswith(".") or not path.is_file():
            continue
        namespace = path.stem
        if namespace in table:
            log.warning(
                "Namespace '%s' already defined, ignoring %s", namespace, path.name
            )
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log.warning("Cannot read binding file %s: %s", path, exc)
            continue
        bindings, bad = parse_definitions(text, namespace)
        for entry in bad:
            log.warning(
                "Skipping malformed binding %s:%d (%s): %r",
                path.name,
                entry.line,
                entry.reason,
                entry.text,
            )
        table[namespace] = bindings
    return table


def _read_mapping(source: Mapping[str, Mapping[str, str]]) -> Dict[str, Dict[str, str]]:
    table: Dict[str, Dict[str, str]] = {}
    for namespace, entries in source.items():
        if not isinstance(entries, MappingABC):
            log.warning("Skipping namespace '%s': not a mapping", namespace)
            continue
        bindings: Dict[str, str] = {}
        for key, value in entries.items():
            if not isinstance(key, str) or not key.strip() or not isinstance(value, str):
                log.warning("Skipping malformed binding %s.%r", namespace, key)
                continue
            bindings[key.strip()] = value.strip()
        table[str(namespace)] = bindings
    return table


class BindingStore:
    """Namespace -> keyword -> locator template table."""

    def __init__(self, source: Optional[BindingSource] = None) -> None:
        self._namespaces: Mapping[str, Namespace] = MappingProxyType({})
        self._write_lock = threading.Lock()
        if source is not None:
            self.load(source)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def _read(self, source: BindingSource) -> Optional[Dict[str, Dict[str, str]]]:
        if isinstance(source, MappingABC):
            return _read_mapping(source)
        directory = Path(source)
        if not directory.is_dir():
            log.error(
                "Can't locate binding directory %s, no keyword will resolve",
                directory,
            )
            return None
        try:
            return read_directory(directory)
        except OSError as exc:
            log.error("Can't read binding directory %s: %s", directory, exc)
            return None

    def _install(self, table: Dict[str, Dict[str, str]]) -> Tuple[int, int]:
        """Publish ``table``; return the binding counts before and after."""
        fresh = {
            name: MappingProxyType(dict(bindings)) for name, bindings in table.items()
        }
        with self._write_lock:
            before = self.count()
            self._namespaces = MappingProxyType(fresh)
        return before, sum(len(b) for b in fresh.values())

    def load(self, source: BindingSource) -> int:
        """Replace the whole table with the contents of ``source``.

        Returns the number of bindings now installed.  When ``source`` is
        missing or unreadable the store is left empty.
        """

        table = self._read(source)
        _, total = self._install(table or {})
        if table is not None:
            log.info("Loaded %d binding(s) in %d namespace(s)", total, len(table))
        return total

    def refresh(self, source: BindingSource) -> int:
        """Reload from ``source`` and return the net change in binding count.

        Lookups running during the refresh keep reading the previous table
        until the new one is published.  If ``source`` has become
        unreadable the current table is kept.
        """

        table = self._read(source)
        if table is None:
            return 0
        before, after = self._install(table)
        delta = after - before
        log.info("Refresh binding library, %+d binding(s)", delta)
        return delta

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def lookup(self, namespace: str, keyword: str) -> Optional[str]:
        """Return the template bound to ``keyword`` or ``None``."""
        bindings = self._namespaces.get(namespace)
        if bindings is None:
            return None
        return bindings.get(keyword)

    def namespace(self, name: str) -> Optional[Namespace]:
        """Return a read-only snapshot of one namespace."""
        return self._namespaces.get(name)

    def list_namespaces(self) -> List[Tuple[str, int]]:
        """Return ``(namespace, binding count)`` pairs."""
        return [(name, len(b)) for name, b in self._namespaces.items()]

    def count(self) -> int:
        return sum(len(b) for b in self._namespaces.values())


# ----------------------------------------------------------------------
# Hot reload
# ----------------------------------------------------------------------
class _DefinitionChangeHandler(FileSystemEventHandler):
    """Refresh the store whenever a definition file changes."""

    def __init__(self, watcher: "BindingWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def _handle(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if Path(str(event.src_path)).name.startswith("."):
            return
        self._watcher.reload()

    def on_modified(self, event):
        self._handle(event)

    def on_created(self, event):
        self._handle(event)

    def on_deleted(self, event):
        self._handle(event)

    def on_moved(self, event):
        self._handle(event)


class BindingWatcher:
    """Keep a :class:`BindingStore` in sync with its definition directory."""

    def __init__(self, store: BindingStore, directory: Union[str, Path]) -> None:
        self.store = store
        self.directory = Path(directory)
        self.handler = _DefinitionChangeHandler(self)
        self._observer: Optional[Observer] = None

    def reload(self) -> int:
        return self.store.refresh(self.directory)

    def start(self) -> "BindingWatcher":
        if self._observer is not None:
            return self
        observer = Observer()
        observer.schedule(self.handler, str(self.directory), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        log.info("Watching %s for binding changes", self.directory)
        return self

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)

    def __enter__(self) -> "BindingWatcher":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()


# ----------------------------------------------------------------------
# Process wide store
# ----------------------------------------------------------------------
_SHARED: Optional[BindingStore] = None
_SHARED_LOCK = threading.Lock()


def shared_store(settings: Optional[Settings] = None) -> BindingStore:
    """Return the process wide store, loading it on first use."""

    global _SHARED
    with _SHARED_LOCK:
        if _SHARED is None:
            settings = settings or load_settings()
            _SHARED = BindingStore(settings.path_dir)
        return _SHARED


__all__ = [
    "BindingStore",
    "BindingWatcher",
    "MalformedEntry",
    "parse_definitions",
    "read_directory",
    "shared_store",
]
