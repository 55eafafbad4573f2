"""
Language registry for the code execution service.

Each supported language is described by an immutable
:class:`LanguageDescriptor` that knows how to build the compile command
(for compiled languages) and the run command.  Descriptors are collected
in a :class:`LanguageRegistry` which is constructed once at start-up and
shared read-only between requests.

Managed runtimes such as Java need the name of the declared public class
both for the source file name and for the run command.  That name is
extracted by :func:`resolve_entry_point`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Iterable, List, Mapping, Optional

DEFAULT_ENTRY_POINT = "Main"
ARTIFACT_NAME = "main"

_PUBLIC_CLASS_RE = re.compile(
    r"\bpublic\s+(?:(?:final|abstract|sealed|strictfp)\s+)*class\s+([A-Za-z_$][\w$]*)"
)

CompileBuilder = Callable[[Path, Path], List[str]]
RunBuilder = Callable[[Path, Path, str], List[str]]


class UnsupportedLanguage(Exception):
    """Raised when a language identifier is not present in the registry."""

    def __init__(self, language: Optional[str], supported: Iterable[str]) -> None:
        self.language = language
        self.supported = list(supported)
        super().__init__(
            f"Unsupported language: {language}. Supported: {', '.join(self.supported)}"
        )


def resolve_entry_point(source: str) -> str:
    """Return the first declared public class name in ``source``.

    Falls back to ``Main`` when no public class declaration is found.
    """
    match = _PUBLIC_CLASS_RE.search(source or "")
    if match:
        return match.group(1)
    return DEFAULT_ENTRY_POINT


@dataclass(frozen=True)
class LanguageDescriptor:
    """Recipe for compiling (optionally) and running one language.

    Attributes
    ----------
    name: str
        Registry identifier, e.g. ``"cpp"``.
    extension: str
        Source file extension without the leading dot.
    run_command: RunBuilder
        Builds the run argument vector from ``(source_path, workspace_dir,
        entry_point)``.  The first element is the program to launch.
    compile_command: CompileBuilder, optional
        Builds the compile argument vector from ``(source_path,
        workspace_dir)``.  ``None`` for interpreted languages.
    uses_entry_point: bool
        Whether the source file must be named after the entry point.
    """

    name: str
    extension: str
    run_command: RunBuilder
    compile_command: Optional[CompileBuilder] = None
    uses_entry_point: bool = False

    @property
    def requires_compile(self) -> bool:
        return self.compile_command is not None

    def entry_point(self, source: str) -> str:
        if self.uses_entry_point:
            return resolve_entry_point(source)
        return ARTIFACT_NAME

    def source_filename(self, source: str) -> str:
        return f"{self.entry_point(source)}.{self.extension}"


class LanguageRegistry:
    """Read-only mapping of language identifiers to descriptors."""

    def __init__(self, descriptors: Iterable[LanguageDescriptor]) -> None:
        table = {}
        for descriptor in descriptors:
            key = descriptor.name.lower()
            if key in table:
                raise ValueError(f"Duplicate language: {descriptor.name}")
            table[key] = descriptor
        self._languages: Mapping[str, LanguageDescriptor] = MappingProxyType(table)

    @property
    def supported(self) -> List[str]:
        return list(self._languages)

    def __contains__(self, language: object) -> bool:
        return isinstance(language, str) and language.strip().lower() in self._languages

    def __len__(self) -> int:
        return len(self._languages)

    def resolve(self, language: Optional[str]) -> LanguageDescriptor:
        """Look up ``language`` case-insensitively.

        Raises
        ------
        UnsupportedLanguage
            If the identifier is not registered.
        """
        key = (language or "").strip().lower()
        try:
            return self._languages[key]
        except KeyError:
            raise UnsupportedLanguage(language, self.supported) from None

    def restrict(self, names: Iterable[str]) -> "LanguageRegistry":
        """Return a new registry containing only ``names``."""
        return LanguageRegistry(self.resolve(name) for name in names)


def _interpreted(name: str, extension: str, interpreter: str) -> LanguageDescriptor:
    return LanguageDescriptor(
        name=name,
        extension=extension,
        run_command=lambda src, workdir, entry: [interpreter, str(src)],
    )


def _native(name: str, extension: str, compiler: str, *flags: str) -> LanguageDescriptor:
    # The binary lands next to the source as ``main``.
    return LanguageDescriptor(
        name=name,
        extension=extension,
        compile_command=lambda src, workdir: [
            compiler,
            str(src),
            "-o",
            str(workdir / ARTIFACT_NAME),
            *flags,
        ],
        run_command=lambda src, workdir, entry: [str(workdir / ARTIFACT_NAME)],
    )


JAVA = LanguageDescriptor(
    name="java",
    extension="java",
    compile_command=lambda src, workdir: ["javac", "-d", str(workdir), str(src)],
    run_command=lambda src, workdir, entry: ["java", "-cp", str(workdir), entry],
    uses_entry_point=True,
)


def default_registry(python: str = "python3") -> LanguageRegistry:
    """Build the registry of built-in languages.

    ``python`` selects the interpreter used for the ``python`` language.
    """
    return LanguageRegistry(
        [
            _interpreted("python", "py", python),
            _interpreted("javascript", "js", "node"),
            _native("c", "c", "gcc", "-lm"),
            _native("cpp", "cpp", "g++", "-std=c++17", "-lm"),
            JAVA,
        ]
    )
