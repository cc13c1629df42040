"""Manifest patching for Arch ``PKGBUILD`` files and RPM ``.spec`` files.

A manifest is loaded once into an immutable :class:`ManifestDocument`. Pure
functions return new documents with one field rewritten (version,
dependency list, source/checksum lists); :class:`ManifestPatcher` chains
them and writes the result at a single commit point, so a dry run or a
rollback never leaves a half-patched file behind.

Only the targeted fields change. Every other byte of the document, line
endings included, is preserved.

Key Concepts:
    ManifestDocument: Frozen (path, text, format) value.
    PatchOptions: Which optional rewrites to apply.
    PatchOutcome: What happened: applied, changed, warnings, the committed
        document and the original text for rollback.

Field handling:
    ============  ==========================  ===========================
    field         Arch (PKGBUILD)             RPM (.spec)
    ============  ==========================  ===========================
    version       ``pkgver=<v>``              ``Version:   <v>``
    dependencies  ``depends=(...)``           ``Requires:`` lines
    sources       ``source=()`` + checksums   ``SourceN:`` lines removed
    ============  ==========================  ===========================

Tags:
    manifest, pkgbuild, rpm-spec, patch, idempotent, dry-run
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from distpack.core.errors import ManifestError, ManifestNotFoundError
from distpack.core.logging import get_logger

logger = get_logger(__name__)


class ManifestFormat(str, Enum):
    """Manifest dialect."""

    ARCH = "arch"
    RPM = "rpm"


@dataclass(frozen=True)
class ManifestDocument:
    """Immutable snapshot of a manifest file."""

    path: Path
    text: str
    format: ManifestFormat

    def with_text(self, text: str) -> ManifestDocument:
        return replace(self, text=text)


@dataclass(frozen=True)
class PatchOptions:
    """Optional manifest rewrites."""

    strip_dependency: str | None = None
    strip_source: bool = False


@dataclass(frozen=True)
class PatchOutcome:
    """Result of :meth:`ManifestPatcher.patch`."""

    applied: bool
    changed: bool
    document: ManifestDocument
    original_text: str
    dry_run: bool = False
    warnings: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def detect_format(path: str | Path, text: str = "") -> ManifestFormat:
    """Detect the manifest dialect from the file name, then the content."""
    name = Path(path).name
    if name == "PKGBUILD":
        return ManifestFormat.ARCH
    if name.endswith(".spec"):
        return ManifestFormat.RPM
    if re.search(r"^pkgver=", text, re.MULTILINE):
        return ManifestFormat.ARCH
    if re.search(r"^Version:", text, re.MULTILINE):
        return ManifestFormat.RPM
    raise ManifestError(f"Cannot detect manifest format of {path}").with_context(path=str(path))


def _read(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as fh:
        return fh.read()


def _write(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(text)


def load_manifest(path: str | Path, fmt: ManifestFormat | None = None) -> ManifestDocument:
    """Read a manifest into a :class:`ManifestDocument`.

    Raises
    ------
    ManifestNotFoundError
        If the file does not exist.
    ManifestError
        If the file cannot be decoded or its format cannot be detected.
    """
    path = Path(path)
    if not path.is_file():
        raise ManifestNotFoundError(f"Manifest not found: {path}").with_context(path=str(path))
    try:
        text = _read(path)
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Cannot read manifest {path}", cause=exc) from exc
    return ManifestDocument(path=path, text=text, format=fmt or detect_format(path, text))


# ---------------------------------------------------------------------------
# Pure transforms
# ---------------------------------------------------------------------------

_ARCH_VERSION_RE = re.compile(r"^pkgver=[^\r\n]*", re.MULTILINE)
_RPM_VERSION_RE = re.compile(r"^(Version:[ \t]*)[^\r\n]*", re.MULTILINE)
_ARCH_DEPENDS_RE = re.compile(r"^depends=\(", re.MULTILINE)
_ARCH_SOURCE_FIELDS_RE = re.compile(
    r"^((?:source|md5sums|sha1sums|sha224sums|sha256sums|sha384sums|sha512sums|b2sums|cksums)"
    r"(?:_\w+)?)=\(",
    re.MULTILINE,
)
_RPM_REQUIRES_RE = re.compile(
    r"^(Requires(?:\([^)\r\n]*\))?:[ \t]*)([^\r\n]*?)[ \t]*(?=\r?$)", re.MULTILINE
)
_RPM_SOURCE_RE = re.compile(r"^Source\d*:.*(?:\r?\n|$)", re.MULTILINE)
_RPM_DEP_TOKEN_RE = re.compile(r"\((?:[^()]|\([^()]*\))*\)|[^\s,]+")
_RPM_OPERATORS = frozenset({"<", "<=", "=", ">=", ">"})


def _close_paren(text: str, start: int) -> int:
    """Index just past the ``)`` closing the array opened before ``start``.

    Quoted strings and ``#`` comments (at a word start, outside quotes) are
    skipped, so ``# don't`` or a ``)`` inside either never ends the array.
    """
    quote: str | None = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in "'\"":
            quote = ch
        elif ch == "#" and (i == start or text[i - 1] in " \t\n("):
            newline = text.find("\n", i)
            if newline == -1:
                break
            i = newline
        elif ch == ")":
            return i + 1
        i += 1
    raise ManifestError("Unterminated array in manifest")


def _array_spans(text: str, pattern: re.Pattern[str]) -> list[tuple[str, int, int, int]]:
    """Locate ``name=( ... )`` arrays.

    Returns ``(name, field_start, inner_start, field_end)`` tuples where the
    inner content is ``text[inner_start:field_end - 1]``.
    """
    spans = []
    for match in pattern.finditer(text):
        name = match.group(1) if match.groups() else match.group(0)[:-2]
        end = _close_paren(text, match.end())
        spans.append((name, match.start(), match.end(), end))
    return spans


def set_version(doc: ManifestDocument, version: str) -> ManifestDocument:
    """Rewrite the version field's line to bind ``version``."""
    if doc.format is ManifestFormat.ARCH:
        text = _ARCH_VERSION_RE.sub(lambda _m: f"pkgver={version}", doc.text)
    else:
        text = _RPM_VERSION_RE.sub(lambda m: f"{m.group(1)}{version}", doc.text)
    return doc.with_text(text)


def has_version(doc: ManifestDocument, version: str) -> bool:
    """True if the document's version line binds exactly ``version``."""
    escaped = re.escape(version)
    if doc.format is ManifestFormat.ARCH:
        pattern = rf"^pkgver={escaped}\r?$"
    else:
        pattern = rf"^Version:[ \t]*{escaped}[ \t]*\r?$"
    return re.search(pattern, doc.text, re.MULTILINE) is not None


def current_version_line(doc: ManifestDocument) -> str | None:
    """Return the first version line of the document, if any."""
    pattern = _ARCH_VERSION_RE if doc.format is ManifestFormat.ARCH else _RPM_VERSION_RE
    match = pattern.search(doc.text)
    return match.group(0).rstrip("\r") if match else None


def dependency_variants(token: str) -> list[str]:
    """Spellings of ``token`` tried in order when stripping a dependency."""
    return [f"'{token}'", f'"{token}"', token]


def _drop_from_array(inner: str, variant: str) -> str | None:
    """Remove ``variant`` from array content; None if it does not occur."""
    pattern = re.compile(rf"(?<!\S){re.escape(variant)}(?!\S)")
    if not pattern.search(inner):
        return None
    stripped = pattern.sub("", inner)
    if not stripped.strip():
        return ""
    if "\n" not in stripped:
        return " ".join(stripped.split())
    lines = stripped.split("\n")
    kept = [lines[0], *(line for line in lines[1:-1] if line.strip()), lines[-1]]
    return "\n".join(kept)


def _strip_arch_dependency(doc: ManifestDocument, token: str) -> ManifestDocument:
    spans = _array_spans(doc.text, _ARCH_DEPENDS_RE)
    for variant in dependency_variants(token):
        text = doc.text
        matched = False
        for _name, start, inner_start, end in reversed(spans):
            new_inner = _drop_from_array(text[inner_start:end - 1], variant)
            if new_inner is None:
                continue
            matched = True
            text = f"{text[:start]}depends=({new_inner}){text[end:]}"
        if matched:
            return doc.with_text(text)
    return doc


def _rpm_dependencies(value: str) -> list[str]:
    """Split a ``Requires:`` value into dependencies the way rpm reads it.

    Entries are separated by whitespace and/or commas; ``name op version``
    is one dependency and a parenthesised rich dependency is kept whole.
    """
    tokens = _RPM_DEP_TOKEN_RE.findall(value)
    deps: list[str] = []
    i = 0
    while i < len(tokens):
        if i + 2 < len(tokens) and tokens[i + 1] in _RPM_OPERATORS:
            deps.append(" ".join(tokens[i:i + 3]))
            i += 3
        else:
            deps.append(tokens[i])
            i += 1
    return deps


def _drop_requires_entry(value: str, variant: str) -> str | None:
    entries = _rpm_dependencies(value)
    remaining = [e for e in entries if re.split(r"[\s<>=]", e, maxsplit=1)[0] != variant]
    if len(remaining) == len(entries):
        return None
    separator = ", " if "," in value else " "
    return separator.join(remaining)


def _strip_rpm_dependency(doc: ManifestDocument, token: str) -> ManifestDocument:
    for variant in dependency_variants(token):
        matched = False

        def rewrite(m: re.Match[str], variant: str = variant) -> str:
            nonlocal matched
            value = _drop_requires_entry(m.group(2), variant)
            if value is None:
                return m.group(0)
            matched = True
            # A fully emptied Requires line is dropped below.
            return f"{m.group(1)}{value}" if value else "\0"

        text = _RPM_REQUIRES_RE.sub(rewrite, doc.text)
        if matched:
            text = re.sub(r"^\0(?:\r?\n|$)", "", text, flags=re.MULTILINE)
            return doc.with_text(text)
    return doc


def strip_dependency(doc: ManifestDocument, token: str) -> ManifestDocument:
    """Remove every occurrence of ``token`` from the dependency list."""
    if doc.format is ManifestFormat.ARCH:
        return _strip_arch_dependency(doc, token)
    return _strip_rpm_dependency(doc, token)


def strip_sources(doc: ManifestDocument) -> ManifestDocument:
    """Clear the source list and checksum lists."""
    if doc.format is ManifestFormat.RPM:
        return doc.with_text(_RPM_SOURCE_RE.sub("", doc.text))
    text = doc.text
    for name, start, _inner_start, end in reversed(_array_spans(text, _ARCH_SOURCE_FIELDS_RE)):
        text = f"{text[:start]}{name}=(){text[end:]}"
    return doc.with_text(text)


def apply_patch(
    doc: ManifestDocument,
    version: str,
    options: PatchOptions | None = None,
) -> ManifestDocument:
    """Apply every requested rewrite to ``doc`` and return the new document."""
    options = options or PatchOptions()
    steps: list[Callable[[ManifestDocument], ManifestDocument]] = [
        lambda d: set_version(d, version),
    ]
    if options.strip_dependency:
        token = options.strip_dependency
        steps.append(lambda d: strip_dependency(d, token))
    if options.strip_source:
        steps.append(strip_sources)
    for step in steps:
        doc = step(doc)
    return doc


# ---------------------------------------------------------------------------
# Commit point
# ---------------------------------------------------------------------------


class ManifestPatcher:
    """Load, transform, commit and verify a manifest.

    Example::

        outcome = ManifestPatcher().patch(
            "PKGBUILD", "1.4.2", PatchOptions(strip_dependency="wine"),
        )
        if not outcome.applied:
            print(outcome.warnings)
    """

    def patch(
        self,
        manifest_path: str | Path,
        version: str,
        options: PatchOptions | None = None,
        *,
        dry_run: bool = False,
    ) -> PatchOutcome:
        """Patch the manifest at ``manifest_path``.

        A version line that cannot be verified afterwards produces a warning,
        never an exception.

        Raises
        ------
        ManifestNotFoundError
            If the manifest does not exist.
        """
        original = load_manifest(manifest_path)
        patched = apply_patch(original, version, options)
        changed = patched.text != original.text

        committed = patched
        if changed and not dry_run:
            _write(original.path, patched.text)
            committed = load_manifest(original.path, original.format)

        warnings: list[str] = []
        applied = has_version(committed, version)
        if not applied:
            current = current_version_line(committed) or "<missing>"
            message = (
                f"{original.path.name}: version field not updated to {version} "
                f"(current: {current})"
            )
            warnings.append(message)
            logger.warning("manifest.unverified", path=str(original.path), current=current)
        else:
            logger.info(
                "manifest.patched",
                path=str(original.path),
                version=version,
                changed=changed,
                dry_run=dry_run,
            )

        return PatchOutcome(
            applied=applied,
            changed=changed,
            document=committed,
            original_text=original.text,
            dry_run=dry_run,
            warnings=tuple(warnings),
        )

    def rollback(self, outcome: PatchOutcome) -> None:
        """Restore the manifest text that existed before ``outcome``."""
        if outcome.changed and not outcome.dry_run:
            _write(outcome.document.path, outcome.original_text)
            logger.info("manifest.rolled_back", path=str(outcome.document.path))
