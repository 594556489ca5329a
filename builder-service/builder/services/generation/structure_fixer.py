"""
Structure Fixer - canonical file locations and import rewriting.

Pass 1 classifies every file (ordered (predicate, FileKind) rules) and picks
a canonical path for it. Pinned files never move: root well-known names,
Expo Router routes under app/, and files already inside a recognised folder.

Pass 2 resolves every relative import literal against the original layout
(falling back to a basename PathMapping) and rewrites it relative to the new
locations. Package imports are never touched.

Pass 3 repairs content the bundler would reject: app/ routes without a
default export, and React hooks or themed components used without an import.

Finally the critical files (entry point, package manifest, app metadata,
transpiler config) are guaranteed, synthesizing defaults where missing.
"""
import json
import posixpath
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Set, Tuple

from builder.config import settings
from builder.models.schemas.files import FileAnalysis, FileKind, RawFileSet, clean_file_set, has_usable_content
from builder.services.templates.expo_base_template import (
    default_app_json,
    default_babel_config,
    default_package_json,
    default_root_layout,
)
from builder.utils.logging import get_logger

logger = get_logger(__name__)


class CriticalFileMissingAfterFix(Exception):
    """A required file category is still missing after synthesis"""

    def __init__(self, missing: List[str]):
        super().__init__(f"Critical files missing after structure fix: {', '.join(missing)}")
        self.missing = missing


# ============================================================================
# FILE TABLES
# ============================================================================

CODE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js", ".mjs", ".cjs")
SCRIPT_EXTENSIONS = (".ts", ".js", ".mjs", ".cjs")
RESOLVE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js", ".json")
ASSET_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".ico",
    ".ttf", ".otf", ".woff", ".woff2", ".mp3", ".wav", ".mp4", ".lottie",
)

ROOT_FILES: Set[str] = {
    "App.tsx", "App.ts", "App.jsx", "App.js",
    "index.tsx", "index.ts", "index.jsx", "index.js",
    "package.json", "app.json", "app.config.js", "app.config.ts", "app.config.json",
    "babel.config.js", "metro.config.js", "tsconfig.json", "eas.json",
    "eslint.config.js", ".eslintrc.js", ".eslintrc.json", ".prettierrc",
    "tailwind.config.js", "expo-env.d.ts", "nativewind-env.d.ts",
    "README.md", ".gitignore",
}

KNOWN_FOLDERS: Set[str] = {
    "app", "screens", "components", "navigation", "utils", "config", "assets",
    "hooks", "constants", "lib", "types", "services", "context", "store", "styles",
}

ENTRY_POINTS = (
    "App.tsx", "App.ts", "App.jsx", "App.js",
    "index.tsx", "index.ts", "index.jsx", "index.js",
    "app/_layout.tsx", "app/_layout.ts", "app/_layout.jsx", "app/_layout.js",
)
APP_METADATA_FILES = ("app.json", "app.config.js", "app.config.ts", "app.config.json")
TRANSPILER_CONFIG = "babel.config.js"
PACKAGE_MANIFEST = "package.json"
SYNTHESIZED_ENTRY_POINT = "app/_layout.tsx"

FOLDER_BY_KIND: Dict[FileKind, str] = {
    FileKind.NAVIGATION: "navigation",
    FileKind.SCREEN: "screens",
    FileKind.COMPONENT: "components",
    FileKind.UTIL: "utils",
    FileKind.CONFIG: "config",
    FileKind.ASSET: "assets",
}


# ============================================================================
# CONTENT PATTERNS
# ============================================================================

NAVIGATION_PATTERNS = [
    re.compile(r"\bNavigationContainer\b|\bcreate(?:NativeStack|Stack|BottomTab|Drawer|MaterialTopTab)Navigator\b"),
    re.compile(r"\b(?:Stack|Tab|Tabs|Drawer)\.Navigator\b"),
    re.compile(r"\bnavigationRef\b|\bNavigationAction\b"),
]

SCREEN_PATTERNS = [
    re.compile(r"\buseNavigation\b|\bnavigation\.navigate\b|\buseLocalSearchParams\b"),
    re.compile(r"\b(?:function|const|class)\s+\w*Screen\b"),
    re.compile(r"<SafeAreaView\b"),
]

CONFIG_PATTERNS = [
    re.compile(r"\bexport\s+(?:default\s+)?const\s+\w*(?:CONFIG|Config|_URL)\b"),
]

UTIL_NAME = re.compile(r"util|helper|api|storage|service|validat|format", re.IGNORECASE)
JSX_TAG = re.compile(r"<[A-Z][\w.]*[\s/>]|<>")

IMPORT_LITERAL = re.compile(
    r"(?P<prefix>\b(?:"
    r"(?:import|export)\s+[\w*{}\s,$]*?\bfrom\s*"
    r"|import\s*\(\s*"
    r"|require\s*\(\s*"
    r"|import\s+"
    r"))(?P<quote>['\"])(?P<path>[^'\"\n]+)(?P=quote)"
)

EXPORT_NAME = re.compile(
    r"\bexport\s+(?:default\s+)?(?:async\s+)?(?:function|const|class|let|var|interface|type|enum)\s+([A-Za-z_$][\w$]*)"
)


# ============================================================================
# PATH HELPERS
# ============================================================================

def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def _split_ext(name: str) -> Tuple[str, str]:
    stem, ext = posixpath.splitext(name)
    return (stem, ext) if stem else (name, "")


def _is_code(path: str) -> bool:
    return path.endswith(CODE_EXTENSIONS)


def _pascal(stem: str) -> str:
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", stem) if p]
    return "".join(p[:1].upper() + p[1:] for p in parts) or "Untitled"


def is_pinned(path: str) -> bool:
    """Files that are never relocated"""
    if "/" not in path:
        return path in ROOT_FILES
    return path.split("/", 1)[0] in KNOWN_FOLDERS


def extract_imports(content: str) -> List[str]:
    return [m.group("path") for m in IMPORT_LITERAL.finditer(content)]


def extract_exports(content: str) -> List[str]:
    return EXPORT_NAME.findall(content)


# ============================================================================
# CLASSIFICATION RULES (priority order)
# ============================================================================

Predicate = Callable[[str, str, str], bool]


def _root_file(path: str, name: str, content: str) -> bool:
    return name in ROOT_FILES


def _asset(path: str, name: str, content: str) -> bool:
    return name.lower().endswith(ASSET_EXTENSIONS)


def _navigation(path: str, name: str, content: str) -> bool:
    if not _is_code(path):
        return False
    if re.search(r"navigat", name, re.IGNORECASE):
        return True
    return any(p.search(content) for p in NAVIGATION_PATTERNS)


def _screen(path: str, name: str, content: str) -> bool:
    if not _is_code(path):
        return False
    if re.search(r"screen", name, re.IGNORECASE):
        return True
    return any(p.search(content) for p in SCREEN_PATTERNS)


def _config(path: str, name: str, content: str) -> bool:
    if not _is_code(path):
        return name.endswith((".json", ".yml", ".yaml", ".toml"))
    if re.search(r"config", name, re.IGNORECASE):
        return True
    return any(p.search(content) for p in CONFIG_PATTERNS)


def _util(path: str, name: str, content: str) -> bool:
    if not _is_code(path):
        return False
    if UTIL_NAME.search(_split_ext(name)[0]):
        return True
    return name.endswith(SCRIPT_EXTENSIONS) and not JSX_TAG.search(content)


def _component(path: str, name: str, content: str) -> bool:
    return _is_code(path)


FILE_KIND_RULES: List[Tuple[Predicate, FileKind]] = [
    (_root_file, FileKind.ROOT),
    (_asset, FileKind.ASSET),
    (_navigation, FileKind.NAVIGATION),
    (_screen, FileKind.SCREEN),
    (_config, FileKind.CONFIG),
    (_util, FileKind.UTIL),
    (_component, FileKind.COMPONENT),
]


def classify_file(path: str, content: str) -> FileKind:
    """First matching rule wins; unmatched non-code files are ROOT"""
    name = _basename(path)
    for predicate, kind in FILE_KIND_RULES:
        if predicate(path, name, content):
            return kind
    return FileKind.ROOT


def canonical_path(path: str, kind: FileKind) -> str:
    """Canonical location for an unpinned file of the given kind"""
    name = _basename(path)

    if kind is FileKind.ROOT:
        return name if name in ROOT_FILES else path

    if not _is_code(path) and kind is not FileKind.ASSET:
        return path

    if kind is FileKind.SCREEN:
        stem, ext = _split_ext(name)
        screen_name = _pascal(stem)
        if not screen_name.lower().endswith("screen"):
            screen_name += "Screen"
        return f"screens/{screen_name}{ext}"

    return f"{FOLDER_BY_KIND[kind]}/{name}"


# ============================================================================
# CONTENT REPAIRS
# ============================================================================

ROUTE_EXTENSIONS = (".tsx", ".jsx")
REACT_HOOKS = (
    "useState", "useEffect", "useMemo", "useCallback",
    "useRef", "useContext", "useReducer", "useLayoutEffect",
)
THEMED_COMPONENTS: Dict[str, str] = {
    "ThemedText": "components/ThemedText",
    "ThemedView": "components/ThemedView",
}

DEFAULT_EXPORT = re.compile(r"\bexport\s+default\b|\bas\s+default\b")
DECLARED_COMPONENT = re.compile(
    r"^[ \t]*(?P<exported>export\s+)?(?:async\s+)?(?:function|class|const|let)\s+(?P<name>[A-Z][\w$]*)",
    re.MULTILINE,
)
REACT_IMPORT = re.compile(r"""\bfrom\s*['"]react['"]|\brequire\(\s*['"]react['"]\s*\)""")


def _route_component(path: str, content: str) -> Optional[str]:
    """The component a route file most likely meant to export"""
    declared = [(m.group("name"), bool(m.group("exported"))) for m in DECLARED_COMPONENT.finditer(content)]
    if not declared:
        return None

    stem = _pascal(_split_ext(_basename(path))[0])
    names = [name for name, _ in declared]
    for preferred in (stem, f"{stem}Screen", f"{stem}Layout"):
        if preferred in names:
            return preferred
    for name, exported in declared:
        if exported:
            return name
    return names[0]


def ensure_default_export(path: str, content: str) -> Optional[str]:
    """
    Expo Router only renders a route's default export.

    Returns the repaired content, or None when nothing needs (or can) change.
    """
    if not path.startswith("app/") or not path.endswith(ROUTE_EXTENSIONS):
        return None
    if DEFAULT_EXPORT.search(content):
        return None

    component = _route_component(path, content)
    if component is None:
        return None
    return f"{content.rstrip()}\n\nexport default {component};\n"


def _imports_name(content: str, name: str) -> bool:
    return bool(re.search(rf"^\s*import\s+[^'\"]*\b{name}\b[^'\"]*from\s*['\"]", content, re.MULTILINE))


def _declares_name(content: str, name: str) -> bool:
    return bool(re.search(rf"\b(?:function|class|const|let|var)\s+{name}\b", content))


def _themed_import(path: str, content: str, name: str, files: Mapping[str, str]) -> Optional[str]:
    if not re.search(rf"<{name}\b", content):
        return None
    if _imports_name(content, name) or _declares_name(content, name):
        return None

    module = THEMED_COMPONENTS[name]
    target = next((module + ext for ext in RESOLVE_EXTENSIONS if module + ext in files), None)
    if target is None or target == path:
        return None

    relative = posixpath.relpath(module, posixpath.dirname(path) or ".")
    if not relative.startswith("."):
        relative = "./" + relative

    exports = files[target]
    if re.search(rf"\bexport\s+(?:function|class|const)\s+{name}\b", exports):
        return f"import {{ {name} }} from '{relative}';"
    if DEFAULT_EXPORT.search(exports):
        return f"import {name} from '{relative}';"
    return None


def ensure_imports(path: str, content: str, files: Mapping[str, str]) -> Tuple[str, List[str]]:
    """
    Add imports for React hooks and themed components a file uses but never imports.

    Returns the content and the names whose imports were added.
    """
    if not _is_code(path):
        return content, []

    lines: List[str] = []
    added: List[str] = []

    hooks = [hook for hook in REACT_HOOKS if re.search(rf"(?<![\w.$]){hook}\s*(?:<[^<>()]*>)?\s*\(", content)]
    hooks = [hook for hook in hooks if not _declares_name(content, hook)]
    if hooks and not REACT_IMPORT.search(content):
        lines.append(f"import {{ {', '.join(hooks)} }} from 'react';")
        added.extend(hooks)

    for name in THEMED_COMPONENTS:
        statement = _themed_import(path, content, name, files)
        if statement:
            lines.append(statement)
            added.append(name)

    if not lines:
        return content, []
    return "\n".join(lines) + "\n" + content, added


# ============================================================================
# PATH MAPPING
# ============================================================================

class PathMapping:
    """
    Identifier -> canonical path lookup built once per run.

    Keys are every file's basename with and without extension, with and
    without a leading './'. Identifiers shared by different files are dropped.
    """

    def __init__(self, relocations: Mapping[str, str]):
        self._by_identifier: Dict[str, str] = {}
        self._origin: Dict[str, str] = {}
        ambiguous: Set[str] = set()

        for original, new in relocations.items():
            name = _basename(original)
            stem, _ = _split_ext(name)
            for key in {name, stem, f"./{name}", f"./{stem}"}:
                if key in self._origin and self._origin[key] != original:
                    ambiguous.add(key)
                else:
                    self._by_identifier[key] = new
                    self._origin[key] = original

        for key in ambiguous:
            self._by_identifier.pop(key, None)
            self._origin.pop(key, None)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._by_identifier

    def __len__(self) -> int:
        return len(self._by_identifier)

    def lookup(self, literal: str) -> Optional[str]:
        """Original path of the file an import literal most likely means"""
        name = _basename(literal.rstrip("/"))
        for key in (literal, name, _split_ext(name)[0]):
            if key in self._origin:
                return self._origin[key]
        return None

    def canonical(self, identifier: str) -> Optional[str]:
        return self._by_identifier.get(identifier)


# ============================================================================
# RESULT
# ============================================================================

@dataclass
class StructureFixResult:
    files: RawFileSet
    analyses: List[FileAnalysis] = field(default_factory=list)
    relocations: Dict[str, str] = field(default_factory=dict)
    rewritten_imports: int = 0
    synthesized: List[str] = field(default_factory=list)
    repairs: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def moved(self) -> Dict[str, str]:
        return {old: new for old, new in self.relocations.items() if old != new}


@dataclass
class _Resolution:
    target: str
    exact: bool
    index_style: bool


class StructureFixer:
    """
    Canonical layout and import consistency for a merged project.

    Features:
    - Ordered content/filename classification rules
    - Pinning that makes the fix idempotent
    - Import rewriting that preserves extension and index styles
    - Default export and missing import repairs
    - Critical file synthesis
    """

    def __init__(
        self,
        app_name: Optional[str] = None,
        critical_defaults: Optional[Dict[str, Callable[[str], str]]] = None,
        min_content_length: Optional[int] = None,
    ):
        self.app_name = app_name or settings.default_app_name
        self.min_content_length = (
            min_content_length
            if min_content_length is not None
            else settings.min_file_content_length
        )
        self.critical_defaults: Dict[str, Callable[[str], str]] = {
            SYNTHESIZED_ENTRY_POINT: lambda name: default_root_layout(),
            PACKAGE_MANIFEST: default_package_json,
            "app.json": default_app_json,
            TRANSPILER_CONFIG: lambda name: default_babel_config(),
        }
        if critical_defaults:
            self.critical_defaults.update(critical_defaults)

    def fix_structure(self, files: Mapping[str, str], app_name: Optional[str] = None) -> RawFileSet:
        return self.fix_structure_detailed(files, app_name).files

    def fix_structure_detailed(
        self,
        files: Mapping[str, str],
        app_name: Optional[str] = None,
    ) -> StructureFixResult:
        """
        Relocate files, rewrite imports and guarantee critical files.

        Raises:
            CriticalFileMissingAfterFix: when synthesis cannot complete the set
        """
        source = clean_file_set(files, self.min_content_length)

        # Pass 1 - classify and relocate
        analyses = self.analyze_files(source)
        relocations = self._assign_paths(analyses)

        # Pass 2 - rewrite imports against the new layout
        mapping = PathMapping({
            path: relocations[path]
            for path in source
            if _is_code(path) or _asset(path, _basename(path), "")
        })
        fixed: Dict[str, str] = {}
        rewritten = 0
        for original, content in source.items():
            new_content, count = self._rewrite_imports(original, content, source, relocations, mapping)
            fixed[relocations[original]] = new_content
            rewritten += count

        repairs = self._repair_contents(fixed)
        synthesized = self._ensure_critical_files(fixed, app_name or self.app_name)

        moved = {old: new for old, new in relocations.items() if old != new}
        for old, new in moved.items():
            logger.debug("structure.file.relocated", extra={"from": old, "to": new})

        logger.info(
            "structure.fix.completed",
            extra={
                "file_count": len(fixed),
                "relocated": len(moved),
                "rewritten_imports": rewritten,
                "repaired": len(repairs),
                "synthesized": synthesized,
            }
        )

        return StructureFixResult(
            files=fixed,
            analyses=analyses,
            relocations=relocations,
            rewritten_imports=rewritten,
            synthesized=synthesized,
            repairs=repairs,
        )

    # ------------------------------------------------------------------ #
    # Pass 1
    # ------------------------------------------------------------------ #

    def analyze_file(self, path: str, content: str) -> FileAnalysis:
        kind = classify_file(path, content)
        pinned = is_pinned(path)
        return FileAnalysis(
            original_path=path,
            suggested_path=path if pinned else canonical_path(path, kind),
            file_kind=kind,
            imports_found=extract_imports(content) if _is_code(path) else [],
            exports_found=extract_exports(content) if _is_code(path) else [],
            pinned=pinned,
        )

    def analyze_files(self, files: Mapping[str, str]) -> List[FileAnalysis]:
        return [self.analyze_file(path, content) for path, content in files.items()]

    @staticmethod
    def _assign_paths(analyses: List[FileAnalysis]) -> Dict[str, str]:
        """Final path per original path; a taken target keeps the original"""
        originals = {a.original_path for a in analyses}
        claimed: Set[str] = {a.original_path for a in analyses if not a.relocated}
        relocations: Dict[str, str] = {}

        for analysis in analyses:
            target = analysis.suggested_path
            if analysis.relocated and (target in originals or target in claimed):
                logger.debug(
                    "structure.relocation.skipped",
                    extra={"path": analysis.original_path, "target": target}
                )
                target = analysis.original_path
            claimed.add(target)
            relocations[analysis.original_path] = target

        return relocations

    # ------------------------------------------------------------------ #
    # Pass 2
    # ------------------------------------------------------------------ #

    def _resolve(
        self,
        importer: str,
        literal: str,
        originals: Mapping[str, str],
        mapping: PathMapping,
    ) -> Optional[_Resolution]:
        if literal.startswith("/"):
            base = posixpath.normpath(literal.lstrip("/"))
        else:
            base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), literal))

        if base != ".." and not base.startswith("../") and base != ".":
            if base in originals:
                return _Resolution(base, exact=True, index_style=False)
            for ext in RESOLVE_EXTENSIONS:
                if base + ext in originals:
                    return _Resolution(base + ext, exact=True, index_style=False)
            for ext in RESOLVE_EXTENSIONS:
                candidate = f"{base}/index{ext}"
                if candidate in originals:
                    return _Resolution(candidate, exact=True, index_style=True)

        target = mapping.lookup(literal)
        if target is not None and target != importer:
            return _Resolution(target, exact=False, index_style=False)
        return None

    @staticmethod
    def _relative_literal(importer_new: str, target_new: str, literal: str, index_style: bool) -> str:
        if index_style:
            destination = posixpath.dirname(target_new)
        else:
            stem, ext = _split_ext(target_new)
            literal_ext = _split_ext(_basename(literal))[1]
            destination = target_new if literal_ext == ext else stem

        start = posixpath.dirname(importer_new) or "."
        relative = posixpath.relpath(destination or ".", start)
        if not relative.startswith("."):
            relative = "./" + relative
        elif relative == ".":
            relative = "./"
        return relative

    def _rewrite_imports(
        self,
        original: str,
        content: str,
        originals: Mapping[str, str],
        relocations: Mapping[str, str],
        mapping: PathMapping,
    ) -> Tuple[str, int]:
        if not _is_code(original):
            return content, 0

        importer_new = relocations[original]
        count = 0

        def replace(match: "re.Match") -> str:
            nonlocal count
            literal = match.group("path")
            if not literal.startswith((".", "/")):
                return match.group(0)

            resolution = self._resolve(original, literal, originals, mapping)
            if resolution is None:
                return match.group(0)

            target_new = relocations.get(resolution.target, resolution.target)
            moved = importer_new != original or target_new != resolution.target
            if resolution.exact and not moved:
                return match.group(0)

            new_literal = self._relative_literal(importer_new, target_new, literal, resolution.index_style)
            if new_literal == literal:
                return match.group(0)

            count += 1
            quote = match.group("quote")
            return f"{match.group('prefix')}{quote}{new_literal}{quote}"

        return IMPORT_LITERAL.sub(replace, content), count

    # ------------------------------------------------------------------ #
    # Pass 3
    # ------------------------------------------------------------------ #

    @staticmethod
    def _repair_contents(files: Dict[str, str]) -> Dict[str, List[str]]:
        repairs: Dict[str, List[str]] = {}

        for path in list(files):
            content = files[path]
            applied: List[str] = []

            exported = ensure_default_export(path, content)
            if exported is not None:
                content = exported
                applied.append("default-export")

            content, added = ensure_imports(path, content, files)
            applied.extend(f"import:{name}" for name in added)

            if applied:
                files[path] = content
                repairs[path] = applied
                logger.info("structure.content.repaired", extra={"path": path, "repairs": applied})

        return repairs

    # ------------------------------------------------------------------ #
    # Critical files
    # ------------------------------------------------------------------ #

    @staticmethod
    def missing_critical_files(files: Mapping[str, str]) -> List[str]:
        missing = []
        if not any(path in files for path in ENTRY_POINTS):
            missing.append("entry-point")
        manifest = files.get(PACKAGE_MANIFEST)
        if manifest is None or not _is_json_object(manifest):
            missing.append(PACKAGE_MANIFEST)
        if not any(path in files for path in APP_METADATA_FILES):
            missing.append("app-metadata")
        if TRANSPILER_CONFIG not in files:
            missing.append(TRANSPILER_CONFIG)
        return missing

    def _ensure_critical_files(self, files: Dict[str, str], app_name: str) -> List[str]:
        synthesized: List[str] = []
        to_path = {
            "entry-point": SYNTHESIZED_ENTRY_POINT,
            PACKAGE_MANIFEST: PACKAGE_MANIFEST,
            "app-metadata": "app.json",
            TRANSPILER_CONFIG: TRANSPILER_CONFIG,
        }

        for category in self.missing_critical_files(files):
            path = to_path[category]
            content = self.critical_defaults[path](app_name)
            if has_usable_content(content, self.min_content_length):
                files[path] = content
                synthesized.append(path)
                logger.warning("structure.critical.synthesized", extra={"path": path})

        still_missing = self.missing_critical_files(files)
        if still_missing:
            logger.error("structure.critical.missing", extra={"missing": still_missing})
            raise CriticalFileMissingAfterFix(still_missing)

        return synthesized


def _is_json_object(text: str) -> bool:
    try:
        return isinstance(json.loads(text), dict)
    except (TypeError, ValueError):
        return False


def analyze_project_structure(files: Mapping[str, str]) -> Dict[str, object]:
    """File counts per top-level folder and per kind, for progress logs"""
    folders: Dict[str, int] = {}
    kinds: Dict[str, int] = {}

    for path, content in files.items():
        folder = path.split("/", 1)[0] if "/" in path else "root"
        folders[folder] = folders.get(folder, 0) + 1
        kind = classify_file(path, content).value
        kinds[kind] = kinds.get(kind, 0) + 1

    return {
        "total_files": len(files),
        "folders": dict(sorted(folders.items())),
        "file_kinds": dict(sorted(kinds.items())),
    }


# Global instance
structure_fixer = StructureFixer()


def fix_structure(files: Mapping[str, str], app_name: Optional[str] = None) -> RawFileSet:
    return structure_fixer.fix_structure(files, app_name)
