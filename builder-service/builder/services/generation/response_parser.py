"""
Response Parser - raw completion text to a RawFileSet.

Strategies, tried in order (the first yielding a usable file wins):
1. structured - JSON object with a ``files`` mapping (or list of records)
2. delimiter  - ===FILE: <path>=== ... ===END=== blocks
3. fenced     - markdown code fences whose info line or first line names a path
4. sections   - unfenced text split on ``// FILE: <path>`` or ``/* <path> */`` lines
5. guessed    - unlabeled code fences named from what they contain

Nothing usable is not an error here: the result is simply empty and the
pipeline decides what that means for the chunk.
"""
import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

from builder.config import settings
from builder.models.schemas.files import RawFileSet, clean_file_set
from builder.utils.logging import get_logger

logger = get_logger(__name__)


class ParseFailure(Exception):
    """A chunk's response produced no usable files"""
    retryable = True

    def __init__(self, message: str, chunk_name: Optional[str] = None):
        super().__init__(message)
        self.chunk_name = chunk_name


class ParseStrategy(str, Enum):
    STRUCTURED = "structured"
    DELIMITER = "delimiter"
    FENCED = "fenced"
    SECTIONS = "sections"
    GUESSED = "guessed"
    NONE = "none"


@dataclass
class ParseResult:
    """Parsed files plus the strategy that produced them"""
    files: RawFileSet = field(default_factory=dict)
    strategy: ParseStrategy = ParseStrategy.NONE

    @property
    def is_empty(self) -> bool:
        return not self.files


# ============================================================================
# PATTERNS
# ============================================================================

_DELIMITED_BLOCK = re.compile(
    r"^[ \t]*===[ \t]*FILE:[ \t]*(?P<path>[^\n=]+?)[ \t]*===[ \t]*\n"
    r"(?P<body>.*?)"
    r"(?=^[ \t]*===[ \t]*END[ \t]*===|^[ \t]*===[ \t]*FILE:|\Z)",
    re.MULTILINE | re.DOTALL | re.IGNORECASE,
)

_FENCED_BLOCK = re.compile(
    r"^[ \t]*```(?P<info>[^\n`]*)\n(?P<body>.*?)^[ \t]*```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)

# A path-like token: at least one character, a dot, an extension
_PATH_TOKEN = re.compile(r"(?P<path>[\w@()+\[\]\-./]*[\w)\]]\.[A-Za-z0-9]+)(?![\w.])")

_PATH_COMMENT = re.compile(
    r"^\s*(?://|#|/\*|<!--)\s*(?:(?:file(?:name)?|path)\s*:\s*)?"
    r"(?P<path>[\w@()+\[\]\-./]*[\w)\]]\.[A-Za-z0-9]+)"
    r"\s*(?:\*/|-->)?\s*$",
    re.IGNORECASE,
)

# Whole-line section headers in unfenced output
_SECTION_HEADER = re.compile(
    r"^[ \t]*(?:"
    r"(?://|#)[ \t]*(?:file|path)[ \t]*:[ \t]*(?P<labeled>[^\s*]+)"
    r"|/\*[ \t]*(?:(?:file|path)[ \t]*:[ \t]*)?"
    r"(?P<commented>[\w@()+\[\]\-./]*[\w)\]]\.[A-Za-z0-9]+)[ \t]*\*/"
    r")[ \t]*$",
    re.MULTILINE | re.IGNORECASE,
)

_DEFAULT_EXPORT_NAME = re.compile(
    r"\bexport\s+default\s+(?:async\s+)?(?:function|class)\s+(?P<name>[A-Za-z_$][\w$]*)"
    r"|\bexport\s+default\s+(?P<alias>[A-Za-z_$][\w$]*)\s*;?\s*$",
    re.MULTILINE,
)
_JSX = re.compile(r"<[A-Z][\w.]*[\s/>]|<>|</")


# ============================================================================
# FILENAME GUESSING
# ============================================================================

def _guess_json_manifest(content: str, index: int) -> Optional[str]:
    try:
        data = json.loads(content)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    if "expo" in data:
        return "app.json"
    if "compilerOptions" in data:
        return "tsconfig.json"
    if "dependencies" in data or "scripts" in data:
        return "package.json"
    return None


def _guess_babel_config(content: str, index: int) -> Optional[str]:
    if "module.exports" in content and "babel" in content:
        return "babel.config.js"
    return None


def _guess_default_export(content: str, index: int) -> Optional[str]:
    match = _DEFAULT_EXPORT_NAME.search(content)
    has_jsx = bool(_JSX.search(content))
    if match:
        name = match.group("name") or match.group("alias")
        return f"{name}.tsx" if has_jsx else f"{name}.ts"
    if "export default" in content and has_jsx:
        return f"Component{index}.tsx"
    return None


def _guess_readme(content: str, index: int) -> Optional[str]:
    if content.lstrip().startswith("# "):
        return "README.md"
    return None


def _guess_module(content: str, index: int) -> Optional[str]:
    if re.search(r"^\s*(?:export|import)\s", content, re.MULTILINE):
        return f"utils{index}.tsx" if _JSX.search(content) else f"utils{index}.ts"
    return None


FILENAME_GUESSES = [
    _guess_json_manifest,
    _guess_babel_config,
    _guess_default_export,
    _guess_readme,
    _guess_module,
]


def guess_filename(content: str, index: int = 1) -> Optional[str]:
    """
    Name an unlabeled code block from its content.

    Manifests and configs get their fixed names, components are named after
    their default export, anything else importable becomes ``utils<index>``.
    Returns None when nothing identifies the block.
    """
    for guess in FILENAME_GUESSES:
        name = guess(content, index)
        if name:
            return name
    return None


# ============================================================================
# PATH NORMALIZATION
# ============================================================================

def normalize_path(raw: Any) -> Optional[str]:
    """
    Clean a provider-supplied path.

    Returns None for paths that escape the project (``..``) or name no file.
    """
    if not isinstance(raw, str):
        return None

    path = raw.strip().strip("\"'`").strip()
    path = path.replace("\\", "/")
    path = re.sub(r"/{2,}", "/", path)

    while path.startswith("./"):
        path = path[2:]
    path = path.lstrip("/")

    if not path or path.endswith("/"):
        return None

    segments = [segment for segment in path.split("/") if segment != "."]
    if not segments or any(segment == ".." for segment in segments):
        return None

    return "/".join(segments)


def _unwrap_fence(body: str) -> str:
    """Strip a code fence wrapped around a delimited block body"""
    lines = body.split("\n")
    if len(lines) >= 2 and lines[0].lstrip().startswith("```") and lines[-1].strip() == "```":
        return "\n".join(lines[1:-1])
    return body


class ResponseParser:
    """
    Multi-format completion response parser.

    Features:
    - JSON ``files`` object or list of {path, content} records
    - ===FILE=== delimiter blocks (END marker optional, CRLF tolerated)
    - Fenced code blocks with the path on the fence or in a first-line comment
    - Unfenced sections headed by a path comment line
    - Content-based names for unlabeled code blocks
    - Path normalization and traversal rejection
    """

    def __init__(self, min_content_length: Optional[int] = None):
        self.min_content_length = (
            min_content_length
            if min_content_length is not None
            else settings.min_file_content_length
        )

    def parse(self, raw_text: Optional[str]) -> RawFileSet:
        return self.parse_detailed(raw_text).files

    def parse_detailed(self, raw_text: Optional[str]) -> ParseResult:
        if not raw_text or not raw_text.strip():
            return ParseResult()

        strategies = (
            (ParseStrategy.STRUCTURED, self._parse_structured),
            (ParseStrategy.DELIMITER, self._parse_delimited),
            (ParseStrategy.FENCED, self._parse_fenced),
            (ParseStrategy.SECTIONS, self._parse_sections),
            (ParseStrategy.GUESSED, self._parse_guessed),
        )

        for strategy, handler in strategies:
            files = clean_file_set(handler(raw_text), self.min_content_length)
            if files:
                logger.debug(
                    "parser.response.parsed",
                    extra={"strategy": strategy.value, "file_count": len(files)}
                )
                return ParseResult(files=files, strategy=strategy)

        logger.debug(
            "parser.response.empty",
            extra={"response_chars": len(raw_text)}
        )
        return ParseResult()

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    def _parse_structured(self, text: str) -> Dict[str, str]:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            return {}

        try:
            data = json.loads(text[start:end + 1], strict=False)
        except json.JSONDecodeError:
            return {}

        if not isinstance(data, dict):
            return {}

        entries = data.get("files")
        files: Dict[str, str] = {}

        if isinstance(entries, dict):
            for raw_path, content in entries.items():
                path = normalize_path(raw_path)
                if path and isinstance(content, str):
                    files[path] = content

        elif isinstance(entries, list):
            for record in entries:
                if not isinstance(record, dict):
                    continue
                path = normalize_path(record.get("path"))
                content = record.get("content")
                if path and isinstance(content, str):
                    files[path] = content

        return files

    def _parse_delimited(self, text: str) -> Dict[str, str]:
        text = text.replace("\r\n", "\n")
        files: Dict[str, str] = {}

        for match in _DELIMITED_BLOCK.finditer(text):
            path = normalize_path(match.group("path"))
            if not path:
                continue
            body = _unwrap_fence(match.group("body").strip("\n"))
            files[path] = body

        return files

    def _parse_fenced(self, text: str) -> Dict[str, str]:
        files: Dict[str, str] = {}

        for labeled, path, body in _fenced_blocks(text):
            if labeled and path:
                files[path] = body

        return files

    def _parse_sections(self, text: str) -> Dict[str, str]:
        text = text.replace("\r\n", "\n")
        headers = list(_SECTION_HEADER.finditer(text))
        files: Dict[str, str] = {}

        for position, header in enumerate(headers):
            end = headers[position + 1].start() if position + 1 < len(headers) else len(text)
            path = normalize_path(header.group("labeled") or header.group("commented"))
            if not path:
                continue
            body = _unwrap_fence(text[header.end():end].strip("\n").rstrip())
            files[path] = body

        return files

    def _parse_guessed(self, text: str) -> Dict[str, str]:
        files: Dict[str, str] = {}
        index = 0

        for labeled, _, body in _fenced_blocks(text):
            if labeled:
                continue
            index += 1
            name = guess_filename(body, index)
            if name:
                logger.debug("parser.filename.guessed", extra={"path": name, "block": index})
                files[name] = body

        return files


def _fenced_blocks(text: str) -> Iterator[Tuple[bool, Optional[str], str]]:
    """
    (labeled, path, body) per code fence.

    A block is labeled when its fence line or first body line names a path;
    the path is None when that name was rejected by normalization.
    """
    text = text.replace("\r\n", "\n")

    for match in _FENCED_BLOCK.finditer(text):
        info = match.group("info")
        body = match.group("body")

        token = _PATH_TOKEN.search(info)
        if token:
            yield True, normalize_path(token.group("path")), body.rstrip("\n")
            continue

        first_line, _, rest = body.partition("\n")
        comment = _PATH_COMMENT.match(first_line)
        if comment:
            yield True, normalize_path(comment.group("path")), rest.rstrip("\n")
            continue

        yield False, None, body.rstrip("\n")


# Global instance
response_parser = ResponseParser()


def parse(raw_text: Optional[str]) -> RawFileSet:
    return response_parser.parse(raw_text)
