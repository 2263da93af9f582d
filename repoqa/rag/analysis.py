"""
Repository analysis (display only).

Computed from indexed files: counts per extension and language, a nested
directory tree, and rough quality heuristics (complexity bucket, share of
documented files). None of this feeds retrieval.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

LANGUAGES: Dict[str, str] = {
    ".js": "JavaScript", ".jsx": "JavaScript",
    ".ts": "TypeScript", ".tsx": "TypeScript",
    ".py": "Python", ".java": "Java", ".cpp": "C++", ".c": "C", ".cs": "C#",
    ".go": "Go", ".rs": "Rust", ".php": "PHP", ".rb": "Ruby", ".swift": "Swift",
    ".kt": "Kotlin", ".scala": "Scala", ".sh": "Shell", ".bat": "Batch",
    ".ps1": "PowerShell", ".html": "HTML", ".css": "CSS", ".scss": "SCSS",
    ".sass": "SASS", ".less": "LESS", ".vue": "Vue", ".svelte": "Svelte",
    ".astro": "Astro", ".json": "JSON", ".xml": "XML", ".yaml": "YAML",
    ".yml": "YAML", ".toml": "TOML", ".ini": "INI", ".md": "Markdown",
    ".txt": "Text",
}

_CLASS_RE = re.compile(r"\b(class|interface)\s+\w+")
_FUNCTION_RE = re.compile(r"\bfunction\s+\w+|\bconst\s+\w+\s*=\s*\(|\bdef\s+\w+|\bfunc\s+\w+|\bfn\s+\w+")
_BRANCH_RE = re.compile(r"\b(if|switch|match|for|while|try|catch|except)\b")
_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/|//.*$|^\s*#.*$|\"\"\"[\s\S]*?\"\"\"", re.MULTILINE)
_TYPE_HINT_RE = re.compile(r":.*?=>|:\s*(string|number|boolean|object|str|int|float|bool)\b|->\s*\w+")

COMPLEX_FUNCTION_COUNT = 5


@dataclass
class DirectoryNode:
    name: str
    type: str  # "file" | "directory"
    children: Optional[List["DirectoryNode"]] = None
    size: Optional[int] = None
    extension: Optional[str] = None

    def child(self, name: str) -> Optional["DirectoryNode"]:
        for node in self.children or []:
            if node.name == name:
                return node
        return None


@dataclass
class LanguageStats:
    files: int = 0
    lines: int = 0


@dataclass
class CodeQuality:
    avg_file_size: int = 0
    complexity: str = "Low"
    documentation: int = 0


@dataclass
class RepositoryStats:
    total_files: int
    total_lines: int
    file_types: Dict[str, int]
    languages: Dict[str, LanguageStats]
    directory_structure: DirectoryNode
    code_quality: CodeQuality = field(default_factory=CodeQuality)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extension_of(file_name: str) -> str:
    base = file_name.rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return "." + base.rsplit(".", 1)[-1].lower()


def language_of(extension: str) -> str:
    return LANGUAGES.get(extension.lower(), "Other")


def count_lines(content: str) -> int:
    return content.count("\n") + 1


def build_directory_tree(files: Sequence[Tuple[str, str]]) -> DirectoryNode:
    root = DirectoryNode(name="root", type="directory", children=[])
    for file_name, source in files:
        parts = [p for p in file_name.split("/") if p]
        node = root
        for i, part in enumerate(parts):
            is_file = i == len(parts) - 1
            existing = node.child(part)
            if existing is not None:
                node = existing
                continue
            new = DirectoryNode(name=part, type="file" if is_file else "directory")
            if is_file:
                new.size = len(source)
                new.extension = extension_of(part)
            else:
                new.children = []
            if node.children is None:
                node.children = []
            node.children.append(new)
            node = new
    return root


def is_complex(source: str) -> bool:
    return (
        bool(_CLASS_RE.search(source))
        and len(_FUNCTION_RE.findall(source)) > COMPLEX_FUNCTION_COUNT
        and bool(_BRANCH_RE.search(source))
    )


def is_documented(source: str) -> bool:
    return bool(_COMMENT_RE.search(source) or _TYPE_HINT_RE.search(source))


def complexity_bucket(files: Sequence[Tuple[str, str]]) -> str:
    if not files:
        return "Low"
    ratio = sum(1 for _, src in files if is_complex(src)) / len(files)
    if ratio < 0.3:
        return "Low"
    if ratio < 0.7:
        return "Medium"
    return "High"


def documentation_percent(files: Sequence[Tuple[str, str]]) -> int:
    if not files:
        return 0
    documented = sum(1 for _, src in files if is_documented(src))
    return round(documented / len(files) * 100)


def analyze_repository(files: Sequence[Tuple[str, str]]) -> RepositoryStats:
    """
    Analyze (file_name, source_code) pairs.

    Empty input yields zero counts, an empty tree and a "Low" bucket.
    """
    file_types: Dict[str, int] = {}
    languages: Dict[str, LanguageStats] = {}
    total_lines = 0
    total_size = 0

    for file_name, source in files:
        lines = count_lines(source)
        ext = extension_of(file_name)
        lang = languages.setdefault(language_of(ext), LanguageStats())

        total_lines += lines
        total_size += len(source)
        file_types[ext] = file_types.get(ext, 0) + 1
        lang.files += 1
        lang.lines += lines

    return RepositoryStats(
        total_files=len(files),
        total_lines=total_lines,
        file_types=file_types,
        languages=languages,
        directory_structure=build_directory_tree(files),
        code_quality=CodeQuality(
            avg_file_size=round(total_size / len(files)) if files else 0,
            complexity=complexity_bucket(files),
            documentation=documentation_percent(files),
        ),
    )
