"""Language identification for documents opened from disk."""

from pathlib import Path
from typing import Dict

DEFAULT_LANGUAGE_ID = "plaintext"

# Mapping of file extensions to language IDs
LANGUAGE_EXTENSIONS: Dict[str, str] = {
    ".txt": "plaintext",
    ".text": "plaintext",
    ".log": "plaintext",

    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",

    ".py": "python",
    ".pyi": "python",
    ".rs": "rust",
    ".go": "go",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",

    ".json": "json",
    ".jsonc": "jsonc",
    ".toml": "toml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".md": "markdown",
}


def get_language_id(file_path: str) -> str:
    """Language ID for a path, falling back to plain text."""
    return LANGUAGE_EXTENSIONS.get(Path(file_path).suffix.lower(), DEFAULT_LANGUAGE_ID)
