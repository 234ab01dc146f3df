"""Find chain definition files by name."""
from pathlib import Path
from typing import Optional

PRIORITY = (".json", ".yaml", ".yml")


class ChainFileFinder:
    """Search chain files under the given base directory."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir

    def find_by_name(self, name: str) -> Optional[Path]:
        """
        Find a chain file by its file stem, e.g. "login-flow".

        When several extensions exist for the same name, .json wins over
        .yaml and .yml; ties inside one extension go to the shortest path.
        """
        if not self.base_dir.is_dir() or "/" in name or "\\" in name or name.startswith("."):
            return None

        candidates: list[Path] = []
        for ext in PRIORITY:
            for file_path in self.base_dir.rglob(f"{name}{ext}"):
                if file_path.is_file():
                    candidates.append(file_path)

        if not candidates:
            return None

        candidates.sort(key=lambda path: (PRIORITY.index(path.suffix), len(path.parts), str(path)))
        return candidates[0]
