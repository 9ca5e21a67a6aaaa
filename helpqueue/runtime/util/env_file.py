"""``.env`` file reader."""

from __future__ import annotations

from pathlib import Path


class EnvFile:
    """Reads a ``KEY=VALUE`` file shared by the server and the CLI.

    Lines may carry an ``export`` prefix so the same file can be sourced by a
    shell.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self, key: str) -> str:
        return self.read_all().get(key, "")

    def read_all(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        result: dict[str, str] = {}
        for raw in self.path.read_text().splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            key, _, value = line.partition("=")
            result[key.strip()] = value.strip().strip('"').strip("'")
        return result

