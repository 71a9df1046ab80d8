"""JSON file helpers shared by the config and ledger stores."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def read_json(path: str | Path) -> Any:
    """Read and decode a UTF-8 JSON document.

    Raises OSError if the file cannot be read and ValueError if it is not
    valid JSON.
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(path: str | Path, data: Any) -> None:
    """Write ``data`` as indented JSON, replacing ``path`` atomically.

    The document is written to a temp file in the target directory, flushed
    and fsynced, then renamed over the target. Readers see either the old
    file or the complete new one. Raises OSError or TypeError/ValueError on
    failure; the temp file never survives a failed write.
    """
    target = Path(path)
    directory = target.parent
    directory.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise
