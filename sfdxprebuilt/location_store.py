"""
Persistence of the resolved binary location.

The location is stored as a tiny generated Python module (``location.py``)
next to the install directory::

    location = "sfdx/bin/sfdx"
    platform = "linux"
    architecture = "x64"

The module is read back by parsing it, never by importing it. Platform and
architecture are written only when they are purely alphanumeric; any other
value leaves them out, which makes later lookups treat the record as having
no target metadata.
"""

import ast
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from sfdxprebuilt.core.filesystem import atomic_write
from sfdxprebuilt.core.platform import TargetIdentity

logger = logging.getLogger(__name__)

LOCATION_FILENAME = "location.py"
RECORD_FIELDS = ("location", "platform", "architecture")

_ALPHANUMERIC = re.compile(r"[a-zA-Z0-9]*")


@dataclass(frozen=True)
class LocationRecord:
    """
    Persisted location of a resolved binary.

    Attributes:
        location: Binary path, absolute or relative to the record's directory
        platform: Platform the binary was resolved for
        architecture: Architecture the binary was resolved for
    """

    location: str
    platform: Optional[str] = None
    architecture: Optional[str] = None

    @classmethod
    def for_target(
        cls, location: Union[str, Path], target: TargetIdentity
    ) -> "LocationRecord":
        return cls(str(location), target.platform, target.architecture)

    def matches(self, target: TargetIdentity) -> bool:
        """True if the record was written for ``target``."""
        return (
            self.platform == target.platform
            and self.architecture == target.architecture
        )

    def resolve(self, base_dir: Path) -> Path:
        """Absolute binary path, relative locations taken from ``base_dir``."""
        return (Path(base_dir) / self.location).resolve()


def is_alphanumeric(value: Optional[str]) -> bool:
    return value is not None and _ALPHANUMERIC.fullmatch(value) is not None


def render_record(record: LocationRecord) -> str:
    """
    Render a record as module source.

    Example:
        >>> print(render_record(LocationRecord("sfdx/bin/sfdx", "linux", "x64")))
        # Generated by sfdx-prebuilt. Rewritten on every install.
        location = "sfdx/bin/sfdx"
        platform = "linux"
        architecture = "x64"
        <BLANKLINE>
    """
    # JSON string escapes are valid Python string escapes
    lines = [
        "# Generated by sfdx-prebuilt. Rewritten on every install.",
        f"location = {json.dumps(record.location)}",
    ]
    if is_alphanumeric(record.platform) and is_alphanumeric(record.architecture):
        lines.append(f'platform = "{record.platform}"')
        lines.append(f'architecture = "{record.architecture}"')
    else:
        logger.debug(
            f"Omitting non-alphanumeric platform/architecture "
            f"{record.platform!r}/{record.architecture!r} from location record"
        )

    return "\n".join(lines) + "\n"


def parse_record(source: str) -> Optional[LocationRecord]:
    """
    Parse module source produced by render_record().

    Returns:
        LocationRecord, or None if the source has no usable ``location``

    Raises:
        SyntaxError, ValueError, TypeError: If the source is not a valid
            literal module
    """
    values = {}
    for node in ast.parse(source).body:
        if not isinstance(node, ast.Assign) or len(node.targets) != 1:
            continue
        target = node.targets[0]
        if isinstance(target, ast.Name) and target.id in RECORD_FIELDS:
            value = ast.literal_eval(node.value)
            if isinstance(value, str):
                values[target.id] = value

    if not values.get("location"):
        return None
    return LocationRecord(**values)


class LocationStore:
    """
    Reads and writes the location record of one install root.

    Example:
        >>> store = LocationStore(Path("lib"))
        >>> store.write(LocationRecord("sfdx/bin/sfdx", "linux", "x64"))
        >>> store.read().location
        'sfdx/bin/sfdx'
    """

    def __init__(self, lib_dir: Path):
        self.lib_dir = Path(lib_dir)
        self.location_file = self.lib_dir / LOCATION_FILENAME

    def write(self, record: LocationRecord) -> None:
        """Overwrite the record unconditionally."""
        logger.info(f"Writing {self.location_file}")
        atomic_write(self.location_file, render_record(record))

    def read(self, path: Optional[Path] = None) -> Optional[LocationRecord]:
        """
        Read a location record.

        Args:
            path: Record file to read (default: this store's location file)

        Returns:
            LocationRecord, or None if absent or unreadable
        """
        path = Path(path) if path is not None else self.location_file
        try:
            return parse_record(path.read_text(encoding="utf-8"))
        except (
            OSError,
            SyntaxError,
            ValueError,
            TypeError,
            RecursionError,
            MemoryError,
        ) as e:
            logger.debug(f"No usable location record at {path}: {e}")
            return None


__all__ = [
    "LOCATION_FILENAME",
    "LocationRecord",
    "LocationStore",
    "render_record",
    "parse_record",
    "is_alphanumeric",
]
