"""Specs status table service.

Reads ``<specs dir>/README.md`` fresh on every poll and decides whether
more work remains and which spec is active. Rows look like::

    | [spec-name](spec-name.md) | In Progress | Summary | Depends On |
"""

import logging
import re
from pathlib import Path
from typing import List

from ralph_loop.constants import SPECS_README
from ralph_loop.models.specs import ParsedSpec, SpecsRemaining, SpecStatus, SpecsVerdict

logger = logging.getLogger(__name__)

# Name column must be a markdown link: [name](target)
SPEC_LINK_PATTERN = r"\[([^\]]+)\]"
SEPARATOR_ROW_PATTERN = r"^\|[\s:|-]+\|?\s*$"


def parse_specs_table(contents: str) -> List[ParsedSpec]:
    """Extract spec rows from README content.

    Skips non-table lines, the header and separator rows, rows without a
    linked name, and rows whose status is not a known label.
    """
    specs = []
    for line in contents.splitlines():
        line = line.strip()
        if not line.startswith("|") or re.match(SEPARATOR_ROW_PATTERN, line):
            continue

        columns = line.split("|")
        if len(columns) < 3:
            continue

        name_match = re.search(SPEC_LINK_PATTERN, columns[1])
        if not name_match:
            continue

        status = SpecStatus.from_label(columns[2])
        if status is None:
            continue

        specs.append(ParsedSpec(name=name_match.group(1).strip(), status=status))
    return specs


class SpecStatusOracle:
    """Polls the specs status table. Holds no state between polls."""

    def __init__(self, specs_dir: Path):
        self.specs_dir = Path(specs_dir)

    @property
    def readme_path(self) -> Path:
        return self.specs_dir / SPECS_README

    def poll(self) -> SpecsVerdict:
        """Read the table and compute a fresh verdict.

        A missing, unreadable or empty table yields MISSING; the caller must
        treat that as an error, never as "no work".
        """
        try:
            contents = self.readme_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning(f"Specs status table not found: {self.readme_path}")
            return SpecsVerdict(
                remaining=SpecsRemaining.MISSING, error=f"{self.readme_path} not found"
            )
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read specs status table {self.readme_path}: {e}")
            return SpecsVerdict(
                remaining=SpecsRemaining.MISSING,
                error=f"Failed to read {self.readme_path}: {e}",
            )

        specs = parse_specs_table(contents)
        if not specs:
            logger.warning(f"No specs found in {self.readme_path}")
            return SpecsVerdict(
                remaining=SpecsRemaining.MISSING, error=f"No specs found in {self.readme_path}"
            )

        in_progress = [s.name for s in specs if s.status == SpecStatus.IN_PROGRESS]
        if len(in_progress) > 1:
            logger.warning(f"Multiple specs in progress: {in_progress}")

        has_work = any(s.status in (SpecStatus.READY, SpecStatus.IN_PROGRESS) for s in specs)
        return SpecsVerdict(
            remaining=SpecsRemaining.YES if has_work else SpecsRemaining.NO,
            active_name=in_progress[0] if in_progress else None,
        )
