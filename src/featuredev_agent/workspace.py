"""
Applying accepted code-generation results to a workspace directory.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from featuredev_agent.logging import get_logger
from featuredev_agent.state import DeletedFileInfo, NewFileZipInfo

logger = get_logger(__name__)


class WorkspacePathError(ValueError):
    """Raised when a generated path escapes the workspace root."""


@dataclass
class ApplyResult:
    written: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def resolve_in_workspace(root: Path, relative: str) -> Path:
    """Resolve a generated path, refusing anything outside `root`."""
    root = root.resolve()
    target = (root / relative).resolve()
    if not target.is_relative_to(root):
        raise WorkspacePathError(f"Path escapes workspace: {relative}")
    return target


def apply_changes(
    root: Path,
    file_paths: List[NewFileZipInfo],
    deleted_files: List[DeletedFileInfo],
) -> ApplyResult:
    """
    Write new/modified files and remove deleted ones.

    Rejected entries and entries already applied are skipped. Each applied
    entry is marked `change_applied`.
    """
    result = ApplyResult()

    for info in file_paths:
        if info.rejected or info.change_applied:
            result.skipped.append(info.zip_file_path)
            continue
        target = resolve_in_workspace(root, info.zip_file_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(info.file_content)
        info.change_applied = True
        result.written.append(info.zip_file_path)

    for info in deleted_files:
        if info.rejected or info.change_applied:
            result.skipped.append(info.zip_file_path)
            continue
        target = resolve_in_workspace(root, info.zip_file_path)
        target.unlink(missing_ok=True)
        info.change_applied = True
        result.deleted.append(info.zip_file_path)

    logger.info(
        "Changes applied",
        root=str(root),
        written=len(result.written),
        deleted=len(result.deleted),
        skipped=len(result.skipped),
    )
    return result
