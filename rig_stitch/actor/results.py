"""Structured outcomes of stitch, merge and validation passes."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class MergeResult:
    """Counts and messages produced by one stitch or merge invocation.

    `success` stays True until an error is added; warnings never fail a
    result.
    """
    success: bool = True
    bones_stitched: int = 0
    bones_skipped: int = 0
    bones_merged: int = 0
    bones_removed: int = 0
    non_humanoid_bones_preserved: int = 0
    dynamic_chain_bones_preserved: int = 0
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, message: str) -> "MergeResult":
        result = cls(success=False)
        result.errors.append(message)
        return result

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.success = False

    def absorb(self, other: "MergeResult", label: str = "") -> None:
        """Add another result's counts and messages (batch runs)."""
        self.bones_stitched += other.bones_stitched
        self.bones_skipped += other.bones_skipped
        self.bones_merged += other.bones_merged
        self.bones_removed += other.bones_removed
        self.non_humanoid_bones_preserved += other.non_humanoid_bones_preserved
        self.dynamic_chain_bones_preserved += other.dynamic_chain_bones_preserved
        prefix = "[%s] " % label if label else ""
        self.warnings.extend(prefix + w for w in other.warnings)
        self.errors.extend(prefix + e for e in other.errors)

    def summary(self) -> str:
        if not self.success:
            return "Failed: " + "; ".join(self.errors)
        parts = []
        if self.bones_merged:
            parts.append("%d merged" % self.bones_merged)
        elif self.bones_stitched:
            parts.append("%d stitched" % self.bones_stitched)
        if self.bones_skipped:
            parts.append("%d skipped" % self.bones_skipped)
        if self.bones_removed:
            parts.append("%d removed" % self.bones_removed)
        if self.non_humanoid_bones_preserved:
            parts.append("%d non-humanoid preserved" % self.non_humanoid_bones_preserved)
        if self.dynamic_chain_bones_preserved:
            parts.append("%d physics preserved" % self.dynamic_chain_bones_preserved)
        text = "OK: " + (", ".join(parts) if parts else "nothing to do")
        if self.warnings:
            text += " (%d warnings)" % len(self.warnings)
        return text


@dataclass
class ValidationReport:
    """Pre-flight findings for a base/attachment pair."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
