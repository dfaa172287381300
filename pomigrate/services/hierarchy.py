"""Derive parent/child placement from a flat list of outline levels."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_MAX_INDENT = 15


@dataclass(frozen=True)
class Placement:
    """Where one task sits in the tree."""
    index: int
    level: int
    parent_index: Optional[int]
    indent: int

    @property
    def is_root(self) -> bool:
        return self.parent_index is None


@dataclass
class HierarchyResult:
    """Placements in input order plus any warnings raised while building."""
    placements: List[Placement] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class HierarchyBuilder:
    """
    Stack-based builder turning outline levels into parent links.

    For each task at level L, entries at level >= L are popped; the new
    top of the stack is the parent (none means root). Level jumps larger
    than one and out-of-range levels are tolerated with a warning.
    """

    def __init__(self, max_indent: int = DEFAULT_MAX_INDENT):
        if max_indent < 0:
            raise ValueError("max_indent must not be negative")
        self.max_indent = max_indent

    def build(self, levels: Sequence[int], labels: Optional[Sequence[str]] = None) -> HierarchyResult:
        """
        Build placements for tasks in source order.

        Args:
            levels: Outline level per task, 1 = top
            labels: Optional task identifiers used in warnings

        Returns:
            HierarchyResult with one placement per task
        """
        result = HierarchyResult()
        stack: List[Tuple[int, Placement]] = []  # (source level, resolved placement)
        previous_level = 0
        max_level = self.max_indent + 1

        for index, raw_level in enumerate(levels):
            label = labels[index] if labels else f"#{index + 1}"
            level = raw_level

            if level is None or level < 1:
                result.warnings.append(
                    f"Task {label}: outline level {raw_level} is below 1, treated as 1"
                )
                level = 1
            if level > max_level:
                result.warnings.append(
                    f"Task {label}: outline level {level} exceeds maximum depth {max_level}, clamped"
                )
                level = max_level
            if level > previous_level + 1:
                result.warnings.append(
                    f"Task {label}: outline level jumps from {previous_level} to {level}"
                )

            while stack and stack[-1][0] >= level:
                stack.pop()
            parent = stack[-1][1] if stack else None

            # The effective level follows the actual parent after a jump
            effective_level = parent.level + 1 if parent else 1
            placement = Placement(
                index=index,
                level=effective_level,
                parent_index=parent.index if parent else None,
                indent=effective_level - 1,
            )
            result.placements.append(placement)
            stack.append((level, placement))
            previous_level = level

        for warning in result.warnings:
            logger.warning(warning)
        return result


def derive_levels(placements: Sequence[Placement]) -> List[int]:
    """Re-derive depth from parent links alone."""
    depth = {}
    levels = []
    for placement in placements:
        if placement.parent_index is None:
            level = 1
        else:
            level = depth[placement.parent_index] + 1
        depth[placement.index] = level
        levels.append(level)
    return levels


def build_hierarchy(levels: Sequence[int], max_indent: int = DEFAULT_MAX_INDENT) -> HierarchyResult:
    """Shortcut for HierarchyBuilder(max_indent).build(levels)."""
    return HierarchyBuilder(max_indent).build(levels)
