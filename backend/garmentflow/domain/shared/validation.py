"""
Invariant checks shared by the template model, the state machine and
bundle split/merge.

Each check raises a domain error before anything is mutated, so callers can
run them up front and then apply changes unconditionally.
"""

from collections.abc import Iterable, Mapping
from uuid import UUID

from .exceptions import InvariantViolationError


class PieceCountValidators:
    """Piece-count conservation rules."""

    @staticmethod
    def validate_completed_pieces(
        work_item_id: UUID, completed_pieces: int, pieces: int
    ) -> None:
        """Enforce ``0 <= completed_pieces <= pieces``."""
        if completed_pieces < 0 or completed_pieces > pieces:
            raise InvariantViolationError(
                "COMPLETED_PIECES_RANGE",
                f"completed pieces {completed_pieces} outside 0..{pieces}",
                {
                    "work_item_id": str(work_item_id),
                    "completed_pieces": completed_pieces,
                    "pieces": pieces,
                },
            )

    @staticmethod
    def validate_split(parent_id: UUID, parent_pieces: int, piece_counts: list[int]) -> None:
        """A split must cover the parent exactly with at least two positive parts."""
        if len(piece_counts) < 2:
            raise InvariantViolationError(
                "SPLIT_PART_COUNT",
                f"split needs at least 2 parts, got {len(piece_counts)}",
                {"bundle_id": str(parent_id), "parts": len(piece_counts)},
            )

        non_positive = [count for count in piece_counts if count <= 0]
        if non_positive:
            raise InvariantViolationError(
                "SPLIT_POSITIVE_PARTS",
                "every split part must have at least one piece",
                {"bundle_id": str(parent_id), "piece_counts": [str(c) for c in piece_counts]},
            )

        total = sum(piece_counts)
        if total != parent_pieces:
            raise InvariantViolationError(
                "SPLIT_PIECE_TOTAL",
                f"split parts sum to {total}, bundle has {parent_pieces}",
                {
                    "bundle_id": str(parent_id),
                    "requested_total": total,
                    "pieces": parent_pieces,
                },
            )

    @staticmethod
    def validate_untouched(bundle_id: UUID, completed_pieces: int, action: str) -> None:
        """Split and merge are refused once any piece has been worked."""
        if completed_pieces != 0:
            raise InvariantViolationError(
                "BUNDLE_HAS_PROGRESS",
                f"cannot {action} bundle {bundle_id} with {completed_pieces} completed pieces",
                {"bundle_id": str(bundle_id), "completed_pieces": completed_pieces},
            )

    @staticmethod
    def validate_roll_total(total_pieces: int, roll_pieces: Iterable[int]) -> None:
        """Rolls of a lot must add up to the lot's total."""
        roll_total = sum(roll_pieces)
        if roll_total != total_pieces:
            raise InvariantViolationError(
                "ROLL_PIECE_TOTAL",
                f"rolls add up to {roll_total}, lot has {total_pieces}",
                {"roll_total": roll_total, "total_pieces": total_pieces},
            )


class GraphValidators:
    """Dependency-graph checks."""

    @staticmethod
    def unknown_dependencies(graph: Mapping[str, Iterable[str]]) -> list[str]:
        """Return dependency ids that are not nodes of the graph."""
        unknown = set()
        for deps in graph.values():
            unknown.update(dep for dep in deps if dep not in graph)
        return sorted(unknown)

    @staticmethod
    def find_cycle(graph: Mapping[str, Iterable[str]]) -> list[str]:
        """
        Find a dependency cycle.

        Args:
            graph: Mapping of node id to the ids it depends on

        Returns:
            The ids forming a cycle, or an empty list if the graph is a DAG
        """
        white, grey, black = 0, 1, 2
        color = {node: white for node in graph}
        stack: list[str] = []

        def visit(node: str) -> list[str]:
            color[node] = grey
            stack.append(node)
            for dep in sorted(graph[node]):
                if dep not in color:
                    continue
                if color[dep] == grey:
                    return stack[stack.index(dep):]
                if color[dep] == white:
                    cycle = visit(dep)
                    if cycle:
                        return cycle
            stack.pop()
            color[node] = black
            return []

        for node in sorted(graph):
            if color[node] == white:
                cycle = visit(node)
                if cycle:
                    return cycle
        return []
