"""
Production Domain Services

Exports the services of the production workflow domain.
"""

from .approval_service import ApprovalService
from .assignment_matcher import (
    AssignmentMatcher,
    AssignmentOutcome,
    BulkConfirmResult,
    CompatibilityRules,
    OperatorRanking,
    rank_operators,
    suggest_assignments,
)
from .bundle_service import BundleService, MergeResult, SplitResult
from .dependency_resolver import DependencyResolver
from .lot_service import LotService, LotWithItems
from .operator_load_ledger import OperatorLoadLedger
from .progress_aggregator import (
    LotProgress,
    OperationProgress,
    ProgressAggregator,
    WipSummary,
    aggregate_progress,
    find_bottleneck,
    step_progress,
    summarize_wip,
)
from .template_service import TemplateService
from .workflow_service import WorkflowService

__all__ = [
    "ApprovalService",
    "AssignmentMatcher",
    "AssignmentOutcome",
    "BulkConfirmResult",
    "BundleService",
    "CompatibilityRules",
    "DependencyResolver",
    "LotProgress",
    "LotService",
    "LotWithItems",
    "MergeResult",
    "OperationProgress",
    "OperatorLoadLedger",
    "OperatorRanking",
    "ProgressAggregator",
    "SplitResult",
    "TemplateService",
    "WipSummary",
    "WorkflowService",
    "aggregate_progress",
    "find_bottleneck",
    "rank_operators",
    "step_progress",
    "suggest_assignments",
    "summarize_wip",
]
