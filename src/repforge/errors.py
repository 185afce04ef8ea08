"""Exception types for the repforge engine."""


class RepforgeError(Exception):
    """Base class for engine errors."""


class KnowledgeDataError(RepforgeError):
    """Raised when a research data file is missing required fields."""


class PlanMutationError(RepforgeError):
    """Describes why a plan mutation could not be applied.

    Mutation operations never raise this; they return it inside a failed
    MutationResult so callers decide whether to retry or report.
    """
