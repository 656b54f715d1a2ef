"""Errors raised by the sequence graph, condition engine and compiler."""

from __future__ import annotations


class FlowError(Exception):
    """Base class for all sequence authoring errors."""

    code = "flow_error"


class DuplicateIdError(FlowError):
    code = "duplicate_id"


class UnknownNodeTypeError(FlowError):
    code = "unknown_node_type"


class UnknownEventTypeError(FlowError):
    code = "unknown_event_type"


class DanglingEdgeError(FlowError):
    code = "dangling_edge"


class NotFoundError(FlowError):
    code = "not_found"


class MigrationInProgressError(FlowError):
    """Switch conditions are still in the legacy flat shape."""

    code = "migration_in_progress"


class SaveConflictError(FlowError):
    """A sync for the campaign is already in flight."""

    code = "save_conflict"


class CaseRequiredError(FlowError):
    code = "case_required"


class RuleRequiredError(FlowError):
    code = "rule_required"


class InvalidValueError(FlowError):
    code = "invalid_value"


class CompileError(FlowError):
    code = "compile_error"
