"""
Stitch Errors and Diagnostics

Diagnostic records share one shape across every stitch stage:
    {"kind": str, "severity": "error" | "warning", "message": str, "context": dict}

Fatal diagnostics abort the stitch and travel inside a StitchError.
Warnings never alter the output; they ride along in the stitch result.
"""

# Fatal kinds
MISSING_PHASE_OUTPUT = "MissingPhaseOutput"
MISSING_NODE = "MissingNode"
NODE_COUNT_MISMATCH = "NodeCountMismatch"
INVALID_NODE_FIELDS = "InvalidNodeFields"
DUPLICATE_UNIFIED_ID = "DuplicateUnifiedId"

# Non-fatal kinds
INTERFACE_MISMATCH = "InterfaceMismatch"
UNCONNECTED_NODE = "UnconnectedNode"
UNRESOLVED_CONNECTION = "UnresolvedConnection"
UNMAPPED_TARGET = "UnmappedTarget"

FATAL_KINDS = {
    MISSING_PHASE_OUTPUT,
    MISSING_NODE,
    NODE_COUNT_MISMATCH,
    INVALID_NODE_FIELDS,
    DUPLICATE_UNIFIED_ID,
}


def make_diagnostic(kind, message, severity=None, **context):
    """Build a diagnostic dict. Severity defaults from the kind."""
    if severity is None:
        severity = "error" if kind in FATAL_KINDS else "warning"
    return {
        "kind": kind,
        "severity": severity,
        "message": message,
        "context": context,
    }


class StitchError(Exception):
    """Raised when a stitch aborts on one or more fatal diagnostics."""

    def __init__(self, message: str, errors: list = None, diagnostics: list = None):
        self.errors = list(errors or [])
        self.diagnostics = list(diagnostics or [])
        self.kind = self.errors[0]["kind"] if self.errors else None
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": str(self),
            "errors": self.errors,
            "diagnostics": self.diagnostics,
        }
