"""
Unified Workflow Validator

Structural checks on the stitched workflow, run in this order:

  NC — Node count: node total equals the sum of declared registry nodes (fatal)
  CN — Connectivity: non-trigger nodes that are neither a connection target
       nor a connection source (warning)
  RF — Required fields: every node carries id, type and position (fatal)

All three checks always run so the caller sees every problem at once.

Input: workflow (dict with nodes/connections), schema (dict)
Output: structured validation report dict

Deterministic. No network calls. No mutation.
"""

from tools.stitch_errors import (
    INVALID_NODE_FIELDS,
    NODE_COUNT_MISMATCH,
    UNCONNECTED_NODE,
    make_diagnostic,
)

REQUIRED_NODE_FIELDS = ("id", "type", "position")

# Start nodes whose type name does not contain "trigger"
START_NODE_TYPES = {
    "n8n-nodes-base.webhook",
    "n8n-nodes-base.start",
}


def is_start_node(node_type):
    """True if a node type denotes a trigger/start node."""
    if not node_type:
        return False
    return "trigger" in str(node_type).lower() or node_type in START_NODE_TYPES


def expected_node_count(schema):
    return sum(len(nodes or []) for nodes in schema.get("node_registry", {}).values())


def collect_connected_targets(connections):
    """Set of node ids appearing as a target anywhere in a connection map."""
    connected = set()
    for outputs in connections.values():
        for branch_groups in (outputs or {}).values():
            for group in branch_groups or []:
                for target in group or []:
                    connected.add(target.get("node"))
    return connected


def validate_unified_workflow(workflow, schema):
    """Validate a stitched workflow.

    Args:
        workflow: Unified workflow dict (nodes, connections).
        schema: Stitch schema used to build it.

    Returns:
        dict with:
            - valid: bool — True if zero errors
            - errors: list of fatal diagnostics
            - warnings: list of warning diagnostics
            - node_count / expected_node_count: int
            - unconnected_nodes: list of node ids
            - invalid_nodes: list of {"index", "id", "missing"} dicts
            - checks_run / checks_passed: int
    """
    nodes = workflow.get("nodes", [])
    connections = workflow.get("connections", {})
    errors = []
    warnings = []
    checks_run = 0
    checks_passed = 0

    # NC — node count
    expected = expected_node_count(schema)
    checks_run += 1
    if len(nodes) == expected:
        checks_passed += 1
    else:
        errors.append(make_diagnostic(
            NODE_COUNT_MISMATCH,
            f"Node count mismatch: expected {expected}, got {len(nodes)}",
            expected=expected,
            actual=len(nodes),
        ))

    # CN — connectivity
    connected = collect_connected_targets(connections)
    unconnected = [
        node.get("id") for node in nodes
        if not is_start_node(node.get("type"))
        and node.get("id") not in connected
        and node.get("id") not in connections
    ]
    checks_run += 1
    if unconnected:
        for node_id in unconnected:
            warnings.append(make_diagnostic(
                UNCONNECTED_NODE,
                f"Node {node_id} has no incoming or outgoing connections",
                node_id=node_id,
            ))
    else:
        checks_passed += 1

    # RF — required fields
    invalid = []
    for index, node in enumerate(nodes):
        missing = [f for f in REQUIRED_NODE_FIELDS if node.get(f) in (None, "")]
        if missing:
            invalid.append({"index": index, "id": node.get("id"), "missing": missing})
    checks_run += 1
    if invalid:
        errors.append(make_diagnostic(
            INVALID_NODE_FIELDS,
            f"Invalid nodes found: {len(invalid)} node(s) missing required fields",
            invalid_nodes=invalid,
        ))
    else:
        checks_passed += 1

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "node_count": len(nodes),
        "expected_node_count": expected,
        "unconnected_nodes": unconnected,
        "invalid_nodes": invalid,
        "checks_run": checks_run,
        "checks_passed": checks_passed,
    }


# --- Self-check ---
if __name__ == "__main__":
    print("=== Unified Workflow Validator Self-Check ===\n")

    schema = {"node_registry": {"ingest": [{"id": "a"}], "transform": [{"id": "b"}, {"id": "c"}]}}

    print("Test 1: Valid workflow with one unconnected node")
    wf = {
        "nodes": [
            {"id": "a_ingest", "type": "n8n-nodes-base.scheduleTrigger", "position": [0, 0]},
            {"id": "b_transform", "type": "n8n-nodes-base.set", "position": [400, 0]},
            {"id": "c_transform", "type": "n8n-nodes-base.set", "position": [400, 100]},
        ],
        "connections": {"a_ingest": {"main": [[{"node": "b_transform", "type": "main", "index": 0}]]}},
    }
    report = validate_unified_workflow(wf, schema)
    assert report["valid"] is True
    assert report["unconnected_nodes"] == ["c_transform"]
    print("  [OK]")

    print("Test 2: Count mismatch and missing fields")
    wf["nodes"] = [{"id": "a_ingest", "type": "trigger"}]
    report = validate_unified_workflow(wf, schema)
    assert report["valid"] is False
    assert [e["kind"] for e in report["errors"]] == ["NodeCountMismatch", "InvalidNodeFields"]
    assert report["invalid_nodes"][0]["missing"] == ["position"]
    print("  [OK]")

    print("\n=== All unified workflow checks passed ===")
