"""
Phase Stitcher

Single deterministic entrypoint that merges independently built n8n workflow
phases into one unified workflow:
  1. validate_phase_outputs — every declared phase and node is present (fail-fast)
  2. namespace_nodes — unique ids, per-phase x offset, phase tags
  3. resolve_connections — intra-phase then inter-phase connections
  4. validate_interfaces — advisory cross-phase interface check
  5. apply_error_policies — per-phase onError / retry parameters
  6. validate_unified_workflow — node count, connectivity, required fields

Input:
    schema (dict) — node_registry, connections, interfaces, error_handling,
                    metadata.name, settings
    phase_outputs (dict) — phase key -> {"nodes": [...], "connections": {...}}

Output:
    dict with:
        - workflow: {name, nodes, connections, settings}
        - diagnostics: list of warning diagnostics
        - dropped_connections: list of schema connections left unresolved
        - namespace: {"<phase>:<original_id>": unified_id}
        - node_phases: {unified_id: phase_key}
        - error_policies: {phase_key: [unified ids updated]}
        - node_count / connection_count: int

Stops with StitchError on:
    - Missing phase output or declared node (before any merging)
    - Two nodes mapping to the same unified id (before connections)
    - Node count mismatch or nodes missing id/type/position

Each stage returns new values; nothing is accumulated on shared state and
the inputs are never modified. On failure nothing partial is returned.

Deterministic. No network calls. No file I/O.
"""

import copy

from tools.connection_resolver import count_targets, resolve_connections
from tools.error_policy_applier import apply_error_policies
from tools.interface_validator import validate_interfaces
from tools.logger import log
from tools.node_namespacer import namespace_nodes
from tools.stitch_config import get_stitch_config
from tools.stitch_errors import StitchError
from tools.validate_phase_outputs import validate_phase_outputs
from tools.validate_unified_workflow import validate_unified_workflow

DEFAULT_WORKFLOW_NAME = "Unified Workflow"
PLACEHOLDER_ID = "GENERATED_UUID"


def _check_schema(schema):
    if not isinstance(schema, dict):
        raise ValueError(f"Schema must be an object, got: {type(schema).__name__}")
    registry = schema.get("node_registry")
    if not isinstance(registry, dict):
        raise ValueError("Schema missing 'node_registry' mapping")


def stitch_phases(schema, phase_outputs, phase_spacing=None, phase_match=None):
    """Stitch phase outputs into one unified workflow.

    Args:
        schema: Stitch schema dict.
        phase_outputs: Mapping of phase key -> phase output dict.
        phase_spacing: Optional x offset per phase (default from config).
        phase_match: Optional error-policy match mode, "tag" or "substring".

    Returns:
        Stitch result dict (see module docstring).

    Raises:
        ValueError: If the schema or settings are malformed.
        StitchError: On any fatal validation failure.
    """
    _check_schema(schema)
    phase_outputs = phase_outputs or {}
    config = get_stitch_config(phase_spacing=phase_spacing, phase_match=phase_match)
    workflow_name = (schema.get("metadata") or {}).get("name") or DEFAULT_WORKFLOW_NAME
    diagnostics = []

    log("stitch.started", workflow=workflow_name,
        phases=list(schema["node_registry"]), phase_match=config["phase_match"])

    # === Step 1: Phase outputs ===
    phase_report = validate_phase_outputs(schema, phase_outputs)
    if not phase_report["valid"]:
        error = phase_report["errors"][0]
        log("stitch.failed", level="error", stage="phase_validation", **error["context"])
        raise StitchError(f"Phase validation failed: {error['message']}", errors=phase_report["errors"])
    log("stitch.phases_validated", checks_run=phase_report["checks_run"])

    # === Step 2: Nodes ===
    merged = namespace_nodes(schema, phase_outputs, spacing=config["phase_spacing"])
    if merged["collisions"]:
        collision = merged["collisions"][0]
        log("stitch.failed", level="error", stage="namespacing", **collision["context"])
        raise StitchError(f"Node namespacing failed: {collision['message']}",
                          errors=merged["collisions"])
    log("stitch.nodes_merged", node_count=len(merged["nodes"]))

    # === Step 3: Connections ===
    resolved = resolve_connections(schema, phase_outputs, merged["namespace"])
    diagnostics.extend(resolved["diagnostics"])
    if resolved["dropped"]:
        log("stitch.connections_dropped", level="warning", dropped=len(resolved["dropped"]))
    log("stitch.connections_resolved",
        sources=len(resolved["connections"]), targets=count_targets(resolved["connections"]))

    # === Step 4: Interfaces (advisory) ===
    interface_diagnostics = validate_interfaces(schema)
    diagnostics.extend(interface_diagnostics)
    for diag in interface_diagnostics:
        log("stitch.interface_mismatch", level="warning", **diag["context"])

    # === Step 5: Error handling ===
    policies = apply_error_policies(
        merged["nodes"],
        schema.get("error_handling") or {},
        node_phases=merged["node_phases"],
        match_mode=config["phase_match"],
    )
    log("stitch.error_policies_applied",
        nodes_updated=sum(len(ids) for ids in policies["applied"].values()))

    workflow = {
        "name": workflow_name,
        "nodes": policies["nodes"],
        "connections": resolved["connections"],
        "settings": copy.deepcopy(schema.get("settings") or {}),
    }

    # === Step 6: Final validation ===
    final_report = validate_unified_workflow(workflow, schema)
    diagnostics.extend(final_report["warnings"])
    if final_report["unconnected_nodes"]:
        log("stitch.unconnected_nodes", level="warning", nodes=final_report["unconnected_nodes"])
    if not final_report["valid"]:
        log("stitch.failed", level="error", stage="final_validation",
            errors=[e["message"] for e in final_report["errors"]])
        raise StitchError(
            "Unified workflow validation failed: "
            + "; ".join(e["message"] for e in final_report["errors"]),
            errors=final_report["errors"],
            diagnostics=diagnostics,
        )

    log("stitch.completed", workflow=workflow_name,
        node_count=final_report["node_count"], warnings=len(diagnostics))

    return {
        "workflow": workflow,
        "diagnostics": diagnostics,
        "dropped_connections": resolved["dropped"],
        "namespace": {f"{phase}:{node_id}": unified
                      for (phase, node_id), unified in merged["namespace"].items()},
        "node_phases": merged["node_phases"],
        "error_policies": policies["applied"],
        "node_count": final_report["node_count"],
        "connection_count": count_targets(resolved["connections"]),
    }


async def stitch_phases_async(schema, phase_outputs, phase_spacing=None, phase_match=None):
    """Awaitable form of stitch_phases(). Runs to completion without yielding."""
    return stitch_phases(schema, phase_outputs, phase_spacing=phase_spacing, phase_match=phase_match)


def export_workflow(workflow, version_id=PLACEHOLDER_ID, workflow_id=PLACEHOLDER_ID,
                    instance_id=PLACEHOLDER_ID):
    """Wrap a unified workflow as an importable n8n workflow document.

    Identifier fields are supplied by the caller; placeholders otherwise.
    """
    return {
        "name": workflow["name"],
        "nodes": workflow["nodes"],
        "connections": workflow["connections"],
        "active": False,
        "settings": workflow.get("settings", {}),
        "versionId": version_id,
        "id": workflow_id,
        "meta": {
            "instanceId": instance_id,
        },
        "tags": [],
    }


if __name__ == "__main__":
    import json

    print("=== Phase Stitcher Self-Check ===\n")

    sample_schema = {
        "metadata": {"name": "Acme — Lead Intake"},
        "settings": {"executionOrder": "v1"},
        "node_registry": {"ingest": [{"id": "a"}], "transform": [{"id": "b"}]},
        "connections": [{"source": {"node": "a"}, "target": {"node": "b"}}],
        "interfaces": {},
        "error_handling": {},
    }
    sample_outputs = {
        "ingest": {"nodes": [{"id": "a", "type": "trigger", "position": [0, 0]}]},
        "transform": {"nodes": [{"id": "b", "type": "set", "position": [0, 0]}]},
    }

    print("Test 1: Two-phase stitch")
    result = stitch_phases(sample_schema, sample_outputs)
    wf = result["workflow"]
    assert [n["id"] for n in wf["nodes"]] == ["a_ingest", "b_transform"]
    assert wf["nodes"][1]["position"] == [400, 0]
    assert wf["connections"] == {
        "a_ingest": {"main": [[{"node": "b_transform", "type": "main", "index": 0}]]}
    }
    print("  [OK]")

    print("Test 2: Missing node aborts")
    try:
        stitch_phases(sample_schema, {**sample_outputs, "transform": {"nodes": []}})
        raise AssertionError("expected StitchError")
    except StitchError as e:
        assert e.kind == "MissingNode"
    print("  [OK]")

    print("Test 3: Export is serializable")
    doc = export_workflow(wf)
    assert doc["active"] is False and doc["tags"] == []
    assert json.loads(json.dumps(doc))["meta"]["instanceId"] == "GENERATED_UUID"
    print("  [OK]")

    print("\n=== All phase stitcher checks passed ===")
