"""
Error Policy Applier

Injects schema["error_handling"] into the parameters of unified nodes.

    error_handling = {
        "<phase_key>": {
            "<error_type>": {"action": "continueRegularOutput",
                             "max_retries": 3, "initial_wait": 1000},
        },
    }

Each configuration overwrites parameters.onError with its action. When
max_retries is set, retryOnFail/maxRetries are set too; initial_wait sets
waitBetweenRetries. Error types are applied in declaration order, so the
last one wins for overlapping fields.

Node selection per phase:
  - "tag"       nodes whose phase tag (from namespace_nodes) is the phase
  - "substring" nodes whose unified id contains the phase key

Nodes without a parameters dict are skipped.

Deterministic. No network calls. Input nodes are not modified.
"""

import copy

MATCH_TAG = "tag"
MATCH_SUBSTRING = "substring"


def _node_in_phase(node, phase_key, node_phases, match_mode):
    node_id = node.get("id")
    if node_id is None:
        return False
    if match_mode == MATCH_SUBSTRING:
        return phase_key in str(node_id)
    return node_phases.get(node_id) == phase_key


def apply_error_policies(nodes, error_handling, node_phases=None, match_mode=MATCH_TAG):
    """Apply per-phase error handling to a unified node list.

    Args:
        nodes: Unified node list from namespace_nodes().
        error_handling: Mapping phase_key -> error_type -> config.
        node_phases: unified_id -> phase_key table (required for "tag").
        match_mode: "tag" or "substring".

    Returns:
        dict with:
            - nodes: new node list with policies applied
            - applied: dict phase_key -> list of unified ids updated
    """
    if match_mode not in (MATCH_TAG, MATCH_SUBSTRING):
        raise ValueError(f"Unknown phase match mode: {match_mode!r}")
    node_phases = node_phases or {}

    updated = copy.deepcopy(nodes)
    applied = {}

    for phase_key, handlers in (error_handling or {}).items():
        touched = []
        for node in updated:
            if not _node_in_phase(node, phase_key, node_phases, match_mode):
                continue
            params = node.get("parameters")
            if not isinstance(params, dict):
                continue

            for error_config in (handlers or {}).values():
                params["onError"] = error_config.get("action")

                if error_config.get("max_retries"):
                    params["retryOnFail"] = True
                    params["maxRetries"] = error_config["max_retries"]

                if error_config.get("initial_wait"):
                    params["waitBetweenRetries"] = error_config["initial_wait"]

            touched.append(node["id"])
        applied[phase_key] = touched

    return {"nodes": updated, "applied": applied}


# --- Self-check ---
if __name__ == "__main__":
    print("=== Error Policy Applier Self-Check ===\n")

    nodes = [
        {"id": "a_ingest", "parameters": {}},
        {"id": "b_ingest_extra", "parameters": {}},
        {"id": "c_transform"},
    ]
    phases = {"a_ingest": "ingest", "b_ingest_extra": "ingest_extra", "c_transform": "transform"}
    policy = {"ingest": {"timeout": {"action": "stopWorkflow", "max_retries": 2, "initial_wait": 500}}}

    print("Test 1: Tag mode only touches the tagged phase")
    result = apply_error_policies(nodes, policy, phases)
    assert result["applied"]["ingest"] == ["a_ingest"]
    assert result["nodes"][0]["parameters"] == {
        "onError": "stopWorkflow", "retryOnFail": True, "maxRetries": 2, "waitBetweenRetries": 500,
    }
    print("  [OK]")

    print("Test 2: Substring mode also hits overlapping keys")
    result = apply_error_policies(nodes, policy, phases, match_mode="substring")
    assert result["applied"]["ingest"] == ["a_ingest", "b_ingest_extra"]
    print("  [OK]")

    print("Test 3: Nodes without parameters are skipped")
    result = apply_error_policies(nodes, {"transform": {"x": {"action": "continue"}}}, phases)
    assert result["applied"]["transform"] == []
    print("  [OK]")

    print("\n=== All error policy checks passed ===")
