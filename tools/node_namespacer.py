"""
Node Namespacer

Merges the nodes of every phase into one list with globally unique ids.

Each node id becomes "<original_id>_<phase_key>", the x position is shifted
by phase_index * spacing so phases do not overlap, and a missing name
defaults to the unified id. Phases are walked in node_registry order, nodes
in phase-output order.

Two different (phase, id) pairs can still map to one unified id ("a" in
"b_c" and "a_b" in "c" both give "a_b_c"). The first owner keeps the
namespace and phase tag entries; later claimants are reported as collisions.

Input: schema (dict), phase_outputs (dict), spacing (int)
Output: dict with nodes, namespace table, phase tag table, collisions

Deterministic. No network calls. Input documents are not modified.
"""

import copy

from tools.stitch_errors import DUPLICATE_UNIFIED_ID, make_diagnostic

PHASE_SPACING = 400


def make_unified_id(node_id, phase_key):
    """Unified node id for a node of a phase."""
    return f"{node_id}_{phase_key}"


def _shift_position(position, x_offset):
    if isinstance(position, (list, tuple)) and len(position) >= 2:
        return [position[0] + x_offset, position[1], *position[2:]]
    # Left as-is; final validation reports unusable positions.
    return position


def namespace_nodes(schema, phase_outputs, spacing=PHASE_SPACING):
    """Namespace and lay out the nodes of every schema phase.

    Args:
        schema: Stitch schema; node_registry key order defines phase order.
        phase_outputs: Mapping of phase key -> phase output dict.
        spacing: Horizontal offset applied per phase index.

    Returns:
        dict with:
            - nodes: list of namespaced node dicts (deep copies)
            - namespace: dict (phase_key, original_id) -> unified_id
            - node_phases: dict unified_id -> phase_key
            - collisions: DuplicateUnifiedId diagnostics for unified ids
              already taken by an earlier node (the earlier owner is kept)
    """
    nodes = []
    namespace = {}
    node_phases = {}
    collisions = []
    owners = {}

    for phase_index, phase_key in enumerate(schema.get("node_registry", {})):
        phase_output = phase_outputs.get(phase_key) or {}
        x_offset = phase_index * spacing

        for node in phase_output.get("nodes") or []:
            adjusted = copy.deepcopy(node)
            if "position" in adjusted:
                adjusted["position"] = _shift_position(adjusted["position"], x_offset)

            original_id = node.get("id")
            if original_id is not None:
                unified_id = make_unified_id(original_id, phase_key)
                adjusted["id"] = unified_id
                if not adjusted.get("name"):
                    adjusted["name"] = unified_id

                if unified_id in owners:
                    first_phase, first_id = owners[unified_id]
                    collisions.append(make_diagnostic(
                        DUPLICATE_UNIFIED_ID,
                        f"Unified id {unified_id} assigned twice: node {first_id} in "
                        f"{first_phase} and node {original_id} in {phase_key}",
                        unified_id=unified_id,
                        first_phase=first_phase,
                        first_node_id=first_id,
                        phase=phase_key,
                        node_id=original_id,
                    ))
                else:
                    namespace[(phase_key, original_id)] = unified_id
                    node_phases[unified_id] = phase_key
                    owners[unified_id] = (phase_key, original_id)

            nodes.append(adjusted)

    return {
        "nodes": nodes,
        "namespace": namespace,
        "node_phases": node_phases,
        "collisions": collisions,
    }


# --- Self-check ---
if __name__ == "__main__":
    print("=== Node Namespacer Self-Check ===\n")

    schema = {"node_registry": {"ingest": [{"id": "a"}], "transform": [{"id": "b"}]}}
    outputs = {
        "ingest": {"nodes": [{"id": "a", "type": "trigger", "position": [0, 0]}]},
        "transform": {"nodes": [{"id": "b", "type": "set", "position": [0, 50], "name": "Set"}]},
    }

    print("Test 1: Ids and positions")
    result = namespace_nodes(schema, outputs)
    assert [n["id"] for n in result["nodes"]] == ["a_ingest", "b_transform"]
    assert result["nodes"][1]["position"] == [400, 50]
    print("  [OK]")

    print("Test 2: Name defaulting")
    assert result["nodes"][0]["name"] == "a_ingest"
    assert result["nodes"][1]["name"] == "Set"
    print("  [OK]")

    print("Test 3: Inputs untouched")
    assert outputs["transform"]["nodes"][0]["id"] == "b"
    print("  [OK]")

    print("Test 4: Cross-phase id collision")
    clash_schema = {"node_registry": {"b_c": [{"id": "a"}], "c": [{"id": "a_b"}]}}
    clash_outputs = {
        "b_c": {"nodes": [{"id": "a", "type": "set", "position": [0, 0]}]},
        "c": {"nodes": [{"id": "a_b", "type": "set", "position": [0, 0]}]},
    }
    clash = namespace_nodes(clash_schema, clash_outputs)
    assert clash["node_phases"] == {"a_b_c": "b_c"}
    assert len(clash["collisions"]) == 1
    print("  [OK]")

    print("\n=== All namespacer checks passed ===")
