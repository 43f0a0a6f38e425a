"""
Connection Resolver

Builds the unified connection map from two sources, in order:

  1. Intra-phase connections declared inside each phase output.
     Source ids and target node ids are remapped through the namespace
     table. A target with no mapping keeps its original id.
  2. Inter-phase connections declared in schema["connections"].
     Each endpoint's phase is the first node_registry phase declaring that
     node id. Connections whose phase or namespace mapping cannot be
     resolved are left out of the map. Resolved ones are appended to
     branch group 0 of the source's output type.

Connection map shape (n8n):
    {source_id: {output_type: [[{"node", "type", "index"}, ...], ...]}}

The outer list is the branch index (parallel branches), the inner list the
ordered targets of one branch. Both orders are preserved exactly; nothing
is deduplicated or reordered. Later entries only ever append.

Deterministic. No network calls. Input documents are not modified.
"""

import copy

from tools.stitch_errors import UNMAPPED_TARGET, UNRESOLVED_CONNECTION, make_diagnostic

DEFAULT_OUTPUT_TYPE = "main"
DEFAULT_INPUT_INDEX = 0


def find_node_phase(schema, node_id):
    """Return the first node_registry phase declaring node_id, or None."""
    for phase_key, declared_nodes in schema.get("node_registry", {}).items():
        if any(n.get("id") == node_id for n in declared_nodes or []):
            return phase_key
    return None


def _append_branches(existing, new_groups):
    """Append branch groups onto an existing list, branch index by index."""
    for branch_index, group in enumerate(new_groups):
        if branch_index < len(existing):
            existing[branch_index].extend(group)
        else:
            existing.append(group)


def _resolve_intra_phase(schema, phase_outputs, namespace, connections, diagnostics):
    for phase_key in schema.get("node_registry", {}):
        phase_output = phase_outputs.get(phase_key) or {}
        phase_connections = phase_output.get("connections") or {}

        for source_id, outputs in phase_connections.items():
            unified_source = namespace.get((phase_key, source_id))
            if unified_source is None:
                diagnostics.append(make_diagnostic(
                    UNMAPPED_TARGET,
                    f"Connection source {source_id} in {phase_key} has no namespaced node; kept as-is",
                    phase=phase_key,
                    node_id=source_id,
                    role="source",
                ))
                unified_source = source_id

            source_entry = connections.setdefault(unified_source, {})

            for output_type, branch_groups in (outputs or {}).items():
                remapped = []
                for group in branch_groups or []:
                    remapped_group = []
                    for target in group or []:
                        target_id = target.get("node")
                        unified_target = namespace.get((phase_key, target_id))
                        if unified_target is None:
                            diagnostics.append(make_diagnostic(
                                UNMAPPED_TARGET,
                                f"Connection target {target_id} from {unified_source} has no "
                                f"namespaced node in {phase_key}; kept as-is",
                                phase=phase_key,
                                node_id=target_id,
                                role="target",
                            ))
                            unified_target = target_id
                        remapped_group.append({**copy.deepcopy(target), "node": unified_target})
                    remapped.append(remapped_group)

                _append_branches(source_entry.setdefault(output_type, []), remapped)


def _resolve_inter_phase(schema, namespace, connections, diagnostics, dropped):
    for position, connection in enumerate(schema.get("connections") or []):
        source = connection.get("source") or {}
        target = connection.get("target") or {}
        source_node = source.get("node")
        target_node = target.get("node")

        source_phase = find_node_phase(schema, source_node)
        target_phase = find_node_phase(schema, target_node)
        source_id = namespace.get((source_phase, source_node)) if source_phase else None
        target_id = namespace.get((target_phase, target_node)) if target_phase else None

        if not source_id or not target_id:
            if source_phase is None:
                reason = f"source node {source_node} is not declared in any phase"
            elif target_phase is None:
                reason = f"target node {target_node} is not declared in any phase"
            elif not source_id:
                reason = f"source node {source_node} has no namespaced node in {source_phase}"
            else:
                reason = f"target node {target_node} has no namespaced node in {target_phase}"
            dropped.append(copy.deepcopy(connection))
            diagnostics.append(make_diagnostic(
                UNRESOLVED_CONNECTION,
                f"Dropped connection {source_node} -> {target_node}: {reason}",
                connection_index=position,
                source=source_node,
                target=target_node,
            ))
            continue

        output_type = source.get("output") or DEFAULT_OUTPUT_TYPE
        input_index = target.get("input") or DEFAULT_INPUT_INDEX

        branch_groups = connections.setdefault(source_id, {}).setdefault(output_type, [])
        if not branch_groups:
            branch_groups.append([])
        branch_groups[0].append({
            "node": target_id,
            "type": output_type,
            "index": input_index,
        })


def resolve_connections(schema, phase_outputs, namespace):
    """Resolve intra- and inter-phase connections into one namespaced map.

    Args:
        schema: Stitch schema (node_registry, connections).
        phase_outputs: Mapping of phase key -> phase output dict.
        namespace: (phase_key, original_id) -> unified_id table from
                   namespace_nodes().

    Returns:
        dict with:
            - connections: unified connection map
            - dropped: list of schema connections that could not be resolved
            - diagnostics: list of warning diagnostics (UnmappedTarget,
              UnresolvedConnection)
    """
    connections = {}
    diagnostics = []
    dropped = []

    _resolve_intra_phase(schema, phase_outputs, namespace, connections, diagnostics)
    _resolve_inter_phase(schema, namespace, connections, diagnostics, dropped)

    return {
        "connections": connections,
        "dropped": dropped,
        "diagnostics": diagnostics,
    }


def count_targets(connections):
    """Total number of target entries in a connection map."""
    return sum(
        len(group)
        for outputs in connections.values()
        for branch_groups in outputs.values()
        for group in branch_groups
    )


# --- Self-check ---
if __name__ == "__main__":
    print("=== Connection Resolver Self-Check ===\n")

    schema = {
        "node_registry": {"ingest": [{"id": "a"}], "transform": [{"id": "b"}]},
        "connections": [{"source": {"node": "a"}, "target": {"node": "b"}}],
    }
    namespace = {("ingest", "a"): "a_ingest", ("transform", "b"): "b_transform"}

    print("Test 1: Inter-phase connection")
    result = resolve_connections(schema, {"ingest": {}, "transform": {}}, namespace)
    assert result["connections"] == {
        "a_ingest": {"main": [[{"node": "b_transform", "type": "main", "index": 0}]]}
    }
    print("  [OK]")

    print("Test 2: Unresolvable connection is dropped with a warning")
    schema["connections"].append({"source": {"node": "a"}, "target": {"node": "zzz"}})
    result = resolve_connections(schema, {"ingest": {}, "transform": {}}, namespace)
    assert len(result["dropped"]) == 1
    assert result["diagnostics"][0]["kind"] == "UnresolvedConnection"
    print("  [OK]")

    print("Test 3: Branch groups preserved")
    outputs = {"ingest": {"connections": {"a": {"main": [
        [{"node": "x", "type": "main", "index": 0}],
        [{"node": "a", "type": "main", "index": 0}],
    ]}}}, "transform": {}}
    result = resolve_connections({"node_registry": schema["node_registry"]}, outputs, namespace)
    groups = result["connections"]["a_ingest"]["main"]
    assert groups[0][0]["node"] == "x"
    assert groups[1][0]["node"] == "a_ingest"
    print("  [OK]")

    print("\n=== All connection resolver checks passed ===")
