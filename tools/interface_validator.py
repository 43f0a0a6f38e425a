"""
Interface Validator

Advisory cross-phase compatibility check against schema["interfaces"].

For every interface "A_to_B":
  - boundary source nodes: entries in node_registry[A] with non-empty outputs
  - boundary target nodes: entries in node_registry[B] with non-empty inputs
  - every (source, target) pair must offer an output named output.format and
    an input whose data equals input.expects

Mismatches are warnings only. The graph is never touched.

Deterministic. No network calls.
"""

from tools.stitch_errors import INTERFACE_MISMATCH, make_diagnostic

INTERFACE_SEPARATOR = "_to_"


def find_boundary_nodes(schema, phase_key, direction):
    """Registry entries of a phase exposing outputs ("output") or inputs ("input")."""
    declared = schema.get("node_registry", {}).get(phase_key) or []
    field = "outputs" if direction == "output" else "inputs"
    return [n for n in declared if n.get(field)]


def validate_interfaces(schema):
    """Check declared phase interfaces against registry boundary nodes.

    Args:
        schema: Stitch schema with node_registry and interfaces.

    Returns:
        list of InterfaceMismatch warning diagnostics (empty when compatible).
    """
    diagnostics = []

    for interface_key, interface in (schema.get("interfaces") or {}).items():
        parts = interface_key.split(INTERFACE_SEPARATOR)
        if len(parts) < 2:
            diagnostics.append(make_diagnostic(
                INTERFACE_MISMATCH,
                f"Interface key {interface_key!r} does not name two phases as 'A_to_B'",
                interface=interface_key,
            ))
            continue
        source_phase, target_phase = parts[0], parts[1]

        expected_format = (interface.get("output") or {}).get("format")
        expected_data = (interface.get("input") or {}).get("expects")

        source_nodes = find_boundary_nodes(schema, source_phase, "output")
        target_nodes = find_boundary_nodes(schema, target_phase, "input")

        for source_node in source_nodes:
            has_output = any(o.get("name") == expected_format for o in source_node["outputs"])
            for target_node in target_nodes:
                has_input = any(i.get("data") == expected_data for i in target_node["inputs"])
                if has_output and has_input:
                    continue
                diagnostics.append(make_diagnostic(
                    INTERFACE_MISMATCH,
                    f"Interface mismatch between {source_node.get('id')} and {target_node.get('id')}",
                    interface=interface_key,
                    source_node=source_node.get("id"),
                    target_node=target_node.get("id"),
                    expected_format=expected_format,
                    expected_input=expected_data,
                    output_found=has_output,
                    input_found=has_input,
                ))

    return diagnostics


# --- Self-check ---
if __name__ == "__main__":
    print("=== Interface Validator Self-Check ===\n")

    schema = {
        "node_registry": {
            "ingest": [{"id": "a", "outputs": [{"name": "json"}]}],
            "transform": [{"id": "b", "inputs": [{"data": "json"}]}, {"id": "c"}],
        },
        "interfaces": {"ingest_to_transform": {"output": {"format": "json"}, "input": {"expects": "json"}}},
    }

    print("Test 1: Compatible interface")
    assert validate_interfaces(schema) == []
    print("  [OK]")

    print("Test 2: Format mismatch")
    schema["interfaces"]["ingest_to_transform"]["output"]["format"] = "csv"
    diags = validate_interfaces(schema)
    assert len(diags) == 1
    assert diags[0]["context"]["output_found"] is False
    print("  [OK]")

    print("\n=== All interface checks passed ===")
