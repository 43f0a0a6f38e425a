"""
Phase Output Validator

Confirms every phase declared in the schema's node_registry has a phase
output, and that every declared node id is present in that output.

Fail-fast: checking walks phases in schema order, then declared nodes in
order, and stops at the first missing phase or node.

Input: schema (dict), phase_outputs (dict phase_key -> phase output)
Output: validation report dict (valid, errors, checks_run, checks_passed)

Deterministic. No network calls.
"""

from tools.stitch_errors import MISSING_NODE, MISSING_PHASE_OUTPUT, make_diagnostic


def validate_phase_outputs(schema, phase_outputs):
    """Check phase outputs against the schema's node registry.

    Args:
        schema: Stitch schema with a node_registry mapping.
        phase_outputs: Mapping of phase key -> phase output dict.

    Returns:
        dict with:
            - valid: bool
            - errors: list with at most one diagnostic (the first failure)
            - checks_run: int
            - checks_passed: int
    """
    checks_run = 0
    checks_passed = 0

    def _fail(diagnostic):
        return {
            "valid": False,
            "errors": [diagnostic],
            "checks_run": checks_run,
            "checks_passed": checks_passed,
        }

    for phase_key, declared_nodes in schema.get("node_registry", {}).items():
        checks_run += 1
        phase_output = phase_outputs.get(phase_key)
        if phase_output is None:
            return _fail(make_diagnostic(
                MISSING_PHASE_OUTPUT,
                f"Missing output for {phase_key}",
                phase=phase_key,
            ))
        checks_passed += 1

        output_node_ids = {n.get("id") for n in phase_output.get("nodes") or []}
        for declared in declared_nodes or []:
            checks_run += 1
            node_id = declared.get("id")
            if node_id not in output_node_ids:
                return _fail(make_diagnostic(
                    MISSING_NODE,
                    f"Missing node {node_id} in {phase_key}",
                    phase=phase_key,
                    node_id=node_id,
                ))
            checks_passed += 1

    return {
        "valid": True,
        "errors": [],
        "checks_run": checks_run,
        "checks_passed": checks_passed,
    }


# --- Self-check ---
if __name__ == "__main__":
    print("=== Phase Output Validator Self-Check ===\n")

    schema = {"node_registry": {
        "ingest": [{"id": "a"}],
        "transform": [{"id": "b"}, {"id": "c"}],
    }}

    print("Test 1: Complete outputs pass")
    report = validate_phase_outputs(schema, {
        "ingest": {"nodes": [{"id": "a"}]},
        "transform": {"nodes": [{"id": "b"}, {"id": "c"}]},
    })
    assert report["valid"] is True
    assert report["checks_run"] == 5
    print("  [OK]")

    print("Test 2: Missing phase stops checking")
    report = validate_phase_outputs(schema, {"transform": {"nodes": []}})
    assert report["valid"] is False
    assert report["errors"][0]["context"]["phase"] == "ingest"
    assert report["checks_run"] == 1
    print("  [OK]")

    print("Test 3: First missing node is reported")
    report = validate_phase_outputs(schema, {
        "ingest": {"nodes": [{"id": "a"}]},
        "transform": {"nodes": []},
    })
    assert report["errors"][0]["message"] == "Missing node b in transform"
    print("  [OK]")

    print("\n=== All phase output checks passed ===")
