"""
Tests for phase_stitcher — the full stitch pipeline and workflow export.
"""

import asyncio
import copy
import json

import pytest

from tools.phase_stitcher import export_workflow, stitch_phases, stitch_phases_async
from tools.stitch_errors import StitchError


class TestStitchPhases:
    def test_two_phase_example(self, minimal_schema, minimal_outputs):
        result = stitch_phases(minimal_schema, minimal_outputs)
        wf = result["workflow"]
        assert [(n["id"], n["position"]) for n in wf["nodes"]] == [
            ("a_ingest", [0, 0]),
            ("b_transform", [400, 0]),
        ]
        assert wf["connections"] == {
            "a_ingest": {"main": [[{"node": "b_transform", "type": "main", "index": 0}]]}
        }

    def test_node_count_matches_registry(self, schema, phase_outputs):
        result = stitch_phases(schema, phase_outputs)
        declared = sum(len(nodes) for nodes in schema["node_registry"].values())
        assert result["node_count"] == declared == len(result["workflow"]["nodes"])

    def test_unified_ids_unique(self, schema, phase_outputs):
        ids = [n["id"] for n in stitch_phases(schema, phase_outputs)["workflow"]["nodes"]]
        assert len(ids) == len(set(ids))

    def test_connection_targets_exist(self, schema, phase_outputs):
        wf = stitch_phases(schema, phase_outputs)["workflow"]
        ids = {n["id"] for n in wf["nodes"]}
        for outputs in wf["connections"].values():
            for groups in outputs.values():
                for group in groups:
                    for target in group:
                        assert target["node"] in ids

    def test_full_pipeline_result(self, schema, phase_outputs):
        result = stitch_phases(schema, phase_outputs)
        wf = result["workflow"]
        assert wf["name"] == "Lead Intake"
        assert wf["settings"] == {"executionOrder": "v1"}
        assert result["diagnostics"] == []
        assert result["dropped_connections"] == []
        assert result["connection_count"] == 5
        assert result["namespace"]["enrich:route"] == "route_enrich"
        assert result["node_phases"]["email_notify"] == "notify"
        lookup = next(n for n in wf["nodes"] if n["id"] == "lookup_enrich")
        assert lookup["parameters"]["maxRetries"] == 3

    def test_default_name_and_settings(self, minimal_schema, minimal_outputs):
        wf = stitch_phases(minimal_schema, minimal_outputs)["workflow"]
        assert wf["name"] == "Unified Workflow"
        assert wf["settings"] == {}

    def test_custom_spacing(self, minimal_schema, minimal_outputs):
        wf = stitch_phases(minimal_schema, minimal_outputs, phase_spacing=1000)["workflow"]
        assert wf["nodes"][1]["position"] == [1000, 0]

    def test_spacing_from_environment(self, minimal_schema, minimal_outputs, monkeypatch):
        monkeypatch.setenv("STITCH_PHASE_SPACING", "250")
        wf = stitch_phases(minimal_schema, minimal_outputs)["workflow"]
        assert wf["nodes"][1]["position"] == [250, 0]

    def test_substring_mode(self):
        schema = {
            "node_registry": {"load": [{"id": "a"}], "preload": [{"id": "b"}]},
            "connections": [{"source": {"node": "a"}, "target": {"node": "b"}}],
            "error_handling": {"load": {"x": {"action": "stopWorkflow"}}},
        }
        outputs = {
            "load": {"nodes": [{"id": "a", "type": "trigger", "position": [0, 0], "parameters": {}}]},
            "preload": {"nodes": [{"id": "b", "type": "set", "position": [0, 0], "parameters": {}}]},
        }
        tagged = stitch_phases(schema, outputs)
        assert tagged["error_policies"] == {"load": ["a_load"]}
        legacy = stitch_phases(schema, outputs, phase_match="substring")
        assert legacy["error_policies"] == {"load": ["a_load", "b_preload"]}

    def test_inputs_not_modified(self, schema, phase_outputs):
        schema_before = copy.deepcopy(schema)
        outputs_before = copy.deepcopy(phase_outputs)
        stitch_phases(schema, phase_outputs)
        assert schema == schema_before
        assert phase_outputs == outputs_before

    def test_result_shares_nothing_with_inputs(self, schema, phase_outputs):
        wf = stitch_phases(schema, phase_outputs)["workflow"]
        wf["settings"]["executionOrder"] = "v0"
        wf["nodes"][0]["parameters"]["path"] = "changed"
        assert schema["settings"]["executionOrder"] == "v1"
        assert phase_outputs["ingest"]["nodes"][0]["parameters"]["path"] == "leads"

    def test_deterministic(self, schema, phase_outputs):
        first = stitch_phases(schema, phase_outputs)
        second = stitch_phases(schema, phase_outputs)
        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)


class TestStitchDiagnostics:
    def test_interface_mismatch_does_not_abort(self, schema, phase_outputs):
        schema["interfaces"]["ingest_to_enrich"]["output"]["format"] = "csv"
        result = stitch_phases(schema, phase_outputs)
        assert [d["kind"] for d in result["diagnostics"]] == ["InterfaceMismatch"]
        assert result["node_count"] == 6

    def test_dropped_connection_reported(self, schema, phase_outputs):
        schema["connections"].append({"source": {"node": "email"}, "target": {"node": "nowhere"}})
        result = stitch_phases(schema, phase_outputs)
        assert len(result["dropped_connections"]) == 1
        assert result["diagnostics"][0]["kind"] == "UnresolvedConnection"
        assert "email_notify" not in result["workflow"]["connections"]

    def test_unconnected_node_warning(self, schema, phase_outputs):
        phase_outputs["notify"]["connections"] = {}
        result = stitch_phases(schema, phase_outputs)
        warnings = [d for d in result["diagnostics"] if d["kind"] == "UnconnectedNode"]
        assert [w["context"]["node_id"] for w in warnings] == ["email_notify"]


class TestStitchFailures:
    def test_missing_phase_output(self, schema, phase_outputs):
        del phase_outputs["notify"]
        with pytest.raises(StitchError, match="Missing output for notify") as exc:
            stitch_phases(schema, phase_outputs)
        assert exc.value.kind == "MissingPhaseOutput"

    def test_missing_node_names_phase_and_node(self, schema, phase_outputs):
        phase_outputs["enrich"]["nodes"].pop()
        with pytest.raises(StitchError) as exc:
            stitch_phases(schema, phase_outputs)
        assert exc.value.kind == "MissingNode"
        assert "route" in str(exc.value) and "enrich" in str(exc.value)
        assert exc.value.errors[0]["context"] == {"phase": "enrich", "node_id": "route"}

    def test_extra_node_count_mismatch(self, schema, phase_outputs):
        phase_outputs["notify"]["nodes"].append(
            {"id": "sms", "type": "n8n-nodes-base.twilio", "position": [0, 300], "parameters": {}}
        )
        with pytest.raises(StitchError) as exc:
            stitch_phases(schema, phase_outputs)
        assert exc.value.kind == "NodeCountMismatch"
        assert "expected 6, got 7" in str(exc.value)

    def test_invalid_node_fields(self, schema, phase_outputs):
        del phase_outputs["enrich"]["nodes"][0]["type"]
        with pytest.raises(StitchError) as exc:
            stitch_phases(schema, phase_outputs)
        assert exc.value.kind == "InvalidNodeFields"
        assert exc.value.errors[0]["context"]["invalid_nodes"][0]["id"] == "lookup_enrich"

    def test_failure_carries_warnings(self, schema, phase_outputs):
        schema["interfaces"]["ingest_to_enrich"]["output"]["format"] = "csv"
        del phase_outputs["enrich"]["nodes"][0]["position"]
        with pytest.raises(StitchError) as exc:
            stitch_phases(schema, phase_outputs)
        assert [d["kind"] for d in exc.value.diagnostics] == ["InterfaceMismatch"]
        assert exc.value.to_dict()["kind"] == "InvalidNodeFields"

    def test_unified_id_collision(self):
        schema = {
            "node_registry": {"b_c": [{"id": "a"}], "c": [{"id": "a_b"}]},
            "error_handling": {"b_c": {"a": {"action": "continueErrorOutput"}}},
        }
        outputs = {
            "b_c": {"nodes": [{"id": "a", "type": "trigger", "position": [0, 0], "parameters": {}}]},
            "c": {"nodes": [{"id": "a_b", "type": "set", "position": [0, 0], "parameters": {}}]},
        }
        with pytest.raises(StitchError, match="a_b_c") as exc:
            stitch_phases(schema, outputs)
        assert exc.value.kind == "DuplicateUnifiedId"
        assert exc.value.errors[0]["context"]["first_phase"] == "b_c"
        assert exc.value.errors[0]["context"]["phase"] == "c"

    def test_malformed_schema(self, phase_outputs):
        with pytest.raises(ValueError, match="node_registry"):
            stitch_phases({"metadata": {"name": "x"}}, phase_outputs)

    def test_invalid_match_mode(self, schema, phase_outputs):
        with pytest.raises(ValueError, match="Phase match mode"):
            stitch_phases(schema, phase_outputs, phase_match="regex")


class TestStitchAsync:
    def test_resolves_with_result(self, minimal_schema, minimal_outputs):
        result = asyncio.run(stitch_phases_async(minimal_schema, minimal_outputs))
        assert result["node_count"] == 2

    def test_rejects_with_stitch_error(self, minimal_schema):
        with pytest.raises(StitchError):
            asyncio.run(stitch_phases_async(minimal_schema, {}))


class TestExportWorkflow:
    def test_export_shape(self, minimal_schema, minimal_outputs):
        wf = stitch_phases(minimal_schema, minimal_outputs)["workflow"]
        doc = export_workflow(wf)
        assert set(doc) == {
            "name", "nodes", "connections", "active", "settings",
            "versionId", "id", "meta", "tags",
        }
        assert doc["active"] is False
        assert doc["tags"] == []
        assert doc["id"] == doc["versionId"] == doc["meta"]["instanceId"] == "GENERATED_UUID"

    def test_caller_supplied_ids(self, minimal_schema, minimal_outputs):
        wf = stitch_phases(minimal_schema, minimal_outputs)["workflow"]
        doc = export_workflow(wf, version_id="v-1", workflow_id="w-1", instance_id="i-1")
        assert (doc["versionId"], doc["id"], doc["meta"]["instanceId"]) == ("v-1", "w-1", "i-1")

    def test_export_serializable(self, schema, phase_outputs):
        doc = export_workflow(stitch_phases(schema, phase_outputs)["workflow"])
        assert json.loads(json.dumps(doc))["name"] == "Lead Intake"
