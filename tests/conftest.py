"""
Test configuration — shared stitch schema and phase output fixtures.

Three phases (ingest → enrich → notify) with intra-phase connections,
schema-level cross-phase connections, interfaces and error handling.
"""

import pytest


@pytest.fixture
def schema():
    return {
        "metadata": {"name": "Lead Intake"},
        "settings": {"executionOrder": "v1"},
        "node_registry": {
            "ingest": [
                {"id": "webhook"},
                {"id": "parse", "outputs": [{"name": "lead_json"}]},
            ],
            "enrich": [
                {"id": "lookup", "inputs": [{"data": "lead_json"}], "outputs": [{"name": "enriched"}]},
                {"id": "route"},
            ],
            "notify": [
                {"id": "slack", "inputs": [{"data": "enriched"}]},
                {"id": "email"},
            ],
        },
        "connections": [
            {"source": {"node": "parse"}, "target": {"node": "lookup"}},
            {"source": {"node": "route", "output": "main"}, "target": {"node": "slack", "input": 0}},
        ],
        "interfaces": {
            "ingest_to_enrich": {"output": {"format": "lead_json"}, "input": {"expects": "lead_json"}},
            "enrich_to_notify": {"output": {"format": "enriched"}, "input": {"expects": "enriched"}},
        },
        "error_handling": {
            "enrich": {
                "timeout": {"action": "continueRegularOutput", "max_retries": 3, "initial_wait": 1000},
            },
            "notify": {
                "rate_limit": {"action": "stopWorkflow"},
            },
        },
    }


@pytest.fixture
def phase_outputs():
    return {
        "ingest": {
            "nodes": [
                {"id": "webhook", "type": "n8n-nodes-base.webhook", "position": [0, 0],
                 "parameters": {"path": "leads"}},
                {"id": "parse", "type": "n8n-nodes-base.set", "position": [250, 0],
                 "parameters": {}},
            ],
            "connections": {
                "webhook": {"main": [[{"node": "parse", "type": "main", "index": 0}]]},
            },
        },
        "enrich": {
            "nodes": [
                {"id": "lookup", "type": "n8n-nodes-base.httpRequest", "position": [0, 0],
                 "parameters": {"url": "https://crm.example.com/leads"}},
                {"id": "route", "type": "n8n-nodes-base.if", "position": [250, 0],
                 "name": "Qualified?", "parameters": {}},
            ],
            "connections": {
                "lookup": {"main": [[{"node": "route", "type": "main", "index": 0}]]},
            },
        },
        "notify": {
            "nodes": [
                {"id": "slack", "type": "n8n-nodes-base.slack", "position": [0, 0],
                 "parameters": {"channel": "#leads"}},
                {"id": "email", "type": "n8n-nodes-base.emailSend", "position": [0, 150],
                 "parameters": {}},
            ],
            "connections": {
                "slack": {"main": [[{"node": "email", "type": "main", "index": 0}]]},
            },
        },
    }


@pytest.fixture
def minimal_schema():
    return {
        "node_registry": {"ingest": [{"id": "a"}], "transform": [{"id": "b"}]},
        "connections": [{"source": {"node": "a"}, "target": {"node": "b"}}],
    }


@pytest.fixture
def minimal_outputs():
    return {
        "ingest": {"nodes": [{"id": "a", "type": "trigger", "position": [0, 0]}]},
        "transform": {"nodes": [{"id": "b", "type": "set", "position": [0, 0]}]},
    }
