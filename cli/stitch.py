#!/usr/bin/env python3
"""
stitch — n8n Phase Stitcher CLI.

Stitches phase outputs into one n8n workflow, locally or through the API.

Usage:
    stitch run --schema schema.json --phase ingest=ingest.json --phase transform=transform.json [--out workflow.json]
    stitch remote --schema schema.json --phase ingest=ingest.json ... [--out workflow.json]
    stitch interfaces --schema schema.json
    stitch health

Environment variables:
    STITCH_BASE_URL       API base URL (default: http://localhost:8000)
    STITCH_PHASE_SPACING  Horizontal offset per phase (default: 400)
    STITCH_PHASE_MATCH    Error policy node selection: tag | substring
"""

import argparse
import json
import os
import sys

import httpx

from tools.interface_validator import validate_interfaces
from tools.logger import set_level
from tools.phase_stitcher import export_workflow, stitch_phases
from tools.stitch_errors import StitchError

BASE_URL = os.getenv("STITCH_BASE_URL", "http://localhost:8000")
OUTPUT_JSON = False


def api_get(path, params=None):
    """GET request to the API."""
    try:
        resp = httpx.get(f"{BASE_URL}{path}", params=params, timeout=30)
        return resp
    except httpx.ConnectError:
        print(f"Error: Cannot connect to {BASE_URL}")
        sys.exit(1)


def api_post(path, body=None):
    """POST request to the API."""
    headers = {"Content-Type": "application/json"}
    try:
        resp = httpx.post(f"{BASE_URL}{path}", json=body or {}, headers=headers, timeout=60)
        return resp
    except httpx.ConnectError:
        print(f"Error: Cannot connect to {BASE_URL}")
        sys.exit(1)


def handle_error(resp):
    """Print error and exit if response is not 2xx."""
    if resp.status_code >= 400:
        try:
            body = resp.json()
            detail = body.get("detail") or body.get("message") or resp.text
        except ValueError:
            detail = resp.text
        print(f"Error {resp.status_code}: {detail}")
        sys.exit(1)


def print_json(data):
    """Print formatted JSON."""
    print(json.dumps(data, indent=2, default=str))


def print_table(headers, rows, file=None):
    """Print a formatted ASCII table."""
    if not rows:
        print("(no data)", file=file)
        return
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    fmt = " | ".join(f"{{:<{w}}}" for w in widths)
    print(fmt.format(*headers), file=file)
    print("-+-".join("-" * w for w in widths), file=file)
    for row in rows:
        print(fmt.format(*[str(c) for c in row]), file=file)


def print_diagnostics(diagnostics, file=None):
    rows = [[d["severity"], d["kind"], d["message"]] for d in diagnostics]
    if rows:
        print_table(["Severity", "Kind", "Message"], rows, file=file)


# ── Input files ──────────────────────────────────────────────────


def load_json(path):
    try:
        with open(path, "r") as f:
            return json.load(f)
    except FileNotFoundError:
        print(f"Error: File not found: {path}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: {path} is not valid JSON: {e}")
        sys.exit(1)


def load_phase_outputs(phase_args):
    """Parse repeated KEY=FILE arguments into a phase output mapping."""
    phase_outputs = {}
    for item in phase_args or []:
        key, sep, path = item.partition("=")
        if not sep or not key or not path:
            print(f"Error: --phase expects KEY=FILE, got: {item}")
            sys.exit(1)
        phase_outputs[key] = load_json(path)
    return phase_outputs


def write_output(document, out_path):
    """Write the workflow to out_path, or print it as the only stdout output."""
    if out_path:
        with open(out_path, "w") as f:
            json.dump(document, f, indent=2)
        print(f"Workflow written to {out_path}")
    else:
        print_json(document)


# ── Commands ─────────────────────────────────────────────────────


def cmd_health(args):
    """Show API health."""
    r = api_get("/health")
    handle_error(r)
    print_json(r.json()) if OUTPUT_JSON else print(f"OK: {r.json().get('ok', False)}")


def cmd_run(args):
    """Stitch locally."""
    schema = load_json(args.schema)
    phase_outputs = load_phase_outputs(args.phase)
    try:
        result = stitch_phases(
            schema, phase_outputs,
            phase_spacing=args.spacing, phase_match=args.match,
        )
    except StitchError as e:
        if OUTPUT_JSON:
            print_json(e.to_dict())
        else:
            print(f"Stitch failed ({e.kind}): {e}")
            print_diagnostics(e.errors + e.diagnostics)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    document = export_workflow(result["workflow"])
    if OUTPUT_JSON and not args.out:
        print_json({**result, "workflow": document})
        return
    write_output(document, args.out)
    # Without --out stdout carries the workflow JSON alone.
    summary = sys.stdout if args.out else sys.stderr
    print(f"Nodes: {result['node_count']}  Connections: {result['connection_count']}", file=summary)
    print_diagnostics(result["diagnostics"], file=summary)


def cmd_remote(args):
    """Stitch through the API."""
    body = {
        "schema": load_json(args.schema),
        "phase_outputs": load_phase_outputs(args.phase),
    }
    if args.spacing is not None:
        body["phase_spacing"] = args.spacing
    if args.match:
        body["phase_match"] = args.match

    r = api_post("/stitch", body)
    handle_error(r)
    data = r.json()
    if OUTPUT_JSON and not args.out:
        print_json(data)
        return
    write_output(data["workflow"], args.out)
    summary = sys.stdout if args.out else sys.stderr
    print(f"Nodes: {data['node_count']}  Connections: {data['connection_count']}", file=summary)
    print_diagnostics(data.get("diagnostics", []), file=summary)


def cmd_interfaces(args):
    """Check schema interfaces locally."""
    schema = load_json(args.schema)
    diagnostics = validate_interfaces(schema)
    if OUTPUT_JSON:
        print_json({"compatible": not diagnostics, "diagnostics": diagnostics})
        return
    if not diagnostics:
        print("All interfaces compatible")
        return
    print_diagnostics(diagnostics)


def _add_stitch_args(p):
    p.add_argument("--schema", required=True, help="Schema JSON file")
    p.add_argument("--phase", action="append", default=[], metavar="KEY=FILE",
                   help="Phase output JSON file (repeatable)")
    p.add_argument("--out", help="Write workflow JSON to this file")
    p.add_argument("--spacing", type=int, default=None, help="Horizontal offset per phase")
    p.add_argument("--match", choices=["tag", "substring"], default=None,
                   help="Error policy node selection")


def main(argv=None):
    global BASE_URL, OUTPUT_JSON

    parser = argparse.ArgumentParser(prog="stitch", description="n8n Phase Stitcher CLI")
    parser.add_argument("--url", default=os.getenv("STITCH_BASE_URL", "http://localhost:8000"), help="API base URL")
    parser.add_argument("--json", action="store_true", dest="json_output", help="Output raw JSON")
    parser.add_argument("--log-level", default=None, help="debug, info, warning, error")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("health", help="API health")
    p = sub.add_parser("run", help="Stitch phases locally")
    _add_stitch_args(p)
    p = sub.add_parser("remote", help="Stitch phases through the API")
    _add_stitch_args(p)
    p = sub.add_parser("interfaces", help="Check schema interfaces")
    p.add_argument("--schema", required=True, help="Schema JSON file")

    args = parser.parse_args(argv)
    BASE_URL = args.url.rstrip("/")
    OUTPUT_JSON = args.json_output
    if args.log_level:
        set_level(args.log_level)

    cmd_map = {
        "health": cmd_health,
        "run": cmd_run,
        "remote": cmd_remote,
        "interfaces": cmd_interfaces,
    }

    if args.command in cmd_map:
        cmd_map[args.command](args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
