#!/usr/bin/env python3
"""Mesh editor CLI - run the backend or drive a running one."""

import argparse
import json
import logging
import sys

from .api_client import ApiError, api_request


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _call(method, endpoint, args, data=None):
    try:
        _json_out(api_request(method, endpoint, json=data, api_base=args.api_base))
    except ApiError as e:
        _json_out({"status": "error", "error": str(e)}, code=1)


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    import uvicorn

    from .backend.config import AppConfig
    from .backend.main import create_app

    config = AppConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(config), host=config.host, port=config.port)


def cmd_mcp(args):
    from .mcp_server import mcp

    mcp.run()


# ── Mesh ─────────────────────────────────────────────────────────────────────

def cmd_snapshot(args):
    _call("GET", "/mesh", args)


def cmd_layout(args):
    _call("POST", "/layout", args, data={"direction": args.direction})


def cmd_reset(args):
    _call("POST", "/mesh/reset", args)


def cmd_design(args):
    _call("POST", "/design", args, data={"prompt": args.prompt})


def cmd_validate(args):
    _call("GET", "/mesh/validate", args)


def build_parser():
    parser = argparse.ArgumentParser(prog="mesh-editor", description="Service mesh editor")
    parser.add_argument("--api-base", default=None, help="Backend API URL (default: $MESH_EDITOR_API_BASE)")
    sub = parser.add_subparsers(dest="command", required=True)

    # Service
    p = sub.add_parser("serve")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    sub.add_parser("mcp")

    # Mesh
    sub.add_parser("snapshot")

    p = sub.add_parser("layout")
    p.add_argument("--direction", default=None, choices=["horizontal", "vertical", "lr", "tb"])

    sub.add_parser("reset")

    p = sub.add_parser("design")
    p.add_argument("--prompt", required=True)

    sub.add_parser("validate")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    cmd_map = {
        "serve": cmd_serve,
        "mcp": cmd_mcp,
        "snapshot": cmd_snapshot,
        "layout": cmd_layout,
        "reset": cmd_reset,
        "design": cmd_design,
        "validate": cmd_validate,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
