"""
deploy-transact command line.

    deploy-transact --deploy
    deploy-transact --set 42 --contract 0x...
    deploy-transact --set 42 --contract 0x... --dry-run
    deploy-transact --query --contract 0x...
    deploy-transact --privacy-group create --members <key1>,<key2> --name demo
    deploy-transact --privacy-group find --members <key1>,<key2>
    deploy-transact --privacy-group delete --group-id <id>

The target node, signer and privacy settings come from the environment (or
`--env-file`). Output is a single JSON document on stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional, Sequence

from app.core.container import Container
from app.core.settings import load_settings
from errors import AppError, InvalidTransactionError, classify_exception
from observability import build_log_context, configure_logging, log_event

CLI_CTX = build_log_context(component="cli")


def _json_ok(data: Dict[str, Any] | None = None) -> str:
    payload = {"ok": True, "data": data or {}}
    return json.dumps(payload, indent=2, sort_keys=True, default=str)


def _json_err(code: str, message: str, data: Dict[str, Any] | None = None) -> str:
    payload = {"ok": False, "error": {"code": code, "message": message, "data": data or {}}}
    return json.dumps(payload, indent=2, sort_keys=True, default=str)


def _csv(value: Optional[str]) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="deploy-transact",
        description="Deploy and transact with the simplestorage contract on a permissioned Ethereum network.",
    )
    action = p.add_mutually_exclusive_group(required=True)
    action.add_argument("--deploy", action="store_true", help="deploy a new contract instance")
    action.add_argument("--set", type=int, metavar="VALUE", dest="set_value", help="set the stored value")
    action.add_argument("--query", action="store_true", help="read the stored value")
    action.add_argument(
        "--privacy-group",
        choices=("find", "create", "delete"),
        help="privacy group lifecycle on the target node",
    )
    p.add_argument("--contract", metavar="ADDRESS", help="deployed contract address (for --set / --query)")
    p.add_argument("--dry-run", action="store_true", help="with --set, eth_call the update instead of sending it")
    p.add_argument("--members", metavar="KEYS", help="comma-separated enclave keys (find / create)")
    p.add_argument("--group-id", metavar="ID", help="privacy group id (delete)")
    p.add_argument("--name", help="privacy group name (create)")
    p.add_argument("--description", help="privacy group description (create)")
    p.add_argument("--env-file", metavar="PATH", help="load environment variables from this file first")
    return p


def run(args: argparse.Namespace, container: Container) -> Dict[str, Any]:
    """Execute one parsed command against a wired container and return the result document."""
    pipeline = container.pipeline
    privacy = container.privacy_fields

    if args.dry_run and args.set_value is None:
        raise InvalidTransactionError("--dry-run only applies to --set")

    if args.deploy:
        receipt = pipeline.deploy(container.artifact(), privacy=privacy)
        return {"action": "deploy", "private": privacy is not None, "receipt": receipt.to_dict()}

    if args.set_value is not None or args.query:
        if not args.contract:
            raise InvalidTransactionError("--contract is required for --set and --query")
        abi = container.artifact().abi
        if args.query:
            value = pipeline.query(args.contract, abi, privacy=privacy)
            return {"action": "query", "contract": args.contract, "value": value}
        if args.dry_run:
            output = pipeline.call_output(args.contract, abi, args.set_value, privacy=privacy)
            return {"action": "set_dry_run", "contract": args.contract, "value": args.set_value, "call": output}
        receipt = pipeline.set_value(args.contract, abi, args.set_value, privacy=privacy)
        return {
            "action": "set",
            "contract": args.contract,
            "value": args.set_value,
            "receipt": receipt.to_dict(),
        }

    members = _csv(args.members)
    if args.privacy_group == "find":
        return {"action": "find_privacy_groups", "groups": container.privacy.find_privacy_groups(members)}
    if args.privacy_group == "create":
        if not members:
            raise InvalidTransactionError("--members is required to create a privacy group")
        group_id = container.privacy.create_privacy_group(members, args.name, args.description)
        return {"action": "create_privacy_group", "privacy_group_id": group_id}
    if not args.group_id:
        raise InvalidTransactionError("--group-id is required to delete a privacy group")
    return {
        "action": "delete_privacy_group",
        "privacy_group_id": args.group_id,
        "result": container.privacy.delete_privacy_group(args.group_id),
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        settings = load_settings(args.env_file)
        configure_logging(settings.LOG_LEVEL, service_name=settings.SERVICE_NAME)
        log_event("cli_started", ctx=CLI_CTX, data={"settings": settings.to_dict()}, level="debug")
        result = run(args, Container(settings))
    except Exception as e:
        err = classify_exception(e)
        log_event("cli_failed", ctx=CLI_CTX, data={**err.to_dict(), "unexpected": not isinstance(e, AppError)}, level="error")
        print(_json_err(err.code, err.message, err.data))
        return 1
    print(_json_ok(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
