from __future__ import annotations

from typing import Any, Dict, List, Sequence

from eth_abi import decode, encode
from eth_utils import function_abi_to_4byte_selector, get_abi_input_types, get_abi_output_types

from errors import InvalidTransactionError


def find_function(abi: List[Dict[str, Any]], name: str) -> Dict[str, Any]:
    for entry in abi:
        if entry.get("type", "function") == "function" and entry.get("name") == name:
            return entry
    raise InvalidTransactionError(f"Function '{name}' not found in contract ABI", {"function": name})


def find_constructor(abi: List[Dict[str, Any]]) -> Dict[str, Any] | None:
    for entry in abi:
        if entry.get("type") == "constructor":
            return entry
    return None


def encode_call(abi: List[Dict[str, Any]], name: str, args: Sequence[Any] = ()) -> str:
    """4-byte selector + ABI-encoded arguments, 0x-prefixed."""
    fn = find_function(abi, name)
    types = get_abi_input_types(fn)
    if len(types) != len(args):
        raise InvalidTransactionError(
            f"Function '{name}' takes {len(types)} argument(s), got {len(args)}",
            {"function": name},
        )
    return "0x" + (function_abi_to_4byte_selector(fn) + encode(types, list(args))).hex()


def encode_deploy(abi: List[Dict[str, Any]], bytecode: str, args: Sequence[Any] = ()) -> str:
    """Deployment bytecode followed by the ABI-encoded constructor arguments."""
    code = bytecode[2:] if bytecode.startswith("0x") else bytecode
    if not code:
        raise InvalidTransactionError("Contract bytecode is empty")
    ctor = find_constructor(abi)
    types = get_abi_input_types(ctor) if ctor else []
    if len(types) != len(args):
        raise InvalidTransactionError(
            f"Constructor takes {len(types)} argument(s), got {len(args)}",
            {"function": "constructor"},
        )
    encoded = encode(types, list(args)).hex() if types else ""
    return "0x" + code + encoded


def decode_output(abi: List[Dict[str, Any]], name: str, output: bytes | str | None) -> Any:
    if output is None:
        return None
    if isinstance(output, str):
        s = output[2:] if output.startswith("0x") else output
        output = bytes.fromhex(s)
    if not output:
        return None
    types = get_abi_output_types(find_function(abi, name))
    values = decode(types, output)
    return values[0] if len(values) == 1 else list(values)
