from __future__ import annotations

import json
import subprocess  # nosec B404
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from errors import ConfigurationError
from observability import build_log_context, log_event

ARTIFACT_CTX = build_log_context(component="contract_artifacts")

Compiler = Callable[[Path], Dict[str, Any]]


@dataclass(frozen=True)
class ContractArtifact:
    name: str
    abi: List[Dict[str, Any]]
    bytecode: str


def solc_compiler(solc_binary: str = "solc") -> Compiler:
    """Compiler that shells out to `solc --combined-json abi,bin`."""

    def _compile(source: Path) -> Dict[str, Any]:
        try:
            out = subprocess.run(  # nosec B603
                [solc_binary, "--combined-json", "abi,bin", str(source)],
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise ConfigurationError(f"Solidity compiler not found: {solc_binary}", {"solc": solc_binary}) from e
        except subprocess.CalledProcessError as e:
            raise ConfigurationError(
                f"Failed to compile {source.name}", {"stderr": (e.stderr or "").strip()}
            ) from e
        return json.loads(out.stdout)

    return _compile


def _extract(compiled: Dict[str, Any], name: str) -> ContractArtifact:
    contracts = compiled.get("contracts") or {}
    for key, entry in contracts.items():
        if key == name or key.endswith(f":{name}"):
            abi = entry.get("abi")
            # solc < 0.8 emits the ABI as a JSON string
            if isinstance(abi, str):
                abi = json.loads(abi)
            code = str(entry.get("bin") or "")
            return ContractArtifact(name=name, abi=list(abi or []), bytecode=code if code.startswith("0x") else "0x" + code)
    raise ConfigurationError(f"Contract '{name}' not found in compiler output", {"found": sorted(contracts)})


def load_artifact(
    name: str,
    contracts_dir: str | Path,
    *,
    solc_binary: str = "solc",
    compiler: Optional[Compiler] = None,
) -> ContractArtifact:
    """
    ABI and bytecode for `<contracts_dir>/<name>.sol`.

    The compiler output is cached next to the source as `<name>.bin` and reused
    until the source is modified after it.
    """
    base = Path(contracts_dir)
    source = base / f"{name}.sol"
    cached = base / f"{name}.bin"
    if not source.exists():
        raise ConfigurationError(f"Contract source not found: {source}", {"path": str(source)})

    if cached.exists() and cached.stat().st_mtime >= source.stat().st_mtime:
        compiled = json.loads(cached.read_text())
    else:
        log_event("contract_compile", ctx=ARTIFACT_CTX, data={"source": str(source), "cached": cached.exists()})
        compiled = (compiler or solc_compiler(solc_binary))(source)
        cached.write_text(json.dumps(compiled))

    return _extract(compiled, name)
