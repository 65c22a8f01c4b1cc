"""
Helpers for Micheline JSON values as returned by the Tezos node.

Paths are JSONPath expressions such as `$.args[1].args[0].int`; `[*]` fans
out over a list and filters like `[?prim == "Pair"]` are accepted.
"""
import json
from functools import lru_cache
from typing import Any, List, Optional

from jsonpath_ng.ext import parse


@lru_cache(maxsize=256)
def compile_path(path: str):
    return parse(path)


def find_all(value: Any, path: str) -> List[Any]:
    """Every node of `value` reached by `path`"""
    return [match.value for match in compile_path(path).find(value)]


def find_value(value: Any, path: str) -> Optional[Any]:
    """First node reached by `path`, or None"""
    found = find_all(value, path)
    return found[0] if found else None


def find_int(value: Any, path: str) -> Optional[int]:
    found = find_value(value, path)
    return int(found) if found is not None else None


def prim_chain(*prims: str) -> str:
    """Compact JSON prefix of nested single-branch constructors, e.g. Left/Right/Right"""
    return "".join(f'{{"prim":"{p}","args":[' for p in prims)


def starts_with_prims(value: Any, prefix: str) -> bool:
    """Whether the compact JSON rendering of `value` starts with `prefix`"""
    return json.dumps(value, separators=(",", ":")).startswith(prefix)


def pair(*args: Any) -> dict:
    return {"prim": "Pair", "args": list(args)}


def nat(value: int) -> dict:
    return {"int": str(value)}


def string(value: str) -> dict:
    return {"string": value}
