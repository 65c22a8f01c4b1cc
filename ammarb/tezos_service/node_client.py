"""
Tezos node RPC client
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import requests
from pytezos import pytezos
from pytezos.michelson.forge import forge_script_expr
from pytezos.rpc.errors import RpcError

from ammarb.shared.exceptions import CounterAlreadyUsedError, EstimationError, NodeRequestError
from ammarb.shared.interfaces.chain_client import ChainClient
from ammarb.shared.models.arbitrage_models import OperationFee, PoolState
from ammarb.tezos_service.michelson import find_int
from ammarb.tezos_service.operations import construct_delegation

logger = logging.getLogger(__name__)

HEAD = "/chains/main/blocks/head"

GAS_RESERVE = 100
BRANCH_OFFSET = 2

COUNTER_RACE_MARKERS = ("already used for contract", "counter_in_the_past")


def script_expression_hash(packed_hex: str) -> str:
    """Big map key hash (`expr...`) for packed Michelson data"""
    return forge_script_expr(bytes.fromhex(packed_hex))


def _rpc_error_text(error: RpcError) -> str:
    return f"{error} {error.args}"


class TezosNodeClient(ChainClient):
    """
    Tezos node access.

    Reads go straight to the RPC interface. Simulation, signing and injection
    run through pytezos operation groups in a worker thread.
    """

    def __init__(self, rpc_url: str, request_timeout: float = 10.0, key=None):
        self.rpc_url = rpc_url.rstrip("/")
        self.request_timeout = request_timeout
        self.key = key
        self._chain_id: Optional[str] = None

    def _tezos(self, key=None, node_url: Optional[str] = None):
        return pytezos.using(shell=(node_url or self.rpc_url).rstrip("/"), key=key or self.key)

    def _url(self, path: str, node_url: Optional[str] = None) -> str:
        return f"{(node_url or self.rpc_url).rstrip('/')}{path}"

    async def _get(self, path: str, node_url: Optional[str] = None) -> Any:
        url = self._url(path, node_url)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.request_timeout)) as response:
                    if response.status == 200:
                        return await response.json(content_type=None)
                    text = await response.text()
                    raise NodeRequestError(f"GET {path} failed with {response.status}: {text[:300]}", response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NodeRequestError(f"GET {path} failed: {e}")

    async def _post(self, path: str, payload: Any, node_url: Optional[str] = None) -> Any:
        url = self._url(path, node_url)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(url, json=payload,
                                        timeout=aiohttp.ClientTimeout(total=self.request_timeout)) as response:
                    if response.status == 200:
                        return await response.json(content_type=None)
                    text = await response.text()
                    raise NodeRequestError(f"POST {path} failed with {response.status}: {text[:600]}", response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NodeRequestError(f"POST {path} failed: {e}")

    # Reads

    async def get_chain_id(self) -> str:
        if self._chain_id is None:
            self._chain_id = await self._get("/chains/main/chain_id")
        return self._chain_id

    async def get_contract_storage(self, address: str) -> Any:
        return await self._get(f"{HEAD}/context/contracts/{address}/storage")

    async def get_pool_state(self, address: str, storage_map: Dict[str, str]) -> PoolState:
        storage = await self.get_contract_storage(address)

        coin_balance = find_int(storage, storage_map["coin_balance_path"])
        token_balance = find_int(storage, storage_map["token_balance_path"])
        liquidity_path = storage_map.get("liquidity_balance_path")
        liquidity_balance = find_int(storage, liquidity_path) if liquidity_path else 0

        if coin_balance is None or token_balance is None:
            raise NodeRequestError(f"pool {address} storage does not match its storage map")

        return PoolState(coin_balance=coin_balance, token_balance=token_balance,
                         liquidity_balance=liquidity_balance or 0)

    async def get_account_state(self, address: str) -> Dict[str, Any]:
        result = await self._get(f"{HEAD}/context/contracts/{address}")
        return {
            "balance": int(result["balance"]),
            "counter": int(result.get("counter", 0)) + 1,
            "delegate": result.get("delegate", "")
        }

    async def get_account_counter(self, address: str) -> int:
        counter = await self._get(f"{HEAD}/context/contracts/{address}/counter")
        return int(counter) + 1

    async def get_balance(self, address: str) -> int:
        return int(await self._get(f"{HEAD}/context/contracts/{address}/balance"))

    async def get_pending_operations(self, targets: List[str], ignore_sources: List[str],
                                     node_url: Optional[str] = None) -> List[List[Dict[str, Any]]]:
        mempool = await self._get("/chains/main/mempool/pending_operations", node_url)
        pending = mempool.get("applied") or mempool.get("validated") or []

        selected = []
        for group in pending:
            contents = group.get("contents", [])
            if any(o.get("destination") in targets and o.get("source") not in ignore_sources for o in contents):
                selected.append(contents)

        return selected

    async def pack_data(self, data: Any, data_type: Any) -> str:
        result = await self._post(f"{HEAD}/helpers/scripts/pack_data", {"data": data, "type": data_type})
        return result["packed"]

    async def get_big_map_value(self, map_id: int, key: Any, key_type: Any) -> Optional[Any]:
        """Value stored under `key`, or None when the key is absent"""
        packed = await self.pack_data(key, key_type)
        try:
            return await self._get(f"{HEAD}/context/big_maps/{map_id}/{script_expression_hash(packed)}")
        except NodeRequestError as e:
            if e.status == 404:
                return None
            raise

    async def run_view(self, contract: str, entrypoint: str, view_input: Any) -> Any:
        """Result of a callback view entrypoint"""
        payload = {
            "contract": contract,
            "entrypoint": entrypoint,
            "input": view_input,
            "chain_id": await self.get_chain_id(),
            "unparsing_mode": "Readable"
        }
        result = await self._post(f"{HEAD}/helpers/scripts/run_view", payload)
        return result["data"]

    # Writes

    def _simulate(self, operations: List[Dict[str, Any]], key=None) -> List[Dict[str, Any]]:
        contents = [{**o, "fee": "0", "gas_limit": "0", "storage_limit": "0"} for o in operations]
        group = self._tezos(key).operation_group(contents=contents)
        return group.autofill(gas_reserve=GAS_RESERVE, burn_reserve=0).contents

    async def estimate_fees(self, operations: List[Dict[str, Any]], key=None) -> List[OperationFee]:
        """
        Simulated fee, gas and storage per operation. Gas carries a fixed
        reserve over the consumed amount; storage is the paid and burned size.
        """
        if not operations:
            return []

        try:
            contents = await asyncio.to_thread(self._simulate, operations, key)
        except RpcError as e:
            raise EstimationError(f"simulation failed: {_rpc_error_text(e)[:600]}") from e
        except requests.RequestException as e:
            raise EstimationError(f"simulation request failed: {e}") from e

        if len(contents) != len(operations):
            raise EstimationError(f"simulation returned {len(contents)} results for {len(operations)} operations")

        return [OperationFee(fee=int(c["fee"]), gas=int(c["gas_limit"]), storage=int(c["storage_limit"]))
                for c in contents]

    def _inject(self, operations: List[Dict[str, Any]], key, node_url: Optional[str]) -> str:
        client = self._tezos(key, node_url)
        branch = client.shell.blocks[f"head~{BRANCH_OFFSET}"].hash()
        protocol = client.shell.head.header()["protocol"]
        group = client.operation_group(branch=branch, protocol=protocol, contents=operations).sign()
        return group.inject(min_confirmations=0)["hash"]

    async def submit(self, operations: List[Dict[str, Any]], signer, node_url: Optional[str] = None) -> str:
        """Sign and inject the group as numbered and priced by the caller"""
        try:
            return await asyncio.to_thread(self._inject, operations, signer.key, node_url)
        except RpcError as e:
            message = _rpc_error_text(e)
            if any(marker in message for marker in COUNTER_RACE_MARKERS):
                raise CounterAlreadyUsedError(message) from e
            raise NodeRequestError(f"injection failed: {message[:600]}") from e
        except requests.RequestException as e:
            raise NodeRequestError(f"injection failed: {e}") from e

    async def change_delegate(self, signer, delegate: str) -> Optional[str]:
        """Set the account baker, returning the operation hash or None if unchanged"""
        state = await self.get_account_state(signer.public_key_hash)
        if state["delegate"] == delegate:
            return None

        operation = construct_delegation(signer.public_key_hash, delegate, state["counter"])
        fees = await self.estimate_fees([operation], signer.key)
        operation = {**operation, "fee": str(fees[0].fee), "gas_limit": str(fees[0].gas),
                     "storage_limit": str(fees[0].storage)}
        return await self.submit([operation], signer)
