"""
Multicall3 Batcher

Батчинг read-only вызовов через Multicall3 aggregate3.
Каждый элемент батча вызывается с allowFailure=True, поэтому один
упавший вызов не роняет весь батч: результат содержит success/value/error
для каждого элемента в порядке входного списка.

Поверх одного eth_call:
- детект rate limit (исключение или первый/последний элемент батча)
- exponential backoff: SLEEP_TIME, 2x, 4x... до MAX_RETRIES ретраев
- пауза SLEEP_TIME после каждого батча (успех или ошибка)

Адрес Multicall3 (одинаковый на всех EVM сетях):
0xcA11bde05977b3631167028862bE2a173976CA11
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from web3 import Web3
from eth_abi import decode

from config import (
    MULTICALL3_ADDRESS,
    MULTICALL_CHUNK_SIZE,
    SLEEP_TIME,
    MAX_RETRIES,
    RATE_LIMIT_MARKERS,
)
from ..contracts.abis import MULTICALL3_ABI
from ..exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

# Error(string) selector
ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")


@dataclass(frozen=True)
class Call:
    """Один read-only вызов контракта."""
    target: str          # Адрес контракта
    abi: Sequence[dict]  # ABI фрагменты (должен содержать function_name)
    function_name: str
    args: tuple = ()


@dataclass
class CallResult:
    """Результат одного вызова батча."""
    success: bool
    value: Any = None
    error: Optional[str] = None


def _canonical_type(param: dict) -> str:
    """Тип параметра для eth_abi: tuple раскрывается в (t1,t2,...)."""
    abi_type = param["type"]
    if abi_type.startswith("tuple"):
        inner = ",".join(_canonical_type(c) for c in param["components"])
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def _find_function(abi: Sequence[dict], name: str) -> dict:
    for item in abi:
        if item.get("type", "function") == "function" and item.get("name") == name:
            return item
    raise ValueError(f"Function {name} not found in ABI")


def _normalize_arg(abi_type: str, value: Any) -> Any:
    if abi_type == "address" and isinstance(value, str):
        return Web3.to_checksum_address(value)
    return value


def encode_call(w3: Web3, call: Call) -> bytes:
    """
    Calldata через контракт web3: functions.X(...)._encode_transaction_data().

    Адреса в аргументах приводятся к checksum (web3 принимает только их).
    """
    fn = _find_function(call.abi, call.function_name)
    inputs = fn.get("inputs", [])
    if len(inputs) != len(call.args):
        raise ValueError(
            f"{call.function_name}: expected {len(inputs)} args, got {len(call.args)}"
        )
    args = [_normalize_arg(p["type"], a) for p, a in zip(inputs, call.args)]
    contract = w3.eth.contract(address=Web3.to_checksum_address(call.target), abi=call.abi)
    call_data = contract.get_function_by_name(call.function_name)(*args)._encode_transaction_data()
    return Web3.to_bytes(hexstr=call_data)


def decode_return(call: Call, data: bytes) -> Any:
    """
    Декодирование returnData по outputs фрагмента.

    Один output возвращается как значение, несколько - как tuple.
    Лишний хвост данных (поля, не объявленные во фрагменте) игнорируется.
    """
    fn = _find_function(call.abi, call.function_name)
    output_types = [_canonical_type(p) for p in fn.get("outputs", [])]
    values = decode(output_types, data)
    if len(values) == 1:
        return values[0]
    return tuple(values)


def decode_revert_reason(data: bytes) -> str:
    """Текст ошибки из returnData упавшего вызова."""
    if not data:
        return "execution reverted: returned no data"
    if data[:4] == ERROR_STRING_SELECTOR:
        try:
            (reason,) = decode(["string"], data[4:])
            return f"execution reverted: {reason}"
        except Exception:
            pass
    return f"execution reverted: 0x{data.hex()}"


def chunk_calls(calls: Sequence[Call], chunk_size: int = MULTICALL_CHUNK_SIZE) -> List[List[Call]]:
    """Разбиение списка вызовов на батчи по chunk_size (без сети)."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    calls = list(calls)
    return [calls[i:i + chunk_size] for i in range(0, len(calls), chunk_size)]


def is_rate_limit_message(message: Optional[str]) -> bool:
    if not message:
        return False
    text = message.lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


def _edges_rate_limited(results: List[CallResult]) -> bool:
    """Rate limit в первом или последнем элементе успешного батча."""
    if not results:
        return False
    for edge in (results[0], results[-1]):
        if not edge.success and is_rate_limit_message(edge.error):
            return True
    return False


class MulticallBatcher:
    """
    Исполнитель батчей read-only вызовов для одной сети.

    Использование:
    ```python
    batcher = MulticallBatcher(w3)
    results = batcher.execute_chunked([
        Call(pool, POOL_ABI, "slot0"),
        Call(token, ERC20_ABI, "symbol"),
    ])
    ```

    Батчи в одной сети выполняются строго последовательно.
    """

    def __init__(
        self,
        w3: Web3,
        multicall_address: str = MULTICALL3_ADDRESS,
        sleep_time: float = SLEEP_TIME,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.w3 = w3
        self.multicall = w3.eth.contract(
            address=Web3.to_checksum_address(multicall_address),
            abi=MULTICALL3_ABI
        )
        self.sleep_time = sleep_time
        self.max_retries = max_retries
        self._sleep = sleep

    def _aggregate(self, calls: List[Call]) -> List[CallResult]:
        """Один eth_call aggregate3 + декодирование элементов."""
        calls_data = [
            (Web3.to_checksum_address(call.target), True, encode_call(self.w3, call))
            for call in calls
        ]
        raw_results = self.multicall.functions.aggregate3(calls_data).call()

        results = []
        for call, (success, return_data) in zip(calls, raw_results):
            return_data = bytes(return_data)
            if not success:
                results.append(CallResult(success=False, error=decode_revert_reason(return_data)))
                continue
            try:
                results.append(CallResult(success=True, value=decode_return(call, return_data)))
            except Exception as e:
                logger.debug(f"Failed to decode {call.function_name} on {call.target}: {e}")
                results.append(CallResult(success=False, error=f"decode failed: {e}"))
        return results

    def execute_batch(self, calls: Sequence[Call]) -> List[CallResult]:
        """
        Выполнение одного батча (один eth_call).

        Returns:
            Список CallResult той же длины и в том же порядке, что и calls

        Raises:
            RateLimitExceededError: rate limit после max_retries ретраев
            Exception: любая другая ошибка провайдера (без ретраев)
        """
        calls = list(calls)
        if not calls:
            return []

        retries = 0
        delay = self.sleep_time
        try:
            while True:
                try:
                    results = self._aggregate(calls)
                    if not _edges_rate_limited(results):
                        return results
                    error_text = "rate limit detected in batch result"
                except Exception as e:
                    if not is_rate_limit_message(str(e)):
                        raise
                    error_text = str(e)

                if retries >= self.max_retries:
                    raise RateLimitExceededError(
                        f"Rate limit exceeded after {retries} retries: {error_text}",
                        attempts=retries + 1
                    )

                retries += 1
                logger.warning(
                    f"Rate limit exceeded, retrying in {delay:.1f}s "
                    f"(attempt {retries}/{self.max_retries})"
                )
                self._sleep(delay)
                delay *= 2
        finally:
            self._sleep(self.sleep_time)

    def execute_chunked(
        self,
        calls: Sequence[Call],
        chunk_size: int = MULTICALL_CHUNK_SIZE
    ) -> List[CallResult]:
        """Последовательное выполнение батчей, результаты в порядке входа."""
        results: List[CallResult] = []
        chunks = chunk_calls(calls, chunk_size)
        for i, chunk in enumerate(chunks):
            if len(chunks) > 1:
                logger.debug(f"Executing batch {i + 1}/{len(chunks)} ({len(chunk)} calls)")
            results.extend(self.execute_batch(chunk))
        return results


