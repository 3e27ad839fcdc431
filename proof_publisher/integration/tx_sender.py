"""
Transaction Submitter (imperative shell).

Wraps an Ethereum JSON-RPC node: builds the transaction envelope around opaque
calldata, signs it locally, broadcasts it and waits for inclusion. One
submission per run; no retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3RPCError

from ..core.errors import SubmissionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxReceipt:
    tx_hash: str
    block_number: int
    status: int
    gas_used: int


class TxSender:
    """
    Sends calldata to a single target contract.

    Attributes:
        chain_id: EIP-155 chain id used when signing
        contract: Checksummed target address
        sender: Checksummed address derived from the wallet key
    """

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
        private_key: str,
        contract: str,
        *,
        receipt_timeout_s: float = 120.0,
        gas_multiplier: float = 1.2,
        web3: Optional[Web3] = None,
    ) -> None:
        if not isinstance(chain_id, int) or isinstance(chain_id, bool) or chain_id <= 0:
            raise ValueError("chain_id must be a positive int")
        if receipt_timeout_s <= 0:
            raise ValueError("receipt_timeout_s must be positive")
        if gas_multiplier < 1:
            raise ValueError("gas_multiplier must be >= 1")
        if not Web3.is_address(contract):
            raise ValueError(f"invalid contract address: {contract!r}")
        self.chain_id = chain_id
        self.contract = Web3.to_checksum_address(contract)
        self._account = Account.from_key(private_key)
        self.sender = self._account.address
        self._w3 = web3 if web3 is not None else Web3(Web3.HTTPProvider(rpc_url))
        self._receipt_timeout_s = float(receipt_timeout_s)
        self._gas_multiplier = float(gas_multiplier)

    def _fee_fields(self) -> Dict[str, int]:
        block = self._w3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas") if hasattr(block, "get") else None
        if base_fee is None:
            return {"gasPrice": int(self._w3.eth.gas_price)}
        priority = int(self._w3.eth.max_priority_fee)
        return {
            "maxPriorityFeePerGas": priority,
            "maxFeePerGas": 2 * int(base_fee) + priority,
        }

    def build_transaction(self, calldata: bytes) -> Dict[str, Any]:
        tx: Dict[str, Any] = {
            "chainId": self.chain_id,
            "from": self.sender,
            "to": self.contract,
            "data": "0x" + bytes(calldata).hex(),
            "value": 0,
            "nonce": int(self._w3.eth.get_transaction_count(self.sender, "pending")),
        }
        tx.update(self._fee_fields())
        gas = int(self._w3.eth.estimate_gas(tx))
        tx["gas"] = int(gas * self._gas_multiplier)
        return tx

    def send(self, calldata: bytes) -> TxReceipt:
        """
        Submit calldata and wait for the receipt.

        Raises:
            SubmissionError: rejected (revert, node refusal, status 0),
                timed_out (no receipt in time) or network (RPC unreachable)
        """
        if not calldata:
            raise SubmissionError("calldata must be non-empty", kind=SubmissionError.REJECTED)

        tx_hash_hex: Optional[str] = None
        try:
            tx = self.build_transaction(calldata)
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
            tx_hash_hex = "0x" + bytes(tx_hash).hex()
            logger.info("sent tx %s to %s (nonce=%d gas=%d)", tx_hash_hex, self.contract, tx["nonce"], tx["gas"])
            receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self._receipt_timeout_s)
        except ContractLogicError as exc:
            raise SubmissionError(f"transaction reverted: {exc}", kind=SubmissionError.REJECTED, tx_hash=tx_hash_hex) from exc
        except TimeExhausted as exc:
            raise SubmissionError(
                f"no receipt after {self._receipt_timeout_s}s",
                kind=SubmissionError.TIMED_OUT,
                tx_hash=tx_hash_hex,
            ) from exc
        except Web3RPCError as exc:
            raise SubmissionError(f"node rejected transaction: {exc}", kind=SubmissionError.REJECTED, tx_hash=tx_hash_hex) from exc
        except (requests.RequestException, OSError) as exc:
            raise SubmissionError(f"rpc unreachable: {exc}", kind=SubmissionError.NETWORK, tx_hash=tx_hash_hex) from exc

        result = TxReceipt(
            tx_hash=tx_hash_hex,
            block_number=int(receipt["blockNumber"]),
            status=int(receipt["status"]),
            gas_used=int(receipt["gasUsed"]),
        )
        if result.status != 1:
            raise SubmissionError(
                f"transaction {tx_hash_hex} failed in block {result.block_number}",
                kind=SubmissionError.REJECTED,
                tx_hash=tx_hash_hex,
            )
        logger.info("tx %s included in block %d (gas_used=%d)", tx_hash_hex, result.block_number, result.gas_used)
        return result
