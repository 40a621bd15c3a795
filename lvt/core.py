"""
Instruction envelope submitted to the ledger.
"""
import msgpack
from typing import Optional

from lvt.crypto import sign, verify_signature

INITIALIZE = "initialize"
OPEN_ACCOUNT = "open_account"
RECORD_TRADE = "record_trade"
RECORD_LIQUIDITY_DEPOSIT = "record_liquidity_deposit"
STAKE_WITH_LOCKUP = "stake_with_lockup"
CLAIM_REWARDS = "claim_rewards"
ADJUST_FEE_DYNAMICALLY = "adjust_fee_dynamically"
AUTO_ADJUST_FEE = "auto_adjust_fee"
BATCH_TRADING_ORDERS_WITH_DELAY = "batch_trading_orders_with_delay"
CAST_VOTE = "cast_vote"
UPDATE_FEE_STRUCTURE_BY_VOTE = "update_fee_structure_by_vote"
UPDATE_DYNAMIC_REWARD = "update_dynamic_reward"
UPDATE_LEADERBOARD = "update_leaderboard"
REWARD_STRATEGY_BOOST = "reward_strategy_boost"
BATCH_PROCESS_TRADES = "batch_process_trades"
BORROW_AGAINST_LVT = "borrow_against_lvt"

INSTRUCTION_NAMES = (
    INITIALIZE,
    OPEN_ACCOUNT,
    RECORD_TRADE,
    RECORD_LIQUIDITY_DEPOSIT,
    STAKE_WITH_LOCKUP,
    CLAIM_REWARDS,
    ADJUST_FEE_DYNAMICALLY,
    AUTO_ADJUST_FEE,
    BATCH_TRADING_ORDERS_WITH_DELAY,
    CAST_VOTE,
    UPDATE_FEE_STRUCTURE_BY_VOTE,
    UPDATE_DYNAMIC_REWARD,
    UPDATE_LEADERBOARD,
    REWARD_STRATEGY_BOOST,
    BATCH_PROCESS_TRADES,
    BORROW_AGAINST_LVT,
)


class Instruction:
    def __init__(self,
                 name: str,
                 caller: bytes,
                 params: Optional[dict] = None,
                 signature: Optional[bytes] = None):
        self.name = name
        self.caller = bytes(caller)
        self.params = params or {}
        self.signature = signature

    @classmethod
    def from_dict(cls, data: dict):
        """Creates an Instruction from a dictionary (JSON or msgpack)."""
        caller = data["caller"]
        signature = data.get("signature")
        params = dict(data.get("params", {}))
        for key in ("counterparty", "treasury"):
            if isinstance(params.get(key), str):
                params[key] = bytes.fromhex(params[key])
        return cls(
            name=data["name"],
            caller=bytes.fromhex(caller) if isinstance(caller, str) else caller,
            params=params,
            signature=bytes.fromhex(signature) if isinstance(signature, str) else signature,
        )

    def to_dict(self, include_signature=True):
        data = {
            "name": self.name,
            "caller": self.caller,
            "params": self.params,
        }
        if include_signature and self.signature:
            data["signature"] = self.signature
        return data

    def get_signing_data(self) -> bytes:
        """Returns the canonical byte representation for signing."""
        return msgpack.packb(self.to_dict(include_signature=False), use_bin_type=True)

    def sign(self, signing_key):
        self.signature = sign(signing_key, self.get_signing_data())

    def verify_signature(self) -> bool:
        if not self.signature:
            return False
        return verify_signature(self.caller, self.signature, self.get_signing_data())

    def __repr__(self) -> str:
        return f"Instruction(name={self.name}, caller={self.caller.hex()[:8]}, params={self.params})"
