"""
Instruction envelope, signature and dispatch tests.
"""
import pytest
import tempfile
import shutil
from lvt import core
from lvt.core import Instruction
from lvt.crypto import generate_identity, identity_of, sign, verify_signature
from lvt.db import DB
from lvt.errors import InvalidInstruction, InvalidSignature, WashTradingAttempt
from lvt.ledger import Ledger
from lvt.monitoring import Monitor

NOW = 1_700_000_000


@pytest.fixture
def ledger():
    temp_dir = tempfile.mkdtemp()
    db = DB(temp_dir)
    chain = Ledger(db=db, clock=lambda: NOW, monitor=Monitor())
    yield chain
    db.close()
    shutil.rmtree(temp_dir)


@pytest.fixture
def admin():
    return generate_identity()


class TestSignatures:
    def test_sign_and_verify(self):
        key, identity = generate_identity()
        assert identity_of(key) == identity
        signature = sign(key, b'data')
        assert verify_signature(identity, signature, b'data')
        assert not verify_signature(identity, signature, b'other')
        assert not verify_signature(b'short', signature, b'data')

    def test_instruction_signature(self):
        key, identity = generate_identity()
        instruction = Instruction(core.CLAIM_REWARDS, identity)
        assert not instruction.verify_signature()

        instruction.sign(key)
        assert instruction.verify_signature()

        instruction.params = {'tampered': 1}
        assert not instruction.verify_signature()

    def test_from_dict_hex_fields(self):
        _, caller = generate_identity()
        _, other = generate_identity()
        instruction = Instruction.from_dict({
            'name': core.RECORD_TRADE,
            'caller': caller.hex(),
            'params': {'counterparty': other.hex(), 'trade_amount': 5},
        })
        assert instruction.caller == caller
        assert instruction.params['counterparty'] == other
        assert instruction.to_dict()['name'] == core.RECORD_TRADE


class TestExecute:
    def test_full_flow(self, ledger, admin):
        admin_key, admin_id = admin
        _, trader = generate_identity()
        _, other = generate_identity()

        ledger.execute(Instruction(core.INITIALIZE, admin_id, {'treasury': admin_id, 'required_votes': 1}))
        ledger.execute(Instruction(core.OPEN_ACCOUNT, trader))
        trade = ledger.execute(Instruction(core.RECORD_TRADE, trader, {
            'trade_amount': 1000,
            'trade_timestamp': NOW,
            'trade_pair': 'LVT/USDC',
            'execution_delay': 50,
            'slippage': 10,
            'liquidity_provided': 2000,
            'counterparty': other,
        }))
        assert trade.trade_amount == 1000

        ledger.execute(Instruction(core.CAST_VOTE, admin_id))
        state = ledger.execute(Instruction(core.UPDATE_FEE_STRUCTURE_BY_VOTE, admin_id, {'new_fee_rate': 800}))
        assert state.fee_rate == 800
        assert ledger.execute(Instruction(core.REWARD_STRATEGY_BOOST, trader, {'strategy_type': 2})) == 100
        assert ledger.execute(Instruction(core.CLAIM_REWARDS, trader)) == 1_000_100

    def test_every_instruction_has_a_handler(self, ledger):
        assert set(core.INSTRUCTION_NAMES) == set(ledger._handlers)

    def test_unknown_instruction(self, ledger, admin):
        with pytest.raises(InvalidInstruction):
            ledger.execute(Instruction('mint_everything', admin[1]))

    def test_missing_or_extra_params(self, ledger, admin):
        with pytest.raises(InvalidInstruction):
            ledger.execute(Instruction(core.BORROW_AGAINST_LVT, admin[1]))
        with pytest.raises(InvalidInstruction):
            ledger.execute(Instruction(core.CLAIM_REWARDS, admin[1], {'amount': 5}))

    def test_required_signature(self, ledger, admin):
        key, identity = admin
        instruction = Instruction(core.INITIALIZE, identity, {'treasury': identity})
        with pytest.raises(InvalidSignature):
            ledger.execute(instruction, require_signature=True)

        instruction.sign(key)
        ledger.execute(instruction, require_signature=True)
        assert ledger.get_global_state() is not None

    def test_metrics_recorded(self, ledger, admin):
        _, identity = admin
        ledger.initialize(identity, treasury=identity)
        ledger.open_account(identity)
        with pytest.raises(WashTradingAttempt):
            ledger.record_trade(identity, 1, NOW, 'A/B', 0, 0, 0, identity)

        registry = ledger.monitor.registry
        ok = registry.get_sample_value(
            'lvt_instructions_total', {'instruction': core.INITIALIZE, 'status': 'ok'})
        rejected = registry.get_sample_value(
            'lvt_instructions_total', {'instruction': core.RECORD_TRADE, 'status': 'rejected'})
        assert ok == 1.0
        assert rejected == 1.0

        ledger.monitor.ledger = ledger
        ledger.monitor.update()
        assert registry.get_sample_value('lvt_fee_rate') == 1000.0
        assert registry.get_sample_value('lvt_global_reward_multiplier') == 1.0
