"""
Configuration and command line tests.
"""
import json
import os
import shutil
import tempfile
import unittest
from unittest import mock
from lvt import core, fees, lending, rewards
from lvt.cli import main
from lvt.config import Config, MonitoringConfig
from lvt.crypto import generate_identity
from lvt.monitoring import Monitor


class TestConfig(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def _write(self, payload):
        path = os.path.join(self.test_dir, 'lvt.json')
        with open(path, 'w') as f:
            json.dump(payload, f)
        return path

    def test_defaults(self):
        config = Config.default()
        self.assertEqual(config.database.path, './lvt_data')
        self.assertEqual(config.logging.level, 'INFO')
        self.assertFalse(config.monitoring.enabled)
        self.assertEqual(set(config.to_dict()), {'database', 'monitoring', 'logging'})

    def test_file_round_trip(self):
        path = os.path.join(self.test_dir, 'conf', 'lvt.json')
        config = Config.default()
        config.monitoring.port = 9191
        config.logging.level = 'DEBUG'
        config.to_file(path)

        loaded = Config.from_file(path)
        self.assertEqual(loaded.monitoring.port, 9191)
        self.assertEqual(loaded.logging.level, 'DEBUG')
        self.assertEqual(loaded.to_dict(), config.to_dict())

    def test_partial_file(self):
        loaded = Config.from_file(self._write({'database': {'compression': None}}))
        self.assertIsNone(loaded.database.compression)
        self.assertEqual(loaded.monitoring, MonitoringConfig())

    def test_protocol_rules_cannot_be_overridden(self):
        path = self._write({'protocol': {'reward_window': 80, 'max_vote_fee_rate': 9000}})
        with self.assertRaises(ValueError):
            Config.from_file(path)

    def test_unknown_setting_rejected(self):
        with self.assertRaises(ValueError):
            Config.from_file(self._write({'database': {'reward_window': 80}}))

    def test_cli_refuses_protocol_overrides(self):
        path = self._write({'protocol': {'initial_fee_rate': 2000}})
        db_path = os.path.join(self.test_dir, 'db')
        _, treasury = generate_identity()
        with self.assertRaises(ValueError):
            main(['--config', path, '--db', db_path, 'init', '--treasury', treasury.hex()])
        self.assertFalse(os.path.exists(db_path))

    def test_rules_are_fixed(self):
        self.assertEqual(fees.INITIAL_FEE_RATE, 1000)
        self.assertEqual((fees.MIN_VOTE_FEE_RATE, fees.MAX_VOTE_FEE_RATE), (500, 5000))
        self.assertEqual(rewards.REWARD_WINDOW, 50)
        self.assertEqual((rewards.MIN_CLAIM_VOLUME, rewards.CLAIM_COOLDOWN), (100, 3600))
        self.assertEqual(lending.COLLATERAL_RATIO_PCT, 150)
        self.assertEqual(lending.LOAN_TERM, 30 * 86400)


class TestCli(unittest.TestCase):
    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.test_dir, 'db')
        _, self.treasury = generate_identity()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def _write(self, name, payload):
        path = os.path.join(self.test_dir, name)
        with open(path, 'w') as f:
            json.dump(payload, f)
        return path

    def test_init_apply_show(self):
        _, trader = generate_identity()
        _, other = generate_identity()

        self.assertEqual(main(['--db', self.db_path, 'init', '--treasury', self.treasury.hex()]), 0)
        self.assertEqual(main(['--db', self.db_path, 'init', '--treasury', self.treasury.hex()]), 1)

        path = self._write('batch.json', [
            {'name': core.OPEN_ACCOUNT, 'caller': trader.hex()},
            {'name': core.STAKE_WITH_LOCKUP, 'caller': trader.hex(),
             'params': {'amount': 5000, 'lockup_duration': 0}},
            {'name': core.RECORD_TRADE, 'caller': trader.hex(), 'params': {
                'trade_amount': 10, 'trade_timestamp': 0, 'trade_pair': 'LVT/USDC',
                'execution_delay': 500, 'slippage': 100, 'liquidity_provided': 0,
                'counterparty': other.hex()}},
        ])
        self.assertEqual(main(['--db', self.db_path, 'apply', path]), 0)

        for record in ('global', 'governance', 'leaderboard', 'trades', 'loans'):
            self.assertEqual(main(['--db', self.db_path, 'show', record]), 0)
        self.assertEqual(main(['--db', self.db_path, 'show', 'user', trader.hex()]), 0)
        self.assertEqual(main(['--db', self.db_path, 'show', 'user']), 2)

    def test_apply_stops_on_rejection(self):
        _, trader = generate_identity()
        main(['--db', self.db_path, 'init', '--treasury', self.treasury.hex()])
        path = self._write('bad.json', {
            'name': core.BATCH_TRADING_ORDERS_WITH_DELAY, 'caller': trader.hex(),
            'params': {'delay': 0},
        })
        self.assertEqual(main(['--db', self.db_path, 'apply', path]), 1)

    def test_apply_updates_gauges_after_rejection(self):
        _, trader = generate_identity()
        _, other = generate_identity()
        main(['--db', self.db_path, 'init', '--treasury', self.treasury.hex()])
        config_path = self._write('monitored.json', {'monitoring': {'enabled': True}})
        path = self._write('mixed.json', [
            {'name': core.OPEN_ACCOUNT, 'caller': trader.hex()},
            {'name': core.RECORD_TRADE, 'caller': trader.hex(), 'params': {
                'trade_amount': 10, 'trade_timestamp': 0, 'trade_pair': 'LVT/USDC',
                'execution_delay': 500, 'slippage': 100, 'liquidity_provided': 0,
                'counterparty': other.hex()}},
            {'name': core.BATCH_TRADING_ORDERS_WITH_DELAY, 'caller': trader.hex(),
             'params': {'delay': 0}},
        ])

        monitor = Monitor()
        with mock.patch('lvt.cli.Monitor', return_value=monitor):
            code = main(['--config', config_path, '--db', self.db_path, 'apply', path])

        self.assertEqual(code, 1)
        self.assertIs(monitor.ledger.monitor, monitor)
        self.assertEqual(monitor.registry.get_sample_value('lvt_total_trades'), 1.0)
        self.assertEqual(monitor.registry.get_sample_value('lvt_fee_rate'), 1000.0)

    def test_apply_requires_signature(self):
        _, trader = generate_identity()
        main(['--db', self.db_path, 'init', '--treasury', self.treasury.hex()])
        path = self._write('unsigned.json', {'name': core.OPEN_ACCOUNT, 'caller': trader.hex()})
        self.assertEqual(main(['--db', self.db_path, 'apply', '--require-signature', path]), 1)

    def test_keygen_and_config(self):
        self.assertEqual(main(['keygen']), 0)
        out = os.path.join(self.test_dir, 'written.json')
        self.assertEqual(main(['config', out]), 0)
        self.assertTrue(os.path.exists(out))


if __name__ == '__main__':
    unittest.main()
