"""
Command line tool for an LVT ledger database.

Examples:
    lvt-ledger keygen
    lvt-ledger --db ./lvt_data init --treasury <hex> --required-votes 3
    lvt-ledger --db ./lvt_data apply instructions.json
    lvt-ledger --db ./lvt_data show user <hex>
"""
import argparse
import json
import logging
import sys

from lvt.config import Config
from lvt.core import Instruction
from lvt.crypto import generate_identity
from lvt.db import DB
from lvt.errors import ValidationError
from lvt.ledger import Ledger
from lvt.monitoring import Monitor
from lvt.records import Record

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, Record):
        return _jsonable(value.to_dict())
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, bytes):
        return value.hex()
    return value


def _print(value):
    print(json.dumps(_jsonable(value), indent=2))


def _open_ledger(args, config: Config) -> Ledger:
    db_config = config.database
    db = DB(
        args.db or db_config.path,
        write_buffer_size=db_config.write_buffer_size,
        max_open_files=db_config.max_open_files,
        compression=db_config.compression or None,
    )
    monitor = None
    if config.monitoring.enabled:
        monitor = Monitor(host=config.monitoring.host, port=config.monitoring.port, serve=True)
    ledger = Ledger(db=db, monitor=monitor)
    if monitor is not None:
        monitor.ledger = ledger
    return ledger


def cmd_keygen(args, config):
    signing_key, identity = generate_identity()
    _print({'signing_key': bytes(signing_key), 'identity': identity})
    return 0


def cmd_config(args, config):
    config.to_file(args.output)
    print(f"Configuration written to {args.output}")
    return 0


def cmd_init(args, config):
    ledger = _open_ledger(args, config)
    try:
        treasury = bytes.fromhex(args.treasury)
        admin = bytes.fromhex(args.admin) if args.admin else treasury
        _print(ledger.initialize(admin, treasury=treasury, required_votes=args.required_votes))
    finally:
        ledger.close()
    return 0


def cmd_apply(args, config):
    with open(args.file, 'r') as f:
        payload = json.load(f)
    items = payload if isinstance(payload, list) else [payload]

    ledger = _open_ledger(args, config)
    try:
        for item in items:
            instruction = Instruction.from_dict(item)
            try:
                result = ledger.execute(instruction, require_signature=args.require_signature)
            except ValidationError as e:
                print(f"{instruction.name}: {type(e).__name__}: {e}", file=sys.stderr)
                return 1
            _print({'instruction': instruction.name, 'result': result})
    finally:
        if ledger.monitor is not None:
            ledger.monitor.update()
        ledger.close()
    return 0


def cmd_show(args, config):
    ledger = _open_ledger(args, config)
    store = ledger.store
    try:
        if args.record == 'global':
            _print(store.get_global())
        elif args.record == 'governance':
            _print(store.get_governance())
        elif args.record in ('user', 'lp'):
            if not args.key:
                print(f"show {args.record} requires an identity", file=sys.stderr)
                return 2
            owner = bytes.fromhex(args.key)
            _print(store.get_user(owner) if args.record == 'user' else store.get_lp(owner))
        elif args.record == 'leaderboard':
            _print(store.top_traders(args.limit))
        elif args.record == 'trades':
            _print([{'seq': seq, **trade.to_dict()} for seq, trade in store.iter_trades()])
        elif args.record == 'loans':
            borrower = bytes.fromhex(args.key) if args.key else None
            _print([{'seq': seq, **loan.to_dict()} for seq, loan in store.iter_loans(borrower)])
    finally:
        ledger.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='lvt-ledger', description="LVT ledger tool")
    parser.add_argument('--db', help="Ledger database directory (overrides config)")
    parser.add_argument('--config', help="JSON configuration file")
    parser.add_argument('--log-level', help="Logging level (overrides config)")
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('keygen', help="Generate an ed25519 identity")
    p.set_defaults(func=cmd_keygen)

    p = sub.add_parser('config', help="Write the effective configuration to a file")
    p.add_argument('output')
    p.set_defaults(func=cmd_config)

    p = sub.add_parser('init', help="Initialize protocol state")
    p.add_argument('--treasury', required=True, help="Treasury identity (hex)")
    p.add_argument('--admin', help="Admin identity (hex), defaults to the treasury")
    p.add_argument('--required-votes', type=int, default=1)
    p.set_defaults(func=cmd_init)

    p = sub.add_parser('apply', help="Apply instructions from a JSON file")
    p.add_argument('file')
    p.add_argument('--require-signature', action='store_true')
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser('show', help="Print records")
    p.add_argument('record', choices=['global', 'governance', 'user', 'lp', 'leaderboard', 'trades', 'loans'])
    p.add_argument('key', nargs='?', help="Identity (hex) for user, lp and loans")
    p.add_argument('--limit', type=int, default=10)
    p.set_defaults(func=cmd_show)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = Config.from_file(args.config) if args.config else Config.default()

    logging.basicConfig(
        level=(args.log_level or config.logging.level).upper(),
        format=config.logging.format,
    )
    try:
        return args.func(args, config)
    except ValidationError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
