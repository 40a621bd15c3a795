"""
Loans against staked LVT.

A loan requires the stake to cover at least 150% of the borrowed amount.
Loans record their terms only; repayment and liquidation are not handled
here.
"""
from lvt.checked import checked_add_i64, checked_mul
from lvt.errors import InsufficientCollateral
from lvt.records import Loan, UserAccount

COLLATERAL_RATIO_PCT = 150
LOAN_INTEREST_RATE = 5
LOAN_TERM = 30 * 86400  # seconds


def required_collateral(borrow_amount: int) -> int:
    return checked_mul(borrow_amount, COLLATERAL_RATIO_PCT) // 100


def issue_loan(account: UserAccount, borrow_amount: int, now: int) -> Loan:
    """
    Build a loan against the account's current stake.

    Raises:
        InsufficientCollateral: stake below the required collateral
        ArithmeticOverflow: borrow amount or due time out of range
    """
    required = required_collateral(borrow_amount)
    if account.staked_amount < required:
        raise InsufficientCollateral(f"staked {account.staked_amount} < required {required}")

    return Loan({
        'borrower': account.owner,
        'collateral': account.staked_amount,
        'borrow_amount': borrow_amount,
        'interest_rate': LOAN_INTEREST_RATE,
        'start_time': now,
        'due_time': checked_add_i64(now, LOAN_TERM),
    })
