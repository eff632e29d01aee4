"""
Balance Service
Per-user, per-claim-type spending balances with lazy periodic resets

Balances are materialised on first access and reconciled against the
calendar before every read or write: when the current date falls in a
different day, ISO week, month or year (per the reset period) than the
last reset, spending returns to zero.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from src.config.database import atomic
from src.models.audit_log import AuditAction, EntityType
from src.models.balance import UserClaimBalance
from src.models.claim import ClaimType, LimitTimespan
from src.models.user import User
from src.services.audit_service import audit_service, RequestContext
from src.services.permission_service import permission_service
from src.utils.exceptions import NotFoundError, ValidationError
from src.utils.helpers import format_currency
from src.utils.logger import setup_logger

logger = setup_logger()


# ============================================
# PURE BALANCE ARITHMETIC
# ============================================

def same_period(first: datetime, second: datetime, period: LimitTimespan) -> bool:
    """
    Whether two instants fall in the same calendar bucket

    Args:
        first: Earlier instant
        second: Later instant
        period: Bucket granularity

    Returns:
        bool: True if both share the day / ISO week / month / year
    """
    if period == LimitTimespan.DAILY:
        return first.date() == second.date()
    if period == LimitTimespan.WEEKLY:
        return first.isocalendar()[:2] == second.isocalendar()[:2]
    if period == LimitTimespan.MONTHLY:
        return (first.year, first.month) == (second.year, second.month)
    if period == LimitTimespan.ANNUAL:
        return first.year == second.year
    # Unknown periods never reset
    return True


def needs_reset(last_reset_date: datetime, period: LimitTimespan, now: datetime) -> bool:
    return not same_period(last_reset_date, now, period)


def remaining_for(total_limit: float, current_spent: float) -> float:
    """Remaining balance, floored at zero"""
    return max(0.0, total_limit - current_spent)


@dataclass(frozen=True)
class BalanceFigures:
    """Value snapshot of a balance record"""
    total_limit: float
    current_spent: float
    remaining_balance: float
    last_reset_date: datetime
    reset_period: LimitTimespan

    @classmethod
    def from_record(cls, record: UserClaimBalance) -> "BalanceFigures":
        return cls(
            total_limit=record.total_limit,
            current_spent=record.current_spent,
            remaining_balance=record.remaining_balance,
            last_reset_date=record.last_reset_date,
            reset_period=record.reset_period
        )

    def apply_to(self, record: UserClaimBalance):
        record.total_limit = self.total_limit
        record.current_spent = self.current_spent
        record.remaining_balance = self.remaining_balance
        record.last_reset_date = self.last_reset_date


def reconcile(figures: BalanceFigures, now: datetime) -> BalanceFigures:
    """
    Apply a pending periodic reset

    Args:
        figures: Current balance values
        now: Reference instant

    Returns:
        BalanceFigures: Unchanged if still in the same period, else reset
    """
    if not needs_reset(figures.last_reset_date, figures.reset_period, now):
        return figures
    return replace(
        figures,
        current_spent=0.0,
        remaining_balance=figures.total_limit,
        last_reset_date=now
    )


def apply_deduction(figures: BalanceFigures, amount: float) -> BalanceFigures:
    """Add spending; overspend is allowed but remaining never goes below zero"""
    spent = figures.current_spent + amount
    return replace(
        figures,
        current_spent=spent,
        remaining_balance=remaining_for(figures.total_limit, spent)
    )


def apply_limit(figures: BalanceFigures, new_limit: float) -> BalanceFigures:
    """Overwrite the limit and recompute remaining from existing spending"""
    return replace(
        figures,
        total_limit=new_limit,
        remaining_balance=remaining_for(new_limit, figures.current_spent)
    )


# ============================================
# BALANCE SERVICE
# ============================================

class BalanceService:
    """Service for balance lookups, checks and deductions"""

    def __init__(self):
        """Initialize with dependent services"""
        self.permission_service = permission_service
        self.clock = datetime.utcnow

    def get_or_create_balance(
        self,
        db: Session,
        user_id: int,
        claim_type_id: int,
        now: Optional[datetime] = None
    ) -> UserClaimBalance:
        """
        Get a reconciled balance, creating it on first access

        Args:
            db: Database session
            user_id: User ID
            claim_type_id: Claim type ID
            now: Reference instant, defaults to the service clock

        Returns:
            UserClaimBalance: Current balance record
        """
        with atomic(db):
            balance = self._load(db, user_id, claim_type_id, now or self.clock())
        return balance

    def get_all_balances(
        self,
        db: Session,
        user_id: int,
        now: Optional[datetime] = None
    ) -> List[UserClaimBalance]:
        """
        Get every existing balance record of a user, each reconciled

        Args:
            db: Database session
            user_id: User ID
            now: Reference instant

        Returns:
            List[UserClaimBalance]: Balance records ordered by claim type
        """
        if db.get(User, user_id) is None:
            raise NotFoundError("User not found")

        now = now or self.clock()
        with atomic(db):
            balances = db.query(UserClaimBalance).filter(
                UserClaimBalance.user_id == user_id
            ).order_by(UserClaimBalance.claim_type_id).all()
            for balance in balances:
                self._reconcile_record(balance, now)
        return balances

    def check_claim(
        self,
        db: Session,
        user_id: int,
        claim_type_id: int,
        amount: float,
        now: Optional[datetime] = None
    ) -> Tuple[bool, Optional[str]]:
        """
        Dry-run whether a user may claim an amount

        Spending is never changed; the balance record may be created or
        reset as a side effect of reading it.

        Args:
            db: Database session
            user_id: User ID
            claim_type_id: Claim type ID
            amount: Requested amount

        Returns:
            Tuple of (ok, reason)
            - ok: True if the user may claim the amount
            - reason: Why the claim is refused when ok is False
        """
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        if not self.permission_service.can_access(db, user_id, claim_type_id):
            logger.info(f"User {user_id} is not allowed to claim type {claim_type_id}")
            return False, "You do not have permission to claim this type"

        balance = self.get_or_create_balance(db, user_id, claim_type_id, now)

        if amount > balance.remaining_balance:
            reason = (
                f"Amount {format_currency(amount)} exceeds remaining balance of "
                f"{format_currency(balance.remaining_balance)}"
            )
            logger.info(f"Balance check failed for user {user_id}: {reason}")
            return False, reason

        return True, None

    def deduct(
        self,
        db: Session,
        user_id: int,
        claim_type_id: int,
        amount: float,
        now: Optional[datetime] = None
    ) -> UserClaimBalance:
        """
        Charge an amount against a balance

        Joins the caller's transaction when invoked inside atomic().

        Args:
            db: Database session
            user_id: User ID
            claim_type_id: Claim type ID
            amount: Amount to add to current spending

        Returns:
            UserClaimBalance: Updated balance record
        """
        if amount is None or amount < 0:
            raise ValidationError("Deduction amount must not be negative")

        with atomic(db):
            balance = self._load(db, user_id, claim_type_id, now or self.clock())
            apply_deduction(BalanceFigures.from_record(balance), amount).apply_to(balance)
            db.flush()

        logger.info(
            f"Deducted {amount:,.2f} from user {user_id} claim type {claim_type_id}: "
            f"spent={balance.current_spent:,.2f} remaining={balance.remaining_balance:,.2f}"
        )
        return balance

    def admin_set_limit(
        self,
        db: Session,
        user_id: int,
        claim_type_id: int,
        new_limit: float,
        actor: User,
        context: Optional[RequestContext] = None,
        now: Optional[datetime] = None
    ) -> UserClaimBalance:
        """
        Overwrite a balance's total limit, bypassing permission resolution

        Args:
            db: Database session
            user_id: User whose balance is adjusted
            claim_type_id: Claim type ID
            new_limit: New total limit
            actor: Admin performing the change
            context: Client details for the audit trail

        Returns:
            UserClaimBalance: Updated balance record
        """
        if new_limit is None or new_limit < 0:
            raise ValidationError("Limit must not be negative")

        with atomic(db):
            balance = self._load(db, user_id, claim_type_id, now or self.clock())
            before = self._snapshot(balance)
            apply_limit(BalanceFigures.from_record(balance), new_limit).apply_to(balance)
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.UPDATE, EntityType.BALANCE, balance.id,
                old_values=before,
                new_values=self._snapshot(balance),
                context=context
            )

        logger.info(f"Admin {actor.id} set limit of user {user_id} claim type {claim_type_id} to {new_limit:,.2f}")
        return balance

    def _load(self, db: Session, user_id: int, claim_type_id: int, now: datetime) -> UserClaimBalance:
        """Find or materialise the record, then reconcile it; caller owns the transaction"""
        balance = db.query(UserClaimBalance).filter(
            UserClaimBalance.user_id == user_id,
            UserClaimBalance.claim_type_id == claim_type_id
        ).first()

        if balance is None:
            return self._create(db, user_id, claim_type_id, now)

        self._reconcile_record(balance, now)
        return balance

    def _create(self, db: Session, user_id: int, claim_type_id: int, now: datetime) -> UserClaimBalance:
        claim_type = db.get(ClaimType, claim_type_id)
        if claim_type is None:
            raise NotFoundError("Claim type not found")

        limit = self.permission_service.effective_limit(db, user_id, claim_type_id)
        balance = UserClaimBalance(
            user_id=user_id,
            claim_type_id=claim_type_id,
            total_limit=limit,
            current_spent=0.0,
            remaining_balance=remaining_for(limit, 0.0),
            last_reset_date=now,
            reset_period=claim_type.limit_timespan
        )
        db.add(balance)
        db.flush()

        logger.info(
            f"Created balance for user {user_id} claim type {claim_type_id}: "
            f"limit={limit:,.2f} period={claim_type.limit_timespan.value}"
        )
        return balance

    def _reconcile_record(self, balance: UserClaimBalance, now: datetime):
        current = BalanceFigures.from_record(balance)
        reconciled = reconcile(current, now)
        if reconciled is not current:
            reconciled.apply_to(balance)
            db_session = Session.object_session(balance)
            if db_session is not None:
                db_session.flush()
            logger.info(
                f"Reset {balance.reset_period.value} balance for user {balance.user_id} "
                f"claim type {balance.claim_type_id}"
            )

    @staticmethod
    def _snapshot(balance: UserClaimBalance) -> dict:
        return {
            "total_limit": balance.total_limit,
            "current_spent": balance.current_spent,
            "remaining_balance": balance.remaining_balance
        }


# Create singleton instance
balance_service = BalanceService()
