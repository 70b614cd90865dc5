"""
One-off database setup: schema, seed data and the persisted setup record.

The setup record lives in the store so every process (API, workers, beat)
and every restart agrees on whether setup has run.
"""
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Optional
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from pumpfunds.models.registry import Base
from pumpfunds.models.funds import Fund, FundStatus
from pumpfunds.models.setup_status import SetupStatus
from pumpfunds.models.users import User
from pumpfunds.utils.clock import utcnow
from pumpfunds.utils.constants import DATABASE_SETUP_KEY
from pumpfunds.utils.logging import get_logger
from config.settings import get_seed_config

logger = get_logger(__name__)

STATUS_IN_PROGRESS = 'in_progress'
STATUS_COMPLETED = 'completed'
STATUS_FAILED = 'failed'


class SetupManager:
    """Creates tables and seeds sample data exactly once."""

    def __init__(
        self,
        engine: Engine,
        session_factory: sessionmaker,
        seed: Optional[Dict] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.engine = engine
        self.session_factory = session_factory
        self.seed = seed if seed is not None else get_seed_config()
        self.clock = clock

    def run(self, force: bool = False) -> Dict:
        """
        Run setup unless another run completed it or is running it.

        Args:
            force: Take over a run left in progress (e.g. after a crash)

        Returns:
            {"status": ..., "funds_created": n, "users_created": n}
        """
        Base.metadata.create_all(bind=self.engine)

        db = self.session_factory()
        try:
            record = self._claim(db, force)
            if record is None:
                current = self._get_record(db)
                logger.info("Database setup already handled", status=current.status)
                return {"status": current.status, "funds_created": 0, "users_created": 0}

            try:
                funds_created = self._seed_funds(db)
                users_created = self._seed_users(db)
                record.status = STATUS_COMPLETED
                record.completed_at = self.clock()
                record.detail = f"{funds_created} funds, {users_created} users seeded"
                db.commit()
            except Exception as e:
                db.rollback()
                self._mark_failed(db, str(e))
                logger.error("Database setup failed", error=str(e))
                raise

            logger.info("Database setup complete", funds_created=funds_created, users_created=users_created)
            return {"status": STATUS_COMPLETED, "funds_created": funds_created, "users_created": users_created}
        finally:
            db.close()

    def status(self) -> Optional[str]:
        db = self.session_factory()
        try:
            record = self._get_record(db)
            return record.status if record else None
        finally:
            db.close()

    def _get_record(self, db: Session) -> Optional[SetupStatus]:
        return db.execute(
            select(SetupStatus)
            .where(SetupStatus.key == DATABASE_SETUP_KEY)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _claim(self, db: Session, force: bool) -> Optional[SetupStatus]:
        """Insert or take over the setup record; None if it is completed or in progress."""
        record = self._get_record(db)
        if record is None:
            record = SetupStatus(key=DATABASE_SETUP_KEY, status=STATUS_IN_PROGRESS)
            db.add(record)
            try:
                db.commit()
            except IntegrityError:
                # Another process inserted it first
                db.rollback()
                return None
            return record

        if record.status == STATUS_COMPLETED:
            return None
        if record.status == STATUS_IN_PROGRESS and not force:
            return None

        record.status = STATUS_IN_PROGRESS
        record.detail = None
        db.commit()
        return record

    def _mark_failed(self, db: Session, detail: str):
        record = self._get_record(db)
        if record is not None:
            record.status = STATUS_FAILED
            record.detail = detail[:2000]
            db.commit()

    def _seed_funds(self, db: Session) -> int:
        created = 0
        for entry in self.seed.get('funds', []):
            exists = db.execute(select(Fund.id).where(Fund.name == entry['name'])).first()
            if exists:
                continue
            db.add(Fund(
                name=entry['name'],
                description=entry.get('description'),
                logo_url=entry.get('logo_url'),
                strategy=entry.get('strategy'),
                trader_wallets=list(entry.get('trader_wallets', [])),
                min_investment=Decimal(str(entry.get('min_investment', 100))),
                max_investment=Decimal(str(entry['max_investment'])) if entry.get('max_investment') else None,
                status=FundStatus.ACTIVE.value,
            ))
            created += 1
        db.flush()
        return created

    def _seed_users(self, db: Session) -> int:
        created = 0
        for entry in self.seed.get('users', []):
            exists = db.execute(select(User.id).where(User.email == entry['email'])).first()
            if exists:
                continue
            db.add(User(email=entry['email'], wallet_pubkey=entry['wallet_pubkey']))
            created += 1
        db.flush()
        return created
