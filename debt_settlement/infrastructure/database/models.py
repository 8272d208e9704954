"""SQLAlchemy ORM models for debt contracts, allocations and the event outbox"""

from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    DateTime,
    Integer,
    ForeignKey,
    Text,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class DebtContractRow(Base):
    """Debt contract aggregate root"""

    __tablename__ = "debt_contract"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_entrust_id = Column(BigInteger, nullable=False, unique=True, index=True)
    member_user_id = Column(BigInteger, nullable=False, index=True)
    total_cents = Column(BigInteger, nullable=False)
    paid_total_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    # Optimistic concurrency: concurrent writers of one contract fail with StaleDataError
    version = Column(Integer, nullable=False)

    plans = relationship(
        "RepaymentPlanRow",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="RepaymentPlanRow.period",
    )
    records = relationship(
        "RepaymentRecordRow",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="RepaymentRecordRow.id",
    )

    __mapper_args__ = {"version_id_col": version}


class RepaymentPlanRow(Base):
    """One installment period of a contract"""

    __tablename__ = "repayment_plan"
    __table_args__ = (UniqueConstraint("contract_id", "period", name="uq_repayment_plan_period"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(Integer, ForeignKey("debt_contract.id", ondelete="CASCADE"), nullable=False)
    period = Column(String(7), nullable=False)  # YYYY-MM
    due_cents = Column(BigInteger, nullable=False)
    paid_cents = Column(BigInteger, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)

    contract = relationship("DebtContractRow", back_populates="plans")


class RepaymentRecordRow(Base):
    """Settlement / rollback ledger line (append-only)"""

    __tablename__ = "repayment_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contract_id = Column(Integer, ForeignKey("debt_contract.id", ondelete="CASCADE"), nullable=False)
    order_number = Column(Text, nullable=False, index=True)
    order_detail_id = Column(BigInteger, nullable=True)
    period = Column(String(7), nullable=False)
    type = Column(Text, nullable=False)  # settlement | rollback
    amount_cents = Column(BigInteger, nullable=False)
    recorded_at = Column(DateTime, nullable=False)
    remark = Column(Text, nullable=True)

    contract = relationship("DebtContractRow", back_populates="records")


class DivideRecordRow(Base):
    """Supplier allocation computed for an order line by the divide process"""

    __tablename__ = "divide_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(Text, nullable=False, index=True)
    order_detail_id = Column(BigInteger, nullable=True)
    supplier_cents = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class OutboundEvent(Base):
    """Domain event outbox with delivery tracking"""

    __tablename__ = "outbound_event"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), nullable=False, unique=True)
    event_type = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False)
    target_url = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")  # pending | delivered | failed
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
