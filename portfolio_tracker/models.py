# models.py
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum

from portfolio_tracker.exceptions import PartialFailureError


class DividendType(StrEnum):
    STOCK = "STOCK"
    CASH = "CASH"
    NONE = "NONE"


class TransactionType(StrEnum):
    BUY = "buy"
    SELL = "sell"
    DIVIDEND_REINVESTMENT = "dividend-reinvestment"


class ReinvestmentStatus(StrEnum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"


@dataclass
class Fund:
    id: str | None
    name: str
    currency: str
    exchange: str
    dividend_type: DividendType = DividendType.NONE
    symbol: str | None = None
    isin: str | None = None

    def __post_init__(self) -> None:
        self.dividend_type = DividendType(self.dividend_type)


@dataclass
class Portfolio:
    id: str | None
    name: str
    description: str = ""
    is_archived: bool = False
    exclude_from_overview: bool = False

    def __post_init__(self) -> None:
        # SQLite stores booleans as 0/1
        self.is_archived = bool(self.is_archived)
        self.exclude_from_overview = bool(self.exclude_from_overview)

    @property
    def is_active(self) -> bool:
        return not self.is_archived and not self.exclude_from_overview


@dataclass
class PortfolioFund:
    id: str | None
    portfolio_id: str
    fund_id: str


@dataclass
class Transaction:
    id: str | None
    portfolio_fund_id: str
    date: date
    type: TransactionType
    shares: float
    cost_per_share: float

    def __post_init__(self) -> None:
        self.type = TransactionType(self.type)


@dataclass
class Dividend:
    id: str | None
    fund_id: str
    portfolio_fund_id: str
    record_date: date
    ex_dividend_date: date
    dividend_per_share: float
    shares_owned: float
    total_amount: float
    reinvestment_status: ReinvestmentStatus = ReinvestmentStatus.PENDING
    buy_order_date: date | None = None
    reinvestment_shares: float | None = None
    reinvestment_price: float | None = None
    reinvestment_transaction_id: str | None = None

    def __post_init__(self) -> None:
        self.reinvestment_status = ReinvestmentStatus(self.reinvestment_status)


@dataclass
class FundPrice:
    id: str | None
    fund_id: str
    date: date
    price: float


@dataclass
class QuotePrice:
    """A daily close as returned by the quote source."""

    date: date
    close: float


@dataclass
class RealizedGainLoss:
    id: str | None
    portfolio_id: str
    fund_id: str
    transaction_id: str
    transaction_date: date
    shares_sold: float
    cost_basis: float
    sale_proceeds: float
    realized_gain_loss: float


@dataclass
class MaterializedHistoryRow:
    """Cached valuation of one holding on one calendar day."""

    portfolio_fund_id: str
    fund_id: str
    date: date
    shares: float
    price: float
    value: float
    cost: float
    dividends: float
    realized_gain: float
    unrealized_gain: float


@dataclass
class FundHistoryPoint:
    date: date
    fund_id: str
    shares: float
    price: float
    value: float
    cost: float
    dividends: float
    realized_gain: float
    unrealized_gain: float
    total_gain_loss: float


@dataclass
class FundHistoryEntry:
    portfolio_fund_id: str
    fund_id: str
    fund_name: str
    shares: float
    price: float
    value: float
    cost: float
    dividends: float
    realized_gain: float
    unrealized_gain: float
    total_gain_loss: float


@dataclass
class PortfolioFundHistory:
    date: date
    funds: list[FundHistoryEntry] = field(default_factory=list)


@dataclass
class PortfolioSummary:
    portfolio_id: str
    name: str
    description: str
    total_value: float
    total_cost: float
    total_dividends: float
    total_unrealized_gain_loss: float
    total_realized_gain_loss: float
    total_gain_loss: float
    is_archived: bool = False


@dataclass
class PortfolioHistory:
    date: date
    portfolios: list[PortfolioSummary] = field(default_factory=list)


@dataclass
class PortfolioFundMetrics:
    """
    Represents the current position of one fund held in a portfolio.
    """

    portfolio_fund_id: str
    fund_id: str
    fund_name: str
    symbol: str | None
    shares: float
    latest_price: float
    average_cost: float
    total_cost: float
    current_value: float
    unrealized_gain_loss: float
    realized_gain_loss: float
    total_dividends: float
    total_gain_loss: float


@dataclass
class PriceUpdateResult:
    new_prices: bool
    prices_added: int = 0


@dataclass
class UpdatedFund:
    fund_id: str
    name: str
    symbol: str | None
    prices_added: int


@dataclass
class FundUpdateError:
    fund_id: str
    name: str
    symbol: str | None
    error: str


@dataclass
class FundUpdateSummary:
    """Outcome of a batch price backfill across all funds."""

    updated_funds: list[UpdatedFund] = field(default_factory=list)
    errors: list[FundUpdateError] = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[UpdatedFund | FundUpdateError]) -> "FundUpdateSummary":
        summary = cls()
        for outcome in outcomes:
            if isinstance(outcome, UpdatedFund):
                summary.updated_funds.append(outcome)
            else:
                summary.errors.append(outcome)
        return summary

    @property
    def total_updated(self) -> int:
        return len(self.updated_funds)

    @property
    def total_errors(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return self.total_updated > 0

    def raise_for_failure(self) -> None:
        """Raise PartialFailureError if no fund was updated."""
        if not self.success:
            raise PartialFailureError(
                f"All {self.total_errors} fund updates failed", summary=self
            )
