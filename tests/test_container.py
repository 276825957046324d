from unittest.mock import MagicMock, patch

import pytest

from portfolio_tracker.container import ServiceContainer
from portfolio_tracker.repositories.fund_repository import FundRepository
from portfolio_tracker.services.portfolio_service import PortfolioService
from portfolio_tracker.services.price_service import PriceService
from portfolio_tracker.services.quote_service import YahooQuoteSource
from portfolio_tracker.services.valuation_service import ValuationService


def test_services_are_created_once(app_config, test_db):
    container = ServiceContainer(app_config, test_db, quote_source=MagicMock(spec=YahooQuoteSource))

    first = container.get_service(ValuationService)

    assert container.get_service(ValuationService) is first
    assert first.materialize_on_read is app_config.materialize_on_read
    assert first.fund_repo is container.get_repository(FundRepository)


def test_quote_source_only_built_for_price_service(app_config, test_db):
    quote_source = MagicMock(spec=YahooQuoteSource)
    with patch.object(
        ServiceContainer, "_create_quote_source", return_value=quote_source
    ) as create_quote_source:
        container = ServiceContainer(app_config, test_db)
        _ = container.get_service(PortfolioService)
        create_quote_source.assert_not_called()

        price_service = container.get_service(PriceService)

    create_quote_source.assert_called_once()
    assert price_service.quote_source is quote_source


def test_yahoo_quote_source_uses_configured_limits(app_config, test_db, tmp_path):
    app_config.yf_cache_path = tmp_path / "yf-cache"
    with patch("portfolio_tracker.container.configure_yfinance_cache") as configure_cache:
        source = ServiceContainer(app_config, test_db).quote_source

    configure_cache.assert_called_once_with(tmp_path / "yf-cache")
    assert isinstance(source, YahooQuoteSource)
    assert source.limiter is not None


def test_unknown_types_rejected(app_config, test_db):
    container = ServiceContainer(app_config, test_db)

    with pytest.raises(KeyError):
        _ = container.get_service(dict)
    with pytest.raises(KeyError):
        _ = container.get_repository(dict)
