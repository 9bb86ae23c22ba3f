"""Unit tests for the exchange-rate client."""

import pytest
from unittest.mock import Mock
import requests
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from currency.rates import ExchangeRateService


class TestExchangeRateService:
    """Test cases for ExchangeRateService."""

    @pytest.fixture
    def session(self):
        """Mock HTTP session."""
        session = Mock()
        session.headers = {}
        return session

    def _response(self, payload):
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = payload
        return response

    def test_fetch_rates(self, session):
        """Test parsing a rate table."""
        session.get.return_value = self._response(
            {'result': 'success', 'base_code': 'EUR', 'rates': {'EUR': 1, 'USD': 1.1, 'sek': 11.2}}
        )
        service = ExchangeRateService('https://rates.test/latest/EUR', session=session)

        rates = service.fetch_rates()

        assert rates == {'EUR': 1.0, 'USD': 1.1, 'SEK': 11.2}
        session.get.assert_called_once_with('https://rates.test/latest/EUR', timeout=10)

    def test_drops_unusable_rates(self, session):
        """Test that zero, negative and non-numeric rates are ignored."""
        session.get.return_value = self._response(
            {'rates': {'EUR': 1, 'XXX': 0, 'YYY': -2, 'ZZZ': 'n/a', 'BTC': True}}
        )

        rates = ExchangeRateService(session=session).fetch_rates()

        assert rates == {'EUR': 1.0}

    def test_http_error(self, session):
        """Test that an HTTP failure yields no rate table."""
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError('503 Server Error')
        session.get.return_value = response

        assert ExchangeRateService(session=session).fetch_rates() is None

    def test_connection_error(self, session):
        """Test that a network failure yields no rate table."""
        session.get.side_effect = requests.ConnectionError('unreachable')

        assert ExchangeRateService(session=session).fetch_rates() is None

    def test_missing_rates(self, session):
        """Test a response without a rates object."""
        session.get.return_value = self._response({'result': 'error'})

        assert ExchangeRateService(session=session).fetch_rates() is None

    def test_invalid_json(self, session):
        """Test a response that is not JSON."""
        response = self._response(None)
        response.json.side_effect = ValueError('No JSON')
        session.get.return_value = response

        assert ExchangeRateService(session=session).fetch_rates() is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
