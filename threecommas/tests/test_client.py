"""
Tests for ThreeCommasClient endpoint methods.

The HTTP session is stubbed; assertions are on what goes over the wire.
"""

import json
from unittest.mock import Mock

import pytest

from threecommas import ThreeCommasClient
from threecommas.config import ThreeCommasSettings
from threecommas.exceptions import APIError, ValidationError
from threecommas.models import (
    BotsParams,
    Credentials,
    DealsParams,
    SmartTradeOrder,
    TransferParams,
)
from threecommas.tests.conftest import expected_signature, make_response


def last_call(client):
    return client.transport.session.request.call_args.kwargs


class TestClientInit:

    def test_explicit_credentials(self, client):
        assert client.credentials == Credentials(key="K", secret="S")

    def test_credentials_from_settings(self):
        settings = ThreeCommasSettings(api_key="SK", api_secret="SS", _env_file=None)
        client = ThreeCommasClient(settings=settings)
        assert client.credentials == Credentials(key="SK", secret="SS")

    def test_anonymous_client_sends_empty_signature(self, settings):
        client = ThreeCommasClient(settings=settings)
        client.transport.session.request = Mock(return_value=make_response(200, {}))

        client.ping()

        assert last_call(client)["headers"]["Signature"] == ""
        assert client.transport.session.headers["APIKEY"] == ""

    def test_secret_not_in_repr(self, client):
        assert "secret" not in repr(client.credentials)

    def test_context_manager_closes(self, settings):
        with ThreeCommasClient(key="K", secrets="S", settings=settings) as c:
            c.transport.close = Mock()
            c.stream.unsubscribe = Mock()

        c.transport.close.assert_called_once()
        c.stream.unsubscribe.assert_called_once()


class TestGeneral:

    def test_ping(self, client):
        client.transport.session.request.return_value = make_response(200, {})

        assert client.ping() == {}

        kwargs = last_call(client)
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "https://api.3commas.io/public/api/ver1/ping"
        assert kwargs["data"] is None
        assert kwargs["headers"]["Signature"] == expected_signature("S", "/public/api/ver1/ping")
        assert client.transport.session.headers["APIKEY"] == "K"

    def test_time(self, client):
        client.time()
        assert last_call(client)["url"].endswith("/public/api/ver1/time")

    def test_custom_request_version_two(self, client):
        client.custom_request("GET", 2, "/smart_trades", {"page": 2})

        kwargs = last_call(client)
        assert kwargs["url"] == "https://api.3commas.io/public/api/v2/smart_trades?page=2"
        assert kwargs["headers"]["Signature"] == expected_signature(
            "S", "/public/api/v2/smart_trades?page=2"
        )

    def test_custom_request_post(self, client):
        client.custom_request("POST", 1, "/bots/5/enable")

        kwargs = last_call(client)
        assert kwargs["url"] == "https://api.3commas.io/public/api/ver1/bots/5/enable"
        assert json.loads(kwargs["data"]) == {"api_key": "K", "secret": "S"}


class TestDeals:

    def test_get_deal_returns_body_unchanged(self, client):
        body = {"id": 42, "bot_id": 7, "pair": "USDT_BTC", "bought_volume": "100.5"}
        client.transport.session.request.return_value = make_response(200, body)

        assert client.get_deal(42) == body
        assert last_call(client)["url"] == "https://api.3commas.io/public/api/ver1/deals/42/show"

    def test_get_deals_defaults(self, client):
        client.get_deals()

        kwargs = last_call(client)
        query = "limit=50&order=created_at&order_direction=desc"
        assert kwargs["url"] == f"https://api.3commas.io/public/api/ver1/deals?{query}"
        assert kwargs["headers"]["Signature"] == expected_signature(
            "S", f"/public/api/ver1/deals?{query}"
        )

    def test_get_deals_with_model(self, client):
        client.get_deals(DealsParams(scope="active", bot_id=3))
        assert last_call(client)["url"].endswith("/deals?bot_id=3&scope=active")

    def test_get_deals_passes_unknown_fields(self, client):
        client.get_deals({"scope": "finished", "limit": 5, "new_filter": "x"})
        assert last_call(client)["url"].endswith("/deals?limit=5&scope=finished&new_filter=x")

    def test_get_deals_invalid_params(self, client):
        with pytest.raises(ValidationError):
            client.get_deals({"scope": "sideways"})
        client.transport.session.request.assert_not_called()

    def test_get_deal_safety_orders(self, client):
        client.get_deal_safety_orders(11)
        assert last_call(client)["url"].endswith("/public/api/ver1/deals/11/market_orders")

    def test_update_deal_id_goes_in_path(self, client):
        client.update_deal({"id": 9, "take_profit": "2.5", "trailing_enabled": True})

        kwargs = last_call(client)
        assert kwargs["method"] == "PATCH"
        assert kwargs["url"] == "https://api.3commas.io/public/api/ver1/deals/9/update_deal"
        assert json.loads(kwargs["data"]) == {
            "take_profit": "2.5",
            "trailing_enabled": True,
            "api_key": "K",
            "secret": "S",
        }

    def test_update_deal_numeric_values_stay_numbers(self, client):
        client.update_deal({"id": 3, "take_profit": 2.5, "stop_loss_percentage": 4})

        assert json.loads(last_call(client)["data"]) == {
            "take_profit": 2.5,
            "stop_loss_percentage": 4,
            "api_key": "K",
            "secret": "S",
        }

    def test_update_deal_requires_id(self, client):
        with pytest.raises(ValidationError):
            client.update_deal({"take_profit": "2.5"})
        with pytest.raises(ValidationError):
            client.update_deal(None)


class TestBots:

    def test_get_bots_defaults(self, client):
        client.get_bots()
        assert last_call(client)["url"].endswith(
            "/public/api/ver1/bots?limit=50&sort_by=created_at&sort_direction=desc"
        )

    def test_from_alias(self, client):
        client.get_bots(BotsParams(from_="2024-01-01", limit=10))
        assert last_call(client)["url"].endswith("/bots?limit=10&from=2024-01-01")

    def test_get_bot(self, client):
        client.get_bot(3)
        assert last_call(client)["url"].endswith("/public/api/ver1/bots/3/show")

    def test_get_bots_stats(self, client):
        client.get_bots_stats({"account_id": 1})
        assert last_call(client)["url"].endswith("/bots/stats?account_id=1")


class TestAccounts:

    def test_transfer(self, client):
        client.transfer({
            "currency": "USDT",
            "amount": "10.5",
            "from_account_id": 1,
            "to_account_id": 2,
        })

        kwargs = last_call(client)
        body = kwargs["data"].decode("utf-8")
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "https://api.3commas.io/public/api/ver1/accounts/transfer"
        assert json.loads(body) == {
            "currency": "USDT",
            "amount": "10.5",
            "from_account_id": 1,
            "to_account_id": 2,
            "api_key": "K",
            "secret": "S",
        }
        assert kwargs["headers"]["Signature"] == expected_signature(
            "S", f"/public/api/ver1/accounts/transfer?{body}"
        )

    def test_transfer_rejects_negative_amount(self, client):
        with pytest.raises(ValidationError):
            client.transfer({
                "currency": "USDT",
                "amount": "-1",
                "from_account_id": 1,
                "to_account_id": 2,
            })
        client.transport.session.request.assert_not_called()

    def test_transfer_numeric_amount_sent_as_number(self, client):
        client.transfer({
            "currency": "USDT",
            "amount": 10.5,
            "from_account_id": 1,
            "to_account_id": 2,
        })

        body = json.loads(last_call(client)["data"])
        assert body["amount"] == 10.5
        assert isinstance(body["amount"], float)

    def test_transfer_integer_amount_stays_integer(self, client):
        client.transfer({"currency": "USDT", "amount": 10, "from_account_id": 1, "to_account_id": 2})
        assert '"amount":10,' in last_call(client)["data"].decode("utf-8")

    def test_transfer_rejects_non_numeric_amount(self, client):
        with pytest.raises(ValidationError):
            client.transfer({"currency": "USDT", "amount": "ten", "from_account_id": 1, "to_account_id": 2})

    def test_transfer_accepts_model(self, client):
        client.transfer(TransferParams(currency="BTC", amount="0.5", from_account_id=1, to_account_id=2))
        assert json.loads(last_call(client)["data"])["amount"] == "0.5"

    def test_get_transfer_history(self, client):
        client.get_transfer_history({"account_id": 1, "currency": "BTC"})
        assert last_call(client)["url"].endswith(
            "/accounts/transfer_history?account_id=1&currency=BTC"
        )

    def test_account_info_defaults_to_summary(self, client):
        client.get_account_info()
        assert last_call(client)["url"].endswith("/public/api/ver1/accounts/summary")

        client.get_account_info(12)
        assert last_call(client)["url"].endswith("/public/api/ver1/accounts/12")

    @pytest.mark.parametrize("method_name,suffix", [
        ("sell_all_to_usd", "/accounts/5/sell_all_to_usd"),
        ("sell_all_to_btc", "/accounts/5/sell_all_to_btc"),
        ("load_balances", "/accounts/5/load_balances"),
        ("remove_exchange_account", "/accounts/5/remove"),
        ("get_pie_chart_data", "/accounts/5/pie_chart_data"),
        ("get_account_table_data", "/accounts/5/account_table_data"),
    ])
    def test_account_actions_are_posts(self, client, method_name, suffix):
        getattr(client, method_name)(5)

        kwargs = last_call(client)
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == f"https://api.3commas.io/public/api/ver1{suffix}"

    def test_get_active_trade_entities(self, client):
        client.get_active_trade_entities(5)
        assert last_call(client)["url"].endswith("/accounts/5/active_trading_entities")

    def test_rename_exchange_account(self, client):
        client.rename_exchange_account(5, "main")
        assert json.loads(last_call(client)["data"])["name"] == "main"

    def test_get_leverage_data(self, client):
        client.get_leverage_data(5, "USDT_BTC")
        assert last_call(client)["url"].endswith("/accounts/5/leverage_data?pair=USDT_BTC")

    def test_get_currency_rate(self, client):
        client.get_currency_rate({"market_code": "binance", "pair": "USDT_BTC"})
        assert last_call(client)["url"].endswith(
            "/accounts/currency_rates?market_code=binance&pair=USDT_BTC"
        )

    def test_get_market_pairs_without_params(self, client):
        client.get_market_pairs()
        assert last_call(client)["url"] == "https://api.3commas.io/public/api/ver1/accounts/market_pairs"


class TestUsers:

    def test_change_user_mode(self, client):
        client.change_user_mode("paper")

        kwargs = last_call(client)
        assert kwargs["url"].endswith("/public/api/ver1/users/change_mode")
        assert json.loads(kwargs["data"])["mode"] == "paper"

    def test_change_user_mode_rejects_unknown(self, client):
        with pytest.raises(ValidationError):
            client.change_user_mode("demo")
        client.transport.session.request.assert_not_called()


class TestSmartTrades:

    def test_smart_trade_create(self, client):
        client.smart_trade({
            "account_id": 1,
            "pair": "USDT_BTC",
            "position": {"type": "buy", "units": {"value": "0.01"}, "order_type": "market"},
        })

        kwargs = last_call(client)
        body = json.loads(kwargs["data"])
        assert kwargs["url"] == "https://api.3commas.io/public/api/v2/smart_trades"
        assert body["position"] == {"type": "buy", "units": {"value": "0.01"}, "order_type": "market"}
        assert body["api_key"] == "K"

    def test_smart_trade_history_is_v2(self, client):
        client.get_smart_trade_history({"status": "active"})
        assert last_call(client)["url"] == (
            "https://api.3commas.io/public/api/v2/smart_trades?status=active"
        )

    def test_cancel_smart_trade(self, client):
        client.cancel_smart_trade(8)

        kwargs = last_call(client)
        assert kwargs["method"] == "DELETE"
        assert kwargs["url"].endswith("/public/api/v2/smart_trades/8")

    def test_average_smart_trade(self, client):
        client.average_smart_trade(8, {"units": {"value": "1"}})

        kwargs = last_call(client)
        assert kwargs["url"].endswith("/smart_trades/8/add_funds")
        assert json.loads(kwargs["data"]) == {"units": {"value": "1"}, "api_key": "K", "secret": "S"}

    def test_update_smart_trade_sends_only_given_fields(self, client):
        client.update_smart_trade(5, {
            "take_profit": {"steps": [{"price": {"value": 100}, "volume": 100}]},
        })

        kwargs = last_call(client)
        assert kwargs["method"] == "PATCH"
        assert kwargs["url"] == "https://api.3commas.io/public/api/v2/smart_trades/5"
        assert kwargs["data"].decode("utf-8") == (
            '{"take_profit":{"steps":[{"price":{"value":100},"volume":100}]},'
            '"api_key":"K","secret":"S"}'
        )

    def test_update_smart_trade_keeps_explicit_defaults(self, client):
        client.update_smart_trade(5, {"take_profit": {"enabled": False}, "note": "off"})

        assert json.loads(last_call(client)["data"]) == {
            "take_profit": {"enabled": False},
            "note": "off",
            "api_key": "K",
            "secret": "S",
        }

    def test_update_smart_trade_rejects_bad_volume(self, client):
        with pytest.raises(ValidationError):
            client.update_smart_trade(5, {
                "take_profit": {"steps": [{"price": {"value": 100}, "volume": 150}]},
            })
        client.transport.session.request.assert_not_called()

    def test_smart_trade_numbers_stay_numbers(self, client):
        client.smart_trade({
            "account_id": 1,
            "pair": "USDT_BTC",
            "position": {"type": "buy", "units": {"value": 0.01}},
        })

        body = json.loads(last_call(client)["data"])
        assert body["position"] == {"type": "buy", "units": {"value": 0.01}}

    def test_reduce_fund(self, client):
        client.reduce_fund(8, {"units": {"value": "1"}, "order_type": "limit",
                               "price": {"value": "30000"}})
        assert last_call(client)["url"].endswith("/smart_trades/8/reduce_funds")

    @pytest.mark.parametrize("method_name,suffix", [
        ("close_smart_trade", "/smart_trades/8/close_by_market"),
        ("force_start_smart_trade", "/smart_trades/8/force_start"),
        ("force_process_smart_trade", "/smart_trades/8/force_process"),
    ])
    def test_smart_trade_actions(self, client, method_name, suffix):
        getattr(client, method_name)(8)

        kwargs = last_call(client)
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == f"https://api.3commas.io/public/api/v2{suffix}"

    def test_sub_trades(self, client):
        client.get_sub_trade(8)
        assert last_call(client)["url"].endswith("/smart_trades/8/trades")

        client.close_sub_trade(8, 3)
        assert last_call(client)["url"].endswith("/smart_trades/8/trades/3/close_by_market")

        client.cancel_sub_trade(8, 3)
        kwargs = last_call(client)
        assert kwargs["method"] == "DELETE"
        assert kwargs["url"].endswith("/smart_trades/8/trades/3")

    def test_set_note(self, client):
        client.set_note_smart_trade(8, "hold")
        assert json.loads(last_call(client)["data"])["note"] == "hold"


class TestErrors:

    def test_remote_error_body_surfaces(self, client):
        error = {"error": "not_found", "error_description": "Deal not found"}
        client.transport.session.request.return_value = make_response(404, error)

        with pytest.raises(APIError) as exc_info:
            client.get_deal(1)

        assert exc_info.value.response == error

    def test_error_handler_wired_through(self, settings):
        handler = Mock()
        client = ThreeCommasClient(key="K", secrets="S", settings=settings, error_handler=handler)
        client.transport.session.request = Mock(return_value=make_response(400, {"error": "x"}))

        with pytest.raises(APIError):
            client.ping()

        handler.assert_called_once()


class TestValidateOrderType:

    ORDER = {
        "id": 1,
        "account": {"id": 2, "name": "main"},
        "pair": "USDT_BTC",
        "status": {"type": "waiting_targets", "title": "Waiting targets"},
        "position": {"type": "buy", "units": {"value": "0.01"}},
        "take_profit": {"enabled": False, "steps": []},
    }

    def test_valid(self, client):
        order = client.validate_order_type(self.ORDER)

        assert isinstance(order, SmartTradeOrder)
        assert order.id == 1
        assert order.account.id == 2

    def test_invalid(self, client):
        with pytest.raises(ValidationError) as exc_info:
            client.validate_order_type({"id": "not-a-number"})

        assert exc_info.value.details["errors"]
