# Overview: Pytest coverage for the flask CLI command groups.

from filmstock.services import price_service, stock_service


class TestCli:
    def test_system_init_creates_pools(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "4 stock pools ready" in result.output

    def test_stock_adjust_and_show(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["stock", "adjust", "rawMaterial", "virgin", "25"])
        assert result.exit_code == 0, result.output
        assert stock_service.get_pool("rawMaterial")["virgin"] == 25

        result = runner.invoke(args=["stock", "show"])
        assert "Raw Material" in result.output

    def test_stock_adjust_rejects_negative(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["stock", "adjust", "rawMaterial", "virgin", "-5"])
        assert result.exit_code != 0

    def test_prices_set(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["prices", "set", "colored", "1250"])
        assert result.exit_code == 0, result.output
        assert price_service.get_price("colored") == 1250

    def test_cash_ledger_pending_when_empty(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["cash-ledger", "pending"])
        assert result.exit_code == 0
        assert "No PENDING notifications" in result.output

    def test_cash_ledger_dispatch(self, app, finished_stock, cash_ledger):
        from filmstock.services import sales_service

        cash_ledger.fail(503)
        sales_service.record_sale(quantity=1, film_type="virgin")
        cash_ledger.reset()

        result = app.test_cli_runner().invoke(args=["cash-ledger", "dispatch", "--limit", "5"])
        assert result.exit_code == 0, result.output
        assert "sent=1" in result.output
