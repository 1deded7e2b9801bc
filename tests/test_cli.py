"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from stockpilot.cli import Context, cli, parse_items
from decimal import Decimal

from stockpilot.models.analytics import InventoryKPI, TopProduct
from stockpilot.models.returns import PENDING, ReturnPolicy, ReturnRecord
from stockpilot.models.session import StoreSummary
from stockpilot.utils.exceptions import ConflictError, NetworkError, NotFoundError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, mock_client, app_store):
    def _invoke(*args):
        return runner.invoke(cli, list(args), obj=Context(client=mock_client, app_store=app_store))
    return _invoke


class TestParseItems:
    def test_pairs(self):
        assert parse_items(("v-a=2", " v-b = 1 ")) == [("v-a", 2), ("v-b", 1)]

    def test_non_numeric_quantity_kept(self):
        assert parse_items(("v-a=lots",)) == [("v-a", "lots")]

    def test_missing_separator(self, invoke):
        result = invoke("sell", "--item", "v-a", "--customer", "Grace", "--payment", "cash")

        assert result.exit_code == 2
        assert "Expected ID=QUANTITY" in result.output


class TestSell:
    def test_success(self, invoke, mock_client):
        result = invoke("sell", "-i", "v-a=2", "-i", "v-b=1", "--customer", "Grace", "--payment", "cash")

        assert result.exit_code == 0, result.output
        assert "Total: $25.00" in result.output
        assert "Sale created successfully" in result.output
        mock_client.create_sale.assert_called_once()

    def test_validation_errors_listed(self, invoke, mock_client):
        result = invoke("sell", "-i", "v-a=2", "--customer", "Grace")

        assert result.exit_code == 1
        assert "payment_method: Payment method is required" in result.output
        mock_client.create_sale.assert_not_called()

    def test_retries_reuse_idempotency_key(self, invoke, mock_client):
        mock_client.create_sale.side_effect = [NetworkError("timeout"), {"message": "Sale created successfully"}]

        result = invoke("sell", "-i", "v-a=1", "--customer", "Grace", "--payment", "card", "--retries", "2")

        assert result.exit_code == 0, result.output
        tokens = [c.args[0] for c in mock_client.create_sale.call_args_list]
        assert len(tokens) == 2
        assert tokens[0] == tokens[1]

    def test_conflict_not_retried(self, invoke, mock_client):
        mock_client.create_sale.side_effect = ConflictError("Insufficient stock for TEE-A", status_code=409)

        result = invoke("sell", "-i", "v-a=1", "--customer", "Grace", "--payment", "card", "--retries", "2")

        assert result.exit_code == 1
        assert "Retrying" not in result.output
        mock_client.create_sale.assert_called_once()


class TestRestock:
    def test_success(self, invoke, mock_client):
        result = invoke("restock", "-i", "v-b=10")

        assert result.exit_code == 0, result.output
        assert "3 -> 13" in result.output
        mock_client.restock.assert_called_once()


class TestCatalog:
    def test_products_table(self, invoke):
        result = invoke("products")

        assert result.exit_code == 0, result.output
        assert "Tee" in result.output
        assert "Socks" in result.output
        assert "Page 1 of 1 (2 products)" in result.output

    def test_products_search(self, invoke):
        result = invoke("products", "--search", "sock")

        assert "Socks" in result.output
        assert "Tee " not in result.output

    def test_product_not_found(self, invoke, mock_client):
        mock_client.get_product.side_effect = NotFoundError("Product not found: p-9", status_code=404)

        result = invoke("product", "p-9")

        assert result.exit_code == 1
        assert "Not found: Product not found: p-9" in result.output


class TestSession:
    def test_use_store_from_loaded_list(self, invoke, app_store, mock_client):
        result = invoke("use-store", "store-2")

        assert result.exit_code == 0, result.output
        assert app_store.active_store.store_id == "store-2"
        mock_client.get_store.assert_not_called()

    def test_no_active_store(self, invoke, app_store):
        app_store.set_active_store(None)

        result = invoke("products")

        assert result.exit_code == 1
        assert "No active store selected" in result.output


class TestReturn:
    def test_lists_sale_lines_without_items(self, invoke, mock_client):
        result = invoke("return", "S-100")

        assert result.exit_code == 0, result.output
        assert "si-1" in result.output
        mock_client.create_return.assert_not_called()

    def test_submits_return(self, invoke, mock_client):
        result = invoke("return", "S-100", "-i", "si-1=1", "--reason", "Too small", "--resolution", "refund")

        assert result.exit_code == 0, result.output
        body = mock_client.create_return.call_args.args[1]
        assert body["items"][0]["resolution"] == "REFUND"

    def test_exchange_with_refund_rejected(self, invoke, mock_client):
        result = invoke("return", "S-100", "-i", "si-1=1", "--reason", "Too small", "--resolution", "refund",
                        "--exchange", "v-c")

        assert result.exit_code == 1
        assert "resolved as EXCHANGE" in result.output
        mock_client.create_return.assert_not_called()


class TestCreateProduct:
    @pytest.fixture
    def draft_file(self, tmp_path):
        (tmp_path / "tee.png").write_bytes(b"png")
        (tmp_path / "tee-l.png").write_bytes(b"png")
        path = tmp_path / "tee.yml"
        path.write_text(
            "name: Tee\n"
            "brand: Acme\n"
            "description: Cotton tee\n"
            "category: Shirts\n"
            "thumbnail: tee.png\n"
            "variants:\n"
            "  - {name: Large, sku: TEE-L, price: 19.99, quantity: 10, low_quantity_threshold: 3, image: tee-l.png}\n"
        )
        return path

    def test_retries_reuse_idempotency_key(self, invoke, mock_client, draft_file):
        mock_client.create_product.side_effect = [NetworkError("Network error: timeout"),
                                                  {"product": {"id": "p-3"}}]

        result = invoke("create-product", str(draft_file), "--retries", "1")

        assert result.exit_code == 0, result.output
        keys = [c.args[1]["idempotencyKey"] for c in mock_client.create_product.call_args_list]
        assert len(keys) == 2
        assert keys[0] == keys[1]


class TestStores:
    def test_list_marks_active_store(self, invoke, mock_client):
        mock_client.list_stores.return_value = [
            StoreSummary(store_id="store-1", store_name="Main Street", business_id="biz-1"),
            StoreSummary(store_id="store-2", store_name="Harbour", business_id="biz-1"),
        ]

        result = invoke("stores")

        assert result.exit_code == 0, result.output
        mock_client.list_stores.assert_called_once_with("biz-1")
        assert "* store-1" in result.output
        assert "  store-2" in result.output

    def test_create_store_name_taken(self, invoke, mock_client):
        mock_client.create_store.side_effect = ConflictError("Store name already exists", status_code=409)

        result = invoke("create-store", "Harbour")

        assert result.exit_code == 1
        assert "Conflict: Store name already exists" in result.output

    def test_create_store_invalid_form(self, invoke, mock_client):
        result = invoke("create-store", "A")

        assert result.exit_code == 1
        assert "name: Store name is required" in result.output
        mock_client.create_store.assert_not_called()

    def test_delete_store_needs_confirmation(self, invoke, mock_client, app_store):
        result = invoke("delete-store", "store-2", "--yes")

        assert result.exit_code == 0, result.output
        mock_client.delete_store.assert_called_once_with("store-2")
        assert [s.store_id for s in app_store.state.stores] == ["store-1"]

    def test_store_user_needs_an_action(self, invoke, mock_client):
        result = invoke("store-user", "store-1", "user-7")

        assert result.exit_code == 2
        mock_client.update_store_users.assert_not_called()


class TestAccounts:
    def test_signup_weak_password(self, invoke, mock_client):
        result = invoke("signup", "--first-name", "Bo", "--last-name", "Jones", "--email", "bo@example.com",
                        "--password", "secret", "--agree-to-terms")

        assert result.exit_code == 1
        assert "password: Password must be at least 8 characters" in result.output
        mock_client.sign_up.assert_not_called()

    def test_register_business_conflict(self, invoke, mock_client, tmp_path):
        logo = tmp_path / "logo.png"
        logo.write_bytes(b"\x89PNG")
        mock_client.register_business.side_effect = ConflictError("Business already exists", status_code=409)

        result = invoke("register-business", "--business-name", "Acme Retail", "--store-name", "Airport",
                        "--location", "Terminal 2", "--owner-name", "Ada Clerk", "--email", "owner@example.com",
                        "--phone", "5550100", "--logo", str(logo))

        assert result.exit_code == 1
        assert "Conflict: Business already exists" in result.output


class TestReturnDesk:
    def test_returns_filtered(self, invoke, mock_client):
        mock_client.list_returns.return_value = [
            ReturnRecord(id="r-1", sale_item_id="si-1", item_name="Tee Large", reason="Too small",
                         resolution="EXCHANGE", status=PENDING, quantity=1),
            ReturnRecord(id="r-2", sale_item_id="si-2", item_name="Socks", reason="Damaged",
                         resolution="REFUND", status="approved", quantity=1),
        ]

        result = invoke("returns", "--status", "pending")

        assert result.exit_code == 0, result.output
        assert "r-1" in result.output
        assert "r-2" not in result.output

    def test_review_reject(self, invoke, mock_client):
        result = invoke("review-returns", "r-1", "r-2", "--reject")

        assert result.exit_code == 0, result.output
        mock_client.review_returns.assert_called_once_with("store-1", ["r-1", "r-2"], False, "user-1")
        assert "rejected" in result.output

    def test_review_nothing_selected(self, invoke, mock_client):
        result = invoke("review-returns")

        assert result.exit_code == 1
        assert "No returns selected" in result.output

    def test_credits_unavailable(self, invoke, mock_client):
        mock_client.list_store_credits.side_effect = NetworkError("Network error: timeout")

        result = invoke("credits")

        assert result.exit_code == 0, result.output
        assert "No store credits" in result.output

    def test_return_policy_update(self, invoke, mock_client):
        mock_client.update_return_policy.side_effect = lambda store_id, policy: policy

        result = invoke("return-policy", "--days", "14", "--no-refund")

        assert result.exit_code == 0, result.output
        saved = mock_client.update_return_policy.call_args.args[1]
        assert saved == ReturnPolicy(days_allowed=14, allow_refund=False)
        assert "Days allowed:" in result.output


class TestOverview:
    def test_figures_and_top_sellers(self, invoke, mock_client):
        mock_client.inventory_kpis.return_value = InventoryKPI(total_items=40, low_stock_count=3,
                                                               out_of_stock_count=1)
        mock_client.sale_kpis.return_value = {"total_sales": 12}
        mock_client.top_selling_products.return_value = [TopProduct(name="Tee", units_sold=9,
                                                                    revenue=Decimal("90.00"))]

        result = invoke("overview")

        assert result.exit_code == 0, result.output
        assert "Low stock:" in result.output
        assert "Total sales:" in result.output
        assert "$90.00" in result.output
