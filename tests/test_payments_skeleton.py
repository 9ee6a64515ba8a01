def test_routes_registered():
    from main import app

    routes = {r.path for r in app.routes}
    for path in (
        "/api/v1/payments/webhooks/stripe",
        "/api/v1/cart/validate",
        "/api/v1/orders/summary",
        "/api/v1/orders",
        "/api/v1/orders/{order_id}/refunds",
        "/api/v1/orders/{order_id}/balance-request",
        "/api/v1/orders/{order_id}/shipping-labels",
        "/api/v1/shipping-labels/{label_id}/cancel",
        "/api/v1/sellers/{seller_id}/wallet",
    ):
        assert path in routes
