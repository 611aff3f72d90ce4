# 应用级行为测试：健康检查、统一错误格式、中间件


class TestHealth:
    """健康检查端点"""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "healthy"

    def test_health(self, client):
        data = client.get("/health").json()["data"]
        assert data["environment"] == "test"

    def test_api_info(self, client):
        endpoints = client.get("/api/info").json()["data"]["endpoints"]
        assert endpoints["webhooks"] == "/api/webhooks/stripe"


class TestErrorEnvelope:
    """错误响应统一格式"""

    def test_unknown_route(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert "timestamp" in body


class TestMiddleware:
    """中间件行为"""

    def test_security_and_request_id_headers(self, client):
        response = client.get("/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert len(response.headers["X-Request-ID"]) == 8

    def test_request_too_large(self, client):
        response = client.post(
            "/api/checkout",
            content=b"x" * (1024 * 1024 + 1),
            headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 413
        assert response.json()["error"] == "Request entity too large"
