"""
API Error Handling Tests

Upstream failures, unexpected errors, health probes and request IDs.
"""

DEPLOY_FREQUENCY = "/api/productivity/charts/deploy-frequency"


class TestServerErrors:
    def test_warehouse_failure_is_500(self, client, gateway, auth_headers, window_params):
        gateway.failures.add("deploy_frequency_chart")

        response = client.get(DEPLOY_FREQUENCY, params=window_params, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {"status": "error", "error": "Error executing query"}

    def test_dashboard_fails_if_any_part_fails(self, client, gateway, auth_headers, window_params):
        gateway.failures.add("lead_time_breakdown")

        response = client.get(
            "/api/productivity/dashboard/company",
            params={**window_params, "complete": "true"},
            headers=auth_headers,
        )

        assert response.status_code == 500

    def test_unexpected_error_is_generic(self, client, gateway, auth_headers, window_params):
        # a row without pr_count blows up inside the service
        gateway.rows["deploy_frequency_chart"] = [{"week_start": "2024-01-01"}]

        response = client.get(DEPLOY_FREQUENCY, params=window_params, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {"status": "error", "error": "Internal server error"}


class TestHealthEndpoints:
    def test_basic(self, client):
        body = client.get("/api/health").json()

        assert body["status"] == "UP"
        assert "timestamp" in body

    def test_ready(self, client, app):
        app.state.context.health.memory_percent = lambda: 10.0

        response = client.get("/api/health/ready")

        assert response.status_code == 200
        assert set(response.json()["dependencies"]) == {"bigquery", "cache", "memory"}

    def test_ready_returns_503_when_warehouse_down(self, client, gateway):
        gateway.ping_error = RuntimeError("unreachable")

        response = client.get("/api/health/ready")

        assert response.status_code == 503
        assert response.json()["dependencies"]["bigquery"]["error"] == "unreachable"

    def test_bigquery(self, client, gateway):
        assert client.get("/api/health/bigquery").status_code == 200
        gateway.ping_error = RuntimeError("unreachable")
        assert client.get("/api/health/bigquery").status_code == 503

    def test_per_api(self, client):
        body = client.get("/api/health/productivity").json()

        assert body["api"] == "productivity"
        assert body["endpoints"]["/api/productivity/highlights/pr-size"] == "UP"
        assert "responseTime" in body


class TestRequestId:
    def test_generated(self, client):
        assert client.get("/api/health").headers["X-Request-ID"]

    def test_propagated(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"
