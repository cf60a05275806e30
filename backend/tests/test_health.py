"""
Health endpoint tests.
"""


class TestHealth:

    def test_basic(self, client, db_session):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json["data"]
        assert data["status"] == "OK"
        assert data["environment"] == "test"

    def test_detailed_reports_database(self, client, db_session):
        response = client.get("/api/v1/health/detailed")
        assert response.status_code == 200
        assert response.json["data"]["checks"]["database"]["status"] == "healthy"
        assert "JWT_SECRET" not in response.get_data(as_text=True)

    def test_liveness_and_readiness(self, client, db_session):
        assert client.get("/api/v1/health/liveness").json["data"]["status"] == "alive"
        assert client.get("/api/v1/health/readiness").json["data"]["status"] == "ready"

    def test_cors_headers_for_allowed_origin(self, client, db_session):
        response = client.get("/api/v1/health", headers={"Origin": "http://localhost:3000"})
        assert response.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"

        response = client.get("/api/v1/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in response.headers
