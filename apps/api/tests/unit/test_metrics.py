def test_metrics_require_admin(client, auth_headers):
    assert client.get("/metrics").status_code == 401
    assert client.get("/metrics", headers=auth_headers("buyer-1")).status_code == 403


def test_metrics_report_request_counters_and_timings(client, auth_headers):
    client.get("/health")

    response = client.get("/metrics", headers=auth_headers("ops-1", role="ADMIN"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["counters"]["http_requests_total"] >= 1
    assert payload["timings"]["http_request_duration_seconds"]["count"] >= 1


def test_rejected_order_requests_are_counted_by_kind(client, auth_headers):
    missing = "00000000-0000-0000-0000-000000000000"
    client.get(f"/api/v1/orders/{missing}", headers=auth_headers("buyer-1"))

    counters = client.get("/metrics", headers=auth_headers("ops-1", role="ADMIN")).json()["counters"]

    assert counters["order_errors_total:NotFound"] == 1
