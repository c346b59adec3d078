"""
API tests for saved cohorts.
Tests cohort CRUD, count caching and status transitions, listings, downloads and SQL.
"""

from fastapi.testclient import TestClient


class TestCohortCRUD:
    """Cohort configuration CRUD operations"""

    def test_create_cohort_without_connection(self, client: TestClient, sample_audience, usa_directors_filters):
        """Test a cohort saved without a connection waits in processing state"""
        response = client.post(
            "/api/cohorts",
            json={
                "name": "US directors",
                "description": "Directors at US accounts",
                "audienceId": sample_audience.id,
                "tenantId": "tenant-1",
                "filters": usa_directors_filters,
            },
        )
        assert response.status_code == 201

        cohort = response.json()
        assert cohort["status"] == "processing"
        assert cohort["companyCount"] == 0
        assert cohort["lastProcessedAt"] is None
        assert cohort["createdBy"] == "api_user"
        assert cohort["filters"]["companyFilters"][0]["value"] == "USA"

    def test_create_cohort_with_connection(
        self, client: TestClient, sample_audience, usa_directors_filters, warehouse_headers
    ):
        """Test a cohort saved with a connection has its counts computed"""
        response = client.post(
            "/api/cohorts",
            json={"name": "US directors", "audienceId": sample_audience.id, "filters": usa_directors_filters},
            headers=warehouse_headers,
        )
        assert response.status_code == 201

        cohort = response.json()
        assert cohort["status"] == "active"
        assert cohort["companyCount"] == 2
        assert cohort["peopleCount"] == 2
        assert cohort["lastProcessedAt"] is not None

    def test_create_cohort_with_invalid_filters(self, client: TestClient, sample_audience):
        """Test filters that cannot compile are rejected before saving"""
        response = client.post(
            "/api/cohorts",
            json={
                "name": "Bad cohort",
                "audienceId": sample_audience.id,
                "filters": {"companyFilters": [{"field": "revenue", "operator": "equals", "value": 1}]},
            },
        )
        assert response.status_code == 400
        assert client.get("/api/cohorts").json() == []

    def test_create_cohort_unknown_audience(self, client: TestClient):
        """Test creating a cohort for an audience that doesn't exist"""
        response = client.post("/api/cohorts", json={"name": "Orphan", "audienceId": "missing"})
        assert response.status_code == 404

    def test_create_cohort_blank_name(self, client: TestClient, sample_audience):
        """Test blank cohort names are rejected"""
        response = client.post("/api/cohorts", json={"name": "   ", "audienceId": sample_audience.id})
        assert response.status_code == 422

    def test_list_cohorts(self, client: TestClient, sample_cohort):
        """Test listing cohorts with tenant and search filters"""
        response = client.get("/api/cohorts", params={"tenant_id": "tenant-1"})
        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [sample_cohort.id]

        assert client.get("/api/cohorts", params={"tenant_id": "other"}).json() == []
        assert len(client.get("/api/cohorts", params={"search": "directors"}).json()) == 1
        assert client.get("/api/cohorts", params={"search": "nothing-like-this"}).json() == []

    def test_get_cohort(self, client: TestClient, sample_cohort):
        """Test getting a specific cohort by ID"""
        response = client.get(f"/api/cohorts/{sample_cohort.id}")
        assert response.status_code == 200

        cohort = response.json()
        assert cohort["name"] == "US directors"
        assert cohort["audienceId"] == sample_cohort.audience_id
        assert cohort["status"] == "processing"

    def test_get_nonexistent_cohort(self, client: TestClient):
        """Test getting a cohort that doesn't exist"""
        response = client.get("/api/cohorts/missing")
        assert response.status_code == 404

    def test_rename_cohort(self, client: TestClient, sample_cohort):
        """Test renaming keeps filters untouched"""
        response = client.patch(f"/api/cohorts/{sample_cohort.id}", json={"name": "Renamed"})
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["filters"]["companyFilters"][0]["value"] == "USA"

    def test_update_filters_resets_counts(self, client: TestClient, sample_cohort, warehouse_headers):
        """Test changed filters send a processed cohort back to processing"""
        client.get(f"/api/cohorts/{sample_cohort.id}/counts", headers=warehouse_headers)

        response = client.patch(
            f"/api/cohorts/{sample_cohort.id}",
            json={"filters": {"companyFilters": [{"field": "country", "operator": "equals", "value": "Canada"}]}},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "processing"
        assert response.json()["lastProcessedAt"] is None

        counts = client.get(f"/api/cohorts/{sample_cohort.id}/counts", headers=warehouse_headers).json()
        assert counts == {"companyCount": 1, "peopleCount": 1}

    def test_delete_cohort(self, client: TestClient, sample_cohort):
        """Test deleting a cohort"""
        response = client.delete(f"/api/cohorts/{sample_cohort.id}")
        assert response.status_code == 200
        assert response.json()["message"] == f"Cohort {sample_cohort.id} deleted successfully"

        assert client.get(f"/api/cohorts/{sample_cohort.id}").status_code == 404

    def test_delete_nonexistent_cohort(self, client: TestClient):
        """Test deleting a cohort that doesn't exist"""
        assert client.delete("/api/cohorts/missing").status_code == 404


class TestCohortCounts:
    """Count caching and status transitions"""

    def test_counts_activate_cohort(self, client: TestClient, sample_cohort, warehouse_headers):
        """Test the first count moves the cohort to active"""
        response = client.get(f"/api/cohorts/{sample_cohort.id}/counts", headers=warehouse_headers)
        assert response.status_code == 200
        assert response.json() == {"companyCount": 2, "peopleCount": 2}

        cohort = client.get(f"/api/cohorts/{sample_cohort.id}").json()
        assert cohort["status"] == "active"
        assert cohort["companyCount"] == 2
        assert cohort["errorMessage"] is None

    def test_fresh_counts_are_cached(self, client: TestClient, sample_cohort, warehouse_headers):
        """Test repeated count requests reuse the stored counts"""
        client.get(f"/api/cohorts/{sample_cohort.id}/counts", headers=warehouse_headers)
        client.get(f"/api/cohorts/{sample_cohort.id}/counts", headers=warehouse_headers)

        logs = client.get("/api/query-logs", params={"cohort_id": sample_cohort.id, "mode": "count"}).json()
        assert len(logs) == 1

    def test_force_refresh(self, client: TestClient, sample_cohort, warehouse_headers):
        """Test force_refresh bypasses the cache"""
        client.get(f"/api/cohorts/{sample_cohort.id}/counts", headers=warehouse_headers)
        client.get(
            f"/api/cohorts/{sample_cohort.id}/counts", params={"force_refresh": True}, headers=warehouse_headers
        )

        logs = client.get("/api/query-logs", params={"cohort_id": sample_cohort.id, "mode": "count"}).json()
        assert len(logs) == 2

    def test_warehouse_failure_marks_cohort_as_error(
        self, client: TestClient, config_db_session, sample_objects, sample_cohort, warehouse_headers
    ):
        """Test a failing count surfaces as 502 and is recorded on the cohort"""
        companies = sample_objects[0]
        companies.physical_table = "missing_companies"
        config_db_session.commit()

        response = client.get(f"/api/cohorts/{sample_cohort.id}/counts", headers=warehouse_headers)
        assert response.status_code == 502
        assert response.json()["type"] == "ExecutionError"
        assert response.json()["mode"] == "count"

        cohort = client.get(f"/api/cohorts/{sample_cohort.id}").json()
        assert cohort["status"] == "error"
        assert cohort["errorMessage"].startswith("[count]")

        logs = client.get("/api/query-logs", params={"success": False}).json()
        assert len(logs) == 1
        assert logs[0]["cohort_id"] == sample_cohort.id


class TestCohortData:
    """Listing, download and SQL for saved cohorts"""

    def test_cohort_data(self, client: TestClient, sample_cohort, warehouse_headers):
        """Test listing rows for a saved cohort"""
        response = client.get(f"/api/cohorts/{sample_cohort.id}/data", headers=warehouse_headers)
        assert response.status_code == 200
        assert response.json()["rowCount"] == 2

    def test_cohort_data_limit(self, client: TestClient, sample_cohort, warehouse_headers):
        """Test listing rows honour the limit"""
        response = client.get(f"/api/cohorts/{sample_cohort.id}/data", params={"limit": 1}, headers=warehouse_headers)
        assert response.json()["rowCount"] == 1

    def test_download(self, client: TestClient, sample_cohort, warehouse_headers):
        """Test downloads are served as a JSON attachment"""
        response = client.get(f"/api/cohorts/{sample_cohort.id}/download", headers=warehouse_headers)
        assert response.status_code == 200
        assert response.headers["content-disposition"] == (
            f'attachment; filename="cohort-{sample_cohort.id}-data.json"'
        )
        assert response.json()["rowCount"] == 2

    def test_cohort_sql(self, client: TestClient, sample_cohort):
        """Test SQL for a saved cohort"""
        response = client.get(f"/api/cohorts/{sample_cohort.id}/sql")
        assert response.status_code == 200
        assert "WHERE (a.country = 'USA') AND (c.job_title LIKE '%Director%')" in response.json()["sql"]

    def test_cohort_sql_pretty(self, client: TestClient, sample_cohort):
        """Test pretty-printed SQL keeps the filter values"""
        response = client.get(f"/api/cohorts/{sample_cohort.id}/sql", params={"pretty": True, "limit": 5})
        assert response.status_code == 200

        sql = response.json()["sql"]
        assert sql.startswith("SELECT DISTINCT")
        assert "'%Director%'" in sql
        assert "LIMIT 5" in sql
