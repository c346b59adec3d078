"""
API tests for ad-hoc audience filters.
Runs counts, previews, listings and SQL generation against the SQLite warehouse.
"""

from typing import Any, Dict

from fastapi.testclient import TestClient


def filters_url(audience_id: str, action: str) -> str:
    return f"/api/audiences/{audience_id}/filters/{action}"


class TestFilterCounts:
    """Count endpoint"""

    def test_counts(self, client: TestClient, sample_audience, usa_directors_filters, warehouse_headers):
        """Test US companies and their directors are counted distinctly"""
        response = client.post(
            filters_url(sample_audience.id, "counts"), json=usa_directors_filters, headers=warehouse_headers
        )
        assert response.status_code == 200
        assert response.json() == {"companyCount": 2, "peopleCount": 2}

    def test_counts_without_filters(self, client: TestClient, sample_audience, warehouse_headers):
        """Test empty filters count every company and contact"""
        response = client.post(filters_url(sample_audience.id, "counts"), json={}, headers=warehouse_headers)
        assert response.status_code == 200
        assert response.json() == {"companyCount": 4, "peopleCount": 5}

    def test_or_group(self, client: TestClient, sample_audience, warehouse_headers):
        """Test OR-connected company filters widen the cohort"""
        filters = {
            "companyFilters": [
                {"field": "country", "operator": "equals", "value": "USA", "logicalOperator": "OR"},
                {"field": "country", "operator": "equals", "value": "Canada", "logicalOperator": "OR"},
            ]
        }
        response = client.post(filters_url(sample_audience.id, "counts"), json=filters, headers=warehouse_headers)
        assert response.status_code == 200
        assert response.json() == {"companyCount": 3, "peopleCount": 4}

    def test_in_operator(self, client: TestClient, sample_audience, warehouse_headers):
        """Test IN filters match any listed value"""
        filters = {"companyFilters": [{"field": "industry", "operator": "in", "value": ["Software", "Retail"]}]}
        response = client.post(filters_url(sample_audience.id, "counts"), json=filters, headers=warehouse_headers)
        assert response.status_code == 200
        assert response.json()["companyCount"] == 3

    def test_values_with_quotes(self, client: TestClient, sample_audience, warehouse_headers):
        """Test values containing single quotes match exactly"""
        filters = {"companyFilters": [{"field": "ic_acc_name", "operator": "equals", "value": "O'Reilly Auto"}]}
        response = client.post(filters_url(sample_audience.id, "counts"), json=filters, headers=warehouse_headers)
        assert response.status_code == 200
        assert response.json() == {"companyCount": 1, "peopleCount": 1}

    def test_numeric_comparison(self, client: TestClient, sample_audience, warehouse_headers):
        """Test greater_than against a numeric column"""
        filters = {"companyFilters": [{"field": "employee_count", "operator": "greater_than", "value": 100}]}
        response = client.post(filters_url(sample_audience.id, "counts"), json=filters, headers=warehouse_headers)
        assert response.status_code == 200
        assert response.json()["companyCount"] == 2

    def test_missing_connection_header(self, client: TestClient, sample_audience, usa_directors_filters):
        """Test warehouse endpoints require X-Connection-Id"""
        response = client.post(filters_url(sample_audience.id, "counts"), json=usa_directors_filters)
        assert response.status_code == 400
        assert "X-Connection-Id" in response.json()["detail"]

    def test_unknown_connection(self, client: TestClient, sample_audience, usa_directors_filters):
        """Test an unregistered connection id is a configuration error"""
        response = client.post(
            filters_url(sample_audience.id, "counts"),
            json=usa_directors_filters,
            headers={"X-Connection-Id": "nope"},
        )
        assert response.status_code == 400
        assert response.json()["type"] == "ConfigurationError"

    def test_unsafe_project_header(self, client: TestClient, sample_audience, usa_directors_filters, warehouse_headers):
        """Test a project name that is not a plain identifier is rejected"""
        response = client.post(
            filters_url(sample_audience.id, "counts"),
            json=usa_directors_filters,
            headers={**warehouse_headers, "X-Warehouse-Project": "analytics:p0"},
        )
        assert response.status_code == 400
        assert response.json()["type"] == "ConfigurationError"

    def test_unknown_audience(self, client: TestClient, usa_directors_filters, warehouse_headers):
        """Test filters against a missing audience"""
        response = client.post(filters_url("missing", "counts"), json=usa_directors_filters, headers=warehouse_headers)
        assert response.status_code == 404

    def test_unknown_field(self, client: TestClient, sample_audience, warehouse_headers):
        """Test filtering on a field the object does not define"""
        filters = {"companyFilters": [{"field": "revenue", "operator": "greater_than", "value": 10}]}
        response = client.post(filters_url(sample_audience.id, "counts"), json=filters, headers=warehouse_headers)
        assert response.status_code == 400
        assert "revenue" in response.json()["detail"]

    def test_empty_in_list(self, client: TestClient, sample_audience, warehouse_headers):
        """Test IN with no values is rejected"""
        filters = {"companyFilters": [{"field": "country", "operator": "in", "value": []}]}
        response = client.post(filters_url(sample_audience.id, "counts"), json=filters, headers=warehouse_headers)
        assert response.status_code == 422
        assert response.json()["type"] == "ValidationError"

    def test_boolean_value(self, client: TestClient, sample_audience, warehouse_headers):
        """Test boolean filter values are rejected at the request boundary"""
        filters: Dict[str, Any] = {"companyFilters": [{"field": "country", "operator": "equals", "value": True}]}
        response = client.post(filters_url(sample_audience.id, "counts"), json=filters, headers=warehouse_headers)
        assert response.status_code == 422


class TestFilterResults:
    """Preview, listing and SQL endpoints"""

    def test_preview(self, client: TestClient, sample_audience, usa_directors_filters, warehouse_headers):
        """Test company and contact samples"""
        response = client.post(
            filters_url(sample_audience.id, "preview"), json=usa_directors_filters, headers=warehouse_headers
        )
        assert response.status_code == 200

        preview = response.json()
        assert sorted(row["ic_acc_name"] for row in preview["companyPreview"]) == ["Acme", "Globex"]
        assert sorted(row["ic_fname"] for row in preview["contactPreview"]) == ["Ada", "Cy"]
        assert "ic_cntid" not in preview["contactPreview"][0]

    def test_preview_limit(self, client: TestClient, sample_audience, warehouse_headers):
        """Test preview rows honour a smaller requested limit"""
        response = client.post(
            filters_url(sample_audience.id, "preview"), params={"limit": 1}, json={}, headers=warehouse_headers
        )
        assert response.status_code == 200
        assert len(response.json()["companyPreview"]) == 1
        assert len(response.json()["contactPreview"]) == 1

    def test_data(self, client: TestClient, sample_audience, usa_directors_filters, warehouse_headers):
        """Test listing rows carry alias-prefixed columns"""
        response = client.post(
            filters_url(sample_audience.id, "data"), json=usa_directors_filters, headers=warehouse_headers
        )
        assert response.status_code == 200

        data = response.json()
        assert data["rowCount"] == 2
        assert {row["c_ic_fname"] for row in data["rows"]} == {"Ada", "Cy"}
        assert {row["a_country"] for row in data["rows"]} == {"USA"}

    def test_sql(self, client: TestClient, sample_audience, usa_directors_filters):
        """Test generated SQL needs no warehouse connection"""
        response = client.post(
            filters_url(sample_audience.id, "sql"), params={"limit": 10}, json=usa_directors_filters
        )
        assert response.status_code == 200

        sql = response.json()["sql"]
        assert "FROM `{project}.companies` a" in sql
        assert "JOIN `{project}.contacts` c ON c.SalesForceID = a.SalesForceID" in sql
        assert "WHERE (a.country = 'USA') AND (c.job_title LIKE '%Director%')" in sql
        assert sql.endswith("LIMIT 10")

    def test_executions_are_logged(self, client: TestClient, sample_audience, usa_directors_filters, warehouse_headers):
        """Test each warehouse execution leaves a query log entry"""
        client.post(filters_url(sample_audience.id, "counts"), json=usa_directors_filters, headers=warehouse_headers)

        response = client.get("/api/query-logs", params={"mode": "count"})
        assert response.status_code == 200

        logs = response.json()
        assert len(logs) == 1
        assert logs[0]["success"] is True
        assert logs[0]["audience_id"] == sample_audience.id
        assert logs[0]["connection_id"] == "test-warehouse"
        assert logs[0]["parameters"] == {"p0": "USA", "p1": "%Director%"}
        assert logs[0]["row_count"] == 1

    def test_performance_metrics(self, client: TestClient, sample_audience, usa_directors_filters, warehouse_headers):
        """Test execution metrics are grouped by query mode"""
        client.post(filters_url(sample_audience.id, "preview"), json=usa_directors_filters, headers=warehouse_headers)

        response = client.get("/api/query-logs/performance")
        assert response.status_code == 200

        by_mode = response.json()["by_mode"]
        assert by_mode["preview_parent"]["total_executions"] == 1
        assert by_mode["preview_child"]["success_rate"] == 100.0
