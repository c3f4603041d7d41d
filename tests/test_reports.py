from fastapi import Depends
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from nolie.db import get_db
from nolie.main import app
from nolie.store import SqlReportStore, get_report_store

from .conftest import make_results, register


def _save(client, headers, name="doc.txt", **kwargs):
    response = client.post(
        "/reports",
        json={"fileName": name, "fileType": "text/plain", "fileSize": 120, "results": make_results(**kwargs)},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


def test_save_report_derives_summary_fields(client, auth_headers):
    entities = [{"type": "PHONE", "text": "555-0100"}, {"type": "EMAIL", "text": "a@b.co"}]
    body = _save(client, auth_headers, score=0.05, entities=entities)

    assert body["success"] is True
    data = body["data"]
    assert body["reportId"] == data["id"]
    assert data["risk_level"] == "HIGH"
    assert data["privacy_issues_count"] == 2
    assert data["plagiarism_score"] == 0.05
    assert data["forgery_detected"] is False
    assert data["analysis_results"]["privacy"]["entities"] == entities


def test_save_report_requires_fields(client, auth_headers):
    response = client.post("/reports", json={"fileName": "x.txt"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required fields"


def test_history_requires_authentication(client):
    response = client.get("/reports")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_pagination_second_page(client, auth_headers):
    for i in range(15):
        _save(client, auth_headers, name=f"doc-{i}.txt")

    response = client.get("/reports", params={"page": 2, "limit": 10}, headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert len(body["reports"]) == 5
    assert body["pagination"] == {"page": 2, "limit": 10, "total": 15, "totalPages": 2}


def test_history_is_scoped_to_owner(client, auth_headers):
    _save(client, auth_headers)
    other = register(client, email="grace@example.com")

    response = client.get("/reports", headers=other)

    assert response.json()["reports"] == []
    assert response.json()["pagination"]["total"] == 0


def test_risk_filter_and_sorting(client, auth_headers):
    _save(client, auth_headers, name="b.txt", score=0.2)
    _save(client, auth_headers, name="a.txt", score=0.25)
    _save(client, auth_headers, name="c.txt", score=0.01)

    response = client.get(
        "/reports",
        params={"riskLevel": "MEDIUM", "sortBy": "file_name", "sortOrder": "asc"},
        headers=auth_headers,
    )

    body = response.json()
    assert [r["file_name"] for r in body["reports"]] == ["a.txt", "b.txt"]
    assert body["pagination"]["total"] == 2

    everything = client.get("/reports", params={"riskLevel": "ALL"}, headers=auth_headers)
    assert everything.json()["pagination"]["total"] == 3


def test_invalid_query_parameters(client, auth_headers):
    assert client.get("/reports", params={"sortBy": "password_hash"}, headers=auth_headers).status_code == 400
    assert client.get("/reports", params={"sortOrder": "sideways"}, headers=auth_headers).status_code == 400
    assert client.get("/reports", params={"riskLevel": "SEVERE"}, headers=auth_headers).status_code == 400
    assert client.get("/reports", params={"limit": 0}, headers=auth_headers).status_code == 400


def test_get_report_and_ownership(client, auth_headers):
    saved = _save(client, auth_headers)
    other = register(client, email="grace@example.com")

    assert client.get(f"/reports/{saved['reportId']}", headers=auth_headers).status_code == 200
    assert client.get(f"/reports/{saved['reportId']}", headers=other).status_code == 404


def test_attach_and_download_html_report(client, auth_headers):
    saved = _save(client, auth_headers, name="thesis.txt", score=0.35)
    report_id = saved["reportId"]

    assert client.get(f"/reports/{report_id}/html", headers=auth_headers).status_code == 404

    attached = client.post(f"/reports/{report_id}/html", headers=auth_headers)
    assert attached.status_code == 200
    assert attached.json()["reportId"].startswith("NL-")
    assert "Overall Risk Level: HIGH" in attached.json()["reportHtml"]

    download = client.get(f"/reports/{report_id}/html", headers=auth_headers)
    assert download.status_code == 200
    assert download.headers["content-type"].startswith("text/html")
    assert "NoLie_AI_Report_thesis_" in download.headers["content-disposition"]

    stored = client.get(f"/reports/{report_id}", headers=auth_headers).json()
    assert stored["report_html"] == download.text


def test_stats(client, auth_headers):
    _save(client, auth_headers, score=0.05)
    _save(client, auth_headers, score=0.2)
    saved = _save(client, auth_headers, forgery=True)
    client.post(f"/reports/{saved['reportId']}/html", headers=auth_headers)

    body = client.get("/stats", headers=auth_headers).json()

    assert body["totalAnalyses"] == 3
    assert body["reportsGenerated"] == 1
    assert body["issuesDetected"] == 2
    assert body["recentActivity"] == 3
    assert body["avgRiskLevel"] == "LOW"
    assert len(body["recent"]) == 3

    _save(client, auth_headers, score=0.9)
    assert client.get("/stats", headers=auth_headers).json()["avgRiskLevel"] == "HIGH"


def test_exports(client, auth_headers):
    _save(client, auth_headers, name="report.txt", score=0.2)

    csv_response = client.get("/reports/export/csv", headers=auth_headers)
    assert csv_response.status_code == 200
    lines = csv_response.text.strip().splitlines()
    assert lines[0].startswith("id,created_at,file_name")
    assert "report.txt" in lines[1] and "MEDIUM" in lines[1]

    pdf_response = client.get("/reports/export/pdf", headers=auth_headers)
    assert pdf_response.status_code == 200
    assert pdf_response.content.startswith(b"%PDF")


def test_save_report_rejects_malformed_results(client, auth_headers):
    for results in ({"plagiarism": 0.5}, {"privacy": {"entities": 3}}, {"forgery": "yes"}):
        response = client.post(
            "/reports",
            json={"fileName": "x.txt", "fileType": "text/plain", "fileSize": 1, "results": results},
            headers=auth_headers,
        )
        assert response.status_code == 400, results
        assert response.headers["content-type"].startswith("application/problem+json")


def test_save_report_keeps_extra_result_fields(client, auth_headers):
    results = make_results(score=0.2)
    results["files"] = [{"fileName": "doc.txt", "status": "completed"}]

    response = client.post(
        "/reports",
        json={"fileName": "doc.txt", "fileType": "text/plain", "fileSize": 3, "results": results},
        headers=auth_headers,
    )

    stored = response.json()["data"]["analysis_results"]
    assert stored["files"] == results["files"]
    assert stored["plagiarism"]["status"] == "completed"


def test_save_report_database_failure_returns_500(client, auth_headers):
    def failing_store(db: Session = Depends(get_db)):
        def commit():
            raise OperationalError("INSERT INTO analysis_reports", {}, Exception("disk I/O error"))

        db.commit = commit
        return SqlReportStore(db)

    app.dependency_overrides[get_report_store] = failing_store

    response = client.post(
        "/reports",
        json={"fileName": "doc.txt", "fileType": "text/plain", "fileSize": 3, "results": make_results()},
        headers=auth_headers,
    )

    assert response.status_code == 500
    body = response.json()
    assert body["title"] == "Database error"
    assert body["detail"].startswith("Failed to save report:")
    assert "disk I/O error" in body["detail"]


def test_search_by_file_name(client, auth_headers):
    _save(client, auth_headers, name="Thesis-final.pdf")
    _save(client, auth_headers, name="thesis-draft.txt")
    _save(client, auth_headers, name="invoice.pdf")

    response = client.get("/reports", params={"search": "THESIS"}, headers=auth_headers)

    body = response.json()
    assert sorted(r["file_name"] for r in body["reports"]) == ["Thesis-final.pdf", "thesis-draft.txt"]
    assert body["pagination"]["total"] == 2

    combined = client.get(
        "/reports", params={"search": "invoice", "riskLevel": "HIGH"}, headers=auth_headers
    )
    assert combined.json()["pagination"]["total"] == 0
