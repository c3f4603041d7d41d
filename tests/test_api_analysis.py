def test_analyze_without_files_is_rejected(client):
    response = client.post("/analyze")

    assert response.status_code == 400
    assert response.json()["detail"] == "No files provided"


def test_analyze_returns_default_object_when_upstream_reply_is_not_json(client, completion):
    completion.queue("```json\nthis is not json\n```", "Sorry, I can't do that")

    response = client.post(
        "/analyze", files={"files": ("essay.txt", b"An essay about rivers.", "text/plain")}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["plagiarism"]["score"] == 0
    assert body["plagiarism"]["matches"] == []
    assert body["plagiarism"]["status"] == "failed"
    assert body["privacy"]["detected"] is False
    assert body["privacy"]["entities"] == []
    assert body["forgery"]["detected"] is False


def test_analyze_multiple_files(client, completion):
    completion.queue(
        {"score": 0.12, "matches": []},
        {"detected": False, "entities": []},
        {"detected": True, "confidence": 0.93, "areas": ["top-left"], "techniques": ["cloning"]},
    )

    response = client.post(
        "/analyze",
        files=[
            ("files", ("notes.txt", b"Meeting notes.", "text/plain")),
            ("files", ("photo.jpg", b"\xff\xd8\xff", "image/jpeg")),
        ],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["plagiarism"]["score"] == 0.12
    assert body["forgery"]["detected"] is True
    assert body["forgery"]["techniques"] == ["cloning"]
    assert [f["fileName"] for f in body["files"]] == ["notes.txt", "photo.jpg"]


def test_plagiarism_endpoint(client, completion):
    completion.queue('```json\n{"score": 0.4, "matches": []}\n```')

    response = client.post("/plagiarism", json={"text": "copied text"})

    assert response.status_code == 200
    assert response.json()["score"] == 0.4


def test_text_endpoints_require_text(client):
    for path in ("/plagiarism", "/privacy", "/summarize"):
        response = client.post(path, json={"text": "  "})
        assert response.status_code == 400
        assert response.json()["detail"] == "No text provided"


def test_compare_requires_both_documents(client):
    response = client.post("/compare", json={"document1": "only one"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Two documents are required for comparison"


def test_compare_documents(client, completion):
    completion.queue(
        {
            "similarityScore": 0.75,
            "matchedSections": [{"doc1Text": "a", "doc2Text": "a", "similarity": 1}],
            "summary": "Very close",
            "verdict": "High similarity detected",
        }
    )

    response = client.post("/compare", json={"document1": "alpha", "document2": "beta"})

    assert response.status_code == 200
    assert response.json()["verdict"] == "High similarity detected"
    assert "alpha" in completion.prompts[0] and "beta" in completion.prompts[0]


def test_forgery_endpoint(client, completion):
    missing = client.post("/forgery")
    assert missing.status_code == 400

    completion.queue({"detected": False, "confidence": 0.85, "metadata": {"modified": False}})
    response = client.post("/forgery", files={"image": ("id.png", b"\x89PNG", "image/png")})

    assert response.status_code == 200
    assert response.json()["confidence"] == 0.85
    assert response.json()["metadata"] == {"modified": False}


def test_summarize_endpoint(client, completion):
    completion.queue(
        {
            "summary": "Short.",
            "keyPoints": ["one"],
            "wordCount": {"original": 4, "summary": 1},
            "topics": ["misc"],
        }
    )

    response = client.post("/summarize", json={"text": "four words right here", "summaryType": "executive"})

    assert response.status_code == 200
    assert response.json()["summary"] == "Short."
    assert "executive summary" in completion.prompts[0]


def test_validation_errors_are_reported_as_bad_request(client):
    response = client.post("/plagiarism", content=b"not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/problem+json")


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "OK", "database": True, "completionConfigured": False}
