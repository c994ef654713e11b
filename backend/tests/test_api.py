from atsreal.errors import BackendUnavailable, ContentPolicyBlocked, OutputSchemaViolation

from conftest import JOB_DESCRIPTION, RESUME


def _body(**overrides):
    body = {
        "candidate_name": "Alex Doe",
        "employment_status": "employed",
        "resume_text": RESUME,
        "job_description_text": JOB_DESCRIPTION,
        "goals": "get a senior role",
    }
    body.update(overrides)
    return body


def _analyze(client):
    r = client.post("/analysis", json=_body())
    assert r.status_code == 200
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["ok"] is True
    assert data["model"] == "test-model"
    assert "ats_score" in data["templates"]


def test_create_analysis(client, fake_ai):
    data = _analyze(client)
    assert data["analysis_id"]
    result = data["result"]
    assert result["scores"] == {"ats_pass_score": 70, "human_recruiter_score": 80, "ats_real_score": 76}
    assert "suggested_edits" in result["suggestions"]
    assert set(result["rating_explanation"]) == {"positive_factors", "negative_factors"}
    assert result["job_description_text"] == JOB_DESCRIPTION

    fetched = client.get(f"/analysis/{data['analysis_id']}")
    assert fetched.status_code == 200
    assert fetched.json()["result"] == result


def test_short_job_description_is_400_without_calls(client, fake_ai):
    r = client.post("/analysis", json=_body(job_description_text="Python dev wanted"))
    assert r.status_code == 400
    assert "at least 100 characters" in r.json()["detail"]
    assert fake_ai.calls == []


def test_bad_employment_status_is_422(client, fake_ai):
    r = client.post("/analysis", json=_body(employment_status="retired"))
    assert r.status_code == 422
    assert fake_ai.calls == []


def test_backend_failures_map_to_status_codes(client, fake_ai):
    cases = [
        (BackendUnavailable("quota"), 503),
        (ContentPolicyBlocked("blocked"), 422),
        (OutputSchemaViolation("missing field"), 502),
    ]
    for error, status in cases:
        fake_ai.answers["ats_score"] = error
        r = client.post("/analysis", json=_body())
        assert r.status_code == status
        assert r.json()["detail"].startswith("AI analysis failed. ")


def test_chat_round_trip_and_rollback(client, fake_ai):
    analysis_id = _analyze(client)["analysis_id"]

    r = client.post(f"/analysis/{analysis_id}/chat", json={"question": "What should I fix first?"})
    assert r.status_code == 200
    data = r.json()
    assert data["turn"]["role"] == "assistant"
    assert [t["role"] for t in data["history"]] == ["user", "assistant"]

    fake_ai.answers["ask_arty"] = BackendUnavailable("down")
    r = client.post(f"/analysis/{analysis_id}/chat", json={"question": "And then?"})
    assert r.status_code == 503
    assert r.json()["detail"].startswith("AI chat failed. ")

    history = client.get(f"/analysis/{analysis_id}/chat").json()
    assert [t["content"] for t in history] == ["What should I fix first?", data["turn"]["content"]]


def test_empty_chat_question_is_400(client):
    analysis_id = _analyze(client)["analysis_id"]
    r = client.post(f"/analysis/{analysis_id}/chat", json={"question": "  "})
    assert r.status_code == 400


def test_unknown_analysis_is_404(client):
    assert client.get("/analysis/nope").status_code == 404
    assert client.post("/analysis/nope/chat", json={"question": "hi"}).status_code == 404


def test_discard_drops_view_and_chat(client):
    analysis_id = _analyze(client)["analysis_id"]
    client.post(f"/analysis/{analysis_id}/chat", json={"question": "Hi?"})

    r = client.delete(f"/analysis/{analysis_id}")
    assert r.json() == {"discarded": True}
    assert client.get(f"/analysis/{analysis_id}/chat").status_code == 404
    assert client.delete(f"/analysis/{analysis_id}").json() == {"discarded": False}


def test_new_analysis_starts_with_empty_chat(client):
    first = _analyze(client)["analysis_id"]
    client.post(f"/analysis/{first}/chat", json={"question": "Hi?"})
    second = _analyze(client)["analysis_id"]
    assert second != first
    assert client.get(f"/analysis/{second}/chat").json() == []


def test_revision_and_feedback_endpoints(client, fake_ai):
    analysis_id = _analyze(client)["analysis_id"]

    r = client.post(f"/analysis/{analysis_id}/revision", json={"communication_style": "formal"})
    assert r.status_code == 200
    assert r.json()["enhanced_key_terms"] == ["PostgreSQL", "mentoring"]
    revision_input = dict(fake_ai.calls)["resume_revision"]
    assert revision_input.user_name == "Alex Doe"
    assert revision_input.communication_style == "formal"

    r = client.post(f"/analysis/{analysis_id}/feedback")
    assert r.status_code == 200
    assert r.json()["feedback"].startswith("- ")


def test_new_analysis_discards_the_view_it_replaces(client):
    first = _analyze(client)["analysis_id"]
    client.post(f"/analysis/{first}/chat", json={"question": "Hi?"})

    r = client.post("/analysis", params={"replaces": first}, json=_body())
    assert r.status_code == 200
    second = r.json()["analysis_id"]
    assert client.get(f"/analysis/{first}").status_code == 404
    assert client.get(f"/analysis/{second}/chat").json() == []


def test_failed_analysis_keeps_the_current_view(client, fake_ai):
    first = _analyze(client)["analysis_id"]
    fake_ai.answers["ats_score"] = BackendUnavailable("down")

    r = client.post("/analysis", params={"replaces": first}, json=_body())
    assert r.status_code == 503
    assert client.get(f"/analysis/{first}").status_code == 200
