import json
import threading
import time
from concurrent.futures import TimeoutError as FuturesTimeout

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from formbuilder.context import Actor, RequestContext
from formbuilder.db import Database
from formbuilder.errors import NotFoundError
from formbuilder.ingest import ingest_submission, resolve_form
from formbuilder.models import Form, Submission
from formbuilder.store import Store
from formbuilder.tenancy import StampOutcome


def submit(client, form_id, data, headers=None):
    return client.post(f"/api/submit-form/{form_id}", json=data, headers=headers or {})


def stored_submission(database, submission_id):
    with database.session() as session:
        return session.get(Submission, submission_id)


def test_end_to_end_tenant_isolation(client, accounts, create_form):
    survey = create_form(accounts.alice.headers, title="Survey")
    assert survey["tenant_id"] == accounts.alice.id

    response = submit(client, survey["id"], {"q1": "yes"})
    assert response.status_code == 201, response.text
    submission_id = response.json()["submissionId"]

    own = client.get(f"/api/form-submissions/{submission_id}", headers=accounts.alice.headers)
    assert own.status_code == 200
    assert own.json()["tenant_id"] == accounts.alice.id
    assert own.json()["data"] == {"q1": "yes"}

    bob_forms = client.get("/api/forms", headers=accounts.bob.headers).json()["docs"]
    assert survey["id"] not in {doc["id"] for doc in bob_forms}
    admin_forms = client.get("/api/forms", headers=accounts.admin.headers).json()["docs"]
    assert survey["id"] in {doc["id"] for doc in admin_forms}


def test_anonymous_submission_records_request_metadata(client, accounts, create_form, database):
    survey = create_form(accounts.alice.headers)
    response = submit(client, survey["id"], {"q1": "maybe", "tenant_id": 12345})
    assert response.status_code == 201
    body = response.json()
    assert set(body) == {"success", "message", "submissionId"}
    assert body["success"] is True
    assert body["message"] == "Form submitted successfully"

    stored = stored_submission(database, body["submissionId"])
    assert stored.form_id == survey["id"]
    assert stored.tenant_id == accounts.alice.id
    assert stored.ip_address == "testclient"
    assert stored.user_agent == "testclient"
    assert json.loads(stored.data_json) == {"q1": "maybe", "tenant_id": 12345}


def test_submission_by_another_user_belongs_to_form_owner(client, accounts, create_form, database):
    survey = create_form(accounts.alice.headers)
    response = submit(client, survey["id"], {"q1": "no"}, headers=accounts.bob.headers)
    assert response.status_code == 201
    assert stored_submission(database, response.json()["submissionId"]).tenant_id == accounts.alice.id


def test_empty_body_is_stored_as_empty_object(client, accounts, create_form, database):
    survey = create_form(accounts.alice.headers)
    response = client.post(f"/api/submit-form/{survey['id']}")
    assert response.status_code == 201
    assert stored_submission(database, response.json()["submissionId"]).data_json == "{}"


def test_inactive_form_rejects_submissions(client, accounts, create_form, database):
    closed = create_form(accounts.alice.headers, title="Closed", is_active=False)
    response = submit(client, closed["id"], {"q1": "late"})
    assert response.status_code == 400
    assert response.json()["error"] == "FORM_INACTIVE"
    with database.session() as session:
        assert session.exec(select(Submission)).first() is None


@pytest.mark.parametrize("form_id", ["9999", "abc", "\u00b2", "99999999999999999999999"])
def test_unknown_form_is_404(client, accounts, form_id):
    response = submit(client, form_id, {"q1": "x"})
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_non_object_body_is_rejected(client, accounts, create_form, database):
    survey = create_form(accounts.alice.headers)
    response = submit(client, survey["id"], ["q1", "yes"])
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"
    with database.session() as session:
        assert session.exec(select(Submission)).first() is None


def test_submission_listing_is_scoped_to_tenant(client, accounts, create_form):
    survey = create_form(accounts.alice.headers, title="Survey")
    poll = create_form(accounts.bob.headers, title="Poll")
    first = submit(client, survey["id"], {"q1": "a"}).json()["submissionId"]
    second = submit(client, poll["id"], {"q1": "b"}).json()["submissionId"]

    def listed(headers, **params):
        response = client.get("/api/form-submissions", headers=headers, params=params)
        assert response.status_code == 200
        return {doc["id"] for doc in response.json()["docs"]}

    assert listed(accounts.alice.headers) == {first}
    assert listed(accounts.bob.headers) == {second}
    assert listed(accounts.admin.headers) == {first, second}
    assert listed(accounts.admin.headers, form_id=poll["id"]) == {second}
    assert listed(accounts.alice.headers, form_id=poll["id"]) == set()
    assert client.get("/api/form-submissions").status_code == 401


def test_foreign_submission_looks_missing(client, accounts, create_form):
    survey = create_form(accounts.alice.headers)
    submission_id = submit(client, survey["id"], {"q1": "a"}).json()["submissionId"]

    foreign = client.get(f"/api/form-submissions/{submission_id}", headers=accounts.bob.headers)
    missing = client.get("/api/form-submissions/424242", headers=accounts.bob.headers)
    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()


def test_submissions_are_never_updated(client, accounts, create_form, database):
    survey = create_form(accounts.alice.headers)
    submission_id = submit(client, survey["id"], {"q1": "a"}).json()["submissionId"]
    url = f"/api/form-submissions/{submission_id}"

    assert client.patch(url, json={"data_json": "{}"}, headers=accounts.alice.headers).status_code == 403
    assert client.patch(url, json={"data_json": "{}"}, headers=accounts.admin.headers).status_code == 403
    assert client.patch(url, json={"data_json": "{}"}).status_code == 401
    assert json.loads(stored_submission(database, submission_id).data_json) == {"q1": "a"}


def test_submission_delete_is_scoped(client, accounts, create_form, database):
    survey = create_form(accounts.alice.headers)
    first = submit(client, survey["id"], {"q1": "a"}).json()["submissionId"]
    second = submit(client, survey["id"], {"q1": "b"}).json()["submissionId"]

    assert client.delete(f"/api/form-submissions/{first}").status_code == 401
    assert client.delete(f"/api/form-submissions/{first}", headers=accounts.bob.headers).status_code == 404
    assert stored_submission(database, first) is not None

    assert client.delete(f"/api/form-submissions/{first}", headers=accounts.alice.headers).status_code == 204
    assert client.delete(f"/api/form-submissions/{second}", headers=accounts.admin.headers).status_code == 204
    assert stored_submission(database, first) is None
    assert stored_submission(database, second) is None


def test_failed_tenant_lookup_still_stores_submission(client, accounts, create_form, database, monkeypatch):
    survey = create_form(accounts.alice.headers)

    def broken(self, form_id):
        raise RuntimeError("lookup pool exhausted")

    monkeypatch.setattr(Store, "lookup_form", broken)
    response = submit(client, survey["id"], {"q1": "a"})
    assert response.status_code == 201
    stored = stored_submission(database, response.json()["submissionId"])
    assert stored.tenant_id is None
    assert stored.ip_address == "testclient"


def test_slow_tenant_lookup_times_out(client, accounts, create_form, database, monkeypatch):
    survey = create_form(accounts.alice.headers)

    def slow(model, entity_id):
        time.sleep(0.5)
        return None

    database.lookup_timeout = 0.05
    monkeypatch.setattr(database, "fetch_detached", slow)
    response = submit(client, survey["id"], {"q1": "a"})
    assert response.status_code == 201
    assert stored_submission(database, response.json()["submissionId"]).tenant_id is None


def test_resolve_form_falls_back_to_elevated_read(client, accounts, create_form, database):
    survey = create_form(accounts.alice.headers)
    with database.session() as session:
        store = Store(session, database=database)
        ctx = RequestContext(actor=Actor.anonymous())
        form = resolve_form(store, ctx, survey["id"])
        assert isinstance(form, Form)
        assert form.tenant_id == accounts.alice.id
        with pytest.raises(NotFoundError):
            resolve_form(store, ctx, 31337)


def test_out_of_range_submission_ids_are_404(client, accounts):
    url = f"/api/form-submissions/{2**63}"
    assert client.get(url, headers=accounts.admin.headers).status_code == 404
    assert client.delete(url, headers=accounts.alice.headers).status_code == 404
    listing = client.get("/api/form-submissions", params={"form_id": 2**63}, headers=accounts.admin.headers)
    assert listing.status_code == 422
    assert listing.json()["error"] == "REQUEST_INVALID"


def test_storage_failure_is_reported_and_rolled_back(client, accounts, create_form, database, monkeypatch):
    survey = create_form(accounts.alice.headers)
    rollbacks = []
    real_rollback = Session.rollback

    def failing_commit(self):
        raise OperationalError("INSERT INTO form_submissions", {}, Exception("disk I/O error"))

    def counting_rollback(self):
        rollbacks.append(self)
        real_rollback(self)

    monkeypatch.setattr(Session, "commit", failing_commit)
    monkeypatch.setattr(Session, "rollback", counting_rollback)
    response = submit(client, survey["id"], {"q1": "a"})
    monkeypatch.undo()

    assert response.status_code == 500
    assert response.json() == {"error": "STORAGE_ERROR", "detail": "Could not create submission"}
    assert rollbacks
    with database.session() as session:
        assert session.exec(select(Submission)).first() is None


def ingest_anonymously(database, form_id):
    with database.session() as session:
        store = Store(session, database=database)
        return ingest_submission(store, RequestContext(body={"q1": "a"}), form_id)


def test_ingest_reports_stamped_outcome(client, accounts, create_form, database):
    survey = create_form(accounts.alice.headers)
    result = ingest_anonymously(database, survey["id"])
    assert result.stamp_outcome is StampOutcome.STAMPED
    assert result.form_id == survey["id"]
    assert result.tenant_id == accounts.alice.id
    assert stored_submission(database, result.submission_id).tenant_id == accounts.alice.id


def test_ingest_reports_failed_lookup(client, accounts, create_form, database, monkeypatch):
    survey = create_form(accounts.alice.headers)

    def broken(self, form_id):
        raise RuntimeError("lookup pool exhausted")

    monkeypatch.setattr(Store, "lookup_form", broken)
    result = ingest_anonymously(database, survey["id"])
    assert result.stamp_outcome is StampOutcome.SKIPPED_ERROR
    assert result.tenant_id is None


def test_ingest_reports_timed_out_lookup(client, accounts, create_form, database, monkeypatch):
    survey = create_form(accounts.alice.headers)

    def slow(model, entity_id):
        time.sleep(0.5)
        return None

    database.lookup_timeout = 0.05
    monkeypatch.setattr(database, "fetch_detached", slow)
    result = ingest_anonymously(database, survey["id"])
    assert result.stamp_outcome is StampOutcome.SKIPPED_ERROR
    assert result.tenant_id is None


def test_timed_out_lookup_still_queued_is_cancelled(tmp_path, monkeypatch):
    database = Database(f"sqlite:///{tmp_path / 'pool.db'}", lookup_pool_size=1, lookup_timeout=0.05).init()
    release = threading.Event()
    futures = []
    real_submit = database.executor.submit

    def tracking_submit(*args, **kwargs):
        future = real_submit(*args, **kwargs)
        futures.append(future)
        return future

    monkeypatch.setattr(database.executor, "submit", tracking_submit)
    monkeypatch.setattr(database, "fetch_detached", lambda model, entity_id: release.wait(5))
    try:
        with database.session() as session:
            store = Store(session, database=database)
            with pytest.raises(FuturesTimeout):
                store.lookup_form(1)
            with pytest.raises(FuturesTimeout):
                store.lookup_form(2)
        assert not futures[0].cancelled()
        assert futures[1].cancelled()
    finally:
        release.set()
        database.shutdown()
