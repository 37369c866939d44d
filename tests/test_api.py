"""HTTP surface tests.

Validates:
  - Upload stores bytes and issues a link.
  - Link preview reports status without leaking revocation.
  - /download/<token> streams bytes and spends one allowance.
  - Unknown and revoked links get the same generic 404 body.
  - Expired and limit-reached links get distinct 410 answers.
  - Store and blob failures become a generic 503.
"""

import os

import pytest

from sharevault import crud
from sharevault.core.errors import PersistenceError


API = '/api/v1'


def _upload(client, data=b'encrypted-payload', filename='plan.pdf', **form):
    form = {k: str(v) for k, v in form.items()}
    r = client.post(
        f'{API}/files',
        files={'file': (filename, data, 'application/octet-stream')},
        data=form,
    )
    assert r.status_code == 201, r.text
    return r.json()


def _issue(client, file_id, **policy):
    r = client.post(f'{API}/shares', json={'file_id': file_id, **policy})
    assert r.status_code == 201, r.text
    return r.json()


# =====================================================================
# Upload and issue
# =====================================================================


class TestUpload:

    def test_upload_issues_link(self, client):
        body = _upload(client, max_downloads=2, ttl_seconds=3600)

        assert body['file']['original_filename'] == 'plan.pdf'
        assert body['file']['size_bytes'] == len(b'encrypted-payload')
        assert body['file']['content_type'] == 'application/pdf'
        assert 'storage_path' not in body['file']
        assert body['url'].endswith(f"/download/{body['token']}")

    def test_upload_without_link(self, client):
        body = _upload(client, issue_link='false')
        assert body['token'] is None
        assert body['url'] is None

    def test_upload_rejects_bad_filename(self, client):
        r = client.post(f'{API}/files', files={'file': ('bad<name>.txt', b'x', 'text/plain')})
        assert r.status_code == 400

    def test_upload_rejects_zero_limit(self, client):
        r = client.post(
            f'{API}/files',
            files={'file': ('a.txt', b'x', 'text/plain')},
            data={'max_downloads': '0'},
        )
        assert r.status_code == 422

    @pytest.mark.parametrize('form', [
        {'max_downloads': str(2**70)},
        {'ttl_seconds': str(10**14)},
    ])
    def test_upload_rejects_out_of_range_policy(self, client, form):
        r = client.post(f'{API}/files', files={'file': ('a.txt', b'x', 'text/plain')}, data=form)
        assert r.status_code == 422

    def test_read_file_metadata(self, client):
        file_id = _upload(client)['file']['id']
        r = client.get(f'{API}/files/{file_id}')
        assert r.status_code == 200
        assert 'storage_path' not in r.json()

    def test_read_unknown_file(self, client):
        assert client.get(f'{API}/files/999').status_code == 404


class TestIssueLink:

    def test_issue_link(self, client, stored_file):
        body = _issue(client, stored_file.id, max_downloads=3, ttl_seconds=60)
        assert body['max_downloads'] == 3
        assert body['expires_at'] is not None
        assert body['url'].endswith(f"/download/{body['token']}")

    def test_issue_link_unknown_file(self, client):
        r = client.post(f'{API}/shares', json={'file_id': 999})
        assert r.status_code == 404

    def test_issue_link_invalid_limit(self, client, stored_file):
        r = client.post(f'{API}/shares', json={'file_id': stored_file.id, 'max_downloads': 0})
        assert r.status_code == 422

    @pytest.mark.parametrize('policy', [
        {'max_downloads': 2**70},
        {'max_downloads': 2**31},
        {'ttl_seconds': 10**14},
        {'ttl_seconds': -(10**13)},
    ])
    def test_issue_link_out_of_range_policy(self, client, stored_file, policy):
        r = client.post(f'{API}/shares', json={'file_id': stored_file.id, **policy})

        assert r.status_code == 422
        assert client.get(f'{API}/files/{stored_file.id}/shares').json() == []


# =====================================================================
# Status
# =====================================================================


class TestLinkStatus:

    def test_active_status(self, client, stored_file):
        link = _issue(client, stored_file.id, max_downloads=2)

        body = client.get(f"{API}/shares/{link['token']}").json()

        assert body['status'] == 'ACTIVE'
        assert body['filename'] == stored_file.original_filename
        assert body['current_downloads'] == 0
        assert body['remaining_downloads'] == 2

    def test_unknown_status(self, client):
        body = client.get(f'{API}/shares/unknown-token').json()
        assert body == {
            'status': 'NOT_FOUND',
            'filename': None,
            'size_bytes': None,
            'content_type': None,
            'expires_at': None,
            'max_downloads': None,
            'current_downloads': None,
            'remaining_downloads': None,
        }

    def test_revoked_looks_like_unknown(self, client, stored_file):
        link = _issue(client, stored_file.id)
        client.post(f"{API}/shares/{link['id']}/revoke")

        revoked = client.get(f"{API}/shares/{link['token']}").json()
        unknown = client.get(f'{API}/shares/unknown-token').json()

        assert revoked == unknown

    def test_expired_status(self, client, stored_file):
        link = _issue(client, stored_file.id, ttl_seconds=-1)
        assert client.get(f"{API}/shares/{link['token']}").json()['status'] == 'EXPIRED'


# =====================================================================
# Download
# =====================================================================


class TestDownload:

    def test_download_streams_file(self, client):
        uploaded = _upload(client, data=b'\x89secret\x00bytes', filename='résumé.pdf', max_downloads=2)

        r = client.get(f"/download/{uploaded['token']}", headers={'User-Agent': 'pytest-agent'})

        assert r.status_code == 200
        assert r.content == b'\x89secret\x00bytes'
        assert r.headers['content-disposition'] == "attachment; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf"
        assert r.headers['x-remaining-downloads'] == '1'

    def test_download_is_audited(self, client, stored_file):
        link = _issue(client, stored_file.id)
        client.get(f"/download/{link['token']}", headers={'User-Agent': 'pytest-agent'})

        logs = client.get(f"{API}/shares/id/{link['id']}/downloads").json()

        assert len(logs) == 1
        assert logs[0]['user_agent'] == 'pytest-agent'
        assert logs[0]['source_address']

    def test_limit_reached(self, client, stored_file):
        link = _issue(client, stored_file.id, max_downloads=1)
        assert client.get(f"/download/{link['token']}").status_code == 200

        r = client.get(f"/download/{link['token']}")

        assert r.status_code == 410
        assert r.json() == {'message': 'Download limit reached'}

    def test_expired(self, client, stored_file, clock):
        link = _issue(client, stored_file.id, ttl_seconds=30)
        clock.advance(seconds=30)

        r = client.get(f"/download/{link['token']}")

        assert r.status_code == 410
        assert r.json() == {'message': 'Link expired'}

    def test_unknown_and_revoked_are_indistinguishable(self, client, stored_file):
        link = _issue(client, stored_file.id, max_downloads=5)
        assert client.post(f"{API}/shares/{link['id']}/revoke").status_code == 200

        revoked = client.get(f"/download/{link['token']}")
        unknown = client.get('/download/definitely-not-issued')
        malformed = client.get('/download/bad%20token')

        assert revoked.status_code == unknown.status_code == malformed.status_code == 404
        assert revoked.json() == unknown.json() == malformed.json() == {'message': 'Invalid link'}

    def test_missing_blob_is_generic_failure(self, client, stored_file, blob_store, db):
        link = _issue(client, stored_file.id, max_downloads=3)
        os.remove(os.path.join(blob_store.root, stored_file.storage_path))

        r = client.get(f"/download/{link['token']}")

        assert r.status_code == 503
        assert r.json() == {'message': 'Service temporarily unavailable'}
        db.expire_all()
        assert crud.share_link.get(db, id=link['id']).current_downloads == 1

    def test_store_outage_is_generic_failure(self, client, stored_file, monkeypatch):
        link = _issue(client, stored_file.id)

        def _down(db, *, token):
            raise PersistenceError('database down')

        monkeypatch.setattr(crud.share_link, 'get_by_token', _down)

        r = client.get(f"/download/{link['token']}")

        assert r.status_code == 503
        assert r.json() == {'message': 'Service temporarily unavailable'}

    def test_audit_failure_still_serves_file(self, client, stored_file, audit, monkeypatch):
        link = _issue(client, stored_file.id)

        def _fail(*args, **kwargs):
            raise PersistenceError('log table unavailable')

        monkeypatch.setattr(crud.download_log, 'append', _fail)

        r = client.get(f"/download/{link['token']}")

        assert r.status_code == 200
        assert r.content == b'ciphertext bytes'
        assert audit.pending == 1


# =====================================================================
# Revoke and management
# =====================================================================


class TestRevoke:

    def test_revoke_twice(self, client, stored_file):
        link = _issue(client, stored_file.id)
        first = client.post(f"{API}/shares/{link['id']}/revoke")
        second = client.post(f"{API}/shares/{link['id']}/revoke")

        assert first.status_code == second.status_code == 200
        assert second.json()['is_active'] is False

    def test_revoke_unknown(self, client):
        assert client.post(f'{API}/shares/999/revoke').status_code == 404

    def test_list_file_shares(self, client, stored_file):
        _issue(client, stored_file.id)
        _issue(client, stored_file.id, max_downloads=1)

        links = client.get(f'{API}/files/{stored_file.id}/shares').json()

        assert [link['max_downloads'] for link in links] == [None, 1]
        assert all(link['current_downloads'] == 0 for link in links)


class TestServiceEndpoints:

    def test_health(self, client):
        assert client.get('/health').json() == {'status': 'ok'}

    def test_metrics_exposes_download_counters(self, client, stored_file):
        link = _issue(client, stored_file.id)
        client.get(f"/download/{link['token']}")

        r = client.get('/metrics')

        assert r.status_code == 200
        assert 'sharevault_download_decisions_total' in r.text
        assert 'sharevault_links_issued_total' in r.text
