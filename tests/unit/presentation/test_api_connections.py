"""API tests for connections, sync jobs and transactions."""

from uuid import uuid4

import pytest

from finsync.domain.banking.value_objects import ConnectionStatus

from tests.shared.fixtures.api import auth_headers
from tests.shared.fixtures.factories import OTHER_TENANT_ID, make_connection

CONNECTIONS = "/api/v1/connections"


def register(client, reference="enr_1", provider="teller") -> dict:
    response = client.post(
        CONNECTIONS,
        json={
            "provider": provider,
            "provider_reference": reference,
            "credential_ref": f"token_{reference}",
        },
        headers=auth_headers(),
    )
    assert response.status_code == 201, response.text
    return response.json()


def sync(client, connection_id, **body) -> dict:
    response = client.post(
        f"{CONNECTIONS}/{connection_id}/sync",
        json=body or None,
        headers=auth_headers(),
    )
    assert response.status_code == 202, response.text
    return response.json()


class TestHealth:
    def test_unversioned_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_provider_health(self, client):
        response = client.get("/api/v1/providers/health")

        assert response.status_code == 200
        data = response.json()
        assert data["healthy"] is True
        assert data["providers"] == [{"provider": "teller", "healthy": True, "detail": None}]


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get(CONNECTIONS)

        assert response.status_code == 401

    def test_token_signed_with_another_key(self, client):
        headers = auth_headers(secret="not-the-identity-secret-0123456789")

        assert client.get(CONNECTIONS, headers=headers).status_code == 401

    def test_token_without_tenant(self, client):
        headers = auth_headers(tenant_id="nobody")

        assert client.get(CONNECTIONS, headers=headers).status_code == 401


class TestConnections:
    def test_register_and_list(self, client):
        created = register(client)

        assert created["status"] == "active"
        assert created["provider"] == "teller"
        assert "credential_ref" not in created

        listed = client.get(CONNECTIONS, headers=auth_headers()).json()
        assert listed["total"] == 1
        assert listed["connections"][0]["id"] == created["id"]

    def test_connections_are_tenant_scoped(self, client):
        created = register(client)
        other = auth_headers(OTHER_TENANT_ID)

        assert client.get(CONNECTIONS, headers=other).json()["total"] == 0
        response = client.get(f"{CONNECTIONS}/{created['id']}", headers=other)
        assert response.status_code == 404
        assert response.json()["code"] == "CONNECTION_NOT_FOUND"

    def test_duplicate_reference_conflicts(self, client):
        register(client)

        response = client.post(
            CONNECTIONS,
            json={"provider": "teller", "provider_reference": "enr_1", "credential_ref": "x"},
            headers=auth_headers(),
        )

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_provider_without_adapter(self, client):
        response = client.post(
            CONNECTIONS,
            json={"provider": "plaid", "provider_reference": "item_1", "credential_ref": "x"},
            headers=auth_headers(),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "UNSUPPORTED_PROVIDER"

    def test_unknown_provider_name_is_rejected(self, client):
        response = client.post(
            CONNECTIONS,
            json={"provider": "monzo", "provider_reference": "m_1", "credential_ref": "x"},
            headers=auth_headers(),
        )

        assert response.status_code == 422


class TestManualSync:
    def test_sync_ingests_accounts_and_transactions(self, client, drain):
        connection = register(client)

        accepted = sync(client, connection["id"], full_history=True)
        assert accepted["state"] == "queued"
        assert accepted["full_history"] is True
        drain()

        job = client.get(f"/api/v1/sync-jobs/{accepted['job_id']}", headers=auth_headers())
        assert job.status_code == 200
        job = job.json()
        assert job["state"] == "succeeded"
        assert job["transactions_new"] == 2
        assert job["accounts_succeeded"] == 1
        [account_job] = job["account_jobs"]
        assert account_job["scope"] == "account"
        assert account_job["state"] == "succeeded"

        accounts = client.get(
            f"{CONNECTIONS}/{connection['id']}/accounts", headers=auth_headers()
        ).json()
        [account] = accounts["accounts"]
        assert account["external_id"] == "acc_1"

        transactions = client.get(
            f"/api/v1/accounts/{account['id']}/transactions", headers=auth_headers()
        ).json()
        assert [t["external_id"] for t in transactions["transactions"]] == ["tx_1", "tx_2"]

        refreshed = client.get(f"{CONNECTIONS}/{connection['id']}", headers=auth_headers())
        assert refreshed.json()["last_synced_at"] is not None

    def test_repeated_sync_creates_nothing_new(self, client, drain):
        connection = register(client)
        sync(client, connection["id"])
        drain()

        second = sync(client, connection["id"])
        drain()

        job = client.get(f"/api/v1/sync-jobs/{second['job_id']}", headers=auth_headers()).json()
        assert job["state"] == "succeeded"
        assert job["transactions_new"] == 0
        assert job["transactions_upserted"] == 2

    def test_sync_without_body_uses_latest_window(self, client, drain, teller_adapter):
        connection = register(client)

        accepted = sync(client, connection["id"])
        drain()

        assert accepted["full_history"] is False
        assert teller_adapter.transaction_calls == [("acc_1", None, False)]

    def test_unknown_connection(self, client):
        response = client.post(f"{CONNECTIONS}/{uuid4()}/sync", headers=auth_headers())

        assert response.status_code == 404

    @pytest.mark.parametrize("status", [ConnectionStatus.DISCONNECTED, ConnectionStatus.EXPIRED])
    def test_inactive_connection_is_refused(self, client, container, status):
        connection = make_connection(reference="enr_gone", status=status)
        client.portal.call(container.connections.save, connection)

        response = client.post(f"{CONNECTIONS}/{connection.id}/sync", headers=auth_headers())

        assert response.status_code == 422
        assert response.json()["code"] == "CONNECTION_NOT_ACTIVE"


class TestSyncJobs:
    def test_unknown_job(self, client):
        response = client.get(f"/api/v1/sync-jobs/{uuid4()}", headers=auth_headers())

        assert response.status_code == 404
        assert response.json()["code"] == "SYNC_JOB_NOT_FOUND"

    def test_jobs_are_tenant_scoped(self, client, drain):
        accepted = sync(client, register(client)["id"])
        drain()

        response = client.get(
            f"/api/v1/sync-jobs/{accepted['job_id']}", headers=auth_headers(OTHER_TENANT_ID)
        )

        assert response.status_code == 404

    def test_cancelling_a_finished_job_is_a_no_op(self, client, drain):
        accepted = sync(client, register(client)["id"])
        drain()

        response = client.post(
            f"/api/v1/sync-jobs/{accepted['job_id']}/cancel", headers=auth_headers()
        )

        assert response.status_code == 202
        assert response.json()["cancellation_requested"] is False

    def test_cancel_unknown_job(self, client):
        response = client.post(f"/api/v1/sync-jobs/{uuid4()}/cancel", headers=auth_headers())

        assert response.status_code == 404


class TestTransactions:
    @pytest.fixture
    def synced(self, client, drain) -> tuple[str, list[dict]]:
        connection = register(client)
        sync(client, connection["id"])
        drain()
        [account] = client.get(
            f"{CONNECTIONS}/{connection['id']}/accounts", headers=auth_headers()
        ).json()["accounts"]
        transactions = client.get(
            f"/api/v1/accounts/{account['id']}/transactions", headers=auth_headers()
        ).json()["transactions"]
        return connection["id"], transactions

    def test_get_single_transaction(self, client, synced):
        _, transactions = synced
        tx = transactions[0]

        response = client.get(f"/api/v1/transactions/{tx['id']}", headers=auth_headers())

        assert response.status_code == 200
        assert response.json()["description"] == "Coffee"

    def test_limit(self, client, synced):
        _, transactions = synced
        account_id = transactions[0]["account_id"]

        response = client.get(
            f"/api/v1/accounts/{account_id}/transactions?limit=1", headers=auth_headers()
        )

        assert response.json()["total"] == 1

    def test_user_category_survives_resync(self, client, drain, synced):
        connection_id, transactions = synced
        tx = transactions[0]

        response = client.patch(
            f"/api/v1/transactions/{tx['id']}/category",
            json={"category": "meals"},
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert response.json()["category"] == "meals"
        assert response.json()["category_provenance"] == "user"

        sync(client, connection_id)
        drain()

        again = client.get(f"/api/v1/transactions/{tx['id']}", headers=auth_headers()).json()
        assert again["category"] == "meals"
        assert again["category_provenance"] == "user"

    def test_recategorize_unknown_transaction(self, client):
        response = client.patch(
            f"/api/v1/transactions/{uuid4()}/category",
            json={"category": "meals"},
            headers=auth_headers(),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "TRANSACTION_NOT_FOUND"

    def test_unknown_account(self, client):
        response = client.get(f"/api/v1/accounts/{uuid4()}/transactions", headers=auth_headers())

        assert response.status_code == 404
