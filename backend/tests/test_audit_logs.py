# Overview: Pytest coverage for the scoped audit-log read and its HTTP route.

import pytest

from retail_ledger.errors import ForbiddenError, ValidationError
from retail_ledger.models import AuditAction, UserRole
from retail_ledger.pagination import PageRequest
from retail_ledger.scope import Actor
from retail_ledger.services.audit_service import LogFilters


class TestListLogs:
    @pytest.fixture
    def entries(
        self, services, rep_a1, rep2_a1, exec_a1, owner_a, exec_b1, outlet_a1, outlet_a2, outlet_b1
    ):
        def add(user, action, description, outlet):
            services.audit.record(
                user.id,
                action,
                description,
                resource_type="Sale",
                resource_id=1,
                business_id=outlet.business_id,
                outlet_id=outlet.id,
            )

        add(rep_a1, AuditAction.SALES_RECORD, "Recorded new sale: 11", outlet_a1)
        add(exec_a1, AuditAction.INVENTORY_RECORD, "Recorded new inventory: 12", outlet_a1)
        add(owner_a, AuditAction.SALES_RECORD, "Recorded new sale: 13", outlet_a2)
        add(rep2_a1, AuditAction.SALES_RECORD, "Recorded new sale: 14", outlet_a1)
        add(exec_b1, AuditAction.SALES_RECORD, "Recorded new sale: 15", outlet_b1)

    def test_owner_reads_whole_business(self, services, entries, owner_a, actor_of, outlet_a1, outlet_a2):
        result = services.audit.list_logs(actor_of(owner_a), LogFilters(), PageRequest())
        assert result["total_items"] == 4
        assert {row["outlet_id"] for row in result["data"]} == {outlet_a1.id, outlet_a2.id}

    def test_store_executive_reads_only_own_outlet(self, services, entries, exec_a1, actor_of, outlet_a1):
        result = services.audit.list_logs(actor_of(exec_a1), LogFilters(), PageRequest())
        assert result["total_items"] == 3
        assert {row["outlet_id"] for row in result["data"]} == {outlet_a1.id}

    def test_sales_rep_reads_only_own_entries(self, services, entries, rep_a1, actor_of):
        result = services.audit.list_logs(actor_of(rep_a1), LogFilters(), PageRequest())
        assert result["total_items"] == 1
        assert result["data"][0]["actor_id"] == rep_a1.id
        assert result["data"][0]["description"] == "Recorded new sale: 11"

    def test_admin_reads_everything(self, services, entries, admin_user, actor_of):
        result = services.audit.list_logs(actor_of(admin_user), LogFilters(), PageRequest())
        assert result["total_items"] == 5

    def test_filter_cannot_widen_scope(self, services, entries, owner_a, actor_of, outlet_b1):
        result = services.audit.list_logs(
            actor_of(owner_a), LogFilters(business_id=outlet_b1.business_id), PageRequest()
        )
        assert result["total_items"] == 0

    def test_action_and_search_filters(self, services, entries, admin_user, rep2_a1, actor_of):
        admin = actor_of(admin_user)

        by_action = services.audit.list_logs(admin, LogFilters.from_args({"action": "inventory_record"}), PageRequest())
        assert by_action["total_items"] == 1

        by_description = services.audit.list_logs(admin, LogFilters(search="inventory"), PageRequest())
        assert by_description["total_items"] == 1

        by_performer = services.audit.list_logs(admin, LogFilters(search="rep2.a1"), PageRequest())
        assert [row["actor_id"] for row in by_performer["data"]] == [rep2_a1.id]

    def test_pagination_newest_first(self, services, entries, admin_user, actor_of):
        first = services.audit.list_logs(actor_of(admin_user), LogFilters(), PageRequest(limit=2))
        assert first["total_pages"] == 3
        assert first["data"][0]["description"] == "Recorded new sale: 15"

        with pytest.raises(ValidationError):
            services.audit.list_logs(actor_of(admin_user), LogFilters(), PageRequest(sort_by="description"))

    def test_unassigned_sales_rep_is_forbidden(self, services):
        with pytest.raises(ForbiddenError):
            services.audit.list_logs(Actor(user_id=99, role=UserRole.SALES_REP), LogFilters(), PageRequest())


class TestLogsRoute:
    def test_logins_are_listed_within_scope(self, client, rep_a1, owner_b, auth_headers):
        rep_headers = auth_headers(rep_a1)
        owner_headers = auth_headers(owner_b)

        mine = client.get("/api/logs", headers=rep_headers)
        assert mine.status_code == 200
        body = mine.get_json()
        assert body["total_items"] == 1
        assert body["data"][0]["action"] == AuditAction.LOGIN
        assert body["data"][0]["actor_id"] == rep_a1.id

        theirs = client.get("/api/logs?action=login", headers=owner_headers).get_json()
        assert [row["actor_id"] for row in theirs["data"]] == [owner_b.id]

    def test_requires_auth_and_valid_paging(self, client, rep_a1, auth_headers):
        assert client.get("/api/logs").status_code == 401

        response = client.get("/api/logs?limit=1000", headers=auth_headers(rep_a1))
        assert response.status_code == 400
