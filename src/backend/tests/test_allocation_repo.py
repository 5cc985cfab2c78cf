"""Tests for the SQL that AllocationRepository sends for credit usage.

The session is a MagicMock whose execute() records each statement; the
statements are compiled with the PostgreSQL dialect and inspected as text.
Covers:
- credit increments are one UPDATE ... SET credit_used = credit_used + :amount
- fractional amounts reach the database unrounded
- the reset and the pending-row count use the same WHERE clause on both tables
- resets ignore whether a budget is set
- new rows are stamped with credit_reset_at, updates leave it alone
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy import Select, Update
from sqlalchemy.dialects import postgresql

from quotahub.models.allocation import AllocationMode
from quotahub.repositories.allocation_repo import AllocationRepository

WINDOW = datetime(2026, 3, 1, tzinfo=UTC)


def _make_repo(**result_attrs) -> tuple[AllocationRepository, MagicMock]:
    """Return (repo, session). Every execute() returns the same result mock."""
    result = MagicMock()
    for key, value in result_attrs.items():
        setattr(result, key, value)
    session = MagicMock()
    session.execute = AsyncMock(return_value=result)
    session.flush = AsyncMock()
    return AllocationRepository(session), session


def _compiled(session: MagicMock, index: int = 0):
    stmt = session.execute.call_args_list[index].args[0]
    return stmt, stmt.compile(dialect=postgresql.dialect())


def _where(sql: str) -> str:
    return sql.split("WHERE ", 1)[1].strip()


class TestCreditIncrement:
    async def test_dept_increment_is_a_single_relative_update(self):
        repo, session = _make_repo(scalar_one_or_none=MagicMock(return_value=0.4))

        used = await repo.increment_dept_credit_used("dept-1", 0.4)

        assert used == 0.4
        assert session.execute.call_count == 1
        stmt, compiled = _compiled(session)
        assert isinstance(stmt, Update)
        sql = str(compiled)
        assert "SET credit_used=" in sql
        assert "dept_allocations.credit_used + " in sql
        assert "RETURNING dept_allocations.credit_used" in sql
        assert 0.4 in compiled.params.values()

    async def test_member_increment_keys_on_user_and_department(self):
        repo, session = _make_repo(scalar_one_or_none=MagicMock(return_value=1.75))

        assert await repo.increment_member_credit_used("user-1", "dept-1", 0.25) == 1.75

        assert session.execute.call_count == 1
        _, compiled = _compiled(session)
        sql = str(compiled)
        assert "member_allocations.credit_used + " in sql
        assert "member_allocations.user_id" in sql
        assert "member_allocations.department_id" in sql
        assert 0.25 in compiled.params.values()
        assert {"user-1", "dept-1"} <= set(compiled.params.values())

    async def test_missing_row_returns_none(self):
        repo, _ = _make_repo(scalar_one_or_none=MagicMock(return_value=None))
        assert await repo.increment_dept_credit_used("dept-x", 1.0) is None


class TestCreditResetFilters:
    async def test_reset_covers_both_tables(self):
        repo, session = _make_repo(rowcount=3)

        counts = await repo.reset_credit_usage(datetime.now(UTC), stale_before=WINDOW)

        assert counts == (3, 3)
        tables = [str(_compiled(session, i)[1]).split()[1] for i in range(2)]
        assert tables == ["dept_allocations", "member_allocations"]

    async def test_reset_and_pending_count_share_the_where_clause(self):
        repo, session = _make_repo(rowcount=0, scalar_one=MagicMock(return_value=0))

        await repo.reset_credit_usage(datetime.now(UTC), stale_before=WINDOW)
        await repo.count_stale_credit_rows(WINDOW)

        for reset_index, count_index in ((0, 2), (1, 3)):
            reset_stmt, reset_sql = _compiled(session, reset_index)
            count_stmt, count_sql = _compiled(session, count_index)
            assert isinstance(reset_stmt, Update)
            assert isinstance(count_stmt, Select)
            assert _where(str(reset_sql)) == _where(str(count_sql))
            assert "credit_reset_at IS NULL OR" in _where(str(reset_sql))
            assert WINDOW in reset_sql.params.values()
            assert WINDOW in count_sql.params.values()

    async def test_reset_ignores_budget(self):
        # A row with usage but no budget is reset like any other.
        repo, session = _make_repo(rowcount=1)

        await repo.reset_credit_usage(datetime.now(UTC), stale_before=WINDOW)

        for i in range(2):
            where = _where(str(_compiled(session, i)[1]))
            assert "credit_budget" not in where
            assert "credit_used" not in where

    async def test_unwindowed_reset_has_no_stale_clause(self):
        repo, session = _make_repo(rowcount=5)

        await repo.reset_credit_usage(datetime.now(UTC))

        for i in range(2):
            assert "WHERE" not in str(_compiled(session, i)[1])

    async def test_org_reset_scopes_through_departments(self):
        repo, session = _make_repo(rowcount=2)

        await repo.reset_credit_usage(datetime.now(UTC), org_id="org-1")

        for i in range(2):
            _, compiled = _compiled(session, i)
            sql = str(compiled)
            assert "department_id IN (SELECT departments.id" in sql
            assert "departments.organization_id" in sql
            assert "org-1" in compiled.params.values()
            assert "credit_reset_at IS NULL" not in sql

    async def test_pending_count_sums_both_tables(self):
        repo, session = _make_repo(scalar_one=MagicMock(side_effect=[0, 4]))

        assert await repo.count_stale_credit_rows(WINDOW) == 4
        assert session.execute.call_count == 2


class TestUpsertStampsResetTime:
    async def test_insert_sets_reset_time_and_conflict_update_keeps_it(self):
        repo, session = _make_repo(scalar_one=MagicMock(return_value=MagicMock()))

        await repo.upsert_dept_allocation(
            "dept-1", {"credit_budget": 100.0}, mode=AllocationMode.HARD_CAP, set_by="admin-1"
        )

        _, compiled = _compiled(session)
        sql = str(compiled)
        insert_part, conflict_part = sql.split("ON CONFLICT", 1)
        conflict_set = conflict_part.split("RETURNING", 1)[0]
        assert "credit_reset_at" in insert_part
        assert "now()" in insert_part
        assert "credit_reset_at" not in conflict_set
        session.flush.assert_called_once()

    async def test_member_insert_sets_reset_time(self):
        repo, session = _make_repo(scalar_one=MagicMock(return_value=MagicMock()))

        await repo.upsert_member_allocation(
            "user-1", "dept-1", {}, mode=AllocationMode.SOFT_CAP, set_by="admin-1"
        )

        sql = str(_compiled(session)[1])
        insert_part, conflict_part = sql.split("ON CONFLICT", 1)
        assert "credit_reset_at" in insert_part
        assert "credit_reset_at" not in conflict_part.split("RETURNING", 1)[0]
