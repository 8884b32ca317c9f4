import pytest

from envrefresh.restore.conflicts import check_conflicts
from envrefresh.restore.discovery import discover_targets
from fakes import FakeControlPlane, FakeDirectory, database_record


async def _targets(*services):
    directory = FakeDirectory([database_record(s) for s in services])
    report = await discover_targets(
        directory,
        "prod",
        "manufacturo",
        name_template="db-{Product}-{Type}-{Service}-{Environment}-{Location}",
        excluded_patterns=["master", "restored"],
    )
    return report.targets


@pytest.mark.asyncio
async def test_no_conflicts_when_no_derived_name_exists():
    targets = await _targets("core", "reports")
    control_plane = FakeControlPlane(existing=["db-mfg-sql-core-prod-eastus", "master"])

    report = await check_conflicts(control_plane, targets)

    assert report.has_conflicts is False


@pytest.mark.asyncio
async def test_existing_derived_name_is_reported_case_insensitively():
    targets = await _targets("core", "reports")
    control_plane = FakeControlPlane(existing=["DB-MFG-SQL-REPORTS-PROD-EASTUS-RESTORED"])

    report = await check_conflicts(control_plane, targets)

    assert report.conflicts == frozenset({"db-mfg-sql-reports-prod-eastus-restored"})


@pytest.mark.asyncio
async def test_servers_are_listed_once():
    targets = await _targets("core", "reports", "billing")
    control_plane = FakeControlPlane()

    await check_conflicts(control_plane, targets)

    assert len(control_plane.list_calls) == 1


@pytest.mark.asyncio
async def test_repeated_checks_yield_identical_results():
    targets = await _targets("core", "reports")
    control_plane = FakeControlPlane(existing=["db-mfg-sql-core-prod-eastus-restored"])

    first = await check_conflicts(control_plane, targets)
    second = await check_conflicts(control_plane, targets)

    assert first == second
    assert control_plane.mutating_calls == 0
