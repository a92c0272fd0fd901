import asyncio
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from workreport.application import ReviewSession, ReviewStateError, SaveOrchestrator
from workreport.core.intake import build_report
from workreport.domain import DuplicateKey, FieldRef
from workreport.infrastructure import CommitResult, LedgerError, MasterDataError, StaticMasterDataProvider, classify_error

EMPLOYEES = ["Sato", "Tanaka", "Suzuki"]


class StubLedger:
    def __init__(self, *, existing=None, failed=None, probe_error=None, commit_error=None):
        self.existing = existing or {}
        self.failed = failed or []
        self.probe_error = probe_error
        self.commit_error = commit_error
        self.committed = []
        self.probed = 0

    async def check_existing(self, report):
        self.probed += 1
        if self.probe_error:
            raise self.probe_error
        return {name: self.existing.get(name, False) for name in report.worker_names()}

    async def commit(self, report):
        if self.commit_error:
            raise self.commit_error
        self.committed.append(report)
        return CommitResult(failed_workers=list(self.failed))


class FailingProvider:
    def __init__(self):
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        raise MasterDataError("expired", error_type="UNAUTHORIZED", can_retry=False, status=401)

    async def reauthenticate(self):
        return None


def _payload(names=("Sato", "Tanaka")) -> dict:
    return {
        "header": {"work_date": "2024-01-15", "product_name": "Green Tea 500ml"},
        "packaging": [{"name": name, "start": "8:00", "end": "17:00"} for name in names],
        "machine": [],
    }


def _session(ledger, payload=None, provider=None) -> ReviewSession:
    session = ReviewSession(
        "review-test",
        build_report(payload or _payload()),
        ledger=ledger,
        master_data_provider=provider or StaticMasterDataProvider(["Green Tea 500ml"], EMPLOYEES),
    )
    asyncio.run(session.load_master_data())
    return session


def test_partial_failure_keeps_only_failed_workers():
    ledger = StubLedger(failed=["Tanaka"])
    session = _session(ledger)

    result = asyncio.run(session.request_save())

    assert result.status == "partial"
    assert result.failed_workers == ["Tanaka"]
    assert result.period == "2023-12"
    assert "2023-12" in result.message and "Tanaka" in result.message
    assert [entry.name for entry in session.report.packaging] == ["Tanaka"]
    assert session.failed_workers == ["Tanaka"]
    assert session.saving is False
    assert session.closed is False
    assert session.has_changes is True


def test_full_success_closes_session():
    ledger = StubLedger()
    session = _session(ledger)

    result = asyncio.run(session.request_save())

    assert result.status == "saved"
    assert session.closed is True
    assert len(ledger.committed) == 1
    with pytest.raises(ReviewStateError):
        session.add_entry("packaging")


def test_blocked_save_has_no_side_effects():
    payload = _payload()
    payload["packaging"][0]["name_error"] = "unknown"
    payload["packaging"][0]["name"] = "Sat0"
    ledger = StubLedger()
    session = _session(ledger, payload)
    before = session.report

    result = asyncio.run(session.request_save())

    assert result.status == "blocked"
    assert result.block.reason == "unconfirmed"
    assert result.block.fields == (FieldRef("packaging", 0),)
    assert session.report is before
    assert ledger.probed == 0
    assert session.saving is False


def test_duplicates_block_until_acknowledged():
    ledger = StubLedger()
    session = _session(ledger, _payload(("Sato", "Sato", "Tanaka")))

    first = asyncio.run(session.request_save())
    assert first.status == "blocked"
    assert first.block.reason == "duplicates"
    assert first.block.duplicates.packaging == {"Sato": 2}

    again = asyncio.run(session.request_save())
    assert again.status == "blocked"
    assert session.highlights == frozenset()

    session.acknowledge_duplicates()
    assert session.highlights == frozenset({DuplicateKey("packaging", "Sato")})

    session.update_entry("packaging", 1, "name", "Suzuki")
    assert session.highlights == frozenset()

    result = asyncio.run(session.request_save())
    assert result.status == "saved"
    assert ledger.probed == 1


def test_overwrite_needs_confirmation():
    ledger = StubLedger(existing={"Sato": True})
    session = _session(ledger)

    result = asyncio.run(session.request_save())
    assert result.status == "confirm_overwrite"
    assert result.existing_workers == ["Sato"]
    assert session.saving is True
    assert ledger.committed == []

    busy = asyncio.run(session.request_save())
    assert busy.status == "busy"
    with pytest.raises(ReviewStateError):
        session.update_entry("packaging", 0, "output_count", "3")

    session.cancel_overwrite()
    assert session.saving is False
    assert ledger.committed == []

    asyncio.run(session.request_save())
    confirmed = asyncio.run(session.confirm_overwrite())
    assert confirmed.status == "saved"
    assert len(ledger.committed) == 1
    assert session.saving is False


def test_probe_failure_falls_through_to_commit():
    ledger = StubLedger(probe_error=RuntimeError("boom"))
    session = _session(ledger)

    result = asyncio.run(session.request_save())

    assert result.status == "saved"
    assert len(ledger.committed) == 1


@pytest.mark.parametrize(
    ("error", "kind"),
    [
        (LedgerError("Sato: sheet not found", kind="missing_destination"), "missing_destination"),
        (LedgerError("token expired", kind="auth_failure"), "auth_failure"),
        (RuntimeError("network unreachable"), "network"),
        (RuntimeError("Authentication failed"), "auth_failure"),
        (RuntimeError("something odd"), "other"),
    ],
)
def test_commit_errors_are_classified_and_keep_edits(error, kind):
    ledger = StubLedger(commit_error=error)
    session = _session(ledger)
    before = session.report

    result = asyncio.run(session.request_save())

    assert result.status == "error"
    assert result.error_kind == kind
    assert result.message
    assert session.report is before
    assert session.saving is False
    assert session.closed is False


def test_missing_destination_message_is_passed_through():
    assert classify_error(RuntimeError("no personal sheet for Sato")) == "missing_destination"
    ledger = StubLedger(commit_error=LedgerError("Sato: sheet not found", kind="missing_destination"))
    result = asyncio.run(SaveOrchestrator(ledger).commit(build_report(_payload())))
    assert result.message == "Sato: sheet not found"


def test_orchestrator_start_runs_all_steps():
    report = build_report(_payload())

    asks = asyncio.run(SaveOrchestrator(StubLedger(existing={"Tanaka": True})).start(report))
    assert asks.status == "confirm_overwrite"
    assert asks.existing_workers == ["Tanaka"]

    ledger = StubLedger()
    saved = asyncio.run(SaveOrchestrator(ledger).start(report))
    assert saved.status == "saved"
    assert ledger.committed == [report]


def test_master_data_failure_keeps_report():
    provider = FailingProvider()
    session = _session(StubLedger(), provider=provider)

    assert session.master_data_error is not None
    assert session.master_data_error.error_type == "UNAUTHORIZED"
    assert session.master_data_loading is False
    assert session.has_changes is False

    session.dismiss_master_data_error()
    assert session.master_data_error is None


def test_confirmation_flow_in_session():
    payload = _payload()
    payload["packaging"][1]["name"] = "Tanka"
    payload["packaging"][1]["name_error"] = "unknown"
    payload["packaging"][1]["original_name"] = "Tanka"
    payload["packaging"][1]["confidence"] = 0.55
    session = _session(StubLedger(), payload)
    field = FieldRef("packaging", 1)

    session.request_confirmation(field)
    session.resolve_prompt(correct=False)
    assert session.auto_open == frozenset({field})
    assert session.report.packaging[1].name_confirmation_status == "editing"

    session.select_value(field, "Tanaka")
    assert session.report.packaging[1].name_confirmation_status == "approved"
    info = session.correction_info(field)
    assert info == {"original": "Tanka", "confidence": 0.55, "percent": 55, "badge": "warning"}

    session.close_lookup(field)
    assert session.auto_open == frozenset()

    assert session.undo() is True
    assert session.report.packaging[1].name_confirmation_status == "editing"


def test_name_edit_reconciles_inline():
    payload = _payload()
    payload["packaging"][0]["name_error"] = "unknown"
    payload["packaging"][0]["name"] = "Sat0"
    session = _session(StubLedger(), payload)

    session.update_entry("packaging", 0, "name", "Sato")

    entry = session.report.packaging[0]
    assert entry.name_error is None
    assert entry.name_confirmation_status == "approved"


def test_entry_management_and_leave():
    session = _session(StubLedger())

    index = session.add_entry("packaging", position=5)
    assert index == 2
    assert session.report.packaging[2].name_confirmation_status == "pending"

    session.add_time_slot("packaging", 0)
    session.update_time_slot("packaging", 0, 1, "start", "1300", normalize=True)
    assert session.report.packaging[0].time_slots[1].start == "13:00"
    session.update_break("packaging", 0, "mid", True)
    assert session.report.packaging[0].breaks.mid is True

    session.remove_entry("packaging", 2)
    assert len(session.report.packaging) == 2

    assert session.leave() is False
    assert session.leave(confirmed=True) is True
    assert session.closed is True


def test_adding_an_entry_closes_the_open_prompt():
    payload = _payload()
    payload["packaging"][0].update(name="Satoo", name_error="unknown")
    session = _session(StubLedger(), payload)

    session.request_confirmation(FieldRef("packaging", 0))
    session.add_entry("packaging")

    assert session.prompt is None
    with pytest.raises(ReviewStateError):
        session.resolve_prompt(correct=True)
    assert [(entry.name, entry.name_confirmation_status) for entry in session.report.packaging[:2]] == [
        ("", "pending"),
        ("Satoo", "pending"),
    ]


def test_removing_an_entry_of_the_other_list_closes_the_prompt():
    payload = _payload()
    payload["packaging"][0].update(name="Satoo", name_error="unknown")
    payload["machine"] = [{"name": "Suzuki", "start": "8:00", "end": "17:00"}]
    session = _session(StubLedger(), payload)

    session.request_confirmation(FieldRef("packaging", 0))
    session.remove_entry("machine", 0)

    assert session.prompt is None


def test_removing_a_duplicate_clears_its_highlight():
    session = _session(StubLedger(), _payload(("Sato", "Sato", "Tanaka")))
    asyncio.run(session.request_save())
    session.acknowledge_duplicates()

    session.remove_entry("packaging", 0)

    assert session.highlights == frozenset()


def test_undo_after_partial_save_keeps_saved_workers_out():
    session = _session(StubLedger(failed=["Tanaka"]))
    session.update_entry("packaging", 1, "output_count", "12")

    asyncio.run(session.request_save())

    assert session.can_undo is False
    assert session.undo() is False
    assert [entry.name for entry in session.report.packaging] == ["Tanaka"]
    assert session.has_changes is True


def test_editing_a_name_keeps_other_highlights():
    payload = _payload(("Sato", "Sato"))
    payload["machine"] = [{"name": "Suzuki", "start": "8:00", "end": "17:00"} for _ in range(2)]
    session = _session(StubLedger(), payload)

    asyncio.run(session.request_save())
    session.acknowledge_duplicates()
    assert session.highlights == frozenset({DuplicateKey("packaging", "Sato"), DuplicateKey("machine", "Suzuki")})

    session.update_entry("packaging", 1, "name", "Tanaka")

    assert session.highlights == frozenset({DuplicateKey("machine", "Suzuki")})


class SlowLedger(StubLedger):
    def __init__(self):
        super().__init__()
        self.probing = None
        self.release = None

    async def check_existing(self, report):
        self.probing.set()
        await self.release.wait()
        return await super().check_existing(report)


def test_second_save_is_busy_while_probe_runs():
    ledger = SlowLedger()
    session = _session(ledger)

    async def scenario():
        ledger.probing = asyncio.Event()
        ledger.release = asyncio.Event()
        first = asyncio.create_task(session.request_save())
        await ledger.probing.wait()
        busy = await session.request_save()
        assert session.saving is True
        ledger.release.set()
        return busy, await first

    busy, result = asyncio.run(scenario())

    assert busy.status == "busy"
    assert result.status == "saved"
    assert len(ledger.committed) == 1
    assert ledger.probed == 1


def test_negative_indexes_are_rejected():
    session = _session(StubLedger())

    with pytest.raises(IndexError):
        session.update_entry("packaging", -1, "name", "Suzuki")
    with pytest.raises(IndexError):
        session.remove_entry("packaging", -1)
    assert [entry.name for entry in session.report.packaging] == ["Sato", "Tanaka"]


def test_unnamed_failed_entries_are_not_listed_as_workers():
    ledger = StubLedger(failed=["", "Tanaka"])
    session = _session(ledger, _payload(("Sato", "Tanaka", "")))

    result = asyncio.run(session.request_save())

    assert result.status == "partial"
    assert result.failed_workers == ["Tanaka"]
    assert "Workers: Tanaka\n" in result.message
    assert "Entries without a worker name: 1" in result.message
    assert [entry.name for entry in session.report.packaging] == ["Tanaka", ""]
