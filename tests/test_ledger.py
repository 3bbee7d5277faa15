import json

import pytest

from bridge_deployment.exceptions import LedgerCorrupted, RecordExists
from bridge_deployment.ledger import (
    IMPLEMENTATION_STAGE,
    InMemoryDeploymentLedger,
    JSONDeploymentLedger,
    PendingTransaction,
    SubmissionJournal,
    find_implementation_drift,
)
from tests.conftest import address, make_record


@pytest.fixture
def ledger_filepath(tmp_path):
    return tmp_path / "deployments" / "testnet.json"


def test_missing_name_is_absent():
    ledger = InMemoryDeploymentLedger()
    assert ledger.get_or_null("SuiBridge") is None
    assert "SuiBridge" not in ledger


def test_records_are_never_overwritten():
    ledger = InMemoryDeploymentLedger()
    original = make_record(address(1))
    ledger.save("BridgeVault", original)

    with pytest.raises(RecordExists):
        ledger.save("BridgeVault", make_record(address(2)))
    assert ledger.get_or_null("BridgeVault") == original


def test_json_ledger_survives_reload(ledger_filepath):
    ledger = JSONDeploymentLedger(filepath=ledger_filepath)
    proxy_record = make_record(address(1), metadata=f"implementationAddress: {address(2)}")
    ledger.save("BridgeCommittee", proxy_record)
    ledger.save("BridgeVault", make_record(address(3)))

    reloaded = JSONDeploymentLedger(filepath=ledger_filepath)

    assert reloaded.names() == ["BridgeCommittee", "BridgeVault"]
    assert reloaded.get_or_null("BridgeCommittee") == proxy_record
    assert reloaded.get_or_null("BridgeCommittee").implementation_address == address(2)
    assert reloaded.get_or_null("BridgeVault").implementation_address is None


def test_json_ledger_layout(ledger_filepath):
    ledger = JSONDeploymentLedger(filepath=ledger_filepath)
    ledger.save("BridgeVault", make_record(address(3)))

    with open(ledger_filepath) as file:
        data = json.load(file)

    entry = data["deployments"]["BridgeVault"]
    assert entry["address"] == address(3)
    assert entry["metadata"] == ""
    assert set(entry["receipt"]) == {"sender", "tx_hash", "block_hash", "block_number", "tx_index"}
    assert data["pending"] == {}
    assert not ledger_filepath.with_suffix(".temp.json").exists()


def test_pending_submissions_are_persisted_until_saved(ledger_filepath):
    ledger = JSONDeploymentLedger(filepath=ledger_filepath)
    pending = PendingTransaction(name="SuiBridge", tx_hash="0x" + "01" * 32, address=address(9))
    ledger.mark_pending("SuiBridge", pending)

    reloaded = JSONDeploymentLedger(filepath=ledger_filepath)
    assert reloaded.get_pending("SuiBridge") == pending

    reloaded.save("SuiBridge", make_record(address(9)))
    assert reloaded.get_pending("SuiBridge") is None
    assert JSONDeploymentLedger(filepath=ledger_filepath).pending_names() == []


def test_pending_stage_survives_reload(ledger_filepath):
    ledger = JSONDeploymentLedger(filepath=ledger_filepath)
    pending = PendingTransaction(
        name="BridgeCommittee",
        tx_hash="0x" + "04" * 32,
        address=address(4),
        stage=IMPLEMENTATION_STAGE,
    )
    ledger.mark_pending("BridgeCommittee", pending)

    data = json.loads(ledger_filepath.read_text())
    assert data["pending"]["BridgeCommittee"]["stage"] == "implementation"
    assert JSONDeploymentLedger(filepath=ledger_filepath).get_pending("BridgeCommittee") == pending


def test_pending_entry_without_stage_is_a_contract_submission(ledger_filepath):
    ledger_filepath.parent.mkdir(parents=True)
    entry = {"tx_hash": "0x" + "05" * 32, "address": address(5)}
    ledger_filepath.write_text(json.dumps({"deployments": {}, "pending": {"BridgeVault": entry}}))

    pending = JSONDeploymentLedger(filepath=ledger_filepath).get_pending("BridgeVault")

    assert pending.stage == "contract"
    assert pending.implementation is None


def test_submission_journal_tracks_one_contract():
    ledger = InMemoryDeploymentLedger()
    journal = SubmissionJournal(ledger, "BridgeLimiter")
    assert journal.current() is None

    pending = PendingTransaction("BridgeLimiter", "0x" + "06" * 32, address=address(6))
    journal.record(pending)
    assert ledger.get_pending("BridgeLimiter") == pending
    assert journal.current() == pending

    journal.discard()
    assert ledger.pending_names() == []


def test_clear_pending(ledger_filepath):
    ledger = JSONDeploymentLedger(filepath=ledger_filepath)
    ledger.mark_pending("BridgeVault", PendingTransaction("BridgeVault", "0x" + "02" * 32))
    ledger.clear_pending("BridgeVault")
    assert JSONDeploymentLedger(filepath=ledger_filepath).get_pending("BridgeVault") is None


def test_cannot_mark_recorded_name_pending():
    ledger = InMemoryDeploymentLedger()
    ledger.save("BridgeVault", make_record(address(1)))
    with pytest.raises(RecordExists):
        ledger.mark_pending("BridgeVault", PendingTransaction("BridgeVault", "0x" + "03" * 32))


def test_corrupted_ledger_fails_loudly(ledger_filepath):
    ledger_filepath.parent.mkdir(parents=True)
    ledger_filepath.write_text('{"deployments": {"BridgeVault": {"address": "0x12"}}}')
    with pytest.raises(LedgerCorrupted):
        JSONDeploymentLedger(filepath=ledger_filepath)


def test_implementation_drift():
    ledger = InMemoryDeploymentLedger()
    ledger.save("BridgeCommittee", make_record(address(1), f"implementationAddress: {address(2)}"))
    ledger.save("SuiBridge", make_record(address(3), f"implementationAddress: {address(4)}"))
    ledger.save("BridgeVault", make_record(address(5)))
    on_chain = {address(1): address(2), address(3): address(6)}

    drift = find_implementation_drift(ledger, on_chain.__getitem__)

    assert drift == [("SuiBridge", address(4), address(6))]
