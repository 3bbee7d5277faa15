import json
import os
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from bridge_deployment.constants import IMPLEMENTATION_METADATA_PREFIX
from bridge_deployment.exceptions import LedgerCorrupted, RecordExists
from bridge_deployment.utils import _load_json

ContractName = str

STANDARD_LEDGER_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class Receipt(NamedTuple):
    """Inclusion details of a confirmed transaction."""

    sender: ChecksumAddress
    tx_hash: str
    block_hash: str
    block_number: int
    tx_index: int


class DeploymentRecord(NamedTuple):
    """Represents a single deployed contract in the ledger."""

    address: ChecksumAddress
    abi: List[Dict[str, Any]]
    receipt: Receipt
    metadata: str = ""

    @property
    def implementation_address(self) -> Optional[ChecksumAddress]:
        """The implementation recorded for a proxy deployment, if any."""
        if not self.metadata.startswith(IMPLEMENTATION_METADATA_PREFIX):
            return None
        return to_checksum_address(self.metadata[len(IMPLEMENTATION_METADATA_PREFIX) :])

    def to_dict(self) -> Dict[str, Any]:
        abi = list(self.abi)
        abi.sort(key=lambda d: (d["type"], d.get("name") or ""))
        return {
            "address": self.address,
            "abi": abi,
            "receipt": self.receipt._asdict(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentRecord":
        receipt = data["receipt"]
        return cls(
            address=to_checksum_address(data["address"]),
            abi=data["abi"],
            receipt=Receipt(
                sender=to_checksum_address(receipt["sender"]),
                tx_hash=receipt["tx_hash"],
                block_hash=receipt["block_hash"],
                block_number=int(receipt["block_number"]),
                tx_index=int(receipt["tx_index"]),
            ),
            metadata=data.get("metadata", ""),
        )


# stages of a journaled submission
CONTRACT_STAGE = "contract"
IMPLEMENTATION_STAGE = "implementation"


class PendingTransaction(NamedTuple):
    """
    A signed transaction that has not yet been confirmed and recorded.

    Deployments carry the address the contract will be created at. A proxy deployment
    is journaled twice: first its implementation (``IMPLEMENTATION_STAGE``), then the
    proxy itself, which references the implementation it was deployed over.
    """

    name: str
    tx_hash: str
    address: Optional[ChecksumAddress] = None
    stage: str = CONTRACT_STAGE
    implementation: Optional[ChecksumAddress] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "address": self.address,
            "stage": self.stage,
            "implementation": self.implementation,
        }

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "PendingTransaction":
        return cls(
            name=name,
            tx_hash=data["tx_hash"],
            address=data.get("address"),
            stage=data.get("stage", CONTRACT_STAGE),
            implementation=data.get("implementation"),
        )


class DeploymentLedger(ABC):
    """
    Persisted record of what has already been deployed, keyed by logical contract name.

    Records are written once and never overwritten. Alongside the records the ledger
    journals deployments that were submitted but not yet recorded, so that an
    interrupted run can be reconciled against the chain instead of redeploying.
    """

    def __init__(self):
        self._records: Dict[ContractName, DeploymentRecord] = OrderedDict()
        self._pending: Dict[ContractName, PendingTransaction] = OrderedDict()

    @abstractmethod
    def _flush(self) -> None:
        raise NotImplementedError

    def get_or_null(self, name: ContractName) -> Optional[DeploymentRecord]:
        return self._records.get(name)

    def save(self, name: ContractName, record: DeploymentRecord) -> None:
        if name in self._records:
            raise RecordExists(
                f"{name} is already recorded at {self._records[name].address}; "
                "deployment records are never overwritten."
            )
        self._records[name] = record
        self._pending.pop(name, None)
        self._flush()

    def names(self) -> List[ContractName]:
        return list(self._records)

    def pending_names(self) -> List[ContractName]:
        return list(self._pending)

    def get_pending(self, name: ContractName) -> Optional[PendingTransaction]:
        return self._pending.get(name)

    def mark_pending(self, name: ContractName, pending: PendingTransaction) -> None:
        if name in self._records:
            raise RecordExists(f"{name} is already recorded; nothing can be pending for it.")
        self._pending[name] = pending
        self._flush()

    def clear_pending(self, name: ContractName) -> None:
        if self._pending.pop(name, None) is not None:
            self._flush()

    def __contains__(self, name: ContractName) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)


class InMemoryDeploymentLedger(DeploymentLedger):
    """Ledger that lives for the duration of the process."""

    def _flush(self) -> None:
        pass


class JSONDeploymentLedger(DeploymentLedger):
    """Ledger persisted as a single JSON file; rewritten atomically after every change."""

    DEPLOYMENTS_KEY = "deployments"
    PENDING_KEY = "pending"

    def __init__(self, filepath: Path):
        super().__init__()
        self.filepath = Path(filepath)
        if self.filepath.exists():
            self._load()

    def _load(self) -> None:
        try:
            data = _load_json(self.filepath)
            for name, entry in data.get(self.DEPLOYMENTS_KEY, {}).items():
                self._records[name] = DeploymentRecord.from_dict(entry)
            for name, entry in data.get(self.PENDING_KEY, {}).items():
                self._pending[name] = PendingTransaction.from_dict(name, entry)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise LedgerCorrupted(f"Cannot read deployment ledger at {self.filepath}: {e}") from e

    def _flush(self) -> None:
        data = {
            self.DEPLOYMENTS_KEY: {
                name: record.to_dict() for name, record in self._records.items()
            },
            self.PENDING_KEY: {
                name: pending.to_dict() for name, pending in self._pending.items()
            },
        }

        # Create the parent directory if it does not exist
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

        temp_filepath = self.filepath.with_suffix(".temp.json")
        with open(temp_filepath, "w") as file:
            json.dump(data, file, **STANDARD_LEDGER_JSON_FORMAT)
        os.replace(temp_filepath, self.filepath)


class SubmissionJournal:
    """Journal entry of a single contract; written before each of its transactions is sent."""

    def __init__(self, ledger: DeploymentLedger, name: ContractName):
        self.ledger = ledger
        self.name = name

    def current(self) -> Optional[PendingTransaction]:
        return self.ledger.get_pending(self.name)

    def record(self, pending: PendingTransaction) -> None:
        self.ledger.mark_pending(self.name, pending)

    def discard(self) -> None:
        self.ledger.clear_pending(self.name)


def find_implementation_drift(
    ledger: DeploymentLedger,
    get_implementation_address: Callable[[ChecksumAddress], ChecksumAddress],
) -> List[Tuple[ContractName, ChecksumAddress, ChecksumAddress]]:
    """
    Returns (name, recorded, current) for every proxy whose implementation on chain
    no longer matches the implementation recorded when it was deployed.
    """
    drift = list()
    for name in ledger.names():
        record = ledger.get_or_null(name)
        recorded = record.implementation_address
        if recorded is None:
            continue  # not a proxy
        current = to_checksum_address(get_implementation_address(record.address))
        if current != recorded:
            drift.append((name, recorded, current))
    return drift
