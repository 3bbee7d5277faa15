from typing import List, NamedTuple

import pytest
from ape.utils import ZERO_ADDRESS
from eth_utils import to_checksum_address

from bridge_deployment.artifacts import Artifact, ArtifactStore
from bridge_deployment.chain import ChainClient
from bridge_deployment.config import BridgeDeploymentConfig
from bridge_deployment.constants import (
    BRIDGE_COMMITTEE,
    BRIDGE_LIMITER,
    BRIDGE_VAULT,
    MOCK_TOKENS,
    SUI_BRIDGE,
)
from bridge_deployment.deployers import PlainDeployer, ProxyDeployer
from bridge_deployment.exceptions import (
    ArtifactNotFoundError,
    TransactionFailure,
    TransactionReverted,
)
from bridge_deployment.ledger import (
    CONTRACT_STAGE,
    IMPLEMENTATION_STAGE,
    DeploymentRecord,
    InMemoryDeploymentLedger,
    PendingTransaction,
    Receipt,
)
from bridge_deployment.ownership import OwnershipHandshake

# Common constants
DEPLOYER = to_checksum_address("0x" + "de" * 20)
MEMBER_1 = to_checksum_address("0x" + "11" * 20)
MEMBER_2 = to_checksum_address("0x" + "22" * 20)
WETH = to_checksum_address("0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14")
TOKEN_1 = to_checksum_address("0x0112D7B36726B3077b72DDb457A9f9c94D9cd71c")
TOKEN_2 = to_checksum_address("0x80bF6fb931C8eB99Ab32aeD543ACCFd168fd2a47")
DAILY_LIMITS = [10**12, 5 * 10**11]

CONTRACT_NAMES = [BRIDGE_COMMITTEE, BRIDGE_VAULT, BRIDGE_LIMITER, SUI_BRIDGE, "A", "B", "C"]
CONTRACT_NAMES.extend(MOCK_TOKENS)


# Utility functions
def address(index: int) -> str:
    return to_checksum_address(f"0x{index:040x}")


def make_record(record_address: str, metadata: str = "") -> DeploymentRecord:
    receipt = Receipt(
        sender=DEPLOYER,
        tx_hash="0x" + "ab" * 32,
        block_hash="0x" + "cd" * 32,
        block_number=42,
        tx_index=3,
    )
    return DeploymentRecord(
        address=record_address,
        abi=[{"type": "constructor", "inputs": []}],
        receipt=receipt,
        metadata=metadata,
    )


class Deployment(NamedTuple):
    name: str
    args: List
    address: str
    kind: str
    options: dict


class FakeChainClient(ChainClient):
    """Stand-in chain that journals every transaction before sending and mines it instantly."""

    def __init__(self):
        self.deployments: List[Deployment] = []
        self.implementation_deployments: List[str] = []
        self.ownership_transfers = []
        self.waited = []
        self.owners = {}
        self.implementations = {}
        self.receipts = {}
        self.reverted = set()  # tx hashes mined with a revert
        self.failing = set()  # contract names refused before anything is sent
        self.reverting = set()  # contract names whose transaction reverts on inclusion
        self.unmined = set()  # contract names whose transaction is sent but not mined
        self.crashing = set()  # contract names whose deployment is cut off after a send
        self.broken_proxies = set()  # contract names whose proxy has no implementation
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def mine(self, tx_hash: str) -> None:
        self.receipts[tx_hash] = Receipt(
            sender=DEPLOYER,
            tx_hash=tx_hash,
            block_hash=f"0x{self._counter + 1000:064x}",
            block_number=len(self.receipts) + 1,
            tx_index=0,
        )

    def _send(
        self,
        name: str,
        contract_address: str,
        journal=None,
        stage: str = CONTRACT_STAGE,
        implementation=None,
    ) -> PendingTransaction:
        pending = PendingTransaction(
            name=name,
            tx_hash=f"0x{self._next():064x}",
            address=contract_address,
            stage=stage,
            implementation=implementation,
        )
        if journal is not None:
            journal.record(pending)
        if stage == CONTRACT_STAGE and name in self.reverting:
            self.reverted.add(pending.tx_hash)
        elif not (stage == CONTRACT_STAGE and name in self.unmined):
            self.mine(pending.tx_hash)
        return pending

    def _create(self, artifact, args, kind, options=None) -> str:
        contract_address = address(self._next())
        self.deployments.append(
            Deployment(artifact.name, list(args), contract_address, kind, options or {})
        )
        self.owners[contract_address] = DEPLOYER
        return contract_address

    def _check_accepted(self, artifact) -> None:
        if artifact.name in self.failing:
            raise TransactionFailure(f"Deployment of {artifact.name} was rejected")

    def deploy_contract(self, artifact, args, journal=None):
        self._check_accepted(artifact)
        contract_address = self._create(artifact, args, "plain")
        pending = self._send(artifact.name, contract_address, journal)
        if artifact.name in self.crashing:
            raise ConnectionError("connection lost")
        return pending

    def deploy_proxy(self, artifact, args, options=None, journal=None, implementation=None):
        self._check_accepted(artifact)
        if implementation is None:
            self.implementation_deployments.append(artifact.name)
            implementation_pending = self._send(
                artifact.name, address(self._next()), journal, stage=IMPLEMENTATION_STAGE
            )
            self.wait_for_inclusion(implementation_pending)
            implementation = implementation_pending.address
            if artifact.name in self.crashing:
                raise ConnectionError("connection lost")

        contract_address = self._create(artifact, args, "proxy", options)
        if artifact.name not in self.broken_proxies:
            self.implementations[contract_address] = implementation
        return self._send(
            artifact.name, contract_address, journal, implementation=implementation
        )

    def wait_for_inclusion(self, pending):
        self.waited.append(pending.tx_hash)
        if pending.tx_hash in self.reverted:
            raise TransactionReverted(f"Transaction {pending.tx_hash} reverted")
        try:
            return self.receipts[pending.tx_hash]
        except KeyError:
            raise TransactionFailure(f"Transaction {pending.tx_hash} was not found in time")

    def get_implementation_address(self, proxy_address):
        return self.implementations.get(proxy_address, ZERO_ADDRESS)

    def get_latest_block_timestamp(self):
        return 1_700_000_000 + self._counter

    def get_owner(self, contract_address):
        return self.owners[contract_address]

    def transfer_ownership(self, contract_address, new_owner):
        self.ownership_transfers.append((contract_address, new_owner))
        self.owners[contract_address] = new_owner
        return self._send(f"transferOwnership({contract_address})", contract_address)

    def deployed(self, name: str) -> Deployment:
        matches = [d for d in self.deployments if d.name == name]
        assert len(matches) == 1, f"expected exactly one deployment of {name}"
        return matches[0]


class FakeArtifactStore(ArtifactStore):
    def __init__(self, names=None):
        self.names = set(CONTRACT_NAMES if names is None else names)

    def read_artifact(self, name):
        if name not in self.names:
            raise ArtifactNotFoundError(f"No contract found with name '{name}'.")
        abi = [
            {"type": "constructor", "inputs": []},
            {"type": "function", "name": "owner", "inputs": [], "outputs": []},
        ]
        return Artifact(name=name, abi=abi, bytecode="0x6080604052", factory=None)


# Fixtures
@pytest.fixture
def client():
    return FakeChainClient()


@pytest.fixture
def artifacts():
    return FakeArtifactStore()


@pytest.fixture
def ledger():
    return InMemoryDeploymentLedger()


@pytest.fixture
def proxy_deployer(client, artifacts):
    return ProxyDeployer(client=client, artifacts=artifacts)


@pytest.fixture
def plain_deployer(client, artifacts):
    return PlainDeployer(client=client, artifacts=artifacts)


@pytest.fixture
def handshake(client):
    return OwnershipHandshake(client=client)


@pytest.fixture
def raw_config():
    return {
        "committee_members": [MEMBER_1, MEMBER_2],
        "committee_member_stake": [5000, 5000],
        "wrapped_native_token_address": WETH,
        "supported_tokens": [TOKEN_1, TOKEN_2],
        "source_chain_id": 1,
        "daily_bridge_limits": list(DAILY_LIMITS),
    }


@pytest.fixture
def config():
    return BridgeDeploymentConfig(
        committee_members=(MEMBER_1, MEMBER_2),
        committee_member_stake=(5000, 5000),
        wrapped_native_token_address=WETH,
        supported_tokens=(TOKEN_1, TOKEN_2),
        source_chain_id=1,
        daily_bridge_limits=tuple(DAILY_LIMITS),
    )
