import typing
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ape.utils import ZERO_ADDRESS

from bridge_deployment.artifacts import Artifact, ArtifactStore
from bridge_deployment.chain import ChainClient
from bridge_deployment.constants import IMPLEMENTATION_METADATA_PREFIX
from bridge_deployment.exceptions import PreconditionViolation, ProxyResolutionError
from bridge_deployment.ledger import DeploymentRecord, PendingTransaction, SubmissionJournal


class ContractDeployer(ABC):
    """
    Deploys a single contract and assembles its ledger record.

    Deployment happens in two halves: ``submit`` sends the transaction(s) and
    ``complete`` waits for inclusion and builds the record. Records are never
    written here; a failure in either half produces no record.
    """

    def __init__(self, client: ChainClient, artifacts: ArtifactStore):
        self.client = client
        self.artifacts = artifacts

    @abstractmethod
    def submit(
        self,
        name: str,
        args: List[Any],
        options: Optional[typing.Dict] = None,
        journal: Optional[SubmissionJournal] = None,
    ) -> PendingTransaction:
        raise NotImplementedError

    @abstractmethod
    def _metadata(self, name: str, pending: PendingTransaction) -> str:
        raise NotImplementedError

    def resume(
        self,
        name: str,
        pending: PendingTransaction,
        args: List[Any],
        options: Optional[typing.Dict] = None,
        journal: Optional[SubmissionJournal] = None,
    ) -> PendingTransaction:
        """Continues a submission that stopped after its implementation was sent."""
        raise PreconditionViolation(
            f"{name} was journaled as '{pending.stage}' but has no implementation to resume from"
        )

    def complete(self, name: str, pending: PendingTransaction) -> DeploymentRecord:
        artifact = self.artifacts.read_artifact(name)
        receipt = self.client.wait_for_inclusion(pending)
        metadata = self._metadata(name, pending)
        return DeploymentRecord(
            address=pending.address,
            abi=artifact.abi,
            receipt=receipt,
            metadata=metadata,
        )

    def deploy(
        self, name: str, args: List[Any], options: Optional[typing.Dict] = None
    ) -> DeploymentRecord:
        pending = self.submit(name, args, options)
        return self.complete(name, pending)


class PlainDeployer(ContractDeployer):
    """Deploys non-upgradeable contracts through their constructor."""

    def submit(
        self,
        name: str,
        args: List[Any],
        options: Optional[typing.Dict] = None,
        journal: Optional[SubmissionJournal] = None,
    ) -> PendingTransaction:
        artifact: Artifact = self.artifacts.read_artifact(name)
        return self.client.deploy_contract(artifact, list(args), journal=journal)

    def _metadata(self, name: str, pending: PendingTransaction) -> str:
        return ""


class ProxyDeployer(ContractDeployer):
    """Deploys upgradeable contracts behind a proxy, initialized with the given arguments."""

    def submit(
        self,
        name: str,
        args: List[Any],
        options: Optional[typing.Dict] = None,
        journal: Optional[SubmissionJournal] = None,
    ) -> PendingTransaction:
        artifact: Artifact = self.artifacts.read_artifact(name)
        return self.client.deploy_proxy(artifact, list(args), options, journal=journal)

    def resume(
        self,
        name: str,
        pending: PendingTransaction,
        args: List[Any],
        options: Optional[typing.Dict] = None,
        journal: Optional[SubmissionJournal] = None,
    ) -> PendingTransaction:
        artifact: Artifact = self.artifacts.read_artifact(name)
        self.client.wait_for_inclusion(pending)
        return self.client.deploy_proxy(
            artifact, list(args), options, journal=journal, implementation=pending.address
        )

    def _metadata(self, name: str, pending: PendingTransaction) -> str:
        implementation = self.client.get_implementation_address(pending.address)
        if not implementation or implementation == ZERO_ADDRESS:
            raise ProxyResolutionError(
                f"Proxy for {name} at {pending.address} has no implementation address"
            )
        return f"{IMPLEMENTATION_METADATA_PREFIX}{implementation}"
