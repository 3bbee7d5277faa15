import typing
from collections import OrderedDict
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, NamedTuple, Optional, Sequence

from eth_typing import ChecksumAddress

from bridge_deployment.deployers import ContractDeployer
from bridge_deployment.exceptions import (
    InvalidPlan,
    PreconditionViolation,
    StepFailure,
    TransactionReverted,
)
from bridge_deployment.ledger import (
    IMPLEMENTATION_STAGE,
    DeploymentLedger,
    DeploymentRecord,
    PendingTransaction,
    SubmissionJournal,
)
from bridge_deployment.ownership import OwnershipHandshake


class DeploymentKind(Enum):
    PROXY = "proxy"
    PLAIN = "plain"


# (addresses of the declared dependencies, resolved config) -> ordered arguments
ArgsBuilder = Callable[[Mapping[str, ChecksumAddress], Any], Sequence[Any]]


def no_args(addresses: Mapping[str, ChecksumAddress], config: Any) -> List[Any]:
    return []


class DeploymentStep(NamedTuple):
    """A named contract deployment and the steps whose addresses it consumes."""

    name: str
    kind: DeploymentKind
    args_builder: ArgsBuilder = no_args
    depends_on: FrozenSet[str] = frozenset()
    contract: Optional[str] = None
    options: Optional[typing.Dict[str, Any]] = None

    @property
    def contract_name(self) -> str:
        """Artifact to deploy; the step name unless overridden."""
        return self.contract or self.name


class OwnershipTransfer(NamedTuple):
    owned: str
    new_owner: str


class DependencyAddresses(dict):
    """Addresses a step declared it depends on; reading any other name is an ordering bug."""

    def __init__(self, step_name: str, addresses: Mapping[str, ChecksumAddress]):
        super().__init__(addresses)
        self.step_name = step_name

    def __missing__(self, key: str):
        raise PreconditionViolation(
            f"Step '{self.step_name}' reads the address of '{key}' "
            f"without declaring a dependency on it"
        )


def validate_plan(steps: Sequence[DeploymentStep], transfers: Sequence[OwnershipTransfer]):
    """Checks that steps form a dependency ordering and transfers refer to known steps."""
    preceding = set()
    for position, step in enumerate(steps):
        if step.name in preceding:
            raise InvalidPlan(f"Duplicate step '{step.name}' at position {position}")
        missing = set(step.depends_on) - preceding
        if missing:
            raise InvalidPlan(
                f"Step '{step.name}' at position {position} depends on "
                f"{', '.join(sorted(missing))} which must be deployed before it"
            )
        preceding.add(step.name)

    for transfer in transfers:
        for name in (transfer.owned, transfer.new_owner):
            if name not in preceding:
                raise InvalidPlan(f"Ownership transfer refers to unknown step '{name}'")
        if transfer.owned == transfer.new_owner:
            raise InvalidPlan(f"'{transfer.owned}' cannot be transferred to itself")


class DeploymentPlan:
    """
    Ordered deployment steps plus the ownership transfers to perform once they exist.

    Steps run strictly in the given order, which must already respect every
    `depends_on` edge; plans that do not are rejected on construction. Every step
    consults the ledger first, so executing a plan again against the same ledger
    resumes where the previous run stopped and never deploys a recorded step twice.
    """

    def __init__(
        self,
        steps: Sequence[DeploymentStep],
        transfers: Sequence[OwnershipTransfer] = (),
    ):
        validate_plan(steps, transfers)
        self.steps = list(steps)
        self.transfers = list(transfers)

    @property
    def names(self) -> List[str]:
        return [step.name for step in self.steps]

    def execute(
        self,
        config: Any,
        ledger: DeploymentLedger,
        proxy_deployer: ContractDeployer,
        plain_deployer: ContractDeployer,
        handshake: Optional[OwnershipHandshake] = None,
    ) -> Dict[str, ChecksumAddress]:
        if self.transfers and handshake is None:
            raise PreconditionViolation(
                "Plan declares ownership transfers but no handshake was provided"
            )

        resolved = OrderedDict()
        for step in self.steps:
            if step.kind == DeploymentKind.PROXY:
                deployer = proxy_deployer
            else:
                deployer = plain_deployer
            resolved[step.name] = self._execute_step(step, config, ledger, deployer, resolved)

        for transfer in self.transfers:
            self._transfer(transfer, handshake, resolved)

        return dict(resolved)

    def _execute_step(
        self,
        step: DeploymentStep,
        config: Any,
        ledger: DeploymentLedger,
        deployer: ContractDeployer,
        resolved: Mapping[str, ChecksumAddress],
    ) -> ChecksumAddress:
        record = ledger.get_or_null(step.name)
        if record is not None:
            print(f"(i) {step.name} already deployed at {record.address}")
            return record.address

        journal = SubmissionJournal(ledger, step.name)
        args = None
        try:
            addresses = DependencyAddresses(
                step.name, {name: resolved[name] for name in step.depends_on}
            )
            args = list(step.args_builder(addresses, config))
            record = self._reconcile(step, deployer, args, journal)
            if record is None:
                print(f"\nDeploying {step.name}...")
                pending = deployer.submit(step.contract_name, args, step.options, journal=journal)
                record = self._complete(step, deployer, pending, journal)
            ledger.save(step.name, record)
        except Exception as e:
            raise StepFailure(step.name, sorted(step.depends_on), args, e) from e

        print(f"(i) {step.name} deployed at {record.address}")
        return record.address

    @staticmethod
    def _complete(
        step: DeploymentStep,
        deployer: ContractDeployer,
        pending: PendingTransaction,
        journal: SubmissionJournal,
    ) -> DeploymentRecord:
        try:
            return deployer.complete(step.contract_name, pending)
        except TransactionReverted:
            journal.discard()
            raise

    @staticmethod
    def _reconcile(
        step: DeploymentStep,
        deployer: ContractDeployer,
        args: List[Any],
        journal: SubmissionJournal,
    ) -> Optional[DeploymentRecord]:
        """
        Recovers a submission sent by an earlier run but never recorded.

        Only a reverted submission is discarded and deployed afresh. One that cannot be
        found yet may still be mined, so the step fails and the journal entry stays.
        """
        pending = journal.current()
        if pending is None:
            return None

        print(f"(i) Reconciling unrecorded {pending.stage} {pending.tx_hash} for {step.name}")
        try:
            if pending.stage == IMPLEMENTATION_STAGE:
                pending = deployer.resume(
                    step.contract_name, pending, args, step.options, journal=journal
                )
            return deployer.complete(step.contract_name, pending)
        except TransactionReverted as e:
            print(f"(i) Submission for {step.name} reverted ({e}); redeploying")
            journal.discard()
            return None

    @staticmethod
    def _transfer(
        transfer: OwnershipTransfer,
        handshake: OwnershipHandshake,
        resolved: Mapping[str, ChecksumAddress],
    ) -> None:
        label = f"{transfer.owned} -> {transfer.new_owner} ownership transfer"
        owned_address = resolved.get(transfer.owned)
        new_owner_address = resolved.get(transfer.new_owner)
        try:
            handshake.transfer(owned_address, new_owner_address)
        except Exception as e:
            raise StepFailure(
                label, [transfer.owned, transfer.new_owner], [owned_address, new_owner_address], e
            ) from e
