import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, List, Optional, Tuple

from ape import Contract, chain, networks, project
from ape.api import AccountAPI, ReceiptAPI, TransactionAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractTransactionHandler
from ape.exceptions import ApeException
from ape.utils import EMPTY_BYTES32, ZERO_ADDRESS
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address, to_hex
from ethpm_types import MethodABI
from web3.auto import w3
from web3.utils.address import get_create_address

from bridge_deployment.artifacts import Artifact
from bridge_deployment.confirm import _confirm_resolution, _continue
from bridge_deployment.constants import (
    DEFAULT_INITIALIZER,
    EIP1967_IMPLEMENTATION_SLOT,
    OWNABLE_ABI,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    PROXY_KINDS,
    TRANSPARENT,
    UUPS,
)
from bridge_deployment.exceptions import (
    ArtifactNotFoundError,
    DeploymentError,
    InvalidArguments,
    TransactionFailure,
    TransactionReverted,
)
from bridge_deployment.ledger import (
    CONTRACT_STAGE,
    IMPLEMENTATION_STAGE,
    PendingTransaction,
    Receipt,
    SubmissionJournal,
)


class ChainClient(ABC):
    """
    Submits transactions to a network and reports on their inclusion.

    Deployments return once their transaction has been sent, without waiting for it
    to be mined. When a journal is given, every transaction is journaled before it is
    sent; a transaction the node refuses leaves the journal as it was before.
    """

    @abstractmethod
    def deploy_contract(
        self,
        artifact: Artifact,
        args: List[Any],
        journal: Optional[SubmissionJournal] = None,
    ) -> PendingTransaction:
        raise NotImplementedError

    @abstractmethod
    def deploy_proxy(
        self,
        artifact: Artifact,
        args: List[Any],
        options: Optional[typing.Dict] = None,
        journal: Optional[SubmissionJournal] = None,
        implementation: Optional[ChecksumAddress] = None,
    ) -> PendingTransaction:
        """
        Deploys `artifact` behind a proxy initialized with `args`. The implementation is
        deployed and mined first, unless an already deployed `implementation` is given.
        """
        raise NotImplementedError

    @abstractmethod
    def wait_for_inclusion(self, pending: PendingTransaction) -> Receipt:
        """Raises TransactionReverted if mined and reverted, TransactionFailure otherwise."""
        raise NotImplementedError

    @abstractmethod
    def get_implementation_address(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def get_latest_block_timestamp(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def get_owner(self, contract_address: ChecksumAddress) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def transfer_ownership(
        self, contract_address: ChecksumAddress, new_owner: ChecksumAddress
    ) -> PendingTransaction:
        raise NotImplementedError


@contextmanager
def _chain_errors(action: str):
    """Reports provider and node errors raised while performing `action` as TransactionFailure."""
    try:
        yield
    except DeploymentError:
        raise
    except (ApeException, ValueError) as e:
        raise TransactionFailure(f"{action} failed: {e}") from e


def proxy_settings(options: Optional[typing.Dict] = None) -> Tuple[str, str]:
    """Returns the proxy kind and initializer selected by deployment `options`."""
    options = options or dict()
    kind = options.get("kind", UUPS)
    if kind not in PROXY_KINDS:
        raise InvalidArguments(
            f"Unsupported proxy kind '{kind}'; expected one of {', '.join(PROXY_KINDS)}"
        )
    return kind, options.get("initializer", DEFAULT_INITIALIZER)


def get_oz_dependency():
    try:
        return project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
    except (KeyError, ApeException) as e:
        raise ArtifactNotFoundError(
            f"{OZ_DEPENDENCY_NAME} {OZ_DEPENDENCY_VERSION} is not a dependency of the project"
        ) from e


def get_proxy_container(kind: str) -> ContractContainer:
    oz = get_oz_dependency()
    if kind == TRANSPARENT:
        return oz.TransparentUpgradeableProxy
    return oz.ERC1967Proxy


def get_implementation_address(proxy_address: ChecksumAddress) -> ChecksumAddress:
    """Reads the EIP1967 implementation slot of a proxy; zero address if it is empty."""
    with _chain_errors(f"Reading the implementation of {proxy_address}"):
        implementation_slot = chain.provider.get_storage_at(
            address=proxy_address, slot=EIP1967_IMPLEMENTATION_SLOT
        )
    if implementation_slot == EMPTY_BYTES32:
        return ZERO_ADDRESS
    return to_checksum_address(implementation_slot[-20:])


def _hex(value: Any) -> str:
    return value if isinstance(value, str) else to_hex(value)


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise InvalidArguments("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = OrderedDict()
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise InvalidArguments(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _validate_constructor_args(
    contract_name: str, abi_inputs: List[Any], args: typing.Sequence[Any]
) -> OrderedDict:
    """Validates constructor arguments against the constructor ABI."""
    if len(args) != len(abi_inputs):
        raise InvalidArguments(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(args)}."
        )

    named_args = OrderedDict()
    for position, (abi_input, value) in enumerate(zip(abi_inputs, args)):
        if not w3.is_encodable(abi_input.type, value):
            raise InvalidArguments(
                f"Constructor param '{abi_input.name}' at position {position} has a value "
                f"'{value}' whose type does not match expected ABI type '{abi_input.type}'"
            )
        named_args[abi_input.name] = value
    return named_args


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(self, account: typing.Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        with _chain_errors(f"Transaction {method}"):
            return method(*args, sender=self._account)


class ApeChainClient(Transactor, ChainClient):
    """
    Chain client backed by an ape account and the connected ape provider.

    Deployment transactions are signed locally, journaled with their hash and the
    address they will create, and only then broadcast.
    """

    def __init__(
        self,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        verify: bool = False,
        timeout: Optional[int] = None,
    ):
        super().__init__(account=account, autosign=autosign)
        self.verify = verify
        self.timeout = timeout
        self._sent_containers: typing.Dict[ChecksumAddress, ContractContainer] = dict()

    def _sign(self, txn: TransactionAPI) -> TransactionAPI:
        txn.sender = self._account.address
        txn = self._account.prepare_transaction(txn)
        signed = self._account.sign_transaction(txn)
        if not signed:
            raise TransactionFailure("The transaction was not signed")
        return signed

    def _send_deployment(
        self,
        container: ContractContainer,
        args: typing.Sequence[Any],
        name: str,
        journal: Optional[SubmissionJournal],
        stage: str = CONTRACT_STAGE,
        implementation: Optional[ChecksumAddress] = None,
    ) -> PendingTransaction:
        contract_name = container.contract_type.name
        with _chain_errors(f"Preparing the deployment of {contract_name}"):
            signed = self._sign(container.constructor.serialize_transaction(*args))
        pending = PendingTransaction(
            name=name,
            tx_hash=_hex(signed.txn_hash),
            address=get_create_address(signed.sender, signed.nonce),
            stage=stage,
            implementation=implementation,
        )

        previous = None
        if journal is not None:
            previous = journal.current()
            journal.record(pending)
        try:
            with _chain_errors(f"Sending the deployment of {contract_name}"):
                networks.provider.web3.eth.send_raw_transaction(signed.serialize_transaction())
        except TransactionFailure:
            # refused by the node; nothing was sent
            if journal is not None:
                if previous is None:
                    journal.discard()
                else:
                    journal.record(previous)
            raise

        self._sent_containers[pending.address] = container
        print(f"(i) {contract_name} sent in {pending.tx_hash}; expected at {pending.address}")
        return pending

    def _track_deployment(self, contract_address: Optional[ChecksumAddress]) -> None:
        container = self._sent_containers.pop(contract_address, None)
        if container is None:
            return
        container.at(contract_address)  # caches the contract type
        if self.verify:
            networks.provider.network.publish_contract(contract_address)

    def deploy_contract(
        self,
        artifact: Artifact,
        args: List[Any],
        journal: Optional[SubmissionJournal] = None,
    ) -> PendingTransaction:
        container = artifact.factory
        named_args = _validate_constructor_args(
            contract_name=artifact.name,
            abi_inputs=container.constructor.abi.inputs,
            args=args,
        )
        if not self._autosign:
            _confirm_resolution(named_args, artifact.name)

        return self._send_deployment(container, args, artifact.name, journal)

    def deploy_proxy(
        self,
        artifact: Artifact,
        args: List[Any],
        options: Optional[typing.Dict] = None,
        journal: Optional[SubmissionJournal] = None,
        implementation: Optional[ChecksumAddress] = None,
    ) -> PendingTransaction:
        kind, initializer = proxy_settings(options)
        container = artifact.factory
        proxy_container = get_proxy_container(kind)

        initializer_abis = [
            abi for abi in container.contract_type.methods if abi.name == initializer
        ]
        named_args = _validate_method_args(method_abis=initializer_abis, args=args)
        if not self._autosign:
            _confirm_resolution(named_args, f"{artifact.name} ({kind} proxy)")

        if implementation is None:
            implementation_pending = self._send_deployment(
                container, [], artifact.name, journal, stage=IMPLEMENTATION_STAGE
            )
            self.wait_for_inclusion(implementation_pending)
            implementation = implementation_pending.address
        else:
            print(f"(i) Reusing {artifact.name} implementation at {implementation}")

        with _chain_errors(f"Encoding {artifact.name}.{initializer}"):
            data = getattr(container.at(implementation), initializer).encode_input(*args)

        if kind == TRANSPARENT:
            proxy_args = [implementation, self._account.address, data]
        else:
            proxy_args = [implementation, data]

        print(
            f"\nDeploying {proxy_container.contract_type.name} "
            f"contract to proxy {artifact.name} at {implementation}."
        )
        return self._send_deployment(
            proxy_container, proxy_args, artifact.name, journal, implementation=implementation
        )

    def wait_for_inclusion(self, pending: PendingTransaction) -> Receipt:
        with _chain_errors(f"Waiting for {pending.tx_hash} ({pending.name})"):
            receipt = chain.provider.get_receipt(pending.tx_hash, timeout=self.timeout)
        if receipt.failed:
            raise TransactionReverted(f"Transaction {pending.tx_hash} for {pending.name} reverted")
        self._track_deployment(receipt.contract_address)

        with _chain_errors(f"Reading the receipt of {pending.tx_hash}"):
            raw_receipt = networks.provider.web3.eth.get_transaction_receipt(pending.tx_hash)
        return Receipt(
            sender=to_checksum_address(receipt.transaction.sender),
            tx_hash=_hex(receipt.txn_hash),
            block_hash=_hex(raw_receipt["blockHash"]),
            block_number=receipt.block_number,
            tx_index=raw_receipt["transactionIndex"],
        )

    def get_implementation_address(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        return get_implementation_address(proxy_address)

    def get_latest_block_timestamp(self) -> int:
        with _chain_errors("Reading the latest block"):
            return chain.blocks.head.timestamp

    def get_owner(self, contract_address: ChecksumAddress) -> ChecksumAddress:
        with _chain_errors(f"Reading the owner of {contract_address}"):
            ownable = Contract(contract_address, abi=OWNABLE_ABI)
            return to_checksum_address(ownable.owner())

    def transfer_ownership(
        self, contract_address: ChecksumAddress, new_owner: ChecksumAddress
    ) -> PendingTransaction:
        with _chain_errors(f"Loading {contract_address}"):
            ownable = Contract(contract_address, abi=OWNABLE_ABI)
        receipt = self.transact(ownable.transferOwnership, new_owner)
        return PendingTransaction(
            name=f"transferOwnership({contract_address})",
            tx_hash=_hex(receipt.txn_hash),
            address=contract_address,
        )
