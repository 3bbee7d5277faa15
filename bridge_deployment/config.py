from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, NamedTuple, Optional, Tuple

from ape.utils import ZERO_ADDRESS
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from bridge_deployment.constants import CONFIG_DIR
from bridge_deployment.exceptions import ConfigurationError
from bridge_deployment.ledger import DeploymentLedger
from bridge_deployment.utils import _load_yaml

REFERENCE_PREFIX = "$"


class BridgeDeploymentConfig(NamedTuple):
    """Network specific inputs to the bridge deployment. All fields are required."""

    committee_members: Tuple[ChecksumAddress, ...]
    committee_member_stake: Tuple[int, ...]
    wrapped_native_token_address: ChecksumAddress
    supported_tokens: Tuple[ChecksumAddress, ...]
    source_chain_id: int
    daily_bridge_limits: Tuple[int, ...]


# checked in this order; the first failing field is reported
REQUIRED_FIELDS = BridgeDeploymentConfig._fields


def _resolve_reference(
    value: Any,
    field: str,
    ledger: Optional[DeploymentLedger],
    deferred: FrozenSet[str] = frozenset(),
) -> Any:
    """
    Resolves a '$ContractName' value to the address recorded in the ledger.

    References to `deferred` contracts that are not recorded yet are returned unchanged.
    """
    if not (isinstance(value, str) and value.startswith(REFERENCE_PREFIX)):
        return value
    name = value[len(REFERENCE_PREFIX) :]
    record = ledger.get_or_null(name) if ledger is not None else None
    if record is not None:
        return record.address
    if name in deferred:
        return value
    raise ConfigurationError(field, f"'{value}' does not refer to a recorded deployment")


def _address(
    value: Any,
    field: str,
    ledger: Optional[DeploymentLedger],
    deferred: FrozenSet[str] = frozenset(),
) -> ChecksumAddress:
    value = _resolve_reference(value, field, ledger, deferred)
    if isinstance(value, str) and value.startswith(REFERENCE_PREFIX):
        return value  # resolved once the referenced contract is recorded
    if not isinstance(value, str) or not is_address(value):
        raise ConfigurationError(field, f"'{value}' is not a valid address")
    return to_checksum_address(value)


def _address_list(
    values: Any, field: str, ledger, deferred: FrozenSet[str] = frozenset()
) -> Tuple[ChecksumAddress, ...]:
    if not isinstance(values, (list, tuple)):
        raise ConfigurationError(field, "expected a list of addresses")
    return tuple(_address(v, field, ledger, deferred) for v in values)


def _integer(value: Any, field: str) -> int:
    # booleans are ints in python; reject them explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(field, f"'{value}' is not an integer")
    if value < 0:
        raise ConfigurationError(field, f"'{value}' must not be negative")
    return value


def _integer_list(values: Any, field: str) -> Tuple[int, ...]:
    if not isinstance(values, (list, tuple)):
        raise ConfigurationError(field, "expected a list of integers")
    return tuple(_integer(v, field) for v in values)


def validate_config(
    data: Dict[str, Any],
    ledger: Optional[DeploymentLedger] = None,
    deferred: Iterable[str] = (),
) -> BridgeDeploymentConfig:
    """
    Builds a config from raw values, failing on the first missing or invalid field.

    `deferred` names contracts deployed earlier in the same run. References to them are
    checked by name and left as '$Name' until the contracts are recorded.
    """
    deferred = frozenset(deferred)
    if not isinstance(data, dict):
        raise ConfigurationError(REQUIRED_FIELDS[0], "configuration is not a mapping")

    for field in REQUIRED_FIELDS:
        if data.get(field) is None:
            raise ConfigurationError(field, "required field is missing")

    members = _address_list(data["committee_members"], "committee_members", ledger, deferred)
    if not members:
        raise ConfigurationError("committee_members", "at least one member is required")
    if len(set(members)) != len(members):
        raise ConfigurationError("committee_members", "duplicate committee member")

    stakes = _integer_list(data["committee_member_stake"], "committee_member_stake")
    if len(stakes) != len(members):
        raise ConfigurationError(
            "committee_member_stake",
            f"expected {len(members)} stakes (one per committee member), got {len(stakes)}",
        )

    wrapped_native_token = _address(
        data["wrapped_native_token_address"], "wrapped_native_token_address", ledger, deferred
    )
    if wrapped_native_token == ZERO_ADDRESS:
        raise ConfigurationError("wrapped_native_token_address", "zero address is not allowed")

    supported_tokens = _address_list(
        data["supported_tokens"], "supported_tokens", ledger, deferred
    )
    if len(set(supported_tokens)) != len(supported_tokens):
        raise ConfigurationError("supported_tokens", "duplicate token address")

    return BridgeDeploymentConfig(
        committee_members=members,
        committee_member_stake=stakes,
        wrapped_native_token_address=wrapped_native_token,
        supported_tokens=supported_tokens,
        source_chain_id=_integer(data["source_chain_id"], "source_chain_id"),
        daily_bridge_limits=_integer_list(data["daily_bridge_limits"], "daily_bridge_limits"),
    )


class ConfigProvider:
    """Resolves the bridge configuration of a network from '<config_dir>/<network>.yml'."""

    def __init__(self, config_dir: Path = CONFIG_DIR, ledger: Optional[DeploymentLedger] = None):
        self.config_dir = Path(config_dir)
        self.ledger = ledger

    def filepath(self, network: str) -> Path:
        return self.config_dir / f"{network}.yml"

    def resolve(self, network: str, deferred: Iterable[str] = ()) -> BridgeDeploymentConfig:
        filepath = self.filepath(network)
        if not filepath.exists():
            raise ConfigurationError(
                "network", f"no configuration found for '{network}' at {filepath}"
            )
        print(f"Validating bridge configuration {filepath}...")
        return validate_config(_load_yaml(filepath), ledger=self.ledger, deferred=deferred)
