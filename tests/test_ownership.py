import pytest
from ape.utils import ZERO_ADDRESS

from bridge_deployment.exceptions import PreconditionViolation
from tests.conftest import DEPLOYER, address


@pytest.fixture
def vault(client, plain_deployer):
    return plain_deployer.deploy("BridgeVault", []).address


@pytest.mark.parametrize("missing", [None, ZERO_ADDRESS])
def test_unresolved_new_owner_is_a_precondition_violation(client, handshake, vault, missing):
    with pytest.raises(PreconditionViolation, match="new owner"):
        handshake.transfer(vault, missing)
    assert client.ownership_transfers == []
    assert client.owners[vault] == DEPLOYER


@pytest.mark.parametrize("missing", [None, ZERO_ADDRESS])
def test_unresolved_owned_contract_is_a_precondition_violation(client, handshake, missing):
    with pytest.raises(PreconditionViolation, match="owned contract"):
        handshake.transfer(missing, address(0xB1))
    assert client.ownership_transfers == []


def test_transfer(client, handshake, vault):
    bridge = address(0xB1)

    receipt = handshake.transfer(vault, bridge)

    assert client.ownership_transfers == [(vault, bridge)]
    assert client.owners[vault] == bridge
    assert receipt.tx_hash in client.waited


def test_transfer_to_current_owner_is_skipped(client, handshake, vault):
    bridge = address(0xB1)
    handshake.transfer(vault, bridge)

    assert handshake.transfer(vault, bridge) is None
    assert len(client.ownership_transfers) == 1
