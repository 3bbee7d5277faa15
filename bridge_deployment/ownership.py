from typing import Optional

from ape.utils import ZERO_ADDRESS
from eth_typing import ChecksumAddress

from bridge_deployment.chain import ChainClient
from bridge_deployment.exceptions import PreconditionViolation
from bridge_deployment.ledger import Receipt


class OwnershipHandshake:
    """Hands ownership of auxiliary contracts over to the contract that coordinates them."""

    def __init__(self, client: ChainClient):
        self.client = client

    def transfer(
        self,
        owned_contract_address: Optional[ChecksumAddress],
        new_owner_address: Optional[ChecksumAddress],
    ) -> Optional[Receipt]:
        """
        Transfers ownership of `owned_contract_address` to `new_owner_address`.

        Both contracts must already exist. Returns None when the new owner already
        holds the contract.
        """
        for label, address in (
            ("owned contract", owned_contract_address),
            ("new owner", new_owner_address),
        ):
            if not address or address == ZERO_ADDRESS:
                raise PreconditionViolation(
                    f"Cannot transfer ownership: {label} address is not resolved"
                )

        current_owner = self.client.get_owner(owned_contract_address)
        if current_owner == new_owner_address:
            print(f"(i) {owned_contract_address} is already owned by {new_owner_address}")
            return None

        pending = self.client.transfer_ownership(owned_contract_address, new_owner_address)
        receipt = self.client.wait_for_inclusion(pending)
        print(f"(i) Transferred ownership of {owned_contract_address} to {new_owner_address}")
        return receipt
