from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple

from bridge_deployment.exceptions import ArtifactNotFoundError
from bridge_deployment.utils import get_contract_container


class Artifact(NamedTuple):
    """Compiled contract: interface, creation bytecode and the factory used to deploy it."""

    name: str
    abi: List[Dict[str, Any]]
    bytecode: str
    factory: Any = None


class ArtifactStore(ABC):
    @abstractmethod
    def read_artifact(self, name: str) -> Artifact:
        raise NotImplementedError


class ProjectArtifactStore(ArtifactStore):
    """Reads artifacts from the compiled ape project and its dependencies."""

    def read_artifact(self, name: str) -> Artifact:
        container = get_contract_container(name)
        contract_type = container.contract_type
        bytecode = contract_type.deployment_bytecode
        if bytecode is None or not bytecode.bytecode:
            raise ArtifactNotFoundError(f"No deployment bytecode compiled for '{name}'.")
        abi = [entry.model_dump(mode="json", by_alias=True) for entry in contract_type.abi]
        return Artifact(name=name, abi=abi, bytecode=bytecode.bytecode, factory=container)
