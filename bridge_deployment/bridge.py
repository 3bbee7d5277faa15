from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from eth_typing import ChecksumAddress

from bridge_deployment.artifacts import ArtifactStore
from bridge_deployment.chain import ChainClient
from bridge_deployment.config import BridgeDeploymentConfig, ConfigProvider
from bridge_deployment.constants import (
    BRIDGE_COMMITTEE,
    BRIDGE_LIMITER,
    BRIDGE_TAG,
    BRIDGE_VAULT,
    DEFAULT_INITIALIZER,
    DEPLOYMENT_TAGS,
    MOCK_TAG,
    MOCK_TOKENS,
    SUI_BRIDGE,
    UUPS,
)
from bridge_deployment.deployers import PlainDeployer, ProxyDeployer
from bridge_deployment.ledger import DeploymentLedger
from bridge_deployment.ownership import OwnershipHandshake
from bridge_deployment.plan import DeploymentKind, DeploymentPlan, DeploymentStep, OwnershipTransfer

PROXY_OPTIONS = {"kind": UUPS, "initializer": DEFAULT_INITIALIZER}


def _committee_args(addresses, config: BridgeDeploymentConfig) -> List:
    return [list(config.committee_members), list(config.committee_member_stake)]


def _vault_args(addresses, config: BridgeDeploymentConfig) -> List:
    return [config.wrapped_native_token_address]


def _limiter_args(addresses, config: BridgeDeploymentConfig) -> List:
    return [list(config.daily_bridge_limits)]


def _bridge_args(addresses, config: BridgeDeploymentConfig) -> List:
    return [
        addresses[BRIDGE_COMMITTEE],
        addresses[BRIDGE_VAULT],
        addresses[BRIDGE_LIMITER],
        config.wrapped_native_token_address,
        config.source_chain_id,
        list(config.supported_tokens),
    ]


def bridge_plan() -> DeploymentPlan:
    """Committee, vault, limiter and the bridge facade that ends up owning vault and limiter."""
    steps = [
        DeploymentStep(
            name=BRIDGE_COMMITTEE,
            kind=DeploymentKind.PROXY,
            args_builder=_committee_args,
            options=PROXY_OPTIONS,
        ),
        DeploymentStep(name=BRIDGE_VAULT, kind=DeploymentKind.PLAIN, args_builder=_vault_args),
        DeploymentStep(name=BRIDGE_LIMITER, kind=DeploymentKind.PLAIN, args_builder=_limiter_args),
        DeploymentStep(
            name=SUI_BRIDGE,
            kind=DeploymentKind.PROXY,
            args_builder=_bridge_args,
            depends_on=frozenset({BRIDGE_COMMITTEE, BRIDGE_VAULT, BRIDGE_LIMITER}),
            options=PROXY_OPTIONS,
        ),
    ]
    transfers = [
        OwnershipTransfer(owned=BRIDGE_VAULT, new_owner=SUI_BRIDGE),
        OwnershipTransfer(owned=BRIDGE_LIMITER, new_owner=SUI_BRIDGE),
    ]
    return DeploymentPlan(steps=steps, transfers=transfers)


def _token_args(token_name: str, symbol: str):
    def build(addresses, config) -> List:
        return [token_name, symbol]

    return build


def mock_plan() -> DeploymentPlan:
    """Test tokens for networks without canonical token deployments."""
    steps = [
        DeploymentStep(
            name=name, kind=DeploymentKind.PLAIN, args_builder=_token_args(token_name, symbol)
        )
        for name, (token_name, symbol) in MOCK_TOKENS.items()
    ]
    return DeploymentPlan(steps=steps)


PLANS = {
    MOCK_TAG: mock_plan,
    BRIDGE_TAG: bridge_plan,
}


def deploy_bridge(
    network: str,
    ledger: DeploymentLedger,
    client: ChainClient,
    artifacts: ArtifactStore,
    tags: Iterable[str] = (BRIDGE_TAG,),
    config_provider: Optional[ConfigProvider] = None,
) -> Dict[str, ChecksumAddress]:
    """
    Executes the tagged plans against `ledger`, mocks first.

    The bridge configuration is validated before any plan runs. Its references to mocks
    deployed in the same run are resolved again once those mocks are recorded.
    """
    tags = set(tags)
    unknown = tags - set(DEPLOYMENT_TAGS)
    if unknown:
        raise ValueError(f"Unknown deployment tag(s): {', '.join(sorted(unknown))}")

    config_provider = config_provider or ConfigProvider(ledger=ledger)
    proxy_deployer = ProxyDeployer(client=client, artifacts=artifacts)
    plain_deployer = PlainDeployer(client=client, artifacts=artifacts)
    handshake = OwnershipHandshake(client=client)

    plans = OrderedDict((tag, PLANS[tag]()) for tag in DEPLOYMENT_TAGS if tag in tags)
    deferred = [name for tag, plan in plans.items() if tag != BRIDGE_TAG for name in plan.names]
    config = None
    if BRIDGE_TAG in plans:
        config = config_provider.resolve(network, deferred=deferred)

    addresses = OrderedDict()
    for tag, plan in plans.items():
        if tag == BRIDGE_TAG and deferred:
            config = config_provider.resolve(network)
        print(f"\nExecuting {tag} plan: {', '.join(plan.names)}")
        addresses.update(
            plan.execute(
                config=config if tag == BRIDGE_TAG else None,
                ledger=ledger,
                proxy_deployer=proxy_deployer,
                plain_deployer=plain_deployer,
                handshake=handshake,
            )
        )
    return dict(addresses)
