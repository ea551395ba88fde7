from __future__ import annotations

import os
from dataclasses import dataclass

import pytest
from hypothesis import settings
from prometheus_client import CollectorRegistry

from vrf_adapter.chain.local import LocalChain
from vrf_adapter.metrics import Metrics
from vrf_adapter.registry import MockVRFConsumer, VRFCoordinatorAdapter
from vrf_adapter.tests.helpers import GENESIS_TIME, FakeBeaconSource

# Hypothesis: fewer examples locally, more on CI; no deadline (pure-Python hashing is slow)
settings.register_profile("local", settings(max_examples=60, deadline=None))
settings.register_profile("ci", settings(max_examples=200, deadline=None))
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE") or ("ci" if os.environ.get("CI") else "local"))


@dataclass
class Deployment:
    chain: LocalChain
    coordinator: VRFCoordinatorAdapter
    consumer: MockVRFConsumer
    other_consumer: MockVRFConsumer
    deployer: str
    user: str

    @property
    def fulfiller(self) -> str:
        return self.deployer


@pytest.fixture
def deployment() -> Deployment:
    chain = LocalChain(genesis_time=GENESIS_TIME, block_time=2)
    deployer = LocalChain.account("deployer")
    user = LocalChain.account("user")
    coordinator = chain.deploy(VRFCoordinatorAdapter(fulfiller=deployer), sender=deployer)
    consumer = chain.deploy(MockVRFConsumer(coordinator.address), sender=deployer)
    other = chain.deploy(MockVRFConsumer(coordinator.address), sender=deployer)
    return Deployment(chain, coordinator, consumer, other, deployer, user)


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> Metrics:
    return Metrics(registry=registry)


@pytest.fixture
def beacon_source() -> FakeBeaconSource:
    return FakeBeaconSource()
