"""Tests for TargetStatusWorkflow."""

import pytest
from unittest.mock import AsyncMock

from gmp_operator.collectors.poll_executor import PollExecutor
from gmp_operator.config.models import OperatorConfig
from gmp_operator.utils.errors import CollectorPortNotFoundError, TargetFetchError, TargetStatusError
from gmp_operator.utils.metrics import TargetRecord
from gmp_operator.utils.status import TargetHealth
from gmp_operator.workflow import TARGET_STATUS_DURATION, TargetStatusWorkflow

from conftest import make_daemonset, make_monitoring, make_pod


class StaticFetcher:
    """Answers each pod IP with a fixed list of raw targets."""

    def __init__(self, targets_by_ip):
        self.targets_by_ip = targets_by_ip

    async def fetch(self, http_client, pod_ip, port):
        targets = self.targets_by_ip.get(pod_ip)
        if targets is None:
            raise TargetFetchError(f"unable to fetch targets from {pod_ip}")
        return [TargetRecord.from_api(raw) for raw in targets]


def raw_target(pool, instance, health="up", error=""):
    return {
        "scrapePool": pool,
        "health": health,
        "lastError": error,
        "labels": {"instance": instance},
        "lastScrapeDuration": 0.25,
    }


def make_workflow(kube, logger, fetcher):
    config = OperatorConfig()
    executor = PollExecutor(config, kube, logger, fetcher=fetcher)
    return TargetStatusWorkflow(config, kube, logger, executor=executor)


@pytest.fixture
def cluster(kube):
    """A cluster with target status enabled, a collector DaemonSet and one PodMonitoring."""
    kube.enable_target_status()
    kube.daemonset = make_daemonset(port=19090)
    kube.add(make_monitoring(
        "PodMonitoring", "name1", namespace="ns1",
        status={"conditions": [{"type": "ConfigurationCreateSuccess", "status": "True"}]},
    ))
    return kube


class TestShouldPoll:
    """Test suite for the polling gate."""

    @pytest.mark.asyncio
    async def test_without_operator_config(self, kube, logger):
        kube.add(make_monitoring("PodMonitoring", "a", namespace="ns"))

        assert not await make_workflow(kube, logger, StaticFetcher({})).should_poll()

    @pytest.mark.asyncio
    async def test_feature_disabled(self, kube, logger):
        kube.enable_target_status(False)
        kube.add(make_monitoring("PodMonitoring", "a", namespace="ns"))

        assert not await make_workflow(kube, logger, StaticFetcher({})).should_poll()

    @pytest.mark.asyncio
    async def test_no_monitorings(self, kube, logger):
        kube.enable_target_status()

        assert not await make_workflow(kube, logger, StaticFetcher({})).should_poll()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind, namespace", [
        ("PodMonitoring", "ns"),
        ("ClusterPodMonitoring", None),
    ])
    async def test_enabled_with_monitoring(self, kube, logger, kind, namespace):
        kube.enable_target_status()
        kube.add(make_monitoring(kind, "a", namespace=namespace))

        assert await make_workflow(kube, logger, StaticFetcher({})).should_poll()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("endpoint_status", [
        {"name": "PodMonitoring/ns1/pm/metrics"},
        {"name": "PodMonitoring/ns1/pm/metrics", "lastUpdateTime": None},
    ])
    async def test_stored_status_without_update_time(self, kube, logger, endpoint_status):
        """An endpoint status stored without lastUpdateTime does not disable polling."""
        kube.enable_target_status()
        kube.add(make_monitoring(
            "PodMonitoring", "pm", namespace="ns1",
            status={"endpointStatuses": [endpoint_status]},
        ))

        assert await make_workflow(kube, logger, StaticFetcher({})).should_poll()


class TestPollAndUpdate:
    """End-to-end cycles against the in-memory store."""

    @pytest.mark.asyncio
    async def test_all_collectors_reachable(self, cluster, logger):
        """Targets from every collector are merged into the owning resource's status."""
        cluster.pods = [make_pod("c1", ip="10.0.0.1"), make_pod("c2", ip="10.0.0.2")]
        fetcher = StaticFetcher({
            "10.0.0.1": [raw_target("PodMonitoring/ns1/name1/metrics", "a:8080")],
            "10.0.0.2": [raw_target("PodMonitoring/ns1/name1/metrics", "b:8080", "down", "connection refused"),
                         raw_target("kubelet/cadvisor", "node-1")],
        })
        workflow = make_workflow(cluster, logger, fetcher)

        endpoint_map = await workflow.poll_and_update()

        assert sorted(endpoint_map) == ["PodMonitoring/ns1/name1", "kubelet"]
        status = cluster.get("PodMonitoring", "name1", "ns1")["status"]
        assert status["conditions"] == [{"type": "ConfigurationCreateSuccess", "status": "True"}]
        [endpoint] = status["endpointStatuses"]
        assert endpoint["name"] == "PodMonitoring/ns1/name1/metrics"
        assert endpoint["activeTargets"] == 2
        assert endpoint["unhealthyTargets"] == 1
        assert endpoint["collectorsFraction"] == "1"
        assert [g["count"] for g in endpoint["sampleGroups"]] == [1, 1]
        assert endpoint["sampleGroups"][0]["sampleTargets"][0]["lastError"] == "connection refused"
        assert "lastError" not in endpoint["sampleGroups"][1]["sampleTargets"][0]
        assert len(cluster.patches) == 1

    @pytest.mark.asyncio
    async def test_status_without_update_time_is_overwritten(self, cluster, logger):
        cluster.get("PodMonitoring", "name1", "ns1")["status"]["endpointStatuses"] = [
            {"name": "PodMonitoring/ns1/name1/metrics", "lastUpdateTime": None},
        ]
        cluster.pods = [make_pod("c1")]
        fetcher = StaticFetcher({"10.0.0.1": [raw_target("PodMonitoring/ns1/name1/metrics", "a")]})
        workflow = make_workflow(cluster, logger, fetcher)

        assert await workflow.reconcile()

        [endpoint] = cluster.get("PodMonitoring", "name1", "ns1")["status"]["endpointStatuses"]
        assert endpoint["lastUpdateTime"] is not None
        assert endpoint["activeTargets"] == 1

    @pytest.mark.asyncio
    async def test_unreachable_collectors_lower_fraction(self, cluster, logger):
        cluster.pods = [make_pod(f"c{i}", ip=f"10.0.0.{i}") for i in range(5)]
        fetcher = StaticFetcher({
            "10.0.0.0": [raw_target("PodMonitoring/ns1/name1/metrics", "a")],
            "10.0.0.1": [raw_target("PodMonitoring/ns1/name1/metrics", "b")],
            "10.0.0.2": [],
        })
        workflow = make_workflow(cluster, logger, fetcher)

        await workflow.poll_and_update()

        [endpoint] = cluster.get("PodMonitoring", "name1", "ns1")["status"]["endpointStatuses"]
        assert endpoint["collectorsFraction"] == "0.6"
        assert endpoint["activeTargets"] == 2

    @pytest.mark.asyncio
    async def test_missing_resource_reported_after_others_patched(self, cluster, logger):
        """Targets of a deleted resource fail the cycle without blocking other writes."""
        cluster.pods = [make_pod("c1")]
        fetcher = StaticFetcher({"10.0.0.1": [
            raw_target("PodMonitoring/ns1/deleted/metrics", "a"),
            raw_target("PodMonitoring/ns1/name1/metrics", "b"),
        ]})
        workflow = make_workflow(cluster, logger, fetcher)

        with pytest.raises(TargetStatusError) as exc_info:
            await workflow.poll_and_update()

        assert len(exc_info.value.errors) == 1
        assert "deleted" in str(exc_info.value)
        assert cluster.get("PodMonitoring", "name1", "ns1")["status"]["endpointStatuses"][0]["activeTargets"] == 1

    @pytest.mark.asyncio
    async def test_malformed_pool_reported(self, cluster, logger):
        cluster.pods = [make_pod("c1")]
        fetcher = StaticFetcher({"10.0.0.1": [
            raw_target("weird-pool", "a"),
            raw_target("PodMonitoring/ns1/name1/metrics", "b"),
        ]})
        workflow = make_workflow(cluster, logger, fetcher)

        with pytest.raises(TargetStatusError, match="weird-pool"):
            await workflow.poll_and_update()

        assert len(cluster.patches) == 1

    @pytest.mark.asyncio
    async def test_no_collector_pods(self, cluster, logger):
        workflow = make_workflow(cluster, logger, StaticFetcher({}))

        assert await workflow.poll_and_update() == {}
        assert cluster.patches == []

    @pytest.mark.asyncio
    async def test_collector_port_missing(self, cluster, logger):
        cluster.daemonset = make_daemonset(port_name="other")
        cluster.pods = [make_pod("c1")]
        workflow = make_workflow(cluster, logger, StaticFetcher({}))

        with pytest.raises(CollectorPortNotFoundError):
            await workflow.poll_and_update()

        assert cluster.patches == []


class TestReconcile:
    """Test suite for the scheduler entry point."""

    @pytest.mark.asyncio
    async def test_successful_cycle_records_duration(self, cluster, logger):
        cluster.pods = [make_pod("c1")]
        fetcher = StaticFetcher({"10.0.0.1": [raw_target("PodMonitoring/ns1/name1/metrics", "a")]})
        workflow = make_workflow(cluster, logger, fetcher)
        TARGET_STATUS_DURATION.set(-1)

        assert await workflow.reconcile()
        assert TARGET_STATUS_DURATION._value.get() >= 0

    @pytest.mark.asyncio
    async def test_skipped_when_not_applicable(self, kube, logger):
        workflow = make_workflow(kube, logger, StaticFetcher({}))
        workflow.poll_and_update = AsyncMock()

        assert not await workflow.reconcile()
        workflow.poll_and_update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, cluster, logger):
        """Errors of a cycle never escape and the duration is not recorded."""
        cluster.daemonset = None
        workflow = make_workflow(cluster, logger, StaticFetcher({}))
        TARGET_STATUS_DURATION.set(-1)

        assert not await workflow.reconcile()
        assert TARGET_STATUS_DURATION._value.get() == -1

    @pytest.mark.asyncio
    async def test_store_errors_in_gate_not_raised(self, kube, logger):
        kube.get_operator_config = AsyncMock(side_effect=RuntimeError("apiserver down"))
        workflow = make_workflow(kube, logger, StaticFetcher({}))

        assert not await workflow.reconcile()
