"""Unit tests for the Kubernetes plugin.

kubectl is never executed: run_command is patched and returns canned output.
"""

import json
import subprocess
from unittest.mock import patch

import pytest

from kubesage.config import Config
from kubesage.plugins.kubernetes import KubernetesPlugin
from kubesage.plugins.kubernetes.kubernetes_plugin import parse_quantity
from kubesage.utils.command import CommandResult, UnsafeCommandError

RUN_COMMAND = "kubesage.plugins.kubernetes.kubernetes_plugin.run_command"


def ok(payload) -> CommandResult:
    stdout = payload if isinstance(payload, str) else json.dumps(payload)
    return CommandResult(returncode=0, stdout=stdout, stderr="")


def pod(name, phase="Running", restarts=0, waiting=None, namespace="default"):
    state = {"waiting": {"reason": waiting, "message": "back-off"}} if waiting else {"running": {}}
    return {
        "metadata": {"name": name, "namespace": namespace, "creationTimestamp": "2024-01-01T00:00:00Z"},
        "spec": {"nodeName": "node-1"},
        "status": {
            "phase": phase,
            "containerStatuses": [
                {"name": "app", "ready": phase == "Running" and not waiting, "restartCount": restarts, "state": state}
            ],
        },
    }


@pytest.fixture
def plugin():
    return KubernetesPlugin(Config(kubernetes_context="test-context", kubernetes_namespace="payments"))


class TestKubernetesPluginInitialization:
    """Tests for KubernetesPlugin initialization."""

    def test_init_from_config(self, plugin):
        assert plugin.name == "KubernetesPlugin"
        assert plugin.context == "test-context"
        assert plugin.namespace == "payments"
        assert plugin.timeout == 30
        assert "list_pods" in plugin.instructions

    def test_tools(self, plugin):
        names = [tool.__name__ for tool in plugin.get_tools()]

        assert len(names) == 38
        assert len(set(names)) == 38
        assert names[0] == "list_pods"
        assert {"check_cluster_health", "list_storage_classes", "list_node_taints", "get_node_metrics"} <= set(names)


class TestCommandConstruction:
    """Tests for the kubectl argv built by each tool."""

    @patch(RUN_COMMAND)
    def test_default_namespace_and_context(self, mock_run, plugin):
        mock_run.return_value = ok({"items": []})

        plugin.list_pods()

        mock_run.assert_called_once_with(
            ["kubectl", "--context", "test-context", "--namespace", "payments", "get", "pods", "-o", "json"],
            timeout=30,
        )

    @patch(RUN_COMMAND)
    def test_overrides(self, mock_run, plugin):
        mock_run.return_value = ok({"items": []})

        plugin.list_pods(namespace="all", selector="app=web", context="other")

        assert mock_run.call_args.args[0] == [
            "kubectl", "--context", "other", "--all-namespaces", "get", "pods", "-o", "json", "-l", "app=web"
        ]

    @patch(RUN_COMMAND)
    def test_no_context_configured(self, mock_run):
        mock_run.return_value = ok({"items": []})

        KubernetesPlugin(Config()).list_nodes()

        assert mock_run.call_args.args[0] == ["kubectl", "get", "nodes", "-o", "json"]

    @patch(RUN_COMMAND)
    def test_pod_logs_options(self, mock_run, plugin):
        mock_run.return_value = ok("line 1\n\nline 2\n")

        result = json.loads(plugin.get_pod_logs("web-1", container="app", since_minutes=15, previous=True))

        assert mock_run.call_args.args[0] == [
            "kubectl", "--context", "test-context", "--namespace", "payments", "logs", "web-1", "--tail", "100",
            "--container", "app", "--since", "15m", "--previous",
        ]
        assert result["logs"] == ["line 1", "line 2"]
        assert result["count"] == 2

    @patch(RUN_COMMAND)
    def test_resource_events_field_selector(self, mock_run, plugin):
        mock_run.return_value = ok({"items": []})

        plugin.get_resource_events("Pod", "web-1")

        assert mock_run.call_args.args[0][-2:] == [
            "--field-selector", "involvedObject.kind=Pod,involvedObject.name=web-1"
        ]

    @patch(RUN_COMMAND)
    def test_describe_returns_text(self, mock_run, plugin):
        mock_run.return_value = ok("Name: web-1\nStatus: Running\n")

        assert plugin.describe_pod("web-1") == "Name: web-1\nStatus: Running\n"
        assert mock_run.call_args.args[0][-3:] == ["describe", "pod", "web-1"]


class TestSummaries:
    """Tests for the JSON summaries returned to the model."""

    @patch(RUN_COMMAND)
    def test_list_pods(self, mock_run, plugin):
        mock_run.return_value = ok({"items": [pod("web-1", restarts=2)]})

        result = json.loads(plugin.list_pods())

        assert result["count"] == 1
        assert result["pods"][0] == {
            "name": "web-1",
            "namespace": "default",
            "phase": "Running",
            "ready": "1/1",
            "restarts": 2,
            "node": "node-1",
            "created": "2024-01-01T00:00:00Z",
        }
        assert "timestamp" in result

    @patch(RUN_COMMAND)
    def test_diagnose_pods(self, mock_run, plugin):
        mock_run.return_value = ok(
            {"items": [pod("healthy"), pod("crashy", waiting="CrashLoopBackOff", restarts=5), pod("pending", "Pending")]}
        )

        result = json.loads(plugin.diagnose_pods())

        assert result["total_pods"] == 3
        assert [p["name"] for p in result["unhealthy_pods"]] == ["crashy", "pending"]
        crashy = result["unhealthy_pods"][0]["problems"]
        assert "app: CrashLoopBackOff: back-off" in crashy
        assert "app: restarted 5 times" in crashy
        assert result["unhealthy_pods"][1]["problems"] == ["phase Pending"]

    @patch(RUN_COMMAND)
    def test_recent_events_are_sorted_and_limited(self, mock_run, plugin):
        events = [
            {"type": "Warning", "reason": "BackOff", "message": m, "lastTimestamp": ts,
             "involvedObject": {"kind": "Pod", "name": "web-1"}}
            for m, ts in [("b", "2024-01-01T00:02:00Z"), ("a", "2024-01-01T00:01:00Z"), ("c", "2024-01-01T00:03:00Z")]
        ]
        mock_run.return_value = ok({"items": events})

        result = json.loads(plugin.get_recent_events(limit=2, warnings_only=True))

        assert [e["message"] for e in result["events"]] == ["b", "c"]
        assert result["events"][0]["object"] == "Pod/web-1"
        assert mock_run.call_args.args[0][-2:] == ["--field-selector", "type=Warning"]

    @patch(RUN_COMMAND)
    def test_configmaps_hide_values(self, mock_run, plugin):
        mock_run.return_value = ok(
            {"items": [{"metadata": {"name": "app-config", "namespace": "payments"}, "data": {"b": "2", "a": "secret"}}]}
        )

        result = json.loads(plugin.list_configmaps())

        assert result["configmaps"][0]["keys"] == ["a", "b"]
        assert "secret" not in json.dumps(result)

    @patch(RUN_COMMAND)
    def test_check_cluster_health(self, mock_run, plugin):
        nodes = {"items": [
            {"metadata": {"name": "node-1"}, "status": {"conditions": [{"type": "Ready", "status": "True"}]}},
            {"metadata": {"name": "node-2"}, "status": {"conditions": [
                {"type": "Ready", "status": "False"}, {"type": "DiskPressure", "status": "True"}]}},
        ]}
        pods = {"items": [pod("web-1"), pod("job-1", "Failed")]}
        deployments = {"items": [
            {"metadata": {"name": "web", "namespace": "default"}, "status": {"replicas": 3, "readyReplicas": 1}}
        ]}
        mock_run.side_effect = [ok(nodes), ok(pods), ok(deployments)]

        result = json.loads(plugin.check_cluster_health())

        assert result["summary"] == {"nodes_ready": "1/2", "pods_healthy": "1/2", "deployments_healthy": "0/1"}
        assert result["nodes"][1]["issues"] == ["DiskPressure"]
        assert result["pod_issues"][0]["pod"] == "default/job-1"
        assert result["deployment_issues"] == [{"deployment": "default/web", "ready": "1/3"}]


class TestErrorHandling:
    """Failures are returned as text, never raised."""

    @patch(RUN_COMMAND)
    def test_non_zero_exit(self, mock_run, plugin):
        mock_run.return_value = CommandResult(returncode=1, stdout="", stderr='namespaces "nope" not found\n')

        result = json.loads(plugin.list_pods(namespace="nope"))

        assert result["error"].endswith('failed: namespaces "nope" not found')

    @patch(RUN_COMMAND, side_effect=FileNotFoundError("kubectl"))
    def test_kubectl_missing(self, mock_run, plugin):
        assert plugin.list_nodes().startswith("Error: kubectl not found")

    @patch(RUN_COMMAND, side_effect=subprocess.TimeoutExpired(cmd="kubectl", timeout=30))
    def test_timeout(self, mock_run, plugin):
        assert plugin.describe_node("node-1") == "Error: kubectl timed out after 30s"

    @patch(RUN_COMMAND, side_effect=UnsafeCommandError("Forbidden sequence ';'"))
    def test_unsafe_arguments(self, mock_run, plugin):
        assert plugin.describe_pod("web;reboot").startswith("Error: rejected command")

    @patch(RUN_COMMAND)
    def test_unparseable_output(self, mock_run, plugin):
        mock_run.return_value = ok("not json")

        assert "Failed to parse kubectl output" in json.loads(plugin.list_services())["error"]

    @patch(RUN_COMMAND)
    def test_health_check_stops_at_first_failure(self, mock_run, plugin):
        mock_run.return_value = CommandResult(returncode=1, stdout="", stderr="Unauthorized")

        result = json.loads(plugin.check_cluster_health())

        assert "Unauthorized" in result["error"]
        assert mock_run.call_count == 1

    @pytest.mark.parametrize(
        "call",
        [
            lambda p: p.describe_pod("--kubeconfig=/tmp/evil"),
            lambda p: p.get_pod_logs("-f"),
            lambda p: p.describe_secret("--show-events=false"),
            lambda p: p.list_node_taints("-o=yaml"),
            lambda p: p.get_node_metrics("--raw=/api"),
        ],
    )
    @patch(RUN_COMMAND)
    def test_flag_like_names_are_rejected(self, mock_run, call, plugin):
        assert call(plugin).startswith("Error: rejected command")
        mock_run.assert_not_called()


class TestQuantities:
    """Tests for parse_quantity."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("250m", 0.25),
            ("2", 2.0),
            ("1.5", 1.5),
            ("128Mi", 128 * 2**20),
            ("1Gi", 2**30),
            ("500M", 500e6),
            ("1k", 1000.0),
            (None, 0.0),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_quantity(value) == pytest.approx(expected)

    def test_malformed(self):
        with pytest.raises(ValueError):
            parse_quantity("lots")


def container(name, cpu=None, memory=None, cpu_limit=None, memory_limit=None):
    resources = {"requests": {}, "limits": {}}
    if cpu:
        resources["requests"]["cpu"] = cpu
    if memory:
        resources["requests"]["memory"] = memory
    if cpu_limit:
        resources["limits"]["cpu"] = cpu_limit
    if memory_limit:
        resources["limits"]["memory"] = memory_limit
    return {"name": name, "resources": resources}


class TestResourceUsage:
    """Tests for the request/limit based usage tools."""

    @patch(RUN_COMMAND)
    def test_namespace_resource_usage(self, mock_run, plugin):
        mock_run.return_value = ok({"items": [
            {"spec": {"containers": [container("app", "250m", "128Mi", "500m", "256Mi")]}},
            {"spec": {"containers": [container("app", "1", "1Gi"), container("sidecar", "50m")]}},
        ]})

        result = json.loads(plugin.get_namespace_resource_usage())

        assert result["pods"] == 2
        assert result["containers"] == 3
        assert result["cpu_cores"] == {"requests": 1.3, "limits": 0.5}
        assert result["memory_mib"] == {"requests": 1152.0, "limits": 256.0}
        assert mock_run.call_args.args[0][-4:] == ["get", "pods", "-o", "json"]

    @patch(RUN_COMMAND)
    def test_pod_metrics(self, mock_run, plugin):
        data = pod("web-1", restarts=3)
        data["spec"]["containers"] = [container("app", "100m", "64Mi", "200m", "128Mi")]
        mock_run.return_value = ok(data)

        result = json.loads(plugin.get_pod_metrics("web-1"))

        assert result["containers"] == [
            {
                "name": "app",
                "requests": {"cpu": "100m", "memory": "64Mi"},
                "limits": {"cpu": "200m", "memory": "128Mi"},
                "ready": True,
                "restarts": 3,
                "state": "running",
            }
        ]
        assert result["total"]["cpu_cores"] == {"requests": 0.1, "limits": 0.2}
        assert mock_run.call_args.args[0][-4:] == ["pod", "web-1", "-o", "json"]

    @patch(RUN_COMMAND)
    def test_node_metrics(self, mock_run, plugin):
        node = {"status": {"capacity": {"cpu": "4"}, "allocatable": {"cpu": "2", "memory": "4Gi"}}}
        pods = {"items": [
            {"spec": {"containers": [container("a", "500m", "1Gi")]}},
            {"spec": {"containers": [container("b", "500m", "1Gi")]}},
        ]}
        mock_run.side_effect = [ok(node), ok(pods)]

        result = json.loads(plugin.get_node_metrics("node-1"))

        assert result["pods"] == 2
        assert result["cpu_requests_percent"] == 50.0
        assert result["memory_requests_percent"] == 50.0
        assert mock_run.call_args.args[0][-5:] == [
            "--all-namespaces", "--field-selector", "spec.nodeName=node-1", "-o", "json"
        ]

    @patch(RUN_COMMAND)
    def test_node_metrics_stops_when_node_is_missing(self, mock_run, plugin):
        mock_run.return_value = CommandResult(returncode=1, stdout="", stderr='nodes "ghost" not found')

        assert "not found" in json.loads(plugin.get_node_metrics("ghost"))["error"]
        assert mock_run.call_count == 1


class TestStorage:
    """Tests for the storage tools."""

    @patch(RUN_COMMAND)
    def test_list_persistent_volumes(self, mock_run, plugin):
        mock_run.return_value = ok({"items": [{
            "metadata": {"name": "pv-1"},
            "spec": {
                "capacity": {"storage": "10Gi"},
                "accessModes": ["ReadWriteOnce"],
                "storageClassName": "standard",
                "persistentVolumeReclaimPolicy": "Delete",
                "claimRef": {"namespace": "payments", "name": "data"},
            },
            "status": {"phase": "Bound"},
        }]})

        result = json.loads(plugin.list_persistent_volumes())

        assert result["persistent_volumes"][0]["claim"] == "payments/data"
        assert result["persistent_volumes"][0]["capacity"] == "10Gi"
        assert "--namespace" not in mock_run.call_args.args[0]

    @patch(RUN_COMMAND)
    def test_list_persistent_volume_claims(self, mock_run, plugin):
        mock_run.return_value = ok({"items": [{
            "metadata": {"name": "data", "namespace": "payments"},
            "spec": {"resources": {"requests": {"storage": "5Gi"}}, "storageClassName": "standard"},
            "status": {"phase": "Pending"},
        }]})

        claim = json.loads(plugin.list_persistent_volume_claims())["persistent_volume_claims"][0]

        assert claim["status"] == "Pending"
        assert claim["requested"] == "5Gi"
        assert claim["capacity"] is None

    @patch(RUN_COMMAND)
    def test_list_storage_classes_marks_default(self, mock_run, plugin):
        mock_run.return_value = ok({"items": [
            {"metadata": {"name": "fast"}, "provisioner": "ebs.csi.aws.com"},
            {"metadata": {"name": "standard", "annotations": {
                "storageclass.kubernetes.io/is-default-class": "true"}}, "provisioner": "kubernetes.io/gce-pd"},
        ]})

        classes = json.loads(plugin.list_storage_classes())["storage_classes"]

        assert [c["default"] for c in classes] == [False, True]

    @patch(RUN_COMMAND)
    def test_describe_claim(self, mock_run, plugin):
        mock_run.return_value = ok("Name: data\nStatus: Bound\n")

        assert plugin.describe_persistent_volume_claim("data").startswith("Name: data")
        assert mock_run.call_args.args[0][-3:] == ["describe", "persistentvolumeclaim", "data"]


class TestScheduling:
    """Tests for the scheduling tools."""

    @patch(RUN_COMMAND)
    def test_list_node_taints(self, mock_run, plugin):
        mock_run.return_value = ok({"spec": {"taints": [
            {"key": "dedicated", "value": "gpu", "effect": "NoSchedule"}]}})

        result = json.loads(plugin.list_node_taints("node-1"))

        assert result["taints"] == [{"key": "dedicated", "value": "gpu", "effect": "NoSchedule"}]
        assert mock_run.call_args.args[0] == [
            "kubectl", "--context", "test-context", "get", "node", "node-1", "-o", "json"
        ]

    @patch(RUN_COMMAND)
    def test_list_pod_tolerations_skips_pods_without_any(self, mock_run, plugin):
        tolerant = pod("gpu-job")
        tolerant["spec"]["tolerations"] = [{"operator": "Exists", "effect": "NoSchedule"}]
        mock_run.return_value = ok({"items": [pod("web-1"), tolerant]})

        result = json.loads(plugin.list_pod_tolerations())

        assert [p["name"] for p in result["pods"]] == ["gpu-job"]
        assert result["pods"][0]["tolerations"][0]["key"] == "<all>"

    @patch(RUN_COMMAND)
    def test_list_pod_node_affinity(self, mock_run, plugin):
        pinned = pod("gpu-job")
        pinned["spec"]["affinity"] = {"nodeAffinity": {
            "requiredDuringSchedulingIgnoredDuringExecution": {"nodeSelectorTerms": [
                {"matchExpressions": [{"key": "gpu", "operator": "In", "values": ["a100", "h100"]}]}]},
            "preferredDuringSchedulingIgnoredDuringExecution": [
                {"weight": 10, "preference": {"matchExpressions": [{"key": "zone", "operator": "Exists"}]}}],
        }}
        mock_run.return_value = ok({"items": [pod("web-1"), pinned]})

        result = json.loads(plugin.list_pod_node_affinity())

        assert result["count"] == 1
        assert result["pods"][0]["required"] == [["gpu In [a100, h100]"]]
        assert result["pods"][0]["preferred"] == [{"weight": 10, "expressions": ["zone Exists []"]}]

    @patch(RUN_COMMAND)
    def test_list_priority_classes_sorted_by_value(self, mock_run, plugin):
        mock_run.return_value = ok({"items": [
            {"metadata": {"name": "low"}, "value": 100},
            {"metadata": {"name": "system-cluster-critical"}, "value": 2000000000, "globalDefault": False},
        ]})

        classes = json.loads(plugin.list_priority_classes())["priority_classes"]

        assert [c["name"] for c in classes] == ["system-cluster-critical", "low"]


class TestNetworkAndSecrets:
    """Tests for the network policy, endpoint and secret tools."""

    @patch(RUN_COMMAND)
    def test_service_endpoints(self, mock_run, plugin):
        mock_run.return_value = ok({"subsets": [{
            "addresses": [{"ip": "10.0.0.5", "targetRef": {"name": "web-1"}}],
            "notReadyAddresses": [{"ip": "10.0.0.6", "targetRef": {"name": "web-2"}}],
            "ports": [{"name": "http", "port": 8080, "protocol": "TCP"}],
        }]})

        result = json.loads(plugin.get_service_endpoints("web"))

        assert result["ready"] == [{"ip": "10.0.0.5", "target": "web-1"}]
        assert result["not_ready"] == [{"ip": "10.0.0.6", "target": "web-2"}]
        assert result["ports"][0]["port"] == 8080

    @patch(RUN_COMMAND)
    def test_service_without_endpoints(self, mock_run, plugin):
        mock_run.return_value = ok({"metadata": {"name": "web"}})

        result = json.loads(plugin.get_service_endpoints("web"))

        assert result["ready"] == [] and result["not_ready"] == []

    @patch(RUN_COMMAND)
    def test_list_network_policies(self, mock_run, plugin):
        mock_run.return_value = ok({"items": [{
            "metadata": {"name": "deny-all", "namespace": "payments"},
            "spec": {"podSelector": {}, "policyTypes": ["Ingress", "Egress"], "ingress": [{}]},
        }]})

        policy = json.loads(plugin.list_network_policies())["network_policies"][0]

        assert policy["pod_selector"] == {}
        assert policy["ingress_rules"] == 1
        assert policy["egress_rules"] == 0

    @patch(RUN_COMMAND)
    def test_list_secrets_hides_values(self, mock_run, plugin):
        mock_run.return_value = ok({"items": [{
            "metadata": {"name": "db", "namespace": "payments"},
            "type": "Opaque",
            "data": {"password": "c2VjcmV0", "user": "YWRtaW4="},
        }]})

        result = json.loads(plugin.list_secrets())

        assert result["secrets"][0]["keys"] == ["password", "user"]
        assert "c2VjcmV0" not in json.dumps(result)

    @patch(RUN_COMMAND)
    def test_describe_commands(self, mock_run, plugin):
        mock_run.return_value = ok("Name: x\n")

        plugin.describe_ingress("web")
        assert mock_run.call_args.args[0][-3:] == ["describe", "ingress", "web"]

        plugin.describe_network_policy("deny-all")
        assert mock_run.call_args.args[0][-3:] == ["describe", "networkpolicy", "deny-all"]

        plugin.describe_secret("db")
        assert mock_run.call_args.args[0][-3:] == ["describe", "secret", "db"]
