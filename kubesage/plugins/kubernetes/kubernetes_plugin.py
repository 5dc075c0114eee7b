"""plugin for Kubernetes operations."""

import json
import subprocess
from datetime import datetime
from typing import Annotated, Any, Callable, Dict, List, Optional, Sequence, Tuple

import structlog
from pydantic import Field

from kubesage.config import Config
from kubesage.plugins.base import BasePlugin
from kubesage.plugins.loader import PluginInfoLoader
from kubesage.utils.command import UnsafeCommandError, check_positional, run_command

logger = structlog.get_logger(__name__)

HEALTHY_PHASES = ("Running", "Succeeded")
FAILING_WAIT_REASONS = (
    "CrashLoopBackOff",
    "ImagePullBackOff",
    "ErrImagePull",
    "CreateContainerConfigError",
    "Error",
)

NamespaceArg = Annotated[
    str | None,
    Field(description="The Kubernetes namespace (defaults to the configured namespace, 'all' for every namespace)"),
]
ContextArg = Annotated[
    str | None,
    Field(description="Kubernetes context to use (overrides default)"),
]


def _ready_condition(conditions: List[Dict[str, Any]]) -> Dict[str, Any]:
    return next((c for c in conditions if c.get("type") == "Ready"), {})


def _container_summary(status: Dict[str, Any]) -> Tuple[int, int, int]:
    """Return (ready, total, restarts) for a pod status."""
    containers = status.get("containerStatuses", []) or []
    ready = sum(1 for c in containers if c.get("ready"))
    restarts = sum(c.get("restartCount", 0) for c in containers)
    return ready, len(containers), restarts


def _pod_problems(status: Dict[str, Any]) -> List[str]:
    problems = []
    phase = status.get("phase")
    if phase not in HEALTHY_PHASES:
        reason = status.get("reason")
        problems.append(f"phase {phase}" + (f" ({reason})" if reason else ""))
    for container in status.get("containerStatuses", []) or []:
        state = container.get("state", {})
        waiting = state.get("waiting")
        terminated = state.get("terminated")
        name = container.get("name")
        if waiting and waiting.get("reason") in FAILING_WAIT_REASONS:
            problems.append(f"{name}: {waiting.get('reason')}: {waiting.get('message', 'N/A')}")
        elif terminated and terminated.get("exitCode", 0) != 0:
            problems.append(f"{name}: exited with {terminated.get('exitCode')} ({terminated.get('reason', 'N/A')})")
        if container.get("restartCount", 0) > 0:
            problems.append(f"{name}: restarted {container.get('restartCount')} times")
    return problems


_BINARY_SUFFIXES = {"Ki": 2**10, "Mi": 2**20, "Gi": 2**30, "Ti": 2**40, "Pi": 2**50, "Ei": 2**60}
_DECIMAL_SUFFIXES = {"n": 1e-9, "u": 1e-6, "m": 1e-3, "k": 1e3, "M": 1e6, "G": 1e9, "T": 1e12, "P": 1e15, "E": 1e18}


def parse_quantity(value: Any) -> float:
    """Convert a Kubernetes quantity ("250m", "128Mi", "2") to a plain number.

    CPU comes out in cores and memory in bytes. A missing value is 0.

    Raises:
        ValueError: If the quantity is malformed
    """
    if value is None:
        return 0.0
    text = str(value).strip()
    for suffix, factor in _BINARY_SUFFIXES.items():
        if text.endswith(suffix):
            return float(text[: -len(suffix)]) * factor
    if text and text[-1] in _DECIMAL_SUFFIXES:
        return float(text[:-1]) * _DECIMAL_SUFFIXES[text[-1]]
    return float(text)


def _sum_resources(containers: List[Dict[str, Any]]) -> Dict[str, float]:
    totals = {"cpu_requests": 0.0, "cpu_limits": 0.0, "memory_requests": 0.0, "memory_limits": 0.0}
    for container in containers:
        resources = container.get("resources") or {}
        for kind in ("requests", "limits"):
            values = resources.get(kind) or {}
            totals[f"cpu_{kind}"] += parse_quantity(values.get("cpu"))
            totals[f"memory_{kind}"] += parse_quantity(values.get("memory"))
    return totals


def _format_resources(totals: Dict[str, float]) -> Dict[str, Dict[str, float]]:
    return {
        "cpu_cores": {"requests": round(totals["cpu_requests"], 3), "limits": round(totals["cpu_limits"], 3)},
        "memory_mib": {
            "requests": round(totals["memory_requests"] / 2**20, 1),
            "limits": round(totals["memory_limits"] / 2**20, 1),
        },
    }


def _percent(used: float, available: float) -> Optional[float]:
    return round(used / available * 100, 1) if available else None


def _match_expressions(term: Dict[str, Any]) -> List[str]:
    return [
        f"{expr.get('key')} {expr.get('operator')} [{', '.join(expr.get('values') or [])}]"
        for expr in term.get("matchExpressions") or []
    ]


class KubernetesPlugin(BasePlugin):
    """plugin for Kubernetes operations."""

    def __init__(self, config: Config):
        self.config = config
        self.name = "KubernetesPlugin"
        loader = PluginInfoLoader()
        self.instructions = loader.load("kubernetes")
        self.context = getattr(config, "kubernetes_context", None)
        self.namespace = getattr(config, "kubernetes_namespace", "default") or "default"
        self.kubectl = getattr(config, "kubectl_path", "kubectl") or "kubectl"
        self.timeout = getattr(config, "command_timeout_seconds", None)

    def _command(self, context: Optional[str] = None) -> List[str]:
        cmd = [self.kubectl]
        _context = self.context
        if context is not None and context.strip() != "":
            _context = context
        if _context:
            cmd.extend(["--context", _context])
        return cmd

    def _namespace_args(self, namespace: Optional[str]) -> List[str]:
        namespace = namespace or self.namespace
        if namespace.lower() == "all":
            return ["--all-namespaces"]
        return ["--namespace", namespace]

    def _run_kubernetes_command(
        self, command: List[str], log_prefix: str = "", names: Sequence[str] = ()
    ) -> Tuple[bool, str]:
        """Run kubectl; returns (ok, output) where output is error text when not ok.

        ``names`` are the positional resource names taken from the model.
        """
        try:
            check_positional(*names)
            logger.debug(f"{log_prefix} Running command: [{' '.join(command)}]")
            result = run_command(command, timeout=self.timeout)
        except UnsafeCommandError as e:
            logger.error(f"{log_prefix} rejected command: {str(e)}")
            return False, f"Error: rejected command: {e}"
        except FileNotFoundError as e:
            logger.error(f"{log_prefix} kubectl not found: {str(e)}")
            return False, f"Error: kubectl not found: {e}"
        except subprocess.TimeoutExpired:
            logger.error(f"{log_prefix} kubectl timed out after {self.timeout}s")
            return False, f"Error: kubectl timed out after {self.timeout}s"
        except OSError as e:
            logger.error(f"{log_prefix} OS error when launching kubectl: {str(e)}")
            return False, f"Error: OS error when launching kubectl: {e}"
        if not result.ok:
            error_msg = result.stderr.strip()
            return False, json.dumps({"error": " ".join(command) + f" failed: {error_msg}"})
        return True, result.stdout

    def _query(
        self,
        command: List[str],
        log_prefix: str,
        summarize: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None,
        names: Sequence[str] = (),
    ) -> str:
        """Run a command and, when ``summarize`` is given, reduce its JSON output."""
        ok, output = self._run_kubernetes_command(command, log_prefix, names)
        if not ok or summarize is None:
            return output
        try:
            payload = summarize(json.loads(output))
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"{log_prefix} Failed to parse kubectl output: {str(e)}")
            return json.dumps({"error": f"Failed to parse kubectl output: {str(e)}"})
        payload["timestamp"] = datetime.now().isoformat()
        return json.dumps(payload, indent=2)

    def list_pods(
        self,
        namespace: NamespaceArg = None,
        selector: Annotated[
            str | None,
            Field(description="Optional label selector (e.g., 'app=payments-svc')"),
        ] = None,
        context: ContextArg = None,
    ) -> str:
        """List pods with phase, readiness and restart counts, optionally filtered by label selector."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "pods", "-o", "json"]
        if selector:
            cmd.extend(["-l", selector])

        def summarize(data):
            pods = []
            for item in data.get("items", []):
                metadata = item.get("metadata", {})
                status = item.get("status", {})
                ready, total, restarts = _container_summary(status)
                pods.append(
                    {
                        "name": metadata.get("name"),
                        "namespace": metadata.get("namespace"),
                        "phase": status.get("phase"),
                        "ready": f"{ready}/{total}",
                        "restarts": restarts,
                        "node": item.get("spec", {}).get("nodeName"),
                        "created": metadata.get("creationTimestamp"),
                    }
                )
            return {"pods": pods, "namespace": namespace or self.namespace, "selector": selector, "count": len(pods)}

        return self._query(cmd, "KubernetesPlugin::list_pods::", summarize)

    def describe_pod(
        self,
        pod: Annotated[str, Field(description="The name of the pod to describe")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Describe a pod in detail, including container states and events."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["describe", "pod", pod]
        return self._query(cmd, "KubernetesPlugin::describe_pod::", names=(pod,))

    def get_pod_logs(
        self,
        pod: Annotated[str, Field(description="The name of the pod to fetch logs from")],
        namespace: NamespaceArg = None,
        container: Annotated[str | None, Field(description="Optional container name within the pod")] = None,
        tail_lines: Annotated[int, Field(description="Number of lines to fetch from the end of logs")] = 100,
        since_minutes: Annotated[int | None, Field(description="Only fetch logs from the last N minutes")] = None,
        previous: Annotated[bool, Field(description="Fetch logs of the previous (crashed) container instance")] = False,
        context: ContextArg = None,
    ) -> str:
        """Fetch logs from a Kubernetes pod."""
        cmd = self._command(context) + self._namespace_args(namespace)
        cmd.extend(["logs", pod, "--tail", str(tail_lines)])
        if container:
            cmd.extend(["--container", container])
        if since_minutes:
            cmd.extend(["--since", f"{since_minutes}m"])
        if previous:
            cmd.append("--previous")
        ok, output = self._run_kubernetes_command(cmd, "KubernetesPlugin::get_pod_logs::", names=(pod,))
        if not ok:
            return output
        log_lines = [line for line in output.split("\n") if line.strip()]
        return json.dumps(
            {
                "logs": log_lines,
                "pod": pod,
                "namespace": namespace or self.namespace,
                "container": container,
                "count": len(log_lines),
                "timestamp": datetime.now().isoformat(),
            },
            indent=2,
        )

    def diagnose_pods(
        self,
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Find pods that are failing, crash looping or restarting, with the reasons reported by Kubernetes."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "pods", "-o", "json"]

        def summarize(data):
            unhealthy = []
            items = data.get("items", [])
            for item in items:
                problems = _pod_problems(item.get("status", {}))
                if problems:
                    metadata = item.get("metadata", {})
                    unhealthy.append(
                        {
                            "name": metadata.get("name"),
                            "namespace": metadata.get("namespace"),
                            "phase": item.get("status", {}).get("phase"),
                            "problems": problems,
                        }
                    )
            return {
                "unhealthy_pods": unhealthy,
                "unhealthy_count": len(unhealthy),
                "total_pods": len(items),
                "namespace": namespace or self.namespace,
            }

        return self._query(cmd, "KubernetesPlugin::diagnose_pods::", summarize)

    def list_nodes(self, context: ContextArg = None) -> str:
        """List cluster nodes with readiness, roles, version and capacity."""
        cmd = self._command(context) + ["get", "nodes", "-o", "json"]

        def summarize(data):
            nodes = []
            for item in data.get("items", []):
                metadata = item.get("metadata", {})
                status = item.get("status", {})
                node_info = status.get("nodeInfo", {})
                roles = [
                    label_key.replace("node-role.kubernetes.io/", "")
                    for label_key in metadata.get("labels", {})
                    if label_key.startswith("node-role.kubernetes.io/")
                ]
                nodes.append(
                    {
                        "name": metadata.get("name"),
                        "roles": roles if roles else ["<none>"],
                        "status": _ready_condition(status.get("conditions", [])).get("status", "Unknown"),
                        "version": node_info.get("kubeletVersion"),
                        "os_image": node_info.get("osImage"),
                        "container_runtime": node_info.get("containerRuntimeVersion"),
                        "capacity": status.get("capacity", {}),
                        "allocatable": status.get("allocatable", {}),
                    }
                )
            return {"nodes": nodes, "count": len(nodes)}

        return self._query(cmd, "KubernetesPlugin::list_nodes::", summarize)

    def describe_node(
        self,
        node: Annotated[str, Field(description="The name of the node to describe")],
        context: ContextArg = None,
    ) -> str:
        """Describe a node in detail, including conditions, allocated resources and events."""
        cmd = self._command(context) + ["describe", "node", node]
        return self._query(cmd, "KubernetesPlugin::describe_node::", names=(node,))

    def list_namespaces(self, context: ContextArg = None) -> str:
        """List all namespaces with their status."""
        cmd = self._command(context) + ["get", "namespaces", "-o", "json"]

        def summarize(data):
            namespaces = [
                {
                    "name": item.get("metadata", {}).get("name"),
                    "status": item.get("status", {}).get("phase", "Unknown"),
                    "created": item.get("metadata", {}).get("creationTimestamp"),
                }
                for item in data.get("items", [])
            ]
            return {"namespaces": namespaces, "count": len(namespaces)}

        return self._query(cmd, "KubernetesPlugin::list_namespaces::", summarize)

    def list_services(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List services with type, cluster IP and ports."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "services", "-o", "json"]

        def summarize(data):
            services = []
            for item in data.get("items", []):
                metadata = item.get("metadata", {})
                spec = item.get("spec", {})
                services.append(
                    {
                        "name": metadata.get("name"),
                        "namespace": metadata.get("namespace"),
                        "type": spec.get("type", "ClusterIP"),
                        "cluster_ip": spec.get("clusterIP"),
                        "ports": spec.get("ports", []),
                        "selector": spec.get("selector", {}),
                    }
                )
            return {"services": services, "namespace": namespace or self.namespace, "count": len(services)}

        return self._query(cmd, "KubernetesPlugin::list_services::", summarize)

    def describe_service(
        self,
        service: Annotated[str, Field(description="The name of the service to describe")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Describe a service in detail, including endpoints and events."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["describe", "service", service]
        return self._query(cmd, "KubernetesPlugin::describe_service::", names=(service,))

    def list_deployments(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List deployments with desired, ready and available replicas."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "deployments", "-o", "json"]

        def summarize(data):
            deployments = []
            for item in data.get("items", []):
                metadata = item.get("metadata", {})
                status = item.get("status", {})
                containers = item.get("spec", {}).get("template", {}).get("spec", {}).get("containers", [])
                deployments.append(
                    {
                        "name": metadata.get("name"),
                        "namespace": metadata.get("namespace"),
                        "replicas": item.get("spec", {}).get("replicas", 0),
                        "ready": status.get("readyReplicas", 0),
                        "available": status.get("availableReplicas", 0),
                        "updated": status.get("updatedReplicas", 0),
                        "images": [c.get("image") for c in containers],
                    }
                )
            return {"deployments": deployments, "namespace": namespace or self.namespace, "count": len(deployments)}

        return self._query(cmd, "KubernetesPlugin::list_deployments::", summarize)

    def describe_deployment(
        self,
        deployment: Annotated[str, Field(description="The name of the deployment to describe")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Describe a deployment in detail, including rollout conditions and events."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["describe", "deployment", deployment]
        return self._query(cmd, "KubernetesPlugin::describe_deployment::", names=(deployment,))

    def list_jobs(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List jobs with their completion counts."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "jobs", "-o", "json"]

        def summarize(data):
            jobs = []
            for item in data.get("items", []):
                status = item.get("status", {})
                jobs.append(
                    {
                        "name": item.get("metadata", {}).get("name"),
                        "namespace": item.get("metadata", {}).get("namespace"),
                        "completions": item.get("spec", {}).get("completions"),
                        "succeeded": status.get("succeeded", 0),
                        "failed": status.get("failed", 0),
                        "active": status.get("active", 0),
                    }
                )
            return {"jobs": jobs, "namespace": namespace or self.namespace, "count": len(jobs)}

        return self._query(cmd, "KubernetesPlugin::list_jobs::", summarize)

    def get_job_status(
        self,
        job: Annotated[str, Field(description="The name of the job")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Get the status and conditions of a single job."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "job", job, "-o", "json"]

        def summarize(data):
            status = data.get("status", {})
            return {
                "job": job,
                "start_time": status.get("startTime"),
                "completion_time": status.get("completionTime"),
                "succeeded": status.get("succeeded", 0),
                "failed": status.get("failed", 0),
                "active": status.get("active", 0),
                "conditions": [
                    {"type": c.get("type"), "status": c.get("status"), "reason": c.get("reason"), "message": c.get("message")}
                    for c in status.get("conditions", [])
                ],
            }

        return self._query(cmd, "KubernetesPlugin::get_job_status::", summarize, names=(job,))

    def get_recent_events(
        self,
        namespace: NamespaceArg = None,
        limit: Annotated[int, Field(description="Maximum number of events to return")] = 20,
        warnings_only: Annotated[bool, Field(description="Only return Warning events")] = False,
        context: ContextArg = None,
    ) -> str:
        """Get the most recent events, newest last."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "events", "-o", "json"]
        if warnings_only:
            cmd.extend(["--field-selector", "type=Warning"])

        def summarize(data):
            events = [self._event(item) for item in data.get("items", [])]
            events.sort(key=lambda e: e["last_seen"] or "")
            events = events[-limit:] if limit > 0 else events
            return {"events": events, "namespace": namespace or self.namespace, "count": len(events)}

        return self._query(cmd, "KubernetesPlugin::get_recent_events::", summarize)

    def get_resource_events(
        self,
        kind: Annotated[str, Field(description="Kind of the resource (e.g., Pod, Deployment, Node)")],
        name: Annotated[str, Field(description="Name of the resource")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Get the events recorded for one specific resource."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "events", "-o", "json"]
        cmd.extend(["--field-selector", f"involvedObject.kind={kind},involvedObject.name={name}"])

        def summarize(data):
            events = sorted((self._event(item) for item in data.get("items", [])), key=lambda e: e["last_seen"] or "")
            return {"kind": kind, "name": name, "events": events, "count": len(events)}

        return self._query(cmd, "KubernetesPlugin::get_resource_events::", summarize)

    def list_ingresses(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List ingresses with their hosts and backends."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "ingresses", "-o", "json"]

        def summarize(data):
            ingresses = []
            for item in data.get("items", []):
                spec = item.get("spec", {})
                ingresses.append(
                    {
                        "name": item.get("metadata", {}).get("name"),
                        "namespace": item.get("metadata", {}).get("namespace"),
                        "class": spec.get("ingressClassName"),
                        "hosts": [rule.get("host") for rule in spec.get("rules", [])],
                        "rules": spec.get("rules", []),
                        "tls": bool(spec.get("tls")),
                    }
                )
            return {"ingresses": ingresses, "namespace": namespace or self.namespace, "count": len(ingresses)}

        return self._query(cmd, "KubernetesPlugin::list_ingresses::", summarize)

    def list_configmaps(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List config maps and the keys they hold (values are not returned)."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "configmaps", "-o", "json"]

        def summarize(data):
            configmaps = [
                {
                    "name": item.get("metadata", {}).get("name"),
                    "namespace": item.get("metadata", {}).get("namespace"),
                    "keys": sorted((item.get("data") or {}).keys()),
                }
                for item in data.get("items", [])
            ]
            return {"configmaps": configmaps, "namespace": namespace or self.namespace, "count": len(configmaps)}

        return self._query(cmd, "KubernetesPlugin::list_configmaps::", summarize)

    def get_resource_quotas(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """Get resource quotas with their hard limits and current usage."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "resourcequotas", "-o", "json"]

        def summarize(data):
            quotas = [
                {
                    "name": item.get("metadata", {}).get("name"),
                    "namespace": item.get("metadata", {}).get("namespace"),
                    "hard": item.get("status", {}).get("hard", {}),
                    "used": item.get("status", {}).get("used", {}),
                }
                for item in data.get("items", [])
            ]
            return {"quotas": quotas, "namespace": namespace or self.namespace, "count": len(quotas)}

        return self._query(cmd, "KubernetesPlugin::get_resource_quotas::", summarize)

    def check_cluster_health(self, context: ContextArg = None) -> str:
        """Check overall cluster health: node readiness, failing pods and degraded deployments."""
        log_prefix = "KubernetesPlugin::check_cluster_health::"
        base = self._command(context)
        outputs = {}
        for resource in ("nodes", "pods", "deployments"):
            cmd = base + ["get", resource, "-o", "json"]
            if resource != "nodes":
                cmd.append("--all-namespaces")
            ok, output = self._run_kubernetes_command(cmd, log_prefix)
            if not ok:
                return output
            try:
                outputs[resource] = json.loads(output).get("items", [])
            except (json.JSONDecodeError, AttributeError) as e:
                logger.error(f"{log_prefix} Failed to parse kubectl output: {str(e)}")
                return json.dumps({"error": f"Failed to parse kubectl output: {str(e)}"})

        nodes = []
        for item in outputs["nodes"]:
            conditions = item.get("status", {}).get("conditions", [])
            nodes.append(
                {
                    "name": item.get("metadata", {}).get("name"),
                    "ready": _ready_condition(conditions).get("status") == "True",
                    "issues": [c.get("type") for c in conditions if c.get("type") != "Ready" and c.get("status") == "True"],
                }
            )
        pod_issues = [
            {
                "pod": f"{item.get('metadata', {}).get('namespace')}/{item.get('metadata', {}).get('name')}",
                "phase": item.get("status", {}).get("phase"),
                "reason": item.get("status", {}).get("reason"),
            }
            for item in outputs["pods"]
            if item.get("status", {}).get("phase") not in HEALTHY_PHASES
        ]
        deployment_issues = []
        for item in outputs["deployments"]:
            status = item.get("status", {})
            if status.get("readyReplicas", 0) < status.get("replicas", 0):
                deployment_issues.append(
                    {
                        "deployment": f"{item.get('metadata', {}).get('namespace')}/{item.get('metadata', {}).get('name')}",
                        "ready": f"{status.get('readyReplicas', 0)}/{status.get('replicas', 0)}",
                    }
                )
        return json.dumps(
            {
                "nodes": nodes,
                "pod_issues": pod_issues,
                "deployment_issues": deployment_issues,
                "summary": {
                    "nodes_ready": f"{sum(1 for n in nodes if n['ready'])}/{len(nodes)}",
                    "pods_healthy": f"{len(outputs['pods']) - len(pod_issues)}/{len(outputs['pods'])}",
                    "deployments_healthy": f"{len(outputs['deployments']) - len(deployment_issues)}/{len(outputs['deployments'])}",
                },
                "timestamp": datetime.now().isoformat(),
            },
            indent=2,
        )

    def describe_ingress(
        self,
        ingress: Annotated[str, Field(description="The name of the ingress to describe")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Describe an ingress in detail, including rules, backends and events."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["describe", "ingress", ingress]
        return self._query(cmd, "KubernetesPlugin::describe_ingress::", names=(ingress,))

    def get_service_endpoints(
        self,
        service: Annotated[str, Field(description="The name of the service")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Get the pod addresses behind a service, split into ready and not ready."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "endpoints", service, "-o", "json"]

        def address(item):
            return {"ip": item.get("ip"), "target": (item.get("targetRef") or {}).get("name")}

        def summarize(data):
            ready, not_ready, ports = [], [], []
            for subset in data.get("subsets") or []:
                ready.extend(address(a) for a in subset.get("addresses") or [])
                not_ready.extend(address(a) for a in subset.get("notReadyAddresses") or [])
                ports.extend(
                    {"name": p.get("name"), "port": p.get("port"), "protocol": p.get("protocol")}
                    for p in subset.get("ports") or []
                )
            return {"service": service, "ready": ready, "not_ready": not_ready, "ports": ports}

        return self._query(cmd, "KubernetesPlugin::get_service_endpoints::", summarize, names=(service,))

    def list_network_policies(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List network policies with the pods they select and their rule counts."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "networkpolicies", "-o", "json"]

        def summarize(data):
            policies = []
            for item in data.get("items", []):
                spec = item.get("spec", {})
                policies.append(
                    {
                        "name": item.get("metadata", {}).get("name"),
                        "namespace": item.get("metadata", {}).get("namespace"),
                        "pod_selector": (spec.get("podSelector") or {}).get("matchLabels", {}),
                        "policy_types": spec.get("policyTypes", []),
                        "ingress_rules": len(spec.get("ingress") or []),
                        "egress_rules": len(spec.get("egress") or []),
                    }
                )
            return {"network_policies": policies, "namespace": namespace or self.namespace, "count": len(policies)}

        return self._query(cmd, "KubernetesPlugin::list_network_policies::", summarize)

    def describe_network_policy(
        self,
        policy: Annotated[str, Field(description="The name of the network policy to describe")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Describe a network policy in detail, including allowed ingress and egress peers."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["describe", "networkpolicy", policy]
        return self._query(cmd, "KubernetesPlugin::describe_network_policy::", names=(policy,))

    def list_secrets(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List secrets with their type and key names (values are never returned)."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "secrets", "-o", "json"]

        def summarize(data):
            secrets = [
                {
                    "name": item.get("metadata", {}).get("name"),
                    "namespace": item.get("metadata", {}).get("namespace"),
                    "type": item.get("type"),
                    "keys": sorted((item.get("data") or {}).keys()),
                    "created": item.get("metadata", {}).get("creationTimestamp"),
                }
                for item in data.get("items", [])
            ]
            return {"secrets": secrets, "namespace": namespace or self.namespace, "count": len(secrets)}

        return self._query(cmd, "KubernetesPlugin::list_secrets::", summarize)

    def describe_secret(
        self,
        secret: Annotated[str, Field(description="The name of the secret to describe")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Describe a secret's metadata; kubectl shows only the size of each value."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["describe", "secret", secret]
        return self._query(cmd, "KubernetesPlugin::describe_secret::", names=(secret,))

    def list_persistent_volumes(self, context: ContextArg = None) -> str:
        """List persistent volumes with status, capacity, storage class and bound claim."""
        cmd = self._command(context) + ["get", "persistentvolumes", "-o", "json"]

        def summarize(data):
            volumes = []
            for item in data.get("items", []):
                spec = item.get("spec", {})
                claim = spec.get("claimRef")
                volumes.append(
                    {
                        "name": item.get("metadata", {}).get("name"),
                        "status": item.get("status", {}).get("phase"),
                        "capacity": (spec.get("capacity") or {}).get("storage"),
                        "access_modes": spec.get("accessModes", []),
                        "storage_class": spec.get("storageClassName"),
                        "reclaim_policy": spec.get("persistentVolumeReclaimPolicy"),
                        "claim": f"{claim.get('namespace')}/{claim.get('name')}" if claim else None,
                    }
                )
            return {"persistent_volumes": volumes, "count": len(volumes)}

        return self._query(cmd, "KubernetesPlugin::list_persistent_volumes::", summarize)

    def describe_persistent_volume(
        self,
        volume: Annotated[str, Field(description="The name of the persistent volume to describe")],
        context: ContextArg = None,
    ) -> str:
        """Describe a persistent volume in detail, including its source and claim."""
        cmd = self._command(context) + ["describe", "persistentvolume", volume]
        return self._query(cmd, "KubernetesPlugin::describe_persistent_volume::", names=(volume,))

    def list_persistent_volume_claims(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List persistent volume claims with status, requested and bound capacity."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "persistentvolumeclaims", "-o", "json"]

        def summarize(data):
            claims = []
            for item in data.get("items", []):
                spec = item.get("spec", {})
                status = item.get("status", {})
                claims.append(
                    {
                        "name": item.get("metadata", {}).get("name"),
                        "namespace": item.get("metadata", {}).get("namespace"),
                        "status": status.get("phase"),
                        "volume": spec.get("volumeName"),
                        "requested": ((spec.get("resources") or {}).get("requests") or {}).get("storage"),
                        "capacity": (status.get("capacity") or {}).get("storage"),
                        "access_modes": spec.get("accessModes", []),
                        "storage_class": spec.get("storageClassName"),
                    }
                )
            return {"persistent_volume_claims": claims, "namespace": namespace or self.namespace, "count": len(claims)}

        return self._query(cmd, "KubernetesPlugin::list_persistent_volume_claims::", summarize)

    def describe_persistent_volume_claim(
        self,
        claim: Annotated[str, Field(description="The name of the persistent volume claim to describe")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Describe a persistent volume claim in detail, including the pods using it and events."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["describe", "persistentvolumeclaim", claim]
        return self._query(cmd, "KubernetesPlugin::describe_persistent_volume_claim::", names=(claim,))

    def list_storage_classes(self, context: ContextArg = None) -> str:
        """List storage classes with provisioner, binding mode and which one is the default."""
        cmd = self._command(context) + ["get", "storageclasses", "-o", "json"]

        def summarize(data):
            classes = []
            for item in data.get("items", []):
                annotations = item.get("metadata", {}).get("annotations") or {}
                classes.append(
                    {
                        "name": item.get("metadata", {}).get("name"),
                        "provisioner": item.get("provisioner"),
                        "reclaim_policy": item.get("reclaimPolicy"),
                        "volume_binding_mode": item.get("volumeBindingMode"),
                        "allow_volume_expansion": item.get("allowVolumeExpansion", False),
                        "default": "true" in (
                            annotations.get("storageclass.kubernetes.io/is-default-class"),
                            annotations.get("storageclass.beta.kubernetes.io/is-default-class"),
                        ),
                    }
                )
            return {"storage_classes": classes, "count": len(classes)}

        return self._query(cmd, "KubernetesPlugin::list_storage_classes::", summarize)

    def list_node_taints(
        self,
        node: Annotated[str, Field(description="The name of the node")],
        context: ContextArg = None,
    ) -> str:
        """List the taints on a node."""
        cmd = self._command(context) + ["get", "node", node, "-o", "json"]

        def summarize(data):
            taints = [
                {"key": t.get("key"), "value": t.get("value"), "effect": t.get("effect")}
                for t in data.get("spec", {}).get("taints") or []
            ]
            return {"node": node, "taints": taints, "count": len(taints)}

        return self._query(cmd, "KubernetesPlugin::list_node_taints::", summarize, names=(node,))

    def list_pod_tolerations(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List the tolerations of every pod that declares any."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "pods", "-o", "json"]

        def summarize(data):
            pods = []
            for item in data.get("items", []):
                tolerations = item.get("spec", {}).get("tolerations") or []
                if not tolerations:
                    continue
                pods.append(
                    {
                        "name": item.get("metadata", {}).get("name"),
                        "namespace": item.get("metadata", {}).get("namespace"),
                        "tolerations": [
                            {
                                "key": t.get("key") or "<all>",
                                "operator": t.get("operator", "Equal"),
                                "value": t.get("value"),
                                "effect": t.get("effect"),
                                "seconds": t.get("tolerationSeconds"),
                            }
                            for t in tolerations
                        ],
                    }
                )
            return {"pods": pods, "namespace": namespace or self.namespace, "count": len(pods)}

        return self._query(cmd, "KubernetesPlugin::list_pod_tolerations::", summarize)

    def list_pod_node_affinity(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """List required and preferred node affinity rules of pods that declare any."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "pods", "-o", "json"]

        def summarize(data):
            pods = []
            for item in data.get("items", []):
                affinity = (item.get("spec", {}).get("affinity") or {}).get("nodeAffinity")
                if not affinity:
                    continue
                required = affinity.get("requiredDuringSchedulingIgnoredDuringExecution") or {}
                preferred = affinity.get("preferredDuringSchedulingIgnoredDuringExecution") or []
                pods.append(
                    {
                        "name": item.get("metadata", {}).get("name"),
                        "namespace": item.get("metadata", {}).get("namespace"),
                        "required": [_match_expressions(term) for term in required.get("nodeSelectorTerms") or []],
                        "preferred": [
                            {"weight": p.get("weight"), "expressions": _match_expressions(p.get("preference") or {})}
                            for p in preferred
                        ],
                    }
                )
            return {"pods": pods, "namespace": namespace or self.namespace, "count": len(pods)}

        return self._query(cmd, "KubernetesPlugin::list_pod_node_affinity::", summarize)

    def list_priority_classes(self, context: ContextArg = None) -> str:
        """List priority classes with their value and whether they are the global default."""
        cmd = self._command(context) + ["get", "priorityclasses", "-o", "json"]

        def summarize(data):
            classes = [
                {
                    "name": item.get("metadata", {}).get("name"),
                    "value": item.get("value"),
                    "global_default": item.get("globalDefault", False),
                    "preemption_policy": item.get("preemptionPolicy"),
                    "description": item.get("description"),
                }
                for item in data.get("items", [])
            ]
            classes.sort(key=lambda c: c["value"] or 0, reverse=True)
            return {"priority_classes": classes, "count": len(classes)}

        return self._query(cmd, "KubernetesPlugin::list_priority_classes::", summarize)

    def describe_priority_class(
        self,
        priority_class: Annotated[str, Field(description="The name of the priority class to describe")],
        context: ContextArg = None,
    ) -> str:
        """Describe a priority class in detail."""
        cmd = self._command(context) + ["describe", "priorityclass", priority_class]
        return self._query(cmd, "KubernetesPlugin::describe_priority_class::", names=(priority_class,))

    def get_pod_metrics(
        self,
        pod: Annotated[str, Field(description="The name of the pod")],
        namespace: NamespaceArg = None,
        context: ContextArg = None,
    ) -> str:
        """Get the resource requests and limits of each container in a pod, with its readiness and restarts."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "pod", pod, "-o", "json"]

        def summarize(data):
            statuses = {s.get("name"): s for s in data.get("status", {}).get("containerStatuses") or []}
            containers = data.get("spec", {}).get("containers") or []
            return {
                "pod": pod,
                "containers": [
                    {
                        "name": c.get("name"),
                        "requests": (c.get("resources") or {}).get("requests", {}),
                        "limits": (c.get("resources") or {}).get("limits", {}),
                        "ready": statuses.get(c.get("name"), {}).get("ready", False),
                        "restarts": statuses.get(c.get("name"), {}).get("restartCount", 0),
                        "state": next(iter(statuses.get(c.get("name"), {}).get("state") or {}), None),
                    }
                    for c in containers
                ],
                "total": _format_resources(_sum_resources(containers)),
            }

        return self._query(cmd, "KubernetesPlugin::get_pod_metrics::", summarize, names=(pod,))

    def get_node_metrics(
        self,
        node: Annotated[str, Field(description="The name of the node")],
        context: ContextArg = None,
    ) -> str:
        """Get a node's allocatable resources and how much of them the pods scheduled on it request."""
        log_prefix = "KubernetesPlugin::get_node_metrics::"
        base = self._command(context)
        ok, node_output = self._run_kubernetes_command(base + ["get", "node", node, "-o", "json"], log_prefix, (node,))
        if not ok:
            return node_output
        pods_cmd = base + ["get", "pods", "--all-namespaces", "--field-selector", f"spec.nodeName={node}", "-o", "json"]
        ok, pods_output = self._run_kubernetes_command(pods_cmd, log_prefix)
        if not ok:
            return pods_output
        try:
            status = json.loads(node_output).get("status", {})
            pods = json.loads(pods_output).get("items", [])
            containers = [c for pod in pods for c in pod.get("spec", {}).get("containers") or []]
            totals = _sum_resources(containers)
            allocatable = status.get("allocatable", {})
            cpu = parse_quantity(allocatable.get("cpu"))
            memory = parse_quantity(allocatable.get("memory"))
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"{log_prefix} Failed to parse kubectl output: {str(e)}")
            return json.dumps({"error": f"Failed to parse kubectl output: {str(e)}"})
        return json.dumps(
            {
                "node": node,
                "capacity": status.get("capacity", {}),
                "allocatable": allocatable,
                "pods": len(pods),
                "requested": _format_resources(totals),
                "cpu_requests_percent": _percent(totals["cpu_requests"], cpu),
                "memory_requests_percent": _percent(totals["memory_requests"], memory),
                "timestamp": datetime.now().isoformat(),
            },
            indent=2,
        )

    def get_namespace_resource_usage(self, namespace: NamespaceArg = None, context: ContextArg = None) -> str:
        """Get the total CPU and memory requested and limited by the pods of a namespace."""
        cmd = self._command(context) + self._namespace_args(namespace) + ["get", "pods", "-o", "json"]

        def summarize(data):
            items = data.get("items", [])
            containers = [c for item in items for c in item.get("spec", {}).get("containers") or []]
            return {
                "namespace": namespace or self.namespace,
                "pods": len(items),
                "containers": len(containers),
                **_format_resources(_sum_resources(containers)),
            }

        return self._query(cmd, "KubernetesPlugin::get_namespace_resource_usage::", summarize)

    @staticmethod
    def _event(item: Dict[str, Any]) -> Dict[str, Any]:
        involved = item.get("involvedObject", {})
        return {
            "type": item.get("type"),
            "reason": item.get("reason"),
            "object": f"{involved.get('kind')}/{involved.get('name')}",
            "message": item.get("message"),
            "count": item.get("count", 1),
            "last_seen": item.get("lastTimestamp") or item.get("eventTime"),
        }

    def get_tools(self) -> List[Callable[..., str]]:
        return [
            self.list_pods,
            self.describe_pod,
            self.get_pod_logs,
            self.diagnose_pods,
            self.get_pod_metrics,
            self.list_nodes,
            self.describe_node,
            self.get_node_metrics,
            self.list_node_taints,
            self.list_namespaces,
            self.get_namespace_resource_usage,
            self.list_services,
            self.describe_service,
            self.get_service_endpoints,
            self.list_deployments,
            self.describe_deployment,
            self.list_jobs,
            self.get_job_status,
            self.get_recent_events,
            self.get_resource_events,
            self.list_ingresses,
            self.describe_ingress,
            self.list_network_policies,
            self.describe_network_policy,
            self.list_configmaps,
            self.list_secrets,
            self.describe_secret,
            self.list_persistent_volumes,
            self.describe_persistent_volume,
            self.list_persistent_volume_claims,
            self.describe_persistent_volume_claim,
            self.list_storage_classes,
            self.list_pod_tolerations,
            self.list_pod_node_affinity,
            self.list_priority_classes,
            self.describe_priority_class,
            self.get_resource_quotas,
            self.check_cluster_health,
        ]
