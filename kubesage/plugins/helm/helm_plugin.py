"""plugin for Helm release operations."""

import json
import subprocess
from typing import Annotated, Callable, Dict, List, Optional, Sequence

import structlog
from pydantic import Field

from kubesage.config import Config
from kubesage.plugins.base import BasePlugin
from kubesage.plugins.loader import PluginInfoLoader
from kubesage.utils.command import UnsafeCommandError, check_positional, run_command

logger = structlog.get_logger(__name__)

NamespaceArg = Annotated[
    str | None,
    Field(description="The Kubernetes namespace of the release (defaults to the configured namespace)"),
]
ValuesArg = Annotated[
    Dict[str, str] | None,
    Field(description="Optional key-value pairs for chart values, passed as --set key=value"),
]


class HelmPlugin(BasePlugin):
    """plugin for Helm release operations.

    Install, upgrade, uninstall and repository changes are only handed to the
    model when the configuration allows mutating tools (``tools_read_only``
    is false).
    """

    def __init__(self, config: Config):
        self.config = config
        self.name = "HelmPlugin"
        loader = PluginInfoLoader()
        self.instructions = loader.load("helm")
        self.context = getattr(config, "kubernetes_context", None)
        self.namespace = getattr(config, "kubernetes_namespace", "default") or "default"
        self.helm = getattr(config, "helm_path", "helm") or "helm"
        self.timeout = getattr(config, "command_timeout_seconds", None)
        self.read_only = getattr(config, "tools_read_only", True)

    def _command(self, *args: str, namespace: Optional[str] = None) -> List[str]:
        cmd = [self.helm, *args]
        if namespace and namespace.lower() == "all":
            cmd.append("--all-namespaces")
        else:
            cmd.extend(["--namespace", namespace or self.namespace])
        if self.context:
            cmd.extend(["--kube-context", self.context])
        return cmd

    def _repo_command(self, *args: str) -> List[str]:
        return [self.helm, "repo", *args]

    @staticmethod
    def _chart_options(version: Optional[str], values: Optional[Dict[str, str]]) -> List[str]:
        options = []
        if version:
            options.extend(["--version", version])
        for key, value in (values or {}).items():
            options.extend(["--set", f"{key}={value}"])
        return options

    def _run_helm_command(self, command: List[str], log_prefix: str = "", names: Sequence[str] = ()) -> str:
        """Run helm; ``names`` are the positional release, chart or repository arguments."""
        try:
            check_positional(*names)
            logger.debug(f"{log_prefix} Running command: [{' '.join(command)}]")
            result = run_command(command, timeout=self.timeout)
        except UnsafeCommandError as e:
            logger.error(f"{log_prefix} rejected command: {str(e)}")
            return f"Error: rejected command: {e}"
        except FileNotFoundError as e:
            logger.error(f"{log_prefix} helm not found: {str(e)}")
            return f"Error: helm not found: {e}"
        except subprocess.TimeoutExpired:
            logger.error(f"{log_prefix} helm timed out after {self.timeout}s")
            return f"Error: helm timed out after {self.timeout}s"
        except OSError as e:
            logger.error(f"{log_prefix} OS error when launching helm: {str(e)}")
            return f"Error: OS error when launching helm: {e}"
        if not result.ok:
            return json.dumps({"error": " ".join(command) + f" failed: {result.stderr.strip()}"})
        return result.stdout

    def list_releases(
        self,
        namespace: Annotated[
            str | None,
            Field(description="The Kubernetes namespace to list releases from ('all' for every namespace)"),
        ] = None,
    ) -> str:
        """List Helm releases in a namespace."""
        cmd = self._command("list", "--output", "json", namespace=namespace)
        return self._run_helm_command(cmd, "HelmPlugin::list_releases::")

    def get_release_status(
        self,
        release: Annotated[str, Field(description="Name of the release to check")],
        namespace: NamespaceArg = None,
    ) -> str:
        """Get the status of a Helm release."""
        cmd = self._command("status", release, "--output", "json", namespace=namespace)
        return self._run_helm_command(cmd, "HelmPlugin::get_release_status::", names=(release,))

    def get_release_history(
        self,
        release: Annotated[str, Field(description="Name of the release")],
        namespace: NamespaceArg = None,
    ) -> str:
        """Get the revision history of a Helm release."""
        cmd = self._command("history", release, "--output", "json", namespace=namespace)
        return self._run_helm_command(cmd, "HelmPlugin::get_release_history::", names=(release,))

    def show_values(
        self,
        release: Annotated[str, Field(description="Name of the release")],
        namespace: NamespaceArg = None,
        all_values: Annotated[
            bool,
            Field(description="Include the chart defaults, not only the user-supplied values"),
        ] = False,
    ) -> str:
        """Show the values a Helm release was deployed with."""
        cmd = self._command("get", "values", release, "--output", "json", namespace=namespace)
        if all_values:
            cmd.append("--all")
        return self._run_helm_command(cmd, "HelmPlugin::show_values::", names=(release,))

    def install_chart(
        self,
        release: Annotated[str, Field(description="Name for the release")],
        chart: Annotated[str, Field(description="Name of the chart to install")],
        namespace: NamespaceArg = None,
        version: Annotated[str | None, Field(description="Optional version of the chart")] = None,
        values: ValuesArg = None,
    ) -> str:
        """Install a Helm chart with optional values."""
        cmd = self._command("install", release, chart, namespace=namespace)
        cmd.extend(self._chart_options(version, values))
        return self._run_helm_command(cmd, "HelmPlugin::install_chart::", names=(release, chart))

    def upgrade_release(
        self,
        release: Annotated[str, Field(description="Name of the release to upgrade")],
        chart: Annotated[str, Field(description="Name of the chart to upgrade to")],
        namespace: NamespaceArg = None,
        version: Annotated[str | None, Field(description="Optional version to upgrade to")] = None,
        values: ValuesArg = None,
    ) -> str:
        """Upgrade an existing Helm release."""
        cmd = self._command("upgrade", release, chart, namespace=namespace)
        cmd.extend(self._chart_options(version, values))
        return self._run_helm_command(cmd, "HelmPlugin::upgrade_release::", names=(release, chart))

    def uninstall_release(
        self,
        release: Annotated[str, Field(description="Name of the release to uninstall")],
        namespace: NamespaceArg = None,
    ) -> str:
        """Uninstall a Helm release."""
        cmd = self._command("uninstall", release, namespace=namespace)
        return self._run_helm_command(cmd, "HelmPlugin::uninstall_release::", names=(release,))

    def add_repository(
        self,
        name: Annotated[str, Field(description="Name for the repository")],
        url: Annotated[str, Field(description="URL of the repository")],
    ) -> str:
        """Add a Helm chart repository."""
        cmd = self._repo_command("add", name, url)
        return self._run_helm_command(cmd, "HelmPlugin::add_repository::", names=(name, url))

    def update_repositories(self) -> str:
        """Update the local chart index of every configured Helm repository."""
        return self._run_helm_command(self._repo_command("update"), "HelmPlugin::update_repositories::")

    def get_tools(self) -> List[Callable[..., str]]:
        tools = [self.list_releases, self.get_release_status, self.get_release_history, self.show_values]
        if not self.read_only:
            tools.extend(
                [
                    self.install_chart,
                    self.upgrade_release,
                    self.uninstall_release,
                    self.add_repository,
                    self.update_repositories,
                ]
            )
        return tools
