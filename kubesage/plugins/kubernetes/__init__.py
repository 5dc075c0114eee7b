from kubesage.plugins.kubernetes.kubernetes_plugin import KubernetesPlugin

__all__ = ["KubernetesPlugin"]
