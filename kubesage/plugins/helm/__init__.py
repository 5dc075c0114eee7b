from kubesage.plugins.helm.helm_plugin import HelmPlugin

__all__ = ["HelmPlugin"]
