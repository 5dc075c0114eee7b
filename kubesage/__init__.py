"""
kubesage - natural-language assistant for Kubernetes clusters.

Turns a plain-text request about a cluster into a validated, styled HTML
answer by running a generate/evaluate loop over an LLM that can call
read-only cluster tools.
"""

__version__ = "0.1.0"
__author__ = "kubesage Contributors"
