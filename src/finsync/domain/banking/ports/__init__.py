"""Ports (interfaces) for the banking domain."""

from finsync.domain.banking.ports.provider_adapter_port import ProviderAdapter

__all__ = ["ProviderAdapter"]
