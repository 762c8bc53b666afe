from importlib import import_module

__all__ = [
    "BirdEyeClient",
    "DexScreenerClient",
    "WalletTokenQueue",
    "TrendingDiscoveryOrchestrator",
    "build_orchestrator",
    "RunState",
]

_LAZY_EXPORTS = {
    "BirdEyeClient": ("services.birdeye", "BirdEyeClient"),
    "DexScreenerClient": ("services.dexscreener", "DexScreenerClient"),
    "WalletTokenQueue": ("services.wallet_queue", "WalletTokenQueue"),
    "TrendingDiscoveryOrchestrator": ("services.discovery_orchestrator", "TrendingDiscoveryOrchestrator"),
    "build_orchestrator": ("services.discovery_orchestrator", "build_orchestrator"),
    "RunState": ("services.run_state", "RunState"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
