from .relay_router import RelayResult, RelayRouter

__all__ = ["RelayResult", "RelayRouter"]
