from .http import AsyncRpcClient  # noqa: F401

__all__ = ["AsyncRpcClient"]
