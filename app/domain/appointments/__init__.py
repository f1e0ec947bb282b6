from .router import accept_inquiry, consultant_router, router

__all__ = ["router", "consultant_router", "accept_inquiry"]
