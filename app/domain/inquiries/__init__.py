from .router import router, submit_inquiry

__all__ = ["router", "submit_inquiry"]
