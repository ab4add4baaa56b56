from .stt import router as stt_router

__all__ = ["stt_router"]
