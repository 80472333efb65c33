from cage_core.utils.clock import now_millis

__all__ = ["now_millis"]
