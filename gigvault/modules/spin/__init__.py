"""Prize wheel: paid, bonus and free spins."""

from gigvault.modules.spin.service import SpinService
from gigvault.modules.spin.wheel import WheelSegment, build_segments, pick_segment

__all__ = ["SpinService", "WheelSegment", "build_segments", "pick_segment"]
