"""
정합성 검사 모듈

projection 값과 원천 기록을 비교하여 drift 감지
"""

from core.reconciler.drift import DriftDetector, DriftInfo, DriftReport

__all__ = [
    "DriftDetector",
    "DriftInfo",
    "DriftReport",
]
