"""
ID 생성 유틸리티

규칙: {prefix}-{uuid4 hex 12자리}
예: kas-3f2a9c1b7d4e, kh-0a1b2c3d4e5f
"""

import uuid


def new_id(prefix: str) -> str:
    """접두사 포함 ID 생성

    Args:
        prefix: 엔티티 접두사 (예: "kas", "kh", "sb")

    Returns:
        {prefix}-{12자리 hex}

    Example:
        >>> new_id("kh")
        'kh-3f2a9c1b7d4e'
    """
    if not prefix:
        raise ValueError("prefix는 비어 있을 수 없습니다")
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
