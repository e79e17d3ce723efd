"""ロールによる権限チェック"""

from collections.abc import Iterable


def is_authorized(caller_roles: Iterable[int], admin_role_id: int) -> bool:
    """呼び出し元のロールに管理者ロールが含まれているか"""
    return admin_role_id in set(caller_roles)
