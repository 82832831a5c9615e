"""Authorization checks on an already resolved actor.

Authentication happens upstream; these helpers only branch on the actor id
and the administrator flag they are handed.
"""

from ordering.errors import Forbidden


def require_admin(is_admin):
    if not is_admin:
        raise Forbidden("Administrator role required")


def ensure_can_access(order, actor_id, is_admin=False):
    """Allow administrators and the order's owner; reject everyone else."""
    if is_admin:
        return order
    if actor_id is None or str(order.user_id) != str(actor_id):
        raise Forbidden("You do not have access to this order")
    return order
