from typing import Dict

from errors import UserNotFound
from log_config import get_logger
from stores import UserStore

logger = get_logger(__name__)


class CartEngine:
    """Bounded per-slot quantity changes on a user's cart.

    Each change is one atomic field update, so concurrent requests for the
    same user cannot lose increments. Slots are not range checked: any
    integer is accepted and an unseen slot starts from 0.
    """

    def __init__(self, users: UserStore):
        self.users = users

    def add_item(self, user_id: str, slot: int) -> str:
        if not self.users.increment_slot(user_id, slot, 1):
            raise UserNotFound()
        logger.info("Added slot %s for user %s", slot, user_id)
        return "Added"

    def remove_item(self, user_id: str, slot: int) -> str:
        if not self.users.increment_slot(user_id, slot, -1):
            # Either the slot is already at zero or the user is gone.
            if not self.users.exists(user_id):
                raise UserNotFound()
        logger.info("Removed slot %s for user %s", slot, user_id)
        return "Removed"

    def get_cart(self, user_id: str) -> Dict[str, int]:
        cart = self.users.get_cart(user_id)
        if cart is None:
            raise UserNotFound()
        logger.info("Fetched cart for user %s", user_id)
        return cart
