"""
Cart engine tests against an in-memory store.
"""
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from bson import ObjectId

from accounts import AccountService
from cart import CartEngine
from errors import UserNotFound
from schemas import CART_SIZE
from security import TokenService
from stores import UserStore


@pytest.fixture
def user_id(accounts: AccountService, tokens: TokenService) -> str:
    return tokens.verify(accounts.signup("alice", "a@x.com", "p"))


class TestFreshCart:

    def test_signup_creates_all_slots_at_zero(self, cart: CartEngine, user_id: str):
        contents = cart.get_cart(user_id)

        assert len(contents) == CART_SIZE == 300
        assert set(contents) == {str(slot) for slot in range(300)}
        assert all(quantity == 0 for quantity in contents.values())


class TestAddAndRemove:

    def test_add_increments_only_that_slot(self, cart: CartEngine, user_id: str):
        assert cart.add_item(user_id, 5) == "Added"
        cart.add_item(user_id, 5)

        contents = cart.get_cart(user_id)
        assert contents["5"] == 2
        assert sum(contents.values()) == 2

    def test_remove_never_goes_below_zero(self, cart: CartEngine, user_id: str):
        assert cart.remove_item(user_id, 7) == "Removed"
        cart.remove_item(user_id, 7)

        assert cart.get_cart(user_id)["7"] == 0

    def test_remove_after_floor_then_add(self, cart: CartEngine, user_id: str):
        cart.remove_item(user_id, 3)
        cart.add_item(user_id, 3)
        cart.remove_item(user_id, 3)
        cart.remove_item(user_id, 3)
        cart.add_item(user_id, 3)

        assert cart.get_cart(user_id)["3"] == 1

    @pytest.mark.parametrize("adds,removes", [(1, 0), (3, 1), (4, 4), (10, 7)])
    def test_n_adds_then_m_removes_leaves_difference(
        self, cart: CartEngine, user_id: str, adds: int, removes: int
    ):
        for _ in range(adds):
            cart.add_item(user_id, 42)
        for _ in range(removes):
            cart.remove_item(user_id, 42)

        assert cart.get_cart(user_id)["42"] == adds - removes

    def test_users_do_not_share_carts(self, cart: CartEngine, accounts, tokens, user_id: str):
        other = tokens.verify(accounts.signup("bob", "b@x.com", "p"))

        cart.add_item(user_id, 1)

        assert cart.get_cart(other)["1"] == 0


class TestSlotBounds:
    """Slots outside [0, 300) are accepted and stored like any other."""

    @pytest.mark.parametrize("slot", [300, 450])
    def test_out_of_range_slot_is_created_on_add(self, cart: CartEngine, user_id: str, slot: int):
        cart.add_item(user_id, slot)

        assert cart.get_cart(user_id)[str(slot)] == 1

    def test_remove_of_unseen_slot_is_a_no_op(self, cart: CartEngine, user_id: str):
        cart.remove_item(user_id, 999)

        contents = cart.get_cart(user_id)
        assert "999" not in contents
        assert len(contents) == 300


class TestUnknownUser:

    @pytest.mark.parametrize("missing", [str(ObjectId()), "not-an-object-id"])
    def test_operations_fail_with_user_not_found(self, cart: CartEngine, missing: str):
        with pytest.raises(UserNotFound):
            cart.add_item(missing, 1)
        with pytest.raises(UserNotFound):
            cart.remove_item(missing, 1)
        with pytest.raises(UserNotFound):
            cart.get_cart(missing)


class TestWholeCartWrite:

    def test_update_cart_data_replaces_map(self, users: UserStore, cart: CartEngine, user_id: str):
        assert users.update_cart_data(user_id, {"0": 4})

        assert cart.get_cart(user_id) == {"0": 4}

    def test_update_cart_data_for_missing_user(self, users: UserStore):
        assert not users.update_cart_data(str(ObjectId()), {"0": 1})


@pytest.fixture
def atomic_store(users: UserStore, monkeypatch):
    """Make each single store call atomic, as a MongoDB server does per document."""
    lock = threading.Lock()
    for name in ("update_one", "find_one"):
        original = getattr(users.collection, name)

        def locked(*args, _call=original, **kwargs):
            with lock:
                return _call(*args, **kwargs)

        monkeypatch.setattr(users.collection, name, locked)
    return users


class TestConcurrentRequests:
    """Many requests for the same user and slot, racing on a thread pool."""

    WORKERS = 16

    def test_concurrent_adds_lose_no_updates(self, atomic_store, cart: CartEngine, user_id: str):
        with ThreadPoolExecutor(max_workers=self.WORKERS) as pool:
            results = list(pool.map(lambda _: cart.add_item(user_id, 5), range(200)))

        assert results == ["Added"] * 200
        assert cart.get_cart(user_id)["5"] == 200

    def test_concurrent_removes_stop_at_zero(self, atomic_store, cart: CartEngine, user_id: str):
        for _ in range(10):
            cart.add_item(user_id, 5)

        with ThreadPoolExecutor(max_workers=self.WORKERS) as pool:
            list(pool.map(lambda _: cart.remove_item(user_id, 5), range(50)))

        assert cart.get_cart(user_id)["5"] == 0

    def test_concurrent_adds_and_removes_balance(self, atomic_store, cart: CartEngine, user_id: str):
        for _ in range(100):
            cart.add_item(user_id, 8)

        def step(n):
            return cart.add_item(user_id, 8) if n % 2 else cart.remove_item(user_id, 8)

        with ThreadPoolExecutor(max_workers=self.WORKERS) as pool:
            list(pool.map(step, range(100)))

        # 50 adds and 50 removes; the slot never hit zero, so no remove was skipped
        assert cart.get_cart(user_id)["8"] == 100
