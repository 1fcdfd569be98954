from errors import DuplicateEmail, WrongEmail, WrongPassword
from log_config import get_logger
from schemas import User
from security import TokenService, hash_password, verify_password
from stores import UserStore

logger = get_logger(__name__)


def canonical_email(email: str) -> str:
    """Emails are stored and looked up case-insensitively."""
    return email.strip().lower()


class AccountService:
    """Signup and login. Both hand back a freshly issued session token."""

    def __init__(self, users: UserStore, tokens: TokenService):
        self.users = users
        self.tokens = tokens

    def signup(self, username: str, email: str, password: str) -> str:
        email = canonical_email(email)
        if self.users.find_by_email(email):
            logger.info("Signup rejected, email already registered: %s", email)
            raise DuplicateEmail()
        user = User(name=username, email=email, password=hash_password(password))
        user_id = self.users.insert(user)
        logger.info("Signed up user %s", user_id)
        return self.tokens.issue(user_id)

    def login(self, email: str, password: str) -> str:
        user = self.users.find_by_email(canonical_email(email))
        if not user:
            raise WrongEmail()
        if not verify_password(password, user.get("password", "")):
            raise WrongPassword()
        user_id = str(user["_id"])
        logger.info("Logged in user %s", user_id)
        return self.tokens.issue(user_id)
