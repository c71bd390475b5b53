"""
Retailer login as an explicit state machine.

Credential retailers go through
    START -> NAVIGATED_TO_LOGIN -> CAPTCHA_CHECKED -> CREDENTIALS_SUBMITTED
          -> TWO_FACTOR_CHECKED -> AUTHENTICATED
and token retailers skip the form:
    START -> NAVIGATED_TO_LOGIN -> CAPTCHA_CHECKED -> AUTHENTICATED

Every step returns a StepResult instead of raising. A failed step moves the
flow to FAILED and carries the classified ScrapeError.
"""

import json
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .captcha import CaptchaGuard
from .config import TimeoutConfig
from .core.errors import ScrapeError, Stage, auth_error, captcha_error, classify_error
from .core.models import Credential
from .core.page import BrowserPage, PageTimeoutError
from .retailers import USER_AGENTS, AuthMode, RetailerProfile
from .selectors import first_match, wait_for_any

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 10
VIEWPORT = (1280, 720)


class AuthState(str, Enum):
    START = "start"
    NAVIGATED_TO_LOGIN = "navigated_to_login"
    CAPTCHA_CHECKED = "captcha_checked"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    TWO_FACTOR_CHECKED = "two_factor_checked"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one transition."""
    state: AuthState
    error: Optional[ScrapeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AuthenticationFlow:
    """Drives one login to AUTHENTICATED or a classified failure."""

    def __init__(
        self,
        page: BrowserPage,
        profile: RetailerProfile,
        timeouts: Optional[TimeoutConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.page = page
        self.profile = profile
        self.timeouts = timeouts or TimeoutConfig()
        self._rng = rng or random.Random()
        self.state = AuthState.START
        self.history: List[AuthState] = [AuthState.START]
        self.user_agent: Optional[str] = None

    @property
    def name(self) -> str:
        return self.profile.display_name

    def run(self, credential: Credential) -> StepResult:
        """Walk every transition for the profile's auth mode."""
        steps: List[Callable[[], StepResult]] = [self.prepare_browser]

        if self.profile.auth_mode is AuthMode.TOKEN:
            steps += [
                lambda: self.inject_token(credential.token),
                self.navigate_to_account,
                lambda: self.check_captcha("account page"),
                self.probe_account,
            ]
        else:
            steps += [
                self.navigate_to_login,
                lambda: self.check_captcha("pre-login"),
                lambda: self.submit_credentials(credential),
                lambda: self.check_captcha("post-login"),
                self.check_two_factor,
                self.confirm_login,
            ]

        result = StepResult(self.state)
        for step in steps:
            result = step()
            if not result.ok:
                logger.warning(f"{self.name} authentication failed: {result.error.message}")
                return result

        logger.info(f"Successfully authenticated with {self.name}")
        return result

    # Shared transitions

    def prepare_browser(self) -> StepResult:
        """Pick a user agent from the pool and size the viewport."""
        def step() -> AuthState:
            self.user_agent = self._rng.choice(USER_AGENTS)
            self.page.set_user_agent(self.user_agent)
            self.page.set_viewport(*VIEWPORT)
            return self.state
        return self._transition(step)

    def check_captcha(self, checkpoint: str) -> StepResult:
        def step() -> AuthState:
            if CaptchaGuard.detect_for(self.page, self.profile):
                suffix = " after login" if checkpoint == "post-login" else ""
                raise captcha_error(f"{self.name} requires CAPTCHA verification{suffix}")
            if self.state is AuthState.NAVIGATED_TO_LOGIN:
                return AuthState.CAPTCHA_CHECKED
            return self.state
        return self._transition(step)

    # Token mode

    def inject_token(self, token: Optional[str]) -> StepResult:
        """Put the bearer token into request headers, storage and cookies."""
        def step() -> AuthState:
            if not token or len(token) < MIN_TOKEN_LENGTH:
                raise auth_error("Invalid access token format")

            self.page.set_extra_headers({
                "Authorization": f"Bearer {token}",
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.5",
                "DNT": "1",
                "Upgrade-Insecure-Requests": "1",
                "User-Agent": self.user_agent or USER_AGENTS[0],
            })

            if self.profile.token_storage_key:
                self.page.add_init_script(
                    "localStorage.setItem(%s, %s);"
                    "sessionStorage.setItem('auth_state', 'authenticated');"
                    % (json.dumps(self.profile.token_storage_key), json.dumps(token))
                )

            if self.profile.token_cookie_name and self.profile.token_cookie_domain:
                self.page.set_cookie(
                    self.profile.token_cookie_name,
                    token,
                    domain=self.profile.token_cookie_domain,
                )
            return self.state
        return self._transition(step)

    def navigate_to_account(self) -> StepResult:
        def step() -> AuthState:
            self.page.navigate(self.profile.home_url or self.profile.login_url, self.timeouts.navigation)
            if self.profile.account_url:
                self.page.navigate(self.profile.account_url, self.timeouts.navigation)
            return AuthState.NAVIGATED_TO_LOGIN
        return self._transition(step)

    def probe_account(self) -> StepResult:
        """Confirm an authenticated-account marker shows up in time."""
        def step() -> AuthState:
            try:
                wait_for_any(
                    self.page,
                    self.profile.selectors.account_markers,
                    timeout=self.timeouts.account_probe,
                    poll_interval=self.timeouts.poll_interval,
                )
            except PageTimeoutError as e:
                raise auth_error(f"Failed to verify authentication with {self.name}") from e
            return AuthState.AUTHENTICATED
        return self._transition(step)

    # Credential mode

    def navigate_to_login(self) -> StepResult:
        def step() -> AuthState:
            self.page.navigate(self.profile.login_url, self.timeouts.navigation)
            return AuthState.NAVIGATED_TO_LOGIN
        return self._transition(step)

    def submit_credentials(self, credential: Credential) -> StepResult:
        """Fill and submit the login form, then wait for the page to settle."""
        def step() -> AuthState:
            if not credential.username or not credential.password:
                raise auth_error(f"{self.name} requires a username and password")

            selectors = self.profile.selectors
            try:
                email_field = wait_for_any(
                    self.page,
                    selectors.login_email,
                    timeout=self.timeouts.selector,
                    poll_interval=self.timeouts.poll_interval,
                )
            except PageTimeoutError as e:
                raise auth_error(f"{self.name} login form did not load") from e

            password_field = first_match(self.page, selectors.login_password)
            submit_button = first_match(self.page, selectors.login_submit)
            if password_field is None or submit_button is None:
                raise auth_error(f"{self.name} login form is incomplete")

            email_field.fill(credential.username)
            password_field.fill(credential.password)
            submit_button.click()
            self.page.wait_until_settled(self.timeouts.settle)
            return AuthState.CREDENTIALS_SUBMITTED
        return self._transition(step)

    def check_two_factor(self) -> StepResult:
        def step() -> AuthState:
            if first_match(self.page, self.profile.selectors.two_factor) is not None:
                raise auth_error(f"{self.name} requires two-factor authentication")
            return AuthState.TWO_FACTOR_CHECKED
        return self._transition(step)

    def confirm_login(self) -> StepResult:
        """Still seeing the login field means the credentials were rejected."""
        def step() -> AuthState:
            if first_match(self.page, self.profile.selectors.login_email) is not None:
                raise auth_error(f"{self.name} login failed - credentials may be incorrect")
            return AuthState.AUTHENTICATED
        return self._transition(step)

    def _transition(self, step: Callable[[], AuthState]) -> StepResult:
        if self.state is AuthState.FAILED:
            return StepResult(AuthState.FAILED, auth_error(f"{self.name} authentication already failed"))

        try:
            new_state = step()
        except Exception as e:
            error = classify_error(e, Stage.AUTHENTICATION, context=self.name)
            self._move(AuthState.FAILED)
            return StepResult(AuthState.FAILED, error)

        self._move(new_state)
        return StepResult(new_state)

    def _move(self, state: AuthState) -> None:
        if state is not self.state:
            self.history.append(state)
        self.state = state
