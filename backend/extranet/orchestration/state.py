"""Wizard context and the shared hydrate/commit plumbing used by every step."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from backend.extranet.adapters.backend_client import (
    DraftClientError,
    DraftPersistenceClient,
    SessionExpiredError,
)
from backend.extranet.config import Settings
from backend.extranet.db.step_cache import InMemoryStepCache, StepCache
from backend.extranet.models.responses import CommitResult
from backend.extranet.models.violations import Violation, ViolationKind
from backend.extranet.models.wizard import OutcomeKind, StepOutcome
from backend.extranet.navigation.addressing import LOGIN_PATH, AddressParams
from backend.extranet.orchestration.commit import (
    CancelToken,
    CommitCancelledError,
    CommitContext,
    CommitRunner,
    CommitTimeoutError,
)
from backend.extranet.orchestration.validation import Rule, validate
from backend.extranet.utils.metrics import record_validation_failure

logger = logging.getLogger(__name__)

GENERIC_SAVE_ERROR = "The changes could not be saved. Please try again."
GENERIC_LOAD_ERROR = "The draft could not be loaded. Please try again."
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please sign in again."


@dataclass
class WizardContext:
    """What a step action needs: the address it runs at and its collaborators."""

    params: AddressParams
    client: DraftPersistenceClient
    runner: CommitRunner
    settings: Settings
    has_session: bool = True
    cache: StepCache = field(default_factory=InMemoryStepCache)
    cancel_token: CancelToken = field(default_factory=CancelToken)
    # Opaque per-merchant id; scopes the guard of a draft that has no id yet
    session_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def lang(self) -> str:
        return self.params.lang or self.settings.default_lang

    @property
    def currency(self) -> str:
        return self.params.currency or self.settings.default_currency

    @property
    def activity_id(self) -> str:
        """Activity id; only call after the precondition check passed."""
        assert self.params.activity_id is not None
        return self.params.activity_id

    @property
    def option_id(self) -> str:
        """Booking option id; only call after the precondition check passed."""
        assert self.params.option_id is not None
        return self.params.option_id

    def draft_key(self) -> str:
        """Key guarding concurrent commits: the innermost draft being edited."""
        if self.params.option_id:
            return f"option:{self.params.option_id}"
        if self.params.activity_id:
            return f"activity:{self.params.activity_id}"
        return f"activity:new:{self.session_id}"


# Outcome constructors


def advanced(address: str, **kwargs: object) -> StepOutcome:
    return StepOutcome(kind=OutcomeKind.advanced, address=address, **kwargs)  # type: ignore[arg-type]


def redirected(address: str) -> StepOutcome:
    return StepOutcome(kind=OutcomeKind.redirected, address=address)


def blocked(violation: Violation) -> StepOutcome:
    return StepOutcome(kind=OutcomeKind.blocked, message=violation.message, violation=violation)


def failed(message: str | None, fallback: str = GENERIC_SAVE_ERROR) -> StepOutcome:
    return StepOutcome(kind=OutcomeKind.failed, message=message or fallback)


def reauth() -> StepOutcome:
    return StepOutcome(kind=OutcomeKind.reauth, address=LOGIN_PATH, message=SESSION_EXPIRED_MESSAGE)


def parse_slice(model: type[BaseModel], raw: dict[str, object]) -> BaseModel | StepOutcome:
    """Parse form values into a step slice; malformed input blocks the step."""
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(p) for p in first.get("loc", ()))
        return blocked(
            Violation(
                kind=ViolationKind.CONSISTENCY,
                code="INVALID_INPUT",
                message=f"Invalid value for {field_name or 'form'}.",
                field=field_name or None,
            )
        )


def check_rules(step: str, rules: tuple[Rule, ...], values: dict[str, object]) -> StepOutcome | None:
    """Run a step's rule table; a failure blocks the step without any network call."""
    violation = validate(rules, values)
    if violation is None:
        return None
    record_validation_failure(step, violation.code)
    logger.info(f"Step {step} blocked: {violation.code}")
    return blocked(violation)


async def load(fn: Callable[[], Awaitable[object]]) -> object | StepOutcome:
    """Run a hydration read, mapping session and transport failures to outcomes."""
    try:
        return await fn()
    except SessionExpiredError:
        return reauth()
    except DraftClientError as e:
        logger.warning(f"Hydration failed: {e}")
        return failed(None, GENERIC_LOAD_ERROR)


async def commit(
    ctx: WizardContext,
    step: str,
    fn: Callable[[], Awaitable[CommitResult]],
    on_success: Callable[[CommitResult], StepOutcome],
) -> StepOutcome:
    """Run a remote commit under the runner and map its result.

    Remote rejections keep the server message. CommitInFlightError is not
    caught: a second concurrent commit is a client error, not a step outcome.
    """
    try:
        result = await ctx.runner.run(CommitContext(draft_key=ctx.draft_key(), step=step), fn, ctx.cancel_token)
    except SessionExpiredError:
        return reauth()
    except (DraftClientError, CommitTimeoutError, CommitCancelledError) as e:
        logger.warning(f"Commit of {step} failed: {type(e).__name__}")
        return failed(None)

    if not result.success:
        return failed(result.message)
    return on_success(result)
