"""Multi-credential request dispatcher for the remote image model.

:class:`RequestDispatcher` turns one logical "generate an image" request into
as many network attempts as needed, rotating across the configured API keys
and hiding rate limits and transient faults from the caller.

Dispatch flow
-------------
1. Load the credential pool (fresh on every call).  An empty pool ends the
   dispatch with a ``CONFIGURATION`` failure before any network call.
2. Shuffle the whole pool so concurrent and repeated dispatches spread load
   instead of always hammering the first key.
3. Try each credential in shuffled order with the same payload:

   - image bytes          -> ``Success``, stop
   - refusal text         -> ``Failure(REFUSAL)``, stop
   - quota / rate limit   -> cooldown, next credential
   - server fault / network / timeout -> short delay, next credential
   - anything else        -> ``Failure(FATAL)``, stop

4. If every credential fails with a retryable kind, return the last
   classified failure.

Cooldowns are only applied when another credential remains.  A quota
cooldown honours the provider's ``RetryInfo`` delay plus a safety margin when
one is supplied.  ``max_cooldown`` caps only the fixed delays.

The dispatcher holds no per-call state, so one instance can serve any number
of concurrent dispatches.  Delays use ``asyncio.sleep`` and cancellation
propagates untouched.

Usage
-----
::

    from productshot.core.config import config
    from productshot.core.dispatcher import RequestDispatcher

    dispatcher = RequestDispatcher.from_config(config)
    outcome = await dispatcher.dispatch("a bottle on wet sand", [product_image])
    if outcome.ok:
        print(outcome.image_data[:40])
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence

from productshot.core.classifier import ClassifiedFailure, classify_exception, classify_response
from productshot.core.config import ProductshotConfig
from productshot.core.credentials import (
    ConfigurationError,
    CredentialPool,
    load_credential_pool,
    redact,
)
from productshot.core.outcome import DispatchOutcome, Failure, FailureKind, Success
from productshot.core.payload import ImagePart, PayloadError, RequestPayload, to_data_uri
from productshot.core.transport import GeminiTransport, GenerationTransport

logger = logging.getLogger(__name__)

PoolLoader = Callable[[], CredentialPool]
Sleeper = Callable[[float], Awaitable[None]]


class RequestDispatcher:
    """Dispatch generation requests across a rotating credential pool.

    Args:
        transport: Performs one network call per attempt.
        pool_loader: Returns the current credential pool; called once per
            dispatch.  Must raise :class:`ConfigurationError` when nothing is
            configured.
        quota_cooldown: Delay after a rate limit with no suggested wait.
        retry_after_margin: Seconds added to a provider-suggested wait.
        max_cooldown: Upper bound on the fixed delays.  A provider-suggested
            wait is honoured in full.
        transient_delay: Delay after a transient failure.
        sleep: Awaitable sleep, replaceable in tests.
        rng: Random source used for shuffling.
    """

    def __init__(
        self,
        transport: GenerationTransport,
        pool_loader: PoolLoader,
        *,
        quota_cooldown: float = 5.0,
        retry_after_margin: float = 2.0,
        max_cooldown: float = 60.0,
        transient_delay: float = 1.0,
        sleep: Sleeper = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._transport = transport
        self._pool_loader = pool_loader
        self.quota_cooldown = quota_cooldown
        self.retry_after_margin = retry_after_margin
        self.max_cooldown = max_cooldown
        self.transient_delay = transient_delay
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def from_config(
        cls,
        config: ProductshotConfig,
        transport: GenerationTransport | None = None,
    ) -> RequestDispatcher:
        """Build a dispatcher wired to the configured credential sources."""

        def load_pool() -> CredentialPool:
            return load_credential_pool(
                config.credential_sources,
                env_file=config.credentials_env_file,
                key_file=config.credentials_file,
            )

        return cls(
            transport or GeminiTransport(config.model_name, config.request_timeout),
            load_pool,
            quota_cooldown=config.quota_cooldown,
            retry_after_margin=config.retry_after_margin,
            max_cooldown=config.max_cooldown,
            transient_delay=config.transient_delay,
        )

    def shuffled(self, pool: CredentialPool) -> list[str]:
        """Return a full random permutation of the pool."""
        order = list(pool.credentials)
        self._rng.shuffle(order)
        return order

    def delay_for(self, failure: ClassifiedFailure) -> float:
        """Seconds to wait before trying the next credential after *failure*."""
        if failure.kind is FailureKind.QUOTA_EXCEEDED:
            if failure.retry_after is not None:
                return max(0.0, failure.retry_after + self.retry_after_margin)
            delay = self.quota_cooldown
        else:
            delay = self.transient_delay
        return max(0.0, min(delay, self.max_cooldown))

    async def aclose(self) -> None:
        """Release the transport's HTTP resources."""
        await self._transport.aclose()

    async def dispatch(self, prompt: str, images: Sequence[ImagePart] = ()) -> DispatchOutcome:
        """Generate one image, rotating credentials on retryable failures.

        Args:
            prompt: Instruction text; sent after all images.
            images: Image parts in the order the model should read them.

        Returns:
            Exactly one :class:`Success` or :class:`Failure`.
        """
        try:
            payload = RequestPayload(prompt=prompt, images=tuple(images))
        except PayloadError as e:
            return Failure(FailureKind.FATAL, str(e))
        return await self.dispatch_payload(payload)

    async def dispatch_payload(self, payload: RequestPayload) -> DispatchOutcome:
        """Same as :meth:`dispatch` for an already-built payload."""
        try:
            pool = self._pool_loader().require_non_empty()
        except ConfigurationError as e:
            logger.error("Dispatch aborted: %s", e)
            return Failure(FailureKind.CONFIGURATION, str(e))

        order = self.shuffled(pool)
        last = ClassifiedFailure(FailureKind.TRANSIENT, "no attempt made")
        last_hint: str | None = None
        attempts = 0

        for index, credential in enumerate(order):
            hint = redact(credential)
            attempts += 1
            try:
                response = await self._transport.generate(credential, payload)
            except Exception as e:
                failure = classify_exception(e)
            else:
                failure = classify_response(response)
                if failure is None:
                    logger.info("Image generated with key %s after %d attempt(s)", hint, attempts)
                    return Success(
                        image_data=to_data_uri(response.image, "image/png"),
                        attempts=attempts,
                        credential_hint=hint,
                    )

            last, last_hint = failure, hint
            logger.warning(
                "Attempt %d/%d with key %s failed (%s): %s",
                attempts,
                len(order),
                hint,
                failure.kind.value,
                failure.message,
            )

            if not failure.kind.retryable:
                return Failure(failure.kind, failure.message, attempts, hint)

            if index < len(order) - 1:
                delay = self.delay_for(failure)
                if delay > 0:
                    logger.info("Cooling down %.1fs before next key", delay)
                    await self._sleep(delay)

        logger.error("All %d key(s) exhausted; last error: %s", len(order), last.message)
        return Failure(
            last.kind,
            f"all {len(order)} credential(s) exhausted: {last.message}",
            attempts,
            last_hint,
        )
