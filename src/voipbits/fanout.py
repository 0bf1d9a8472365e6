from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Set, Tuple

from voipbits.acrobits import PushResult
from voipbits.errors import NoPushTokenAvailable
from voipbits.logger import get_logger
from voipbits.push_tokens import PushRegistration, PushTokenRegistry
from voipbits.settings import PRUNE_ANY_FAILURE, PRUNE_POLICIES, PRUNE_REJECTED_ONLY

logger = get_logger("fanout")


@dataclass
class FanoutResult:
    delivered: Set[PushRegistration] = field(default_factory=set)
    failed: Set[PushRegistration] = field(default_factory=set)
    pruned: Set[PushRegistration] = field(default_factory=set)


class NotificationFanout:
    """
    Notify every device registered for a DID about one inbound SMS.

    Pushes run in parallel and independently. Registrations whose push failed
    are removed afterwards in a single registry call. With the default
    `any_failure` policy a transient gateway outage also prunes tokens; the
    devices re-register on their next report. `rejected_only` prunes only on
    an explicit 4xx from the gateway.
    """

    def __init__(
        self,
        registry: PushTokenRegistry,
        push_sender,
        max_workers: int = 8,
        prune_policy: str = PRUNE_ANY_FAILURE,
    ):
        if prune_policy not in PRUNE_POLICIES:
            raise ValueError(f"Unknown prune policy: {prune_policy}")
        self.registry = registry
        self.push_sender = push_sender
        self.max_workers = max_workers
        self.prune_policy = prune_policy

    def _attempt(
        self, registration: PushRegistration, sender: str, message: str
    ) -> Tuple[PushRegistration, PushResult]:
        try:
            result = self.push_sender.send(
                registration.app_id,
                registration.push_token,
                registration.selector,
                sender,
                message,
            )
        except Exception as e:
            # One device must not stop the others.
            logger.exception("fanout.push_error", extra={"app_id": registration.app_id})
            result = PushResult(ok=False, error=str(e))
        return registration, result

    def _should_prune(self, result: PushResult) -> bool:
        if self.prune_policy == PRUNE_REJECTED_ONLY:
            return result.rejected
        return True

    def deliver(self, line_id: str, sender: str, message: str) -> FanoutResult:
        outcome = FanoutResult()

        try:
            registrations = self.registry.list_registrations(line_id)
        except NoPushTokenAvailable:
            logger.info("fanout.no_devices", extra={"did": line_id})
            return outcome

        workers = max(1, min(self.max_workers, len(registrations)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            attempts = pool.map(lambda reg: self._attempt(reg, sender, message), registrations)
            for registration, result in attempts:
                if result.ok:
                    outcome.delivered.add(registration)
                    continue
                outcome.failed.add(registration)
                if self._should_prune(result):
                    logger.warning(
                        "fanout.prune",
                        extra={
                            "did": line_id,
                            "app_id": registration.app_id,
                            "status": result.status_code,
                            "error": result.error[:200],
                        },
                    )
                    outcome.pruned.add(registration)

        self.registry.remove_registrations(line_id, outcome.pruned)

        logger.info(
            "fanout.done",
            extra={
                "did": line_id,
                "delivered": len(outcome.delivered),
                "failed": len(outcome.failed),
                "pruned": len(outcome.pruned),
            },
        )
        return outcome
