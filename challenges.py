# challenges.py
# Per-member verification challenges (typed word / math problem)

import asyncio
import datetime
import enum
import operator
import random
import string
from dataclasses import dataclass
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from discord_utils import utcnow

CHALLENGE_TTL = datetime.timedelta(minutes=5)
SWEEP_INTERVAL = 30
WORD_LENGTH = 6
WORD_ALPHABET = string.ascii_lowercase
MATH_OPERAND_RANGE = (1, 12)
MATH_ADDITION_PROBABILITY = 0.6
MATH_OPERATORS = {"+": operator.add, "×": operator.mul}
MODAL_LABEL_LIMIT = 45


class ChallengeKind(enum.Enum):
    WORD = "word"
    MATH = "math"


class ChallengeKey(NamedTuple):
    guild_id: int
    member_id: int


@dataclass
class Challenge:
    key: ChallengeKey
    kind: ChallengeKind
    expected_answer: str
    issued_at: datetime.datetime
    expires_at: datetime.datetime
    prompt: Optional[str] = None

    def is_expired(self, now: datetime.datetime) -> bool:
        return now >= self.expires_at

    def instructions(self) -> str:
        if self.kind is ChallengeKind.WORD:
            return f"Type this exact word (private): **{self.expected_answer}**"
        return f"Solve this math problem (private): **{self.prompt}**"

    def modal_label(self) -> str:
        label = f"Type this exact word: {self.expected_answer}" if self.kind is ChallengeKind.WORD else f"Solve: {self.prompt}"
        if len(label) > MODAL_LABEL_LIMIT:
            label = label[:MODAL_LABEL_LIMIT - 3] + "..."
        return label


class ValidationResult(enum.Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


def generate_word(rng: random.Random, length: int = WORD_LENGTH) -> str:
    return "".join(rng.choice(WORD_ALPHABET) for _ in range(length))


def generate_math(rng: random.Random) -> Tuple[str, str]:
    """Return (prompt, answer) for a small addition or multiplication."""
    low, high = MATH_OPERAND_RANGE
    a, b = rng.randint(low, high), rng.randint(low, high)
    symbol = "+" if rng.random() < MATH_ADDITION_PROBABILITY else "×"
    return f"{a} {symbol} {b}", str(MATH_OPERATORS[symbol](a, b))


def evaluate_math_prompt(prompt: str) -> int:
    a, symbol, b = prompt.split()
    return MATH_OPERATORS[symbol](int(a), int(b))


class ChallengeStore:
    """
    At most one live challenge per (guild, member).

    Expired entries are treated as absent on every read and are also purged
    by a periodic sweep. Removal on a correct answer happens before the
    caller gets a chance to await anything, so a challenge can be redeemed
    only once.
    """

    def __init__(self, clock: Callable[[], datetime.datetime] = utcnow,
                 ttl: datetime.timedelta = CHALLENGE_TTL, rng: random.Random = None):
        self.clock = clock
        self.ttl = ttl
        self.rng = rng or random.SystemRandom()
        self._challenges: Dict[ChallengeKey, Challenge] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self):
        return len(self._challenges)

    def __contains__(self, key):
        return key in self._challenges

    def issue(self, key: ChallengeKey, kinds: Sequence) -> Challenge:
        kinds = [k if isinstance(k, ChallengeKind) else ChallengeKind(k) for k in kinds]
        if not kinds:
            raise ValueError("no challenge kinds enabled")
        kind = self.rng.choice(kinds)
        now = self.clock()
        if kind is ChallengeKind.WORD:
            challenge = Challenge(key, kind, generate_word(self.rng), now, now + self.ttl)
        else:
            prompt, answer = generate_math(self.rng)
            challenge = Challenge(key, kind, answer, now, now + self.ttl, prompt=prompt)
        # overwrites any earlier challenge for this member
        self._challenges[key] = challenge
        return challenge

    def get(self, key: ChallengeKey) -> Optional[Challenge]:
        challenge = self._challenges.get(key)
        if challenge is None:
            return None
        if challenge.is_expired(self.clock()):
            self._challenges.pop(key, None)
            return None
        return challenge

    def lookup(self, key: ChallengeKey) -> Tuple[Optional[Challenge], Optional[ValidationResult]]:
        """Like get(), but tells an expired challenge apart from a missing one."""
        challenge = self._challenges.get(key)
        if challenge is None:
            return None, ValidationResult.NOT_FOUND
        if challenge.is_expired(self.clock()):
            self._challenges.pop(key, None)
            return None, ValidationResult.EXPIRED
        return challenge, None

    def validate(self, key: ChallengeKey, answer: str) -> ValidationResult:
        challenge, problem = self.lookup(key)
        if problem is not None:
            return problem
        if (answer or "").strip() == challenge.expected_answer:
            self._challenges.pop(key, None)
            return ValidationResult.CORRECT
        return ValidationResult.INCORRECT

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [k for k, c in self._challenges.items() if c.is_expired(now)]
        for k in expired:
            self._challenges.pop(k, None)
        return len(expired)

    def start_sweeper(self, interval: float = SWEEP_INTERVAL):
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_forever(interval), name="challenge-sweeper")

    async def stop_sweeper(self):
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_forever(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            removed = self.purge_expired()
            if removed:
                print(f"challenge sweep: purged {removed} expired challenge(s)")


class VerifyOutcome(enum.Enum):
    NOT_RESTRICTED = "not_restricted"
    VERIFIED = "verified"
    CHALLENGE_ISSUED = "challenge_issued"
    NO_METHODS = "no_methods"


class SubmitOutcome(enum.Enum):
    VERIFIED = "verified"
    INCORRECT = "incorrect"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    NOT_RESTRICTED = "not_restricted"


class VerificationFlow:
    """Connects the Verify button and the answer modal to the Sus role."""

    def __init__(self, config_store, restrictions, store: ChallengeStore):
        self.config_store = config_store
        self.restrictions = restrictions
        self.store = store

    async def request(self, member) -> Tuple[VerifyOutcome, Optional[Challenge]]:
        if not self.restrictions.is_restricted(member):
            return VerifyOutcome.NOT_RESTRICTED, None
        config = self.config_store.config
        kinds: List[str] = config.challenge_methods()
        if not kinds:
            if "button" in config.verification_methods:
                await self.restrictions.unrestrict(member, None, "Verified via button")
                return VerifyOutcome.VERIFIED, None
            return VerifyOutcome.NO_METHODS, None
        challenge = self.store.issue(ChallengeKey(member.guild.id, member.id), kinds)
        return VerifyOutcome.CHALLENGE_ISSUED, challenge

    async def submit(self, member, answer: str) -> SubmitOutcome:
        key = ChallengeKey(member.guild.id, member.id)
        result = self.store.validate(key, answer)
        if result is ValidationResult.NOT_FOUND:
            return SubmitOutcome.NOT_FOUND
        if result is ValidationResult.EXPIRED:
            return SubmitOutcome.EXPIRED
        if result is ValidationResult.INCORRECT:
            return SubmitOutcome.INCORRECT
        if not self.restrictions.is_restricted(member):
            return SubmitOutcome.NOT_RESTRICTED
        await self.restrictions.unrestrict(member, None, "Verified via challenge")
        return SubmitOutcome.VERIFIED
