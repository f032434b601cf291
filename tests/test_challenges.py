"""
Web Client Detector - Challenge Tests
=====================================

Word and math challenges, expiry, single redemption and the
Verify button / modal flow.
"""

import asyncio
import random
import re

import pytest

from challenges import (
    MODAL_LABEL_LIMIT,
    Challenge,
    ChallengeKey,
    ChallengeKind,
    ChallengeStore,
    SubmitOutcome,
    ValidationResult,
    VerificationFlow,
    VerifyOutcome,
    evaluate_math_prompt,
    generate_math,
    generate_word,
)
from fakes import GUILD_ID, make_member

KEY = ChallengeKey(GUILD_ID, 42)


@pytest.fixture
def store(clock):
    return ChallengeStore(clock=clock, rng=random.Random(1234))


@pytest.fixture
def flow(config_store, restrictions, store):
    return VerificationFlow(config_store, restrictions, store)


# =============================================================================
# Generators
# =============================================================================

def test_generated_words_are_six_lowercase_letters():
    rng = random.Random(7)
    for _ in range(50):
        assert re.fullmatch(r"[a-z]{6}", generate_word(rng))


def test_math_answers_match_their_prompts():
    rng = random.Random(7)
    symbols = set()
    for _ in range(200):
        prompt, answer = generate_math(rng)
        a, symbol, b = prompt.split()
        symbols.add(symbol)
        assert 1 <= int(a) <= 12 and 1 <= int(b) <= 12
        assert answer == str(evaluate_math_prompt(prompt))
    assert symbols == {"+", "×"}


def test_modal_label_is_truncated_to_limit(clock):
    long_prompt = "1" * 80
    challenge = Challenge(KEY, ChallengeKind.MATH, "0", clock(), clock(), prompt=long_prompt)
    label = challenge.modal_label()
    assert len(label) == MODAL_LABEL_LIMIT
    assert label.endswith("...")


# =============================================================================
# Store
# =============================================================================

def test_issue_replaces_existing_challenge(store):
    first = store.issue(KEY, ["word"])
    second = store.issue(KEY, ["math"])
    assert len(store) == 1
    assert store.get(KEY) is second
    assert store.validate(KEY, first.expected_answer) is ValidationResult.INCORRECT


def test_issue_without_kinds_is_rejected(store):
    with pytest.raises(ValueError):
        store.issue(KEY, [])


def test_correct_answer_consumes_challenge(store):
    challenge = store.issue(KEY, ["word"])
    assert store.validate(KEY, f"  {challenge.expected_answer}\n") is ValidationResult.CORRECT
    assert KEY not in store
    assert store.validate(KEY, challenge.expected_answer) is ValidationResult.NOT_FOUND


def test_answers_are_case_sensitive(store):
    challenge = store.issue(KEY, ["word"])
    assert store.validate(KEY, challenge.expected_answer.upper()) is ValidationResult.INCORRECT


def test_wrong_answer_keeps_challenge(store):
    challenge = store.issue(KEY, ["math"])
    assert store.validate(KEY, "not a number") is ValidationResult.INCORRECT
    assert store.get(KEY) is challenge
    assert store.validate(KEY, challenge.expected_answer) is ValidationResult.CORRECT


def test_expired_challenge_is_rejected_and_removed(store, clock):
    challenge = store.issue(KEY, ["word"])
    clock.advance(minutes=5)
    assert store.validate(KEY, challenge.expected_answer) is ValidationResult.EXPIRED
    assert KEY not in store


def test_challenge_valid_just_before_expiry(store, clock):
    challenge = store.issue(KEY, ["word"])
    clock.advance(minutes=4, seconds=59)
    assert store.validate(KEY, challenge.expected_answer) is ValidationResult.CORRECT


def test_purge_removes_only_expired(store, clock):
    store.issue(KEY, ["word"])
    clock.advance(minutes=3)
    other = ChallengeKey(GUILD_ID, 43)
    store.issue(other, ["math"])
    clock.advance(minutes=2, seconds=30)

    assert store.purge_expired() == 1
    assert KEY not in store
    assert other in store


def test_keys_are_scoped_per_guild(store):
    store.issue(KEY, ["word"])
    assert store.get(ChallengeKey(GUILD_ID + 1, KEY.member_id)) is None


@pytest.mark.asyncio
async def test_sweeper_runs_and_stops(store, clock):
    store.issue(KEY, ["word"])
    clock.advance(minutes=10)
    store.start_sweeper(interval=0.01)
    await asyncio.sleep(0.05)
    await store.stop_sweeper()
    assert len(store) == 0


# =============================================================================
# Verification flow
# =============================================================================

@pytest.mark.asyncio
async def test_request_refused_when_member_not_restricted(flow, guild, store):
    member = make_member(42, guild)
    outcome, challenge = await flow.request(member)
    assert outcome is VerifyOutcome.NOT_RESTRICTED
    assert challenge is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_button_only_verifies_immediately(flow, guild, sus_role, queue, audit):
    member = make_member(42, guild, roles=[sus_role])

    outcome, _ = await flow.request(member)
    await queue.join()
    await queue.stop()

    assert outcome is VerifyOutcome.VERIFIED
    member.remove_roles.assert_awaited_once()
    assert "Verified via button" in audit.append.await_args.args[1]


@pytest.mark.asyncio
async def test_request_issues_challenge_from_enabled_kinds(flow, guild, sus_role, config_store, store):
    config_store.config.verification_methods = ["button", "math"]
    member = make_member(42, guild, roles=[sus_role])

    outcome, challenge = await flow.request(member)

    assert outcome is VerifyOutcome.CHALLENGE_ISSUED
    assert challenge.kind is ChallengeKind.MATH
    assert store.get(KEY) is challenge
    member.remove_roles.assert_not_awaited()


@pytest.mark.asyncio
async def test_correct_submission_verifies(flow, guild, sus_role, config_store, queue, audit):
    config_store.config.verification_methods = ["word"]
    member = make_member(42, guild, roles=[sus_role])
    _, challenge = await flow.request(member)

    assert await flow.submit(member, challenge.expected_answer) is SubmitOutcome.VERIFIED
    await queue.join()
    await queue.stop()

    member.remove_roles.assert_awaited_once()
    assert "Verified via challenge by system" in audit.append.await_args.args[1]


@pytest.mark.asyncio
async def test_concurrent_correct_submissions_verify_once(flow, guild, sus_role, config_store, queue):
    config_store.config.verification_methods = ["word"]
    member = make_member(42, guild, roles=[sus_role])
    _, challenge = await flow.request(member)

    outcomes = await asyncio.gather(
        flow.submit(member, challenge.expected_answer),
        flow.submit(member, challenge.expected_answer),
    )
    await queue.join()
    await queue.stop()

    assert sorted(o.value for o in outcomes) == ["not_found", "verified"]
    member.remove_roles.assert_awaited_once()


@pytest.mark.asyncio
async def test_wrong_submission_keeps_member_restricted(flow, guild, sus_role, config_store, store):
    config_store.config.verification_methods = ["word"]
    member = make_member(42, guild, roles=[sus_role])
    await flow.request(member)

    assert await flow.submit(member, "nope") is SubmitOutcome.INCORRECT
    assert KEY in store
    member.remove_roles.assert_not_awaited()


@pytest.mark.asyncio
async def test_expired_submission_is_rejected(flow, guild, sus_role, config_store, clock):
    config_store.config.verification_methods = ["word"]
    member = make_member(42, guild, roles=[sus_role])
    _, challenge = await flow.request(member)
    clock.advance(minutes=6)

    assert await flow.submit(member, challenge.expected_answer) is SubmitOutcome.EXPIRED
    member.remove_roles.assert_not_awaited()


@pytest.mark.asyncio
async def test_submission_after_role_removed_elsewhere(flow, guild, sus_role, config_store):
    config_store.config.verification_methods = ["word"]
    member = make_member(42, guild, roles=[sus_role])
    _, challenge = await flow.request(member)
    member.roles.clear()

    assert await flow.submit(member, challenge.expected_answer) is SubmitOutcome.NOT_RESTRICTED
    member.remove_roles.assert_not_awaited()
