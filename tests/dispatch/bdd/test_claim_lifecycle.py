"""BDD tests for claiming, expiry and release."""

from pytest_bdd import parsers, scenarios, then, when

from dispatch.order.engine import Outcome

scenarios("features/claim_lifecycle.feature")


@when(
    parsers.cfparse('pilot "{pilot}" claims the order for {duration:d} ms at t={offset:d}'),
    target_fixture="result",
)
def claim_for(engine, order, pilot, duration, offset, at):
    return engine.claim_order(str(order.id), pilot, claim_duration_ms=duration, now=at(offset))


@when(parsers.cfparse('pilot "{pilot}" claims the order at t={offset:d}'), target_fixture="result")
def claim_at(engine, order, pilot, offset, at):
    return engine.claim_order(str(order.id), pilot, now=at(offset))


@when(parsers.cfparse("the reaper sweeps at t={offset:d}"), target_fixture="released")
def sweep(engine, offset, at):
    return engine.sweep_expired_claims(at(offset))


@when(parsers.cfparse('pilot "{pilot}" releases the order'), target_fixture="result")
def release(engine, order, pilot, at):
    return engine.release_claim(str(order.id), pilot, now=at(1_000))


@then(parsers.cfparse("the claim expires at t={offset:d}"))
def claim_expires_at(result, offset, at):
    assert result.order.claim_expires_at == at(offset)


@then("the claim is rejected as a conflict")
def claim_conflict(result):
    assert result.outcome is Outcome.CONFLICT
    assert result.reason == "Already claimed or unavailable"


@then(parsers.cfparse("the last sweep released {count:d} orders"))
def last_sweep(released, count):
    assert len(released) == count


@then("the release is rejected")
def release_rejected(result):
    assert not result.success
