"""BDD tests for delivery progress after a claim."""

from pytest_bdd import parsers, scenarios, then, when

scenarios("features/delivery_progress.feature")


@when(parsers.cfparse('pilot "{pilot}" marks the order "{status}"'))
def mark(engine, order, pilot, status, outcomes, at):
    outcomes.append(engine.update_status(str(order.id), status, pilot_id=pilot, now=at(5_000)))


@when("an admin cancels the order")
def cancel(engine, order, outcomes, at):
    outcomes.append(engine.cancel_order(str(order.id), now=at(6_000)))


@then("every status update succeeded")
def all_succeeded(outcomes):
    assert outcomes
    assert all(result.success for result in outcomes)


@then("the order has a delivery time")
def has_delivery_time(engine, order, at):
    assert engine.get_order(str(order.id)).order.delivered_at == at(5_000)
