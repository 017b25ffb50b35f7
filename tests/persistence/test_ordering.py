import pytest

from ledgerorm import UnresolvableDependencyCycleError
from ledgerorm.persistence import plan_deletes, plan_inserts

from tests.support.models import Category, Employee, Gear, Task, User, build_registry


@pytest.fixture
def registry():
    return build_registry()


def test_referenced_entities_are_inserted_first(registry):
    category = Category("Development")
    user = User("ada@example.com")
    task = Task("Write tests", category, assignee=user)

    plan = plan_inserts([task, category, user], registry)

    assert plan.order == [category, user, task]
    assert plan.deferred == []


def test_ties_keep_scheduling_order(registry):
    first, second, third = Category("A"), Category("B"), Category("C")
    plan = plan_inserts([second, third, first], registry)
    assert plan.order == [second, third, first]


def test_references_outside_the_batch_are_ignored(registry):
    category = Category("Development")
    category.id = 7
    task = Task("Write tests", category)
    plan = plan_inserts([task], registry)
    assert plan.order == [task]


def test_nullable_cycle_is_deferred(registry):
    alice = Employee("Alice")
    bob = Employee("Bob", manager=alice)
    alice.manager = bob

    plan = plan_inserts([alice, bob], registry)

    assert len(plan.order) == 2
    assert len(plan.deferred) == 1
    deferred = plan.deferred[0]
    assert deferred.owner is alice
    assert deferred.association.field_name == "manager"
    assert plan.order == [alice, bob]


def test_self_reference_without_identifier_is_deferred(registry):
    loner = Employee("Loner")
    loner.manager = loner
    plan = plan_inserts([loner], registry)
    assert plan.order == [loner]
    assert plan.deferred[0].owner is loner


def test_mandatory_cycle_raises_with_entities(registry):
    left = Gear("left")
    right = Gear("right", partner=left)
    left.partner = right

    with pytest.raises(UnresolvableDependencyCycleError) as excinfo:
        plan_inserts([left, right], registry)

    assert {id(entity) for entity in excinfo.value.entities} == {id(left), id(right)}


def test_deletes_remove_referrers_first(registry):
    category = Category("Development")
    task = Task("Write tests", category)
    plan = plan_deletes([category, task], registry)
    assert plan.order == [task, category]
