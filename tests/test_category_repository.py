"""Tests for CategoryRepository against a real SQLite file."""

import itertools
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from ledger.category import schemas
from ledger.category.models import CategoryType
from ledger.core.errors import CategoryExistsError, DatabaseValidationError, NotFoundError


@pytest.fixture
def ticking_clock(monkeypatch):
    """Make every repository timestamp one second later than the previous one."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()
    monkeypatch.setattr("ledger.category.repository.utcnow", lambda: start + timedelta(seconds=next(ticks)))
    return start


class TestCreate:

    def test_create_assigns_id_and_timestamps(self, run_with_repository, category_factory):
        payload = category_factory(code="exp.foo.gro", name="Groceries", color="ef6c00")

        async def scenario(repo):
            return await repo.create(payload)

        category = run_with_repository(scenario)
        assert uuid.UUID(category.id)
        assert category.code == "EXP.FOO.GRO"
        assert category.url_slug == "groceries"
        assert category.color == "#EF6C00"
        assert category.is_active is True
        assert category.created_on.tzinfo == timezone.utc
        assert category.created_on == category.updated_on

    def test_duplicate_code_is_rejected(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(code="EXP.FOO.GRO"))
            with pytest.raises(CategoryExistsError) as excinfo:
                await repo.create(category_factory(code="exp.foo.gro", name="Other"))
            return excinfo.value, await repo.get_all()

        error, stored = run_with_repository(scenario)
        assert error.field == "code"
        assert len(stored) == 1

    def test_create_many_is_atomic(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(code="EXP.FOO.GRO"))
            with pytest.raises(CategoryExistsError):
                await repo.create_many([
                    category_factory(code="EXP.FOO.DIN"),
                    category_factory(code="EXP.FOO.GRO"),
                ])
            return await repo.get_all()

        stored = run_with_repository(scenario)
        assert [category.code for category in stored] == ["EXP.FOO.GRO"]

    def test_create_many(self, run_with_repository, category_factory):
        async def scenario(repo):
            created = await repo.create_many([category_factory(), category_factory(), category_factory()])
            return created, await repo.get_all()

        created, stored = run_with_repository(scenario)
        assert len(created) == 3
        assert {category.id for category in created} == {category.id for category in stored}

    def test_create_many_empty(self, run_with_repository):
        async def scenario(repo):
            return await repo.create_many([])

        assert run_with_repository(scenario) == []


class TestLookups:

    def test_get_by_id_and_code(self, run_with_repository, category_factory):
        async def scenario(repo):
            created = await repo.create(category_factory(code="INC.EMP.SAL", category_type="income"))
            by_id = await repo.get_by_id(created.id)
            by_code = await repo.get_by_code(" inc.emp.sal ")
            return created, by_id, by_code

        created, by_id, by_code = run_with_repository(scenario)
        assert by_id.id == created.id
        assert by_code.id == created.id

    def test_missing_records_raise_not_found(self, run_with_repository):
        async def scenario(repo):
            errors = []
            for lookup, argument in (
                (repo.get_by_id, str(uuid.uuid4())),
                (repo.get_by_code, "ZZZ.ZZZ.ZZZ"),
                (repo.get_by_url_slug, "nothing-here"),
            ):
                with pytest.raises(NotFoundError) as excinfo:
                    await lookup(argument)
                errors.append(excinfo.value)
            return errors

        errors = run_with_repository(scenario)
        assert "ZZZ.ZZZ.ZZZ" in errors[1].message
        assert str(errors[0]).startswith("Not found: Category with id")

    def test_get_by_url_slug(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(name="Pet Supplies"))
            return await repo.get_by_url_slug("pet-supplies")

        assert run_with_repository(scenario).name == "Pet Supplies"

    def test_find_by_name_is_case_insensitive(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(name="Groceries"))
            await repo.create(category_factory(name="Grocery Delivery"))
            await repo.create(category_factory(name="Fuel"))
            await repo.create(category_factory(name="100% Cotton"))
            return await repo.find_by_name("GROCER"), await repo.find_by_name("%")

        grocer, percent = run_with_repository(scenario)
        assert sorted(category.name for category in grocer) == ["Groceries", "Grocery Delivery"]
        assert [category.name for category in percent] == ["100% Cotton"]

    def test_active_and_type_views(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(code="EXP.AAA.AAA", category_type="expense"))
            await repo.create(category_factory(code="EXP.BBB.BBB", category_type="expense", is_active=False))
            await repo.create(category_factory(code="INC.AAA.AAA", category_type="income"))
            return {
                "active": await repo.get_active(),
                "inactive": await repo.get_inactive(),
                "expense": await repo.get_by_type(CategoryType.EXPENSE),
                "active_expense": await repo.get_active_by_type("expense"),
            }

        views = {name: sorted(c.code for c in found) for name, found in run_with_repository(scenario).items()}
        assert views == {
            "active": ["EXP.AAA.AAA", "INC.AAA.AAA"],
            "inactive": ["EXP.BBB.BBB"],
            "expense": ["EXP.AAA.AAA", "EXP.BBB.BBB"],
            "active_expense": ["EXP.AAA.AAA"],
        }


    def test_type_lookups_accept_any_case(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(code="INC.AAA.AAA", category_type="income"))
            by_type = await repo.get_by_type(" Income ")
            active = await repo.get_active_by_type("INCOME")
            filtered, total = await repo.find_with_filters(category_type="income")
            return [len(by_type), len(active), len(filtered), total]

        assert run_with_repository(scenario) == [1, 1, 1, 1]

    def test_unknown_type_is_a_validation_error(self, run_with_repository):
        async def scenario(repo):
            errors = []
            for lookup in (repo.get_by_type, repo.get_active_by_type):
                with pytest.raises(DatabaseValidationError) as excinfo:
                    await lookup("revenue")
                errors.append(excinfo.value)
            with pytest.raises(DatabaseValidationError) as excinfo:
                await repo.find_with_filters(category_type="revenue")
            errors.append(excinfo.value)
            return errors

        errors = run_with_repository(scenario)
        assert [error.field for error in errors] == ["category_type"] * 3
        assert "revenue" in errors[0].message


class TestFindWithFilters:

    @pytest.fixture
    def seeded(self, category_factory):
        return [
            category_factory(code="EXP.AAA.001", name="Alpha", category_type="expense"),
            category_factory(code="EXP.AAA.002", name="Bravo", category_type="expense", is_active=False),
            category_factory(code="INC.AAA.003", name="Charlie", category_type="income"),
            category_factory(code="INC.AAA.004", name="Delta", category_type="income", is_active=False),
            category_factory(code="AST.AAA.005", name="Echo", category_type="asset"),
        ]

    def test_type_and_active_filters_combine(self, run_with_repository, seeded):
        async def scenario(repo):
            await repo.create_many(seeded)
            return await repo.find_with_filters(category_type=CategoryType.INCOME, is_active=True)

        categories, total = run_with_repository(scenario)
        assert total == 1
        assert [category.name for category in categories] == ["Charlie"]

    def test_total_ignores_paging(self, run_with_repository, seeded):
        async def scenario(repo):
            await repo.create_many(seeded)
            first = await repo.find_with_filters(sort_by="name", sort_desc=False, offset=0, limit=2)
            second = await repo.find_with_filters(sort_by="name", sort_desc=False, offset=2, limit=2)
            beyond = await repo.find_with_filters(offset=50, limit=10)
            return first, second, beyond

        (first, first_total), (second, second_total), (beyond, beyond_total) = run_with_repository(scenario)
        assert [category.name for category in first] == ["Alpha", "Bravo"]
        assert [category.name for category in second] == ["Charlie", "Delta"]
        assert first_total == second_total == beyond_total == 5
        assert beyond == []

    def test_sort_descending(self, run_with_repository, seeded):
        async def scenario(repo):
            await repo.create_many(seeded)
            return await repo.find_with_filters(sort_by=schemas.SortField.CODE, sort_desc=True)

        categories, _ = run_with_repository(scenario)
        codes = [category.code for category in categories]
        assert codes == sorted(codes, reverse=True)

    @pytest.mark.parametrize(
        "arguments, field",
        [
            ({"offset": -1}, "offset"),
            ({"limit": 0}, "limit"),
            ({"sort_by": "colour"}, "sort_by"),
        ],
    )
    def test_rejects_bad_paging(self, run_with_repository, arguments, field):
        async def scenario(repo):
            with pytest.raises(DatabaseValidationError) as excinfo:
                await repo.find_with_filters(**arguments)
            return excinfo.value

        assert run_with_repository(scenario).field == field


class TestUpsert:

    def test_insert_then_update_preserves_created_on(self, run_with_repository, category_factory, ticking_clock):
        category_id = str(uuid.uuid4())

        async def scenario(repo):
            inserted, created = await repo.upsert(category_id, category_factory(code="EXP.UPS.ERT", name="First"))
            created_on = inserted.created_on
            updated, created_again = await repo.upsert(
                category_id, category_factory(code="EXP.UPS.ERT", name="Second")
            )
            return created, created_again, created_on, updated, await repo.get_all()

        created, created_again, created_on, updated, stored = run_with_repository(scenario)
        assert created is True
        assert created_again is False
        assert updated.id == category_id
        assert updated.name == "Second"
        assert updated.created_on == created_on
        assert created_on == ticking_clock
        assert updated.updated_on > created_on
        assert len(stored) == 1


class TestUpdate:

    def test_partial_update(self, run_with_repository, category_factory, ticking_clock):
        async def scenario(repo):
            created = await repo.create(category_factory(name="Groceries", color="#EF6C00", icon="cart"))
            original_updated_on = created.updated_on
            changes = schemas.CategoryUpdate(name="Food", icon=None)
            updated = await repo.update(created.id, changes)
            return created, original_updated_on, updated

        created, original_updated_on, updated = run_with_repository(scenario)
        assert updated.name == "Food"
        assert updated.icon is None
        assert updated.color == "#EF6C00"
        assert updated.code == created.code
        assert updated.created_on == original_updated_on
        assert updated.updated_on > original_updated_on

    def test_null_required_fields_are_ignored(self, run_with_repository, category_factory):
        async def scenario(repo):
            created = await repo.create(category_factory(name="Groceries"))
            return await repo.update(created.id, schemas.CategoryUpdate(name=None, is_active=None))

        updated = run_with_repository(scenario)
        assert updated.name == "Groceries"
        assert updated.is_active is True

    def test_update_to_taken_code(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(code="EXP.AAA.AAA"))
            other_id = (await repo.create(category_factory(code="EXP.BBB.BBB"))).id
            with pytest.raises(CategoryExistsError):
                await repo.update(other_id, schemas.CategoryUpdate(code="EXP.AAA.AAA"))
            return await repo.get_by_id(other_id)

        assert run_with_repository(scenario).code == "EXP.BBB.BBB"

    def test_update_missing(self, run_with_repository):
        async def scenario(repo):
            with pytest.raises(NotFoundError):
                await repo.update(str(uuid.uuid4()), schemas.CategoryUpdate(name="Nope"))

        run_with_repository(scenario)

    def test_update_many_is_atomic(self, run_with_repository, category_factory):
        async def scenario(repo):
            created_id = (await repo.create(category_factory(name="Original"))).id
            with pytest.raises(NotFoundError):
                await repo.update_many([
                    (created_id, schemas.CategoryUpdate(name="Changed")),
                    (str(uuid.uuid4()), schemas.CategoryUpdate(name="Ghost")),
                ])
            return await repo.get_by_id(created_id)

        assert run_with_repository(scenario).name == "Original"

    def test_update_many(self, run_with_repository, category_factory):
        async def scenario(repo):
            first = await repo.create(category_factory())
            second = await repo.create(category_factory())
            return await repo.update_many([
                (first.id, schemas.CategoryUpdate(color="#000000")),
                (second.id, schemas.CategoryUpdate(is_active=False)),
            ])

        first, second = run_with_repository(scenario)
        assert first.color == "#000000"
        assert second.is_active is False

    def test_activate_and_deactivate(self, run_with_repository, category_factory, ticking_clock):
        async def scenario(repo):
            created = await repo.create(category_factory())
            stamps = [created.updated_on]
            deactivated = await repo.deactivate(created.id)
            states = [deactivated.is_active]
            stamps.append(deactivated.updated_on)
            activated = await repo.activate(created.id)
            states.append(activated.is_active)
            stamps.append(activated.updated_on)
            return states, stamps

        states, stamps = run_with_repository(scenario)
        assert states == [False, True]
        assert stamps[0] < stamps[1] < stamps[2]

    def test_update_never_moves_updated_on_before_created_on(
        self, run_with_repository, category_factory, monkeypatch
    ):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        monkeypatch.setattr("ledger.category.repository.utcnow", lambda: now)

        async def scenario(repo):
            created = await repo.create(category_factory())
            nonlocal now
            now = now - timedelta(hours=1)
            return await repo.update(created.id, schemas.CategoryUpdate(name="Skewed Clock"))

        updated = run_with_repository(scenario)
        assert updated.updated_on == updated.created_on


class TestDelete:

    def test_delete(self, run_with_repository, category_factory):
        async def scenario(repo):
            created = await repo.create(category_factory())
            await repo.delete(created.id)
            with pytest.raises(NotFoundError):
                await repo.get_by_id(created.id)
            with pytest.raises(NotFoundError):
                await repo.delete(created.id)

        run_with_repository(scenario)

    def test_delete_by_code_and_slug(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(code="EXP.DEL.ONE"))
            await repo.create(category_factory(name="Shared Name"))
            await repo.create(category_factory(name="Shared  Name!"))
            await repo.delete_by_code("exp.del.one")
            removed = await repo.delete_by_url_slug("shared-name")
            with pytest.raises(NotFoundError):
                await repo.delete_by_code("EXP.DEL.ONE")
            with pytest.raises(NotFoundError):
                await repo.delete_by_url_slug("shared-name")
            return removed, await repo.get_all()

        removed, remaining = run_with_repository(scenario)
        assert removed == 2
        assert remaining == []

    def test_delete_many_aborts_on_unknown_id(self, run_with_repository, category_factory):
        async def scenario(repo):
            first = await repo.create(category_factory())
            second = await repo.create(category_factory())
            with pytest.raises(NotFoundError):
                await repo.delete_many([first.id, str(uuid.uuid4()), second.id])
            return await repo.get_all()

        assert len(run_with_repository(scenario)) == 2

    def test_delete_many_ignores_duplicates(self, run_with_repository, category_factory):
        async def scenario(repo):
            first = await repo.create(category_factory())
            second = await repo.create(category_factory())
            await repo.create(category_factory())
            deleted = await repo.delete_many([first.id, second.id, first.id])
            return deleted, await repo.get_all()

        deleted, remaining = run_with_repository(scenario)
        assert deleted == 2
        assert len(remaining) == 1

    def test_delete_inactive_and_all(self, run_with_repository, category_factory):
        async def scenario(repo):
            await repo.create(category_factory(is_active=False))
            await repo.create(category_factory(is_active=False))
            await repo.create(category_factory())
            inactive = await repo.delete_inactive()
            remaining = [category.is_active for category in await repo.get_all()]
            everything = await repo.delete_all()
            return inactive, remaining, everything, await repo.get_all()

        inactive, remaining, everything, left = run_with_repository(scenario)
        assert inactive == 2
        assert remaining == [True]
        assert everything == 1
        assert left == []
