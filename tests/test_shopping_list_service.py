import pytest

from larder.core.errors import (
    DuplicateItemError, EmptyUpdateError, HouseholdNotFoundError, ItemNotFoundError,
    ShoppingListNotFoundError, TransferToPantryError
)
from larder.modules.pantry.schemas import PantryItemInput
from larder.modules.pantry.service import PantryService
from larder.modules.shopping_lists.schemas import ShoppingListItemInput
from larder.modules.shopping_lists.service import ShoppingListService


@pytest.fixture
def service(db):
    return ShoppingListService(db)


@pytest.fixture
def home(alice, make_household):
    return make_household(alice)


@pytest.fixture
def shopping_list(service, alice, home):
    return service.get_or_create_shopping_list(home.id, alice.id)


def add(service, shopping_list, user, *specs):
    return service.add_items(
        shopping_list.id,
        user.id,
        [ShoppingListItemInput(name=name, quantity=quantity, unit=unit) for name, quantity, unit in specs],
    )


def pantry_rows(db, household_id):
    pantry = db.rows("pantries", household_id=household_id)[0]
    return db.rows("pantry_items", pantry_id=pantry["id"])


def test_shopping_list_is_created_lazily(db, service, alice, home):
    db.tables["shopping_lists"].clear()

    created = service.get_or_create_shopping_list(home.id, alice.id)
    again = service.get_or_create_shopping_list(home.id, alice.id)

    assert created.id == again.id
    assert len(db.rows("shopping_lists", household_id=home.id)) == 1


def test_shopping_list_of_foreign_household_is_not_found(service, bob, home):
    with pytest.raises(HouseholdNotFoundError):
        service.get_or_create_shopping_list(home.id, bob.id)


def test_items_of_foreign_list_are_hidden(service, bob, shopping_list):
    with pytest.raises(ShoppingListNotFoundError):
        service.list_items(shopping_list.id, bob.id)


def test_add_items_duplicate_rejects_whole_batch(db, service, alice, shopping_list):
    add(service, shopping_list, alice, ("apples", 3, None))

    with pytest.raises(DuplicateItemError):
        add(service, shopping_list, alice, ("pears", 2, None), ("Apples", 1, None))

    assert [r["name"] for r in db.tables["shopping_list_items"]] == ["apples"]


def test_list_items_filters_and_sorts(db, service, alice, shopping_list):
    add(service, shopping_list, alice, ("carrots", 1, None), ("apples", 1, None), ("bread", 1, None))
    for row in db.rows("shopping_list_items", name="carrots"):
        row["is_purchased"] = True

    unpurchased = service.list_items(shopping_list.id, alice.id, is_purchased=False)
    by_state = service.list_items(shopping_list.id, alice.id, sort="isPurchased")

    assert [i.name for i in unpurchased] == ["apples", "bread"]
    assert [i.name for i in by_state] == ["apples", "bread", "carrots"]


def test_purchase_merges_into_existing_pantry_item(db, service, alice, home, shopping_list):
    PantryService(db).add_items(home.id, alice.id, [PantryItemInput(name="Milk", quantity=2, unit="l")])
    item = add(service, shopping_list, alice, ("milk", 1, "l"))[0]

    result = service.update_item(shopping_list.id, item.id, alice.id, {"is_purchased": True})

    assert result.item.is_purchased is True
    assert result.pantry_item.name == "Milk"
    assert result.pantry_item.quantity == 3
    assert [(r["name"], r["quantity"]) for r in pantry_rows(db, home.id)] == [("Milk", 3)]
    assert db.tables["shopping_list_items"] == []


def test_purchase_creates_pantry_item_when_absent(db, service, alice, home, shopping_list):
    item = add(service, shopping_list, alice, ("butter", 250, "g"))[0]

    result = service.update_item(shopping_list.id, item.id, alice.id, {"is_purchased": True})

    assert result.pantry_item.name == "butter"
    assert result.pantry_item.unit == "g"
    assert len(pantry_rows(db, home.id)) == 1


def test_failed_transfer_keeps_shopping_list_item(db, service, alice, home, shopping_list):
    item = add(service, shopping_list, alice, ("butter", 250, "g"))[0]
    db.fail("pantry_items", "insert")

    with pytest.raises(TransferToPantryError):
        service.update_item(shopping_list.id, item.id, alice.id, {"is_purchased": True})

    assert len(db.tables["shopping_list_items"]) == 1
    assert pantry_rows(db, home.id) == []


def test_plain_update_keeps_item_on_list(service, alice, shopping_list):
    item = add(service, shopping_list, alice, ("rice", 1, "kg"))[0]

    result = service.update_item(shopping_list.id, item.id, alice.id, {"quantity": 2, "unit": "bag"})

    assert result.item.quantity == 2
    assert result.item.unit == "bag"
    assert result.pantry_item is None


def test_update_item_requires_a_field(service, alice, shopping_list):
    item = add(service, shopping_list, alice, ("rice", 1, "kg"))[0]

    with pytest.raises(EmptyUpdateError):
        service.update_item(shopping_list.id, item.id, alice.id, {"quantity": None})


def test_delete_missing_item_is_not_found(service, alice, shopping_list):
    with pytest.raises(ItemNotFoundError):
        service.delete_item(shopping_list.id, "missing", alice.id)


def test_bulk_delete_reports_missing_items(service, alice, shopping_list):
    first, second = add(service, shopping_list, alice, ("eggs", 6, None), ("ham", 1, None))

    result = service.bulk_delete(shopping_list.id, [first.id, second.id, "missing"], alice.id)

    assert result.deleted == [first.id, second.id]
    assert [(f.item_id, f.reason) for f in result.failed] == [("missing", "Item not found")]
    assert (result.summary.total, result.summary.successful, result.summary.failed) == (3, 2, 1)


def test_bulk_delete_store_error_is_recorded_per_item(db, service, alice, shopping_list):
    first, second = add(service, shopping_list, alice, ("eggs", 6, None), ("ham", 1, None))
    db.fail("shopping_list_items", "delete")

    result = service.bulk_delete(shopping_list.id, [first.id, second.id], alice.id)

    assert result.deleted == [second.id]
    assert result.failed[0].reason == "Database error"


def test_bulk_purchase_continues_past_failures(db, service, alice, home, shopping_list):
    tea, jam, honey = add(service, shopping_list, alice, ("tea", 1, "box"), ("jam", 1, "jar"), ("honey", 1, None))
    for row in db.rows("shopping_list_items", id=jam.id):
        row["is_purchased"] = True

    result = service.bulk_purchase(shopping_list.id, [tea.id, jam.id, "missing", honey.id], alice.id)

    assert result.purchased == [tea.id, honey.id]
    assert [t.item_id for t in result.transferred] == [tea.id, honey.id]
    assert {f.item_id: f.reason for f in result.failed} == {
        jam.id: "Item already purchased",
        "missing": "Item not found",
    }
    assert (result.summary.total, result.summary.successful, result.summary.failed) == (4, 2, 2)
    assert sorted(r["name"] for r in pantry_rows(db, home.id)) == ["honey", "tea"]


def test_bulk_purchase_records_transfer_failure(db, service, alice, home, shopping_list):
    tea, honey = add(service, shopping_list, alice, ("tea", 1, "box"), ("honey", 1, None))
    db.fail("pantry_items", "insert")

    result = service.bulk_purchase(shopping_list.id, [tea.id, honey.id], alice.id)

    assert result.purchased == [honey.id]
    assert result.failed[0].item_id == tea.id
    assert result.failed[0].reason == "Failed to transfer 'tea' to pantry: injected insert failure on pantry_items"
    assert len(db.rows("shopping_list_items", id=tea.id)) == 1


def test_bulk_purchase_records_delete_failure_after_transfer(db, service, alice, shopping_list):
    tea = add(service, shopping_list, alice, ("tea", 1, "box"))[0]
    db.fail("shopping_list_items", "delete")

    result = service.bulk_purchase(shopping_list.id, [tea.id], alice.id)

    assert result.purchased == []
    assert result.failed[0].reason == "Failed to delete from shopping list"
